"""
Naming and parameter helpers shared by the engine and the facade.
"""

import re
from collections.abc import Mapping
from typing import Any

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
}
_IRREGULAR_SINGULARS = {plural: singular for singular, plural in _IRREGULAR_PLURALS.items()}
_UNCOUNTABLE = {"equipment", "information", "series", "species", "data", "metadata"}

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _split_last_word(name: str) -> tuple[str, str]:
    head, sep, last = name.rpartition("_")
    return head + sep, last


def singularize(name: str) -> str:
    """
    Singularize the last word of a snake_case name.

    ``roles`` -> ``role``, ``line_items`` -> ``line_item``,
    ``categories`` -> ``category``, ``addresses`` -> ``address``.
    """
    value = str(name or "").strip()
    if not value:
        return value
    prefix, word = _split_last_word(value)
    lower = word.lower()
    if lower in _UNCOUNTABLE:
        return value
    if lower in _IRREGULAR_SINGULARS:
        return prefix + _IRREGULAR_SINGULARS[lower]
    if lower.endswith("ies") and len(word) > 3:
        return prefix + word[:-3] + "y"
    if lower.endswith(("sses", "shes", "ches", "xes", "zzes")):
        return prefix + word[:-2]
    if lower.endswith("uses") and not lower.endswith("ouses"):
        return prefix + word[:-2]
    if lower.endswith("ses") and len(word) > 4:
        return prefix + word[:-1]
    if lower.endswith("ss") or lower.endswith("us"):
        return value
    if lower.endswith("s") and len(word) > 1:
        return prefix + word[:-1]
    return value


def pluralize(name: str) -> str:
    """Pluralize the last word of a snake_case name."""
    value = str(name or "").strip()
    if not value:
        return value
    prefix, word = _split_last_word(value)
    lower = word.lower()
    if lower in _UNCOUNTABLE:
        return value
    if lower in _IRREGULAR_PLURALS:
        return prefix + _IRREGULAR_PLURALS[lower]
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return prefix + word[:-1] + "ies"
    if lower.endswith(("s", "sh", "ch", "x", "z")):
        return prefix + word + "es"
    return prefix + word + "s"


def to_snake_case(name: str) -> str:
    """``LineItem`` -> ``line_item``."""
    return _CAMEL_BOUNDARY_RE.sub("_", str(name or "")).lower()


def base_name(klass: Any, postfix: str = "View") -> str:
    """``RolesView`` -> ``Role``."""
    name = getattr(klass, "__name__", str(klass))
    if postfix and name.endswith(postfix):
        name = name[: -len(postfix)]
    return "".join(part.title() for part in singularize(to_snake_case(name)).split("_"))


def instance_name(klass: Any, postfix: str = "View") -> str:
    """``LineItemsView`` -> ``line_item``."""
    return to_snake_case(base_name(klass, postfix))


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def drop_nested_values(params: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``params`` without mapping or sequence values."""
    return {
        key: value
        for key, value in params.items()
        if not is_mapping(value) and not is_sequence(value)
    }
