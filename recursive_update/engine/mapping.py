"""
Mapping specification for the recursive update engine.

Callers describe the shape of a parameter tree with plain dicts::

    {
        "roles": {
            "options": {"overrides": ["organization_id"]},
            "ones": {"owner": {}},
            "manies": {
                "permissions": {"options": {"destructive": True}},
                "delete_permissions": {"options": {"delete": True}},
            },
        }
    }

``normalize_mapping`` turns that form into immutable ``MappingEntry``
objects once, so that the engine never has to re-validate options while
walking the tree.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from django.apps import apps
from django.db import models
from django.utils.module_loading import import_string

from ..exceptions import InvalidConfigurationError
from ..utils import is_mapping, is_sequence, singularize

logger = logging.getLogger(__name__)

ENTRY_KEYS = frozenset({"options", "ones", "manies"})
OPTION_KEYS = frozenset(
    {
        "destructive",
        "delete",
        "creator",
        "overrides",
        "collection_validator",
        "parent_name",
        "class",
        "model",
    }
)


@dataclass(frozen=True)
class CallableSpec:
    """A callable plus the extra positional arguments configured for it."""

    func: Callable[..., Any]
    args: tuple[Any, ...] = ()

    def __call__(self, *leading: Any) -> Any:
        return self.func(*leading, *self.args)


@dataclass(frozen=True)
class MappingOptions:
    """Per node policies."""

    destructive: bool = False
    delete: bool = False
    creator: Optional[CallableSpec] = None
    overrides: tuple[str, ...] = ()
    collection_validator: Optional[CallableSpec] = None
    parent_name: Optional[str] = None
    model: Any = None


@dataclass(frozen=True)
class MappingEntry:
    """Describes one node type of the parameter tree."""

    name: str
    options: MappingOptions = field(default_factory=MappingOptions)
    ones: Mapping[str, "MappingEntry"] = field(default_factory=dict)
    manies: Mapping[str, "MappingEntry"] = field(default_factory=dict)

    @property
    def children(self) -> tuple[tuple[str, "MappingEntry"], ...]:
        return tuple(self.ones.items()) + tuple(self.manies.items())

    def child_parent_name(self, child: "MappingEntry") -> str:
        """Attribute used by ``child`` records to point back to this node."""
        return child.options.parent_name or singularize(self.name)


def _resolve_callable(value: Any, option_name: str, node_name: str) -> CallableSpec:
    """
    Build a ``CallableSpec`` from ``func``, ``"dotted.path"`` or
    ``[func_or_path, *args]``.
    """
    args: tuple[Any, ...] = ()
    target = value
    if is_sequence(value):
        if not value:
            raise InvalidConfigurationError(
                f"Option '{option_name}' of '{node_name}' must not be empty",
                node_name=node_name,
            )
        target, args = value[0], tuple(value[1:])
    if isinstance(target, str):
        try:
            target = import_string(target)
        except ImportError as e:
            raise InvalidConfigurationError(
                f"Option '{option_name}' of '{node_name}' cannot be imported: {e}",
                node_name=node_name,
            ) from e
    if not callable(target):
        raise InvalidConfigurationError(
            f"Option '{option_name}' of '{node_name}' must be callable",
            node_name=node_name,
        )
    return CallableSpec(func=target, args=args)


def resolve_model(value: Any, node_name: str) -> type[models.Model]:
    """Resolve a model class from a class or an ``"app_label.Model"`` string."""
    if isinstance(value, str):
        try:
            return apps.get_model(value)
        except (LookupError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Model '{value}' configured for '{node_name}' does not exist",
                node_name=node_name,
            ) from e
    if isinstance(value, type) and issubclass(value, models.Model):
        return value
    raise InvalidConfigurationError(
        f"Option 'class' of '{node_name}' must be a model class or 'app_label.Model'",
        node_name=node_name,
    )


def _normalize_options(raw: Any, node_name: str) -> MappingOptions:
    if raw is None:
        return MappingOptions()
    if not is_mapping(raw):
        raise InvalidConfigurationError(
            f"Options of '{node_name}' must be a mapping", node_name=node_name
        )
    unknown = set(raw) - OPTION_KEYS
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown options for '{node_name}': {', '.join(sorted(unknown))}",
            node_name=node_name,
        )
    if "class" in raw and "model" in raw:
        raise InvalidConfigurationError(
            f"Options 'class' and 'model' of '{node_name}' are mutually exclusive",
            node_name=node_name,
        )

    overrides = raw.get("overrides") or ()
    if isinstance(overrides, str) or not is_sequence(overrides):
        raise InvalidConfigurationError(
            f"Option 'overrides' of '{node_name}' must be a list of attribute names",
            node_name=node_name,
        )

    model = raw.get("class", raw.get("model"))
    creator = raw.get("creator")
    validator = raw.get("collection_validator")
    parent_name = raw.get("parent_name")
    if parent_name is not None and not isinstance(parent_name, str):
        raise InvalidConfigurationError(
            f"Option 'parent_name' of '{node_name}' must be a string",
            node_name=node_name,
        )

    return MappingOptions(
        destructive=bool(raw.get("destructive", False)),
        delete=bool(raw.get("delete", False)),
        creator=_resolve_callable(creator, "creator", node_name) if creator else None,
        overrides=tuple(str(name) for name in overrides),
        collection_validator=(
            _resolve_callable(validator, "collection_validator", node_name)
            if validator
            else None
        ),
        parent_name=parent_name,
        model=resolve_model(model, node_name) if model is not None else None,
    )


def _normalize_children(raw: Any, kind: str, node_name: str) -> dict[str, MappingEntry]:
    if raw is None:
        return {}
    if not is_mapping(raw):
        raise InvalidConfigurationError(
            f"'{kind}' of '{node_name}' must be a mapping", node_name=node_name
        )
    return {
        str(child_name): normalize_entry(str(child_name), child_value)
        for child_name, child_value in raw.items()
    }


def normalize_entry(name: str, raw: Any) -> MappingEntry:
    """Normalize the dict form of a single node."""
    if isinstance(raw, MappingEntry):
        return raw
    if raw is None:
        raw = {}
    if not is_mapping(raw):
        raise InvalidConfigurationError(
            f"Mapping of '{name}' must be a mapping", node_name=name
        )
    unknown = set(raw) - ENTRY_KEYS
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown mapping keys for '{name}': {', '.join(sorted(unknown))}",
            node_name=name,
        )
    entry = MappingEntry(
        name=name,
        options=_normalize_options(raw.get("options"), name),
        ones=_normalize_children(raw.get("ones"), "ones", name),
        manies=_normalize_children(raw.get("manies"), "manies", name),
    )
    duplicated = set(entry.ones) & set(entry.manies)
    if duplicated:
        raise InvalidConfigurationError(
            f"Keys declared both as ones and manies of '{name}': "
            f"{', '.join(sorted(duplicated))}",
            node_name=name,
        )
    return entry


def normalize_mapping(mapping: Any) -> MappingEntry:
    """
    Normalize a mapping specification with exactly one top-level key.

    Raises:
        InvalidConfigurationError: If the mapping is malformed.
    """
    if isinstance(mapping, MappingEntry):
        return mapping
    if not is_mapping(mapping) or len(mapping) != 1:
        raise InvalidConfigurationError(
            "One and only one object group is allowed in the mapping!"
        )
    name, raw = next(iter(mapping.items()))
    entry = normalize_entry(str(name), raw)
    logger.debug(f"Normalized mapping for '{entry.name}'")
    return entry
