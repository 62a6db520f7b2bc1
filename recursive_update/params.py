"""
Parameter whitelisting.

A permit spec lists the keys a caller may submit::

    ["name", "description", {"permissions": ["id", "name"]}, {"tags": []}]

Plain strings permit scalar values, ``{key: [...]}`` permits a nested dict
(or a list of dicts) filtered by the inner spec, and ``{key: []}`` permits a
list of scalars. Anything else is dropped silently.
"""

from __future__ import annotations

import copy
import datetime
import decimal
import logging
import uuid
from typing import Any, Callable, Optional, Union

from .utils import is_mapping, is_sequence, pluralize, to_snake_case

logger = logging.getLogger(__name__)

PermitSpec = list[Union[str, dict[str, Any]]]
Customizer = Union[None, Callable[[PermitSpec], PermitSpec], str, dict, list]

PERMITTED_SCALAR_TYPES = (
    str,
    bytes,
    bool,
    int,
    float,
    decimal.Decimal,
    datetime.date,
    datetime.datetime,
    datetime.time,
    uuid.UUID,
)


def _is_permitted_scalar(value: Any) -> bool:
    return value is None or isinstance(value, PERMITTED_SCALAR_TYPES)


def _permit_nested(value: Any, spec: Any) -> Any:
    if spec == []:
        if is_sequence(value):
            return [item for item in value if _is_permitted_scalar(item)]
        return None
    if is_mapping(value):
        return permit(value, spec)
    if is_sequence(value):
        return [permit(item, spec) for item in value if is_mapping(item)]
    return None


def permit(data: Any, spec: PermitSpec) -> dict[str, Any]:
    """Return a filtered copy of ``data`` holding only the keys allowed by ``spec``."""
    if not is_mapping(data):
        return {}
    permitted: dict[str, Any] = {}
    for rule in spec:
        if isinstance(rule, str):
            if rule in data and _is_permitted_scalar(data[rule]):
                permitted[rule] = data[rule]
        elif is_mapping(rule):
            for key, nested_spec in rule.items():
                if key not in data:
                    continue
                nested = _permit_nested(data[key], nested_spec)
                if nested is not None:
                    permitted[key] = nested
    dropped = set(data) - set(permitted)
    if dropped:
        logger.debug(f"Unpermitted parameters: {', '.join(sorted(map(str, dropped)))}")
    return permitted


def merge_permit_specs(origin: PermitSpec, patch: list[Any]) -> PermitSpec:
    """
    Merge ``patch`` into a copy of ``origin``.

    Plain keys are prepended, dict entries are merged into the trailing dict
    of ``origin`` (recursively for keys present in both).
    """
    merged = list(origin)
    for item in patch:
        if is_mapping(item):
            if merged and is_mapping(merged[-1]):
                target = dict(merged[-1])
                merged[-1] = target
            else:
                target = {}
                merged.append(target)
            for key, value in item.items():
                target[key] = merge_permit_specs(target.get(key) or [], list(value))
        elif item not in merged:
            merged.insert(0, item)
    return merged


def _as_list(value: Any) -> list[Any]:
    if is_sequence(value):
        return list(value)
    return [value]


class ParamFilters:
    """
    Builds the four standard filters for a resource.

    Each customizer is either a callable receiving a deep copy of
    ``valid_params`` and returning the full spec, or extra spec entries
    merged into the default one.
    """

    def __init__(
        self,
        root_name: str,
        valid_params: PermitSpec,
        *,
        create: Customizer = None,
        update: Customizer = None,
        batch_create: Customizer = None,
        batch_update: Customizer = None,
        reducer: Optional[Callable[[Any], Any]] = None,
    ):
        self.root_name = root_name
        self.valid_params = list(valid_params)
        self.reducer = reducer or (lambda params: params)

        self.create_spec = self._build(create, self.valid_params)
        self.update_spec = self._build(update, ["id", *self.valid_params])
        self.batch_create_spec = self._build(
            batch_create, [{root_name: self.valid_params}]
        )
        self.batch_update_spec = self._build(
            batch_update, [{root_name: ["id", *self.valid_params]}]
        )

    @classmethod
    def for_model(cls, model: type, valid_params: PermitSpec, **kwargs: Any) -> "ParamFilters":
        return cls(pluralize(to_snake_case(model.__name__)), valid_params, **kwargs)

    def _build(self, customizer: Customizer, default: PermitSpec) -> PermitSpec:
        if customizer is None:
            return default
        if callable(customizer):
            return customizer(copy.deepcopy(self.valid_params))
        return merge_permit_specs(default, _as_list(customizer))

    def create_params(self, data: Any) -> Any:
        return self.reducer(permit(data, self.create_spec))

    def update_params(self, data: Any) -> Any:
        return self.reducer(permit(data, self.update_spec))

    def batch_create_params(self, data: Any) -> dict[str, Any]:
        permitted = permit(data, self.batch_create_spec)
        return {self.root_name: self.reducer(permitted.get(self.root_name, []))}

    def batch_update_params(self, data: Any) -> dict[str, Any]:
        permitted = permit(data, self.batch_update_spec)
        return {self.root_name: self.reducer(permitted.get(self.root_name, []))}
