"""
Batch actions facade.

Selects the root create/update policy for common operations, picks the
model's default mappings when none are given, and always opens the
transaction here rather than inside the engine.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from django.db import models

from .engine.handler import RecursiveUpdateHandler
from .engine.mapping import normalize_mapping
from .engine.store import RecordStore
from .exceptions import RecursiveUpdateError, UnreachableStateError
from .observability import report_unexpected_error
from .utils import pluralize, to_snake_case

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOperation:
    mappings_name: str
    allow_root_create: bool
    allow_root_update: bool
    single: bool = False


BATCH_OPERATIONS: dict[str, BatchOperation] = {
    "batch_create": BatchOperation("create_mappings", True, False),
    "batch_update": BatchOperation("update_mappings", False, True),
    "batch_create_update": BatchOperation("update_mappings", True, True),
    "single_create": BatchOperation("create_mappings", True, False, single=True),
    "single_update": BatchOperation("update_mappings", False, True, single=True),
}


def default_mappings(model: type[models.Model]) -> dict[str, dict]:
    """``LineItem`` -> ``{"line_items": {}}``."""
    return {pluralize(to_snake_case(model.__name__)): {}}


def _model_mappings(model: type[models.Model], mappings_name: str) -> Any:
    getter = getattr(model, mappings_name, None)
    if callable(getter):
        return getter()
    return default_mappings(model)


def batch_operation(
    model: type[models.Model],
    params: Any,
    operation: str,
    mappings: Any = None,
    *,
    transaction: bool = True,
    callback: Optional[Callable[[Any], Any]] = None,
    store: Optional[RecordStore] = None,
    using: Optional[str] = None,
) -> Any:
    """
    Run one of the ``BATCH_OPERATIONS`` presets.

    Args:
        model: Model whose ``create_mappings``/``update_mappings`` provide the
            default mapping
        params: Parameter tree (single record params for ``single_*``)
        operation: Name of the preset
        mappings: Explicit mapping, overriding the model defaults
        transaction: Open the outer transaction
        callback: Called with the result inside the transaction on success

    Raises:
        UnreachableStateError: For unknown operation names
    """
    try:
        preset = BATCH_OPERATIONS[operation]
    except KeyError:
        raise UnreachableStateError(f"{operation} is unknown!")

    if not mappings:
        mappings = _model_mappings(model, preset.mappings_name)
    entry = normalize_mapping(mappings)
    if entry.options.model is None:
        entry = replace(entry, options=replace(entry.options, model=model))

    handler = RecursiveUpdateHandler(store=store, using=using)
    method = handler.recursive_update if preset.single else handler.bulk_recursive_update

    def run() -> Any:
        result = method(
            params,
            entry,
            transaction=False,
            allow_root_create=preset.allow_root_create,
            allow_root_update=preset.allow_root_update,
        )
        if callback is not None:
            callback(result)
        return result

    try:
        if transaction:
            with handler.store.atomic():
                return run()
        return run()
    except RecursiveUpdateError:
        raise
    except Exception as e:
        logger.error(f"{operation} of {model.__name__} failed: {e}")
        report_unexpected_error(e, operation=operation, model=model._meta.label)
        raise


def batch_create(model, params, mappings=None, **kwargs):
    return batch_operation(model, params, "batch_create", mappings, **kwargs)


def batch_update(model, params, mappings=None, **kwargs):
    return batch_operation(model, params, "batch_update", mappings, **kwargs)


def batch_create_update(model, params, mappings=None, **kwargs):
    return batch_operation(model, params, "batch_create_update", mappings, **kwargs)


def single_create(model, params, mappings=None, **kwargs):
    return batch_operation(model, params, "single_create", mappings, **kwargs)


def single_update(model, params, mappings=None, **kwargs):
    return batch_operation(model, params, "single_update", mappings, **kwargs)


class BatchActionsMixin:
    """
    Opt-in model mixin exposing the batch actions as classmethods.

    Override ``create_mappings``/``update_mappings`` to change the default
    mapping used when none is passed::

        class Role(BatchActionsMixin, models.Model):
            @classmethod
            def update_mappings(cls):
                return {"roles": {"manies": {"permissions": {}}}}
    """

    @classmethod
    def create_mappings(cls) -> dict[str, dict]:
        return default_mappings(cls)

    @classmethod
    def update_mappings(cls) -> dict[str, dict]:
        return default_mappings(cls)

    @classmethod
    def batch_create(cls, params, mappings=None, **kwargs):
        return batch_operation(cls, params, "batch_create", mappings, **kwargs)

    @classmethod
    def batch_update(cls, params, mappings=None, **kwargs):
        return batch_operation(cls, params, "batch_update", mappings, **kwargs)

    @classmethod
    def batch_create_update(cls, params, mappings=None, **kwargs):
        return batch_operation(cls, params, "batch_create_update", mappings, **kwargs)

    @classmethod
    def single_create(cls, params, mappings=None, **kwargs):
        return batch_operation(cls, params, "single_create", mappings, **kwargs)

    @classmethod
    def single_update(cls, params, mappings=None, **kwargs):
        return batch_operation(cls, params, "single_update", mappings, **kwargs)
