"""
django-recursive-update

Apply creates, updates and deletes across a nested parameter tree (a root
record plus any depth of one-to-one and one-to-many children) as one atomic
unit, returning the persisted records or an error tree mirroring the input.

Usage:
    from recursive_update import bulk_recursive_update, ValidationError

    try:
        roles = bulk_recursive_update(
            {"roles": [{"id": 1, "name": "Admin", "permissions": [{"name": "read"}]}]},
            {"roles": {"manies": {"permissions": {"options": {"destructive": True}}}}},
        )
    except ValidationError as e:
        e.errors  # {"roles": [{"permissions": [{"name": [...]}]}]}
"""

from .actions import (
    BatchActionsMixin,
    batch_create,
    batch_create_update,
    batch_operation,
    batch_update,
    single_create,
    single_update,
)
from .engine import (
    DjangoRecordStore,
    RecordStore,
    RecursiveUpdateHandler,
    bulk_recursive_update,
    recursive_update,
)
from .exceptions import (
    InvalidConfigurationError,
    RecursiveUpdateError,
    UnreachableStateError,
    ValidationError,
)
from .params import ParamFilters, permit

__version__ = "0.1.0"

__all__ = [
    "BatchActionsMixin",
    "DjangoRecordStore",
    "InvalidConfigurationError",
    "ParamFilters",
    "RecordStore",
    "RecursiveUpdateError",
    "RecursiveUpdateHandler",
    "UnreachableStateError",
    "ValidationError",
    "batch_create",
    "batch_create_update",
    "batch_operation",
    "batch_update",
    "bulk_recursive_update",
    "permit",
    "recursive_update",
    "single_create",
    "single_update",
]
