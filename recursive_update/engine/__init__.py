"""
Recursive Update Engine Package

The handler is split into multiple mixins for maintainability:
- RecursiveUpdateHandlerBase: Settings, store and transaction coordination
- TreeWalkerMixin: Per level traversal (delete, destructive, per item)
- NodeProcessorMixin: Create-or-update of a single node and its children

Usage:
    from recursive_update.engine import RecursiveUpdateHandler

    handler = RecursiveUpdateHandler()
    roles = handler.bulk_recursive_update(params, {"roles": {"manies": {"permissions": {}}}})
"""

from .context import OperationContext
from .handler import (
    RecursiveUpdateHandler,
    RecursiveUpdateHandlerBase,
    bulk_recursive_update,
    recursive_update,
)
from .mapping import MappingEntry, MappingOptions, normalize_mapping
from .node import NodeProcessorMixin
from .results import StepResult, nest_errors, pad_errors
from .store import DjangoRecordStore, RecordStore
from .walker import TreeWalkerMixin

__all__ = [
    "DjangoRecordStore",
    "MappingEntry",
    "MappingOptions",
    "NodeProcessorMixin",
    "OperationContext",
    "RecordStore",
    "RecursiveUpdateHandler",
    "RecursiveUpdateHandlerBase",
    "StepResult",
    "TreeWalkerMixin",
    "bulk_recursive_update",
    "nest_errors",
    "normalize_mapping",
    "pad_errors",
    "recursive_update",
]
