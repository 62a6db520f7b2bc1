"""
Operation context threaded through the recursion.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from .store import RecordStore


@dataclass(frozen=True)
class OperationContext:
    """
    Immutable per-level context.

    ``parent`` is ``None`` only for the root level. Nested levels are derived
    with ``for_child`` and never open their own transaction.
    """

    store: RecordStore
    parent: Any = None
    parent_name: Optional[str] = None
    parent_params: Optional[dict[str, Any]] = None
    allow_root_create: bool = False
    allow_root_update: bool = True
    delete_prefix: str = "delete_"
    destroy_flag: str = "_destroy"
    depth: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def for_child(
        self, parent: Any, parent_name: str, parent_params: dict[str, Any]
    ) -> "OperationContext":
        return replace(
            self,
            parent=parent,
            parent_name=parent_name,
            parent_params=parent_params,
            depth=self.depth + 1,
        )
