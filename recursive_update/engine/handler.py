"""
Recursive Update Handler

This module provides the handler combining the tree walker and the node
processor, and the transaction coordination of the public entry points.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from ..exceptions import InvalidConfigurationError, ValidationError
from ..settings import RecursiveUpdateSettings
from .context import OperationContext
from .mapping import MappingEntry, normalize_mapping
from .store import DjangoRecordStore, RecordStore

logger = logging.getLogger(__name__)


class RecursiveUpdateHandlerBase:
    """Base class holding the store and the resolved settings."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        settings: Optional[RecursiveUpdateSettings] = None,
        using: Optional[str] = None,
    ):
        self.settings = settings or RecursiveUpdateSettings.from_settings(using=using)
        self.store = store or DjangoRecordStore(using=using or self.settings.using)

    def _root_context(
        self,
        params: Mapping[str, Any],
        allow_root_create: Optional[bool],
        allow_root_update: Optional[bool],
    ) -> OperationContext:
        settings = self.settings
        return OperationContext(
            store=self.store,
            parent_params=dict(params),
            allow_root_create=(
                settings.allow_root_create if allow_root_create is None else allow_root_create
            ),
            allow_root_update=(
                settings.allow_root_update if allow_root_update is None else allow_root_update
            ),
            delete_prefix=settings.delete_prefix,
            destroy_flag=settings.destroy_flag,
        )

    def bulk_recursive_update(
        self,
        params: Mapping[str, Any],
        mappings: Any,
        transaction: Optional[bool] = None,
        allow_root_create: Optional[bool] = None,
        allow_root_update: Optional[bool] = None,
    ) -> list[Any]:
        """
        Create, update and delete a whole parameter tree as one unit.

        Args:
            params: ``{root_name: [item, ...]}`` plus optional root-level
                attributes used by ``overrides``
            mappings: Mapping specification with exactly one top-level key
            transaction: Open ``transaction.atomic`` around the walk. Pass
                ``False`` only when the caller owns the transaction.
            allow_root_create: Allow root items without ``id``
            allow_root_update: Allow root items with ``id``

        Returns:
            The root records, reloaded, in input order.

        Raises:
            ValidationError: With the error tree of the first failing node
            InvalidConfigurationError: On mapping contract violations
        """
        entry = normalize_mapping(mappings)
        if not isinstance(params, Mapping):
            raise InvalidConfigurationError(
                "Parameters must be a mapping keyed by the root name", node_name=entry.name
            )
        context = self._root_context(params, allow_root_create, allow_root_update)
        use_transaction = self.settings.transaction if transaction is None else transaction

        if use_transaction:
            with self.store.atomic():
                return self._walk(params, entry, context)
        return self._walk(params, entry, context)

    def recursive_update(
        self, params: Any, mappings: Any, **options: Any
    ) -> Any:
        """
        Update (or create) a single root record.

        Errors are reported without the positional wrapper of the batch form,
        ``{"name": ["..."]}`` instead of ``{"roles": [{"name": ["..."]}]}``.
        """
        entry = normalize_mapping(mappings)
        try:
            records = self.bulk_recursive_update({entry.name: [params]}, entry, **options)
        except ValidationError as e:
            raise ValidationError(e.errors[entry.name][0]) from e
        return records[0] if records else None

    def _walk(
        self, params: Mapping[str, Any], entry: MappingEntry, context: OperationContext
    ) -> list[Any]:
        result = self.process(params, entry, context)
        if not result.ok:
            logger.debug(f"Recursive update of '{entry.name}' failed: {result.errors}")
            raise ValidationError(result.errors)
        return result.value


from .node import NodeProcessorMixin
from .walker import TreeWalkerMixin


class RecursiveUpdateHandler(
    NodeProcessorMixin, TreeWalkerMixin, RecursiveUpdateHandlerBase
):
    """
    Applies nested creates, updates and deletes described by a mapping
    specification to a parameter tree.
    """

    pass


def bulk_recursive_update(
    params: Mapping[str, Any],
    mappings: Any,
    *,
    store: Optional[RecordStore] = None,
    using: Optional[str] = None,
    **options: Any,
) -> list[Any]:
    """Module-level shortcut for ``RecursiveUpdateHandler.bulk_recursive_update``."""
    handler = RecursiveUpdateHandler(store=store, using=using)
    return handler.bulk_recursive_update(params, mappings, **options)


def recursive_update(
    params: Any,
    mappings: Any,
    *,
    store: Optional[RecordStore] = None,
    using: Optional[str] = None,
    **options: Any,
) -> Any:
    """Module-level shortcut for ``RecursiveUpdateHandler.recursive_update``."""
    handler = RecursiveUpdateHandler(store=store, using=using)
    return handler.recursive_update(params, mappings, **options)
