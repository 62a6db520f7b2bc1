"""
Recursive tree walker mixin.

Processes one mapping entry against the parameter tree: delete
directives, destructive cleanup, per-item destroy/create/update and
attachment to the parent, in the order the items were submitted.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from ..exceptions import InvalidConfigurationError
from ..utils import is_mapping, is_sequence
from .context import OperationContext
from .mapping import MappingEntry
from .results import StepResult, nest_errors

logger = logging.getLogger(__name__)


class TreeWalkerMixin:
    """
    Mixin class walking one level of the parameter tree.

    Failures stop the walk immediately: later items and siblings are never
    attempted.
    """

    def process(
        self, params: Mapping[str, Any], entry: MappingEntry, context: OperationContext
    ) -> StepResult:
        """
        Process the parameters of ``entry`` found in ``params``.

        Returns:
            StepResult holding, for the root level, the records reloaded in
            input order, and for nested levels the records in input order
            without destroyed entries. Delete directives hold ``None``.
        """
        name = entry.name
        options = entry.options
        value = params.get(name)

        if options.delete:
            if context.is_root:
                raise InvalidConfigurationError(
                    "Delete option is not allowed in the root element", node_name=name
                )
            return self._delete_collection(entry, value, context)

        model = self._resolve_model(entry, context)
        has_many = is_sequence(value)

        if has_many and options.destructive:
            if context.is_root:
                raise InvalidConfigurationError(
                    "Destructive option is not allowed in the root element",
                    node_name=name,
                )
            result = self._destroy_missing(entry, value, context)
            if not result.ok:
                return result

        if has_many:
            items = list(enumerate(value))
        elif value is not None:
            items = [(None, value)]
        else:
            items = []

        records: list[Any] = []
        for index, item in items:
            item = self._apply_overrides(options.overrides, item, context.parent_params)

            if is_mapping(item) and item.get(context.destroy_flag):
                if context.is_root:
                    raise InvalidConfigurationError(
                        f"{context.destroy_flag} option is not allowed in the root element",
                        node_name=name,
                    )
                result = self._destroy_item(entry, item, index, context)
                if not result.ok:
                    return result
                continue

            result = self.update_node(item, index, model, entry, context)
            if not result.ok:
                return result
            record = result.value
            if not context.is_root:
                self._attach(context, name, record, has_many)
            records.append(record)

        if context.is_root:
            store = context.store
            ids = [store.record_id(record) for record in records]
            return StepResult.success(store.fetch_many(model, ids))
        return StepResult.success(records)

    def _resolve_model(self, entry: MappingEntry, context: OperationContext) -> type:
        if entry.options.model is not None:
            return entry.options.model
        store = context.store
        model = None
        if not context.is_root:
            model = store.related_model(type(context.parent), entry.name)
        if model is None:
            model = store.model_for_name(entry.name)
        if model is None:
            raise InvalidConfigurationError(
                f"Cannot derive a model for '{entry.name}'; set the 'class' option",
                node_name=entry.name,
            )
        return model

    def _apply_overrides(
        self, overrides: tuple[str, ...], item: Any, parent_params: Optional[Mapping[str, Any]]
    ) -> Any:
        """
        Copy override attributes of the parent onto a copy of ``item``.

        Every parent value other than ``None`` is copied, so falsy values such
        as ``False``, ``0`` or ``""`` still override the child.
        """
        if not overrides or not is_mapping(item) or not parent_params:
            return item
        patched = dict(item)
        for key in overrides:
            if parent_params.get(key) is not None:
                patched[key] = parent_params[key]
        return patched

    def _delete_collection(
        self, entry: MappingEntry, value: Any, context: OperationContext
    ) -> StepResult:
        """Destroy the members of ``delete_<relation>`` listed by id."""
        prefix = context.delete_prefix
        if not entry.name.startswith(prefix) or len(entry.name) == len(prefix):
            raise InvalidConfigurationError(
                f"Delete option requires a key named '{prefix}<relation>', got '{entry.name}'",
                node_name=entry.name,
            )
        relation = entry.name[len(prefix):]
        values = value if is_sequence(value) else ([] if value is None else [value])
        ids = [item.get("id") if is_mapping(item) else item for item in values]
        store = context.store
        for member in store.members(context.parent, relation, [i for i in ids if i is not None]):
            errors = store.destroy(member)
            if errors:
                return StepResult.failure(nest_errors(entry.name, errors))
        logger.debug(f"Deleted {len(ids)} {relation} of {type(context.parent).__name__}")
        return StepResult.success()

    def _destroy_missing(
        self, entry: MappingEntry, items: list[Any], context: OperationContext
    ) -> StepResult:
        """Destroy existing members that are absent from ``items``."""
        incoming = set()
        for item in items:
            pk = item.get("id") if is_mapping(item) else item
            if pk is not None:
                incoming.add(str(pk))
        store = context.store
        existing = store.collection_ids(context.parent, entry.name)
        missing = [pk for pk in existing if str(pk) not in incoming]
        if not missing:
            return StepResult.success()
        errors = store.destroy_members(context.parent, entry.name, missing)
        if errors:
            return StepResult.failure(nest_errors(entry.name, errors))
        return StepResult.success()

    def _destroy_item(
        self, entry: MappingEntry, item: Mapping[str, Any], index: Optional[int], context: OperationContext
    ) -> StepResult:
        store = context.store
        member = store.find_member(context.parent, entry.name, item.get("id"))
        if member is not None:
            errors = store.destroy(member)
            if errors:
                return StepResult.failure(nest_errors(entry.name, errors, index))
        return StepResult.success()

    def _attach(self, context: OperationContext, name: str, record: Any, has_many: bool) -> None:
        store = context.store
        if has_many:
            attached = store.append_to_collection(context.parent, name, record)
        else:
            attached = store.set_single(context.parent, name, record)
        if attached:
            logger.debug(f"Attached {type(record).__name__} to {type(context.parent).__name__}.{name}")
