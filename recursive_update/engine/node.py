"""
Node processing mixin.

Creates or updates the record of a single parameter node, then recurses
into its forward one-relations (before saving), then its reverse
one-to-one relations and many-relations (after saving).
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from django.core.exceptions import ValidationError as DjangoValidationError

from ..exceptions import ValidationError
from ..utils import drop_nested_values, is_mapping
from .context import OperationContext
from .mapping import MappingEntry
from .results import StepResult, django_error_detail, nest_errors

logger = logging.getLogger(__name__)

ROOT_CREATE_NOT_ALLOWED = "no id is provided. Root creation is not allowed."
ROOT_UPDATE_NOT_ALLOWED = "id is provided. Root update is not allowed."
DOES_NOT_EXIST = "does not exist"


def error_detail(error: Exception) -> Any:
    """Error value of a validation failure raised by user code."""
    if isinstance(error, ValidationError):
        return error.errors
    return django_error_detail(error)


class NodeProcessorMixin:
    """
    Mixin class providing create-or-update of a single node.

    This mixin handles:
    - Root create/update policy checks
    - Update by reference (bare identifiers)
    - Scalar attribute assignment and validation
    - Forward one-relations before save, reverse one-relations and
      many-relations after save
    - Collection validators of child relations
    """

    def update_node(
        self,
        params: Any,
        index: Optional[int],
        model: type,
        entry: MappingEntry,
        context: OperationContext,
    ) -> StepResult:
        """
        Create or update the record described by ``params``.

        Args:
            params: Attribute mapping or bare identifier
            index: Position of the node inside its array, ``None`` otherwise
            model: Model class of the node
            entry: Mapping entry of the node
            context: Context of the current level

        Returns:
            StepResult holding the persisted record, or the error keyed by
            the node name (padded to ``index``).
        """
        name = entry.name
        store = context.store

        def fail(errors: Any) -> StepResult:
            return StepResult.failure(nest_errors(name, errors, index))

        by_reference = not is_mapping(params)
        pk = params if by_reference else params.get("id")

        if context.is_root:
            if pk is None and not context.allow_root_create:
                return fail({"id": ROOT_CREATE_NOT_ALLOWED})
            if pk is not None and not context.allow_root_update:
                return fail({"id": ROOT_UPDATE_NOT_ALLOWED})

        node_params: dict[str, Any] = {} if by_reference else dict(params)
        attributes = drop_nested_values(node_params)
        attributes.pop("id", None)
        attributes.pop(context.destroy_flag, None)
        for key, _child in entry.children:
            attributes.pop(key, None)

        if pk is not None:
            if not store.exists(model, pk):
                return fail({"id": DOES_NOT_EXIST})
            record = store.fetch(model, pk)
            if not by_reference:
                errors = store.update(record, attributes)
                if errors:
                    return fail(errors)
            logger.debug(f"Updating {model.__name__} pk={pk} ({name}, depth {context.depth})")
        else:
            try:
                record = self._build_record(model, attributes, entry, store)
            except (ValidationError, DjangoValidationError) as e:
                return fail(error_detail(e))
            self._link_back_reference(record, context)
            logger.debug(f"Creating {model.__name__} ({name}, depth {context.depth})")

        forward, reverse = self._split_ones(model, entry, store)

        # Forward one-relations may be required for this record to pass validation
        result = self._process_children(record, entry, forward, node_params, index, context)
        if not result.ok:
            return result

        errors = store.save(record)
        if errors:
            return fail(errors)

        # Reverse one-relations and collections point back to the saved record
        after_save = {**reverse, **entry.manies}
        result = self._process_children(record, entry, after_save, node_params, index, context)
        if not result.ok:
            return result

        return StepResult.success(record)

    def _split_ones(
        self, model: type, entry: MappingEntry, store: Any
    ) -> tuple[dict[str, MappingEntry], dict[str, MappingEntry]]:
        """Split one-relations into forward references and reverse one-to-ones."""
        forward: dict[str, MappingEntry] = {}
        reverse: dict[str, MappingEntry] = {}
        for key, child in entry.ones.items():
            if store.is_forward_reference(model, key):
                forward[key] = child
            else:
                reverse[key] = child
        return forward, reverse

    def _build_record(
        self, model: type, attributes: dict[str, Any], entry: MappingEntry, store: Any
    ) -> Any:
        creator = entry.options.creator
        if creator is not None:
            return creator(model, attributes)
        return store.build(model, attributes)

    def _link_back_reference(self, record: Any, context: OperationContext) -> None:
        parent_name = context.parent_name
        if context.is_root or not parent_name:
            return
        store = context.store
        if store.has_back_reference(record, parent_name):
            target = store.back_reference_target(context.parent, parent_name)
            store.set_back_reference(record, parent_name, target)

    def _process_children(
        self,
        record: Any,
        entry: MappingEntry,
        children: Mapping[str, MappingEntry],
        node_params: dict[str, Any],
        index: Optional[int],
        context: OperationContext,
    ) -> StepResult:
        """Recurse into the declared children present in ``node_params``."""
        for key, child in children.items():
            if node_params.get(key) is None:
                continue
            child_context = context.for_child(
                record, entry.child_parent_name(child), node_params
            )
            result = self.process({key: node_params[key]}, child, child_context)
            if not result.ok:
                return result.nested(entry.name, index)

            validator = child.options.collection_validator
            if validator is not None and result.value:
                try:
                    validator(list(result.value))
                except (ValidationError, DjangoValidationError) as e:
                    return StepResult.failure(
                        nest_errors(key, error_detail(e))
                    ).nested(entry.name, index)
        return StepResult.success()
