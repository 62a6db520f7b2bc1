"""
Record store capability interface and its Django ORM implementation.

The engine never touches model attributes, managers or querysets directly:
everything goes through a ``RecordStore`` so that the traversal logic stays
independent from the persistence layer.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any, ContextManager, Optional, Protocol

from django.apps import apps
from django.core.exceptions import FieldDoesNotExist, ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, models, transaction
from django.db.models.deletion import ProtectedError, RestrictedError

from ..exceptions import InvalidConfigurationError
from ..utils import singularize, to_snake_case
from .results import django_error_detail

logger = logging.getLogger(__name__)

ErrorDetail = Any


class RecordStore(Protocol):
    """Operations the engine needs from the persistence layer."""

    def atomic(self) -> ContextManager[Any]: ...

    def model_for_name(self, name: str) -> Optional[type]: ...

    def related_model(self, model: type, name: str) -> Optional[type]: ...

    def exists(self, model: type, pk: Any) -> bool: ...

    def fetch(self, model: type, pk: Any) -> Any: ...

    def fetch_many(self, model: type, pks: Iterable[Any]) -> list[Any]: ...

    def build(self, model: type, attributes: dict[str, Any]) -> Any: ...

    def assign(self, record: Any, attributes: dict[str, Any]) -> None: ...

    def update(self, record: Any, attributes: dict[str, Any]) -> Optional[ErrorDetail]: ...

    def save(self, record: Any) -> Optional[ErrorDetail]: ...

    def destroy(self, record: Any) -> Optional[ErrorDetail]: ...

    def record_id(self, record: Any) -> Any: ...

    def is_forward_reference(self, model: type, name: str) -> bool: ...

    def has_back_reference(self, record: Any, name: str) -> bool: ...

    def back_reference_target(self, parent: Any, name: str) -> Any: ...

    def set_back_reference(self, record: Any, name: str, value: Any) -> None: ...

    def get_relation(self, record: Any, name: str) -> Any: ...

    def collection_ids(self, record: Any, name: str) -> list[Any]: ...

    def find_member(self, record: Any, name: str, pk: Any) -> Any: ...

    def members(self, record: Any, name: str, pks: Iterable[Any]) -> list[Any]: ...

    def destroy_members(self, record: Any, name: str, pks: Iterable[Any]) -> Optional[ErrorDetail]: ...

    def append_to_collection(self, record: Any, name: str, value: Any) -> bool: ...

    def set_single(self, record: Any, name: str, value: Any) -> bool: ...


class DjangoRecordStore:
    """``RecordStore`` backed by the Django ORM."""

    def __init__(self, using: Optional[str] = None):
        self.using = using

    # --- Lookups -----------------------------------------------------------

    def _queryset(self, model: type[models.Model]) -> models.QuerySet:
        return model._default_manager.using(self.using)

    def atomic(self) -> ContextManager[Any]:
        return transaction.atomic(using=self.using)

    def model_for_name(self, name: str) -> Optional[type[models.Model]]:
        """Find the installed model matching a (plural) node name."""
        singular = singularize(name)
        compact = singular.replace("_", "").lower()
        candidates = [
            model
            for model in apps.get_models()
            if to_snake_case(model.__name__) == singular
            or model._meta.model_name == compact
        ]
        if len(candidates) > 1:
            labels = ", ".join(sorted(m._meta.label for m in candidates))
            raise InvalidConfigurationError(
                f"'{name}' matches several models ({labels}); set the 'class' option",
                node_name=name,
            )
        return candidates[0] if candidates else None

    def related_model(self, model: type[models.Model], name: str) -> Optional[type]:
        try:
            field = model._meta.get_field(name)
        except FieldDoesNotExist:
            return None
        return getattr(field, "related_model", None)

    def _coerce_pk(self, model: type[models.Model], pk: Any) -> Any:
        try:
            return model._meta.pk.to_python(pk)
        except DjangoValidationError:
            return None

    def exists(self, model: type[models.Model], pk: Any) -> bool:
        coerced = self._coerce_pk(model, pk)
        if coerced is None:
            return False
        try:
            return self._queryset(model).filter(pk=coerced).exists()
        except (TypeError, ValueError):
            return False

    def fetch(self, model: type[models.Model], pk: Any) -> models.Model:
        return self._queryset(model).get(pk=self._coerce_pk(model, pk))

    def fetch_many(self, model: type[models.Model], pks: Iterable[Any]) -> list[models.Model]:
        """Reload records by primary key, keeping the order of ``pks``."""
        ordered: list[Any] = []
        for pk in pks:
            coerced = self._coerce_pk(model, pk)
            if coerced is not None and coerced not in ordered:
                ordered.append(coerced)
        by_pk = self._queryset(model).in_bulk(ordered)
        return [by_pk[pk] for pk in ordered if pk in by_pk]

    # --- Writes ------------------------------------------------------------

    def _assign_one(self, record: models.Model, name: str, value: Any) -> None:
        opts = record._meta
        try:
            field = opts.get_field(name)
        except FieldDoesNotExist:
            field = next(
                (f for f in opts.concrete_fields if f.attname == name), None
            )
            if field is None:
                prop = getattr(type(record), name, None)
                if isinstance(prop, property) and prop.fset is not None:
                    setattr(record, name, value)
                    return
                raise DjangoValidationError({name: ["Unknown attribute."]})
            setattr(record, field.attname, value)
            return

        if field.is_relation:
            if field.auto_created or field.many_to_many or field.one_to_many:
                raise DjangoValidationError(
                    {name: ["Relation cannot be assigned as an attribute."]}
                )
            if isinstance(value, models.Model) or value is None or not field.concrete:
                setattr(record, name, value)
            else:
                setattr(record, field.attname, value)
            return
        setattr(record, field.attname, value)

    def assign(self, record: models.Model, attributes: dict[str, Any]) -> None:
        errors: dict[str, list[str]] = {}
        for name, value in attributes.items():
            try:
                self._assign_one(record, name, value)
            except DjangoValidationError as e:
                for field_name, messages in e.message_dict.items():
                    errors.setdefault(field_name, []).extend(messages)
        if errors:
            raise DjangoValidationError(errors)

    def build(self, model: type[models.Model], attributes: dict[str, Any]) -> models.Model:
        record = model()
        self.assign(record, attributes)
        return record

    def update(self, record: models.Model, attributes: dict[str, Any]) -> Optional[ErrorDetail]:
        try:
            self.assign(record, attributes)
        except DjangoValidationError as e:
            return django_error_detail(e)
        return self.save(record)

    def save(self, record: models.Model) -> Optional[ErrorDetail]:
        try:
            record.full_clean()
        except DjangoValidationError as e:
            return django_error_detail(e)
        try:
            with transaction.atomic(using=self.using):
                record.save(using=self.using)
        except IntegrityError as e:
            return _integrity_error_detail(type(record), e)
        logger.debug(f"Saved {type(record).__name__} pk={record.pk}")
        return None

    def destroy(self, record: models.Model) -> Optional[ErrorDetail]:
        label = f"{type(record).__name__} pk={record.pk}"
        try:
            with transaction.atomic(using=self.using):
                record.delete(using=self.using)
        except (ProtectedError, RestrictedError) as e:
            return {"base": [f"Failed to destroy {label}: {e.args[0]}"]}
        logger.debug(f"Destroyed {label}")
        return None

    def record_id(self, record: models.Model) -> Any:
        return record.pk

    # --- Relations ---------------------------------------------------------

    def is_forward_reference(self, model: type[models.Model], name: str) -> bool:
        """
        Whether ``model`` holds the reference to its one-relation ``name``.

        Reverse one-to-one relations keep the foreign key on the related
        record, which can only be saved once ``model`` has a primary key.
        Unknown names (properties) count as forward references.
        """
        try:
            field = model._meta.get_field(name)
        except FieldDoesNotExist:
            return True
        return not (field.is_relation and field.auto_created)

    def has_back_reference(self, record: models.Model, name: str) -> bool:
        try:
            field = record._meta.get_field(name)
        except FieldDoesNotExist:
            prop = getattr(type(record), name, None)
            return isinstance(prop, property) and prop.fset is not None
        return bool(
            field.is_relation
            and not field.auto_created
            and (field.many_to_one or field.one_to_one)
        )

    def back_reference_target(self, parent: models.Model, name: str) -> Any:
        """
        The object a child's back reference points to.

        A parent exposing ``name`` itself (``student.individual``) hands that
        object down instead of itself.
        """
        try:
            nested = getattr(parent, name)
        except (AttributeError, ObjectDoesNotExist):
            return parent
        return nested if isinstance(nested, models.Model) else parent

    def set_back_reference(self, record: models.Model, name: str, value: Any) -> None:
        setattr(record, name, value)

    def get_relation(self, record: models.Model, name: str) -> Any:
        try:
            return getattr(record, name)
        except ObjectDoesNotExist:
            return None

    def _manager(self, record: models.Model, name: str) -> Any:
        manager = self.get_relation(record, name)
        if manager is None or not hasattr(manager, "filter"):
            raise InvalidConfigurationError(
                f"'{name}' is not a collection of {type(record).__name__}",
                node_name=name,
            )
        return manager

    def _is_through_collection(self, manager: Any) -> bool:
        return hasattr(manager, "through")

    def collection_ids(self, record: models.Model, name: str) -> list[Any]:
        return list(self._manager(record, name).values_list("pk", flat=True))

    def find_member(self, record: models.Model, name: str, pk: Any) -> Any:
        relation = self.get_relation(record, name)
        if relation is None:
            return None
        if isinstance(relation, models.Model):
            return relation if str(relation.pk) == str(pk) else None
        try:
            return relation.filter(pk=pk).first()
        except (TypeError, ValueError, DjangoValidationError):
            return None

    def members(self, record: models.Model, name: str, pks: Iterable[Any]) -> list[Any]:
        relation = self.get_relation(record, name)
        pks = list(pks)
        if relation is None or not pks:
            return []
        if isinstance(relation, models.Model):
            return [relation] if str(relation.pk) in {str(pk) for pk in pks} else []
        try:
            return list(relation.filter(pk__in=pks))
        except (TypeError, ValueError, DjangoValidationError):
            return []

    def destroy_members(self, record: models.Model, name: str, pks: Iterable[Any]) -> Optional[ErrorDetail]:
        """
        Remove members from a collection.

        Many-to-many collections only lose their link rows; the related
        records of a one-to-many collection are deleted.
        """
        pks = list(pks)
        if not pks:
            return None
        manager = self._manager(record, name)
        if self._is_through_collection(manager):
            manager.remove(*manager.filter(pk__in=pks))
            logger.debug(f"Unlinked {len(pks)} {name} from {type(record).__name__} pk={record.pk}")
            return None
        for member in list(manager.filter(pk__in=pks)):
            errors = self.destroy(member)
            if errors:
                return errors
        return None

    def append_to_collection(self, record: models.Model, name: str, value: Any) -> bool:
        manager = self._manager(record, name)
        if manager.filter(pk=value.pk).exists():
            return False
        manager.add(value)
        return True

    def set_single(self, record: models.Model, name: str, value: Any) -> bool:
        current = self.get_relation(record, name)
        if current is not None and current == value:
            return False
        setattr(record, name, value)
        try:
            field = record._meta.get_field(name)
        except FieldDoesNotExist:
            return True
        if field.auto_created and record.pk is not None:
            # Reverse one-to-one: the foreign key lives on ``value``
            value.save(using=self.using, update_fields=[field.field.attname])
        return True


def _map_column_to_field(model: type[models.Model], column: str) -> Optional[str]:
    for field in model._meta.concrete_fields:
        if field.column == column or field.attname == column:
            return field.name
    return None


def _integrity_error_detail(model: type[models.Model], error: IntegrityError) -> dict[str, list[str]]:
    """Map database constraint violations to field errors when possible."""
    message = str(error)
    match = re.search(r"UNIQUE constraint failed: ([\w\., ]+)", message)
    if match:
        columns = [c.strip().split(".")[-1] for c in match.group(1).split(",")]
    else:
        match = re.search(r"Key \(([^\)]+)\)=\([^\)]*\) already exists", message)
        columns = [c.strip() for c in match.group(1).split(",")] if match else []
    if columns:
        return {
            _map_column_to_field(model, column) or column: ["Duplicate value."]
            for column in columns
        }

    match = re.search(r'null value in column "(\w+)"', message) or re.search(
        r"NOT NULL constraint failed: [\w]+\.(\w+)", message
    )
    if match:
        column = match.group(1)
        return {_map_column_to_field(model, column) or column: ["This field cannot be null."]}

    return {"base": [f"Failed to save {model.__name__}: {message}"]}
