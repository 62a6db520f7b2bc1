"""
Step results and error path building.

Every engine step returns a ``StepResult`` instead of raising. A failed
result carries an error tree that is wrapped one level deeper at each
recursion level on the way back up, so the final tree mirrors the shape of
the submitted parameters::

    {"roles": [None, {"permissions": [{"name": ["This field is required."]}]}]}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar

from django.core.exceptions import ValidationError as DjangoValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one engine step: a value or an error tree, never both."""

    status: Literal["success", "error"]
    value: Optional[T] = None
    errors: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StepResult[T]":
        return cls(status="success", value=value)

    @classmethod
    def failure(cls, errors: Any) -> "StepResult[T]":
        return cls(status="error", errors=errors)

    def nested(self, name: str, index: Optional[int] = None) -> "StepResult[T]":
        """Return this failure wrapped under ``name`` at ``index``."""
        return StepResult.failure(nest_errors(name, self.errors, index))


def pad_errors(errors: Any, index: int) -> list[Any]:
    """Place ``errors`` at ``index`` of a list padded with ``None``."""
    return [None] * index + [errors]


def nest_errors(name: str, errors: Any, index: Optional[int] = None) -> dict[str, Any]:
    """
    Key ``errors`` under ``name``.

    Args:
        name: Node name of the current recursion level
        errors: Error value produced by the failing node or child
        index: Position of the failing element when inside an array

    Returns:
        ``{name: errors}`` or ``{name: [None] * index + [errors]}``
    """
    if index is None:
        return {name: errors}
    return {name: pad_errors(errors, index)}


def django_error_detail(error: DjangoValidationError) -> Any:
    """Convert a Django ``ValidationError`` into a plain error value."""
    if hasattr(error, "error_dict"):
        return error.message_dict
    return {"base": error.messages}
