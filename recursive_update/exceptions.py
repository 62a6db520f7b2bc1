"""
Exceptions raised by the recursive update engine.

``InvalidConfigurationError`` and ``UnreachableStateError`` signal caller or
library defects and are never wrapped. ``ValidationError`` carries the
nested error tree whose shape mirrors the submitted parameters.
"""

from typing import Any, Optional


class RecursiveUpdateError(Exception):
    """Base exception for recursive update errors."""


class InvalidConfigurationError(RecursiveUpdateError):
    """Raised when a mapping or an option set violates the engine contract."""

    def __init__(self, message: str, node_name: Optional[str] = None):
        self.node_name = node_name
        super().__init__(message)


class ValidationError(RecursiveUpdateError):
    """
    Raised when one node of the parameter tree fails validation.

    Attributes:
        errors: Error tree keyed by node name. Lists are aligned with the
            submitted arrays, ``None`` marking positions without errors.
    """

    def __init__(self, errors: Any, message: Optional[str] = None):
        self.errors = errors
        super().__init__(message or "Validation failed")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.errors!r})"


class UnreachableStateError(RecursiveUpdateError):
    """Raised when an internal invariant is violated."""
