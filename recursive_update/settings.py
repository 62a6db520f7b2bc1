"""
RecursiveUpdateSettings implementation.
"""

from dataclasses import dataclass, fields
from typing import Any, Optional

from django.conf import settings as django_settings

from .defaults import LIBRARY_DEFAULTS, SETTINGS_NAME, merge_settings


def _get_project_settings() -> dict[str, Any]:
    """Get the RECURSIVE_UPDATE dict from Django settings."""
    configured = getattr(django_settings, SETTINGS_NAME, None) or {}
    if not isinstance(configured, dict):
        return {}
    return configured


def get_merged_settings(overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Merge library defaults, project settings and explicit overrides.

    ``None`` values in ``overrides`` are ignored so that callers can forward
    optional keyword arguments untouched.
    """
    explicit = {k: v for k, v in (overrides or {}).items() if v is not None}
    return merge_settings(LIBRARY_DEFAULTS, _get_project_settings(), explicit)


@dataclass(frozen=True)
class RecursiveUpdateSettings:
    """Settings controlling the recursive update engine."""

    allow_root_create: bool = False
    allow_root_update: bool = True
    transaction: bool = True
    using: Optional[str] = None
    delete_prefix: str = "delete_"
    destroy_flag: str = "_destroy"
    report_unexpected_errors: bool = False

    @classmethod
    def from_settings(cls, **overrides: Any) -> "RecursiveUpdateSettings":
        merged = get_merged_settings(overrides)
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in merged.items() if k in valid_fields})
