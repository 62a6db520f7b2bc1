"""
Default configuration for django-recursive-update.

Projects override any of these keys through the ``RECURSIVE_UPDATE`` dict in
their Django settings module. Explicit keyword options passed to the entry
points take precedence over both.
"""

from __future__ import annotations

from typing import Any

LIBRARY_VERSION = "0.1.0"
LIBRARY_NAME = "django-recursive-update"

SETTINGS_NAME = "RECURSIVE_UPDATE"


LIBRARY_DEFAULTS: dict[str, Any] = {
    # Root policy applied when callers do not pass explicit options
    "allow_root_create": False,
    "allow_root_update": True,
    # Wrap every outermost call in transaction.atomic()
    "transaction": True,
    # Database alias used by the default record store (None = default router)
    "using": None,
    # Mapping keys carrying the delete option are named "<prefix><relation>"
    "delete_prefix": "delete_",
    # Parameter flag marking a many-relation item for destruction
    "destroy_flag": "_destroy",
    # Forward unexpected (non validation) errors to Sentry
    "report_unexpected_errors": False,
}


def merge_settings(*settings_dicts: dict[str, Any]) -> dict[str, Any]:
    """Merge settings dictionaries, later ones taking precedence."""
    result: dict[str, Any] = {}
    for settings_dict in settings_dicts:
        if not settings_dict:
            continue
        for key, value in settings_dict.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = merge_settings(result[key], value)
            else:
                result[key] = value
    return result


def validate_settings(settings: dict[str, Any]) -> list[str]:
    """
    Validate a settings dictionary and return a list of validation errors.
    """
    errors: list[str] = []

    for key in settings:
        if key not in LIBRARY_DEFAULTS:
            errors.append(f"Unknown setting '{SETTINGS_NAME}.{key}'")

    for key in (
        "allow_root_create",
        "allow_root_update",
        "transaction",
        "report_unexpected_errors",
    ):
        if key in settings and not isinstance(settings[key], bool):
            errors.append(f"{SETTINGS_NAME}.{key} must be a boolean")

    for key in ("delete_prefix", "destroy_flag"):
        value = settings.get(key, LIBRARY_DEFAULTS[key])
        if not isinstance(value, str) or not value:
            errors.append(f"{SETTINGS_NAME}.{key} must be a non-empty string")

    using = settings.get("using")
    if using is not None and not isinstance(using, str):
        errors.append(f"{SETTINGS_NAME}.using must be a database alias or None")

    if not settings.get("allow_root_create", True) and not settings.get(
        "allow_root_update", True
    ):
        errors.append(
            f"{SETTINGS_NAME}: allow_root_create and allow_root_update cannot both be False"
        )

    return errors
