"""
Error reporting hooks (Sentry).

Only unexpected errors are reported: validation failures and configuration
errors are part of the normal contract with the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk

from .settings import RecursiveUpdateSettings

logger = logging.getLogger(__name__)


def report_unexpected_error(error: BaseException, **tags: Any) -> None:
    """Capture ``error`` in Sentry when ``report_unexpected_errors`` is enabled."""
    if not RecursiveUpdateSettings.from_settings().report_unexpected_errors:
        return
    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in tags.items():
                scope.set_tag(f"recursive_update.{key}", str(value))
            sentry_sdk.capture_exception(error)
    except Exception as exc:
        logger.warning("Failed to report error to Sentry: %s", exc)
