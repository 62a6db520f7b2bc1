"""
Django app configuration for django-recursive-update.
"""

import logging

from django.apps import AppConfig as BaseAppConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseAppConfig):
    """Django app configuration for django-recursive-update."""

    name = "recursive_update"
    verbose_name = "Recursive Update"
    label = "recursive_update"

    def ready(self):
        """Validate the library configuration once Django has loaded."""
        self._validate_configuration()

    def _validate_configuration(self):
        from django.conf import settings as django_settings

        from .defaults import SETTINGS_NAME, validate_settings
        from .exceptions import InvalidConfigurationError

        configured = getattr(django_settings, SETTINGS_NAME, {}) or {}
        if not isinstance(configured, dict):
            errors = [f"{SETTINGS_NAME} must be a dict"]
        else:
            errors = validate_settings(configured)
        if not errors:
            logger.debug("Configuration validation completed")
            return
        for error in errors:
            logger.warning(f"Configuration validation failed: {error}")
        if getattr(django_settings, "DEBUG", False):
            raise InvalidConfigurationError("; ".join(errors))
