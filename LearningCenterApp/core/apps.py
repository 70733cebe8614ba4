"""Core app: system checks run by `manage.py check` and on server start."""

import magic
from django.apps import AppConfig
from django.conf import settings
from django.core import checks


def libmagic_check(app_configs, **kwargs):
    """Uploads are typed by libmagic, so the shared library must load and answer sensibly."""
    try:
        detected = magic.from_buffer(b"Week 3 reading notes\n", mime=True)
    except Exception as exc:
        return [checks.Error(f"libmagic not available: {exc}", id="core.E001")]
    if detected != "text/plain":
        return [checks.Warning(f"libmagic reports {detected!r} for plain text", id="core.W001")]
    return []


def submission_throttle_check(app_configs, **kwargs):
    rates = settings.REST_FRAMEWORK.get("DEFAULT_THROTTLE_RATES", {})
    if not rates.get("submission_create"):
        return [checks.Error("No rate configured for the submission_create throttle scope", id="core.E002")]
    return []


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningCenterApp.core"

    def ready(self):
        checks.register(libmagic_check)
        checks.register(submission_throttle_check)
