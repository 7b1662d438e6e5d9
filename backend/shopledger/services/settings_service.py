# Overview: Service-layer operations for system settings.

"""
System settings (singleton).

The row is created lazily with defaults on first read. Callers read it once
per operation and pass allow_negative_stock into the ledger services.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import SystemSettings
from ..models.settings import DEFAULT_SETTINGS_ID
from .concurrency import run_atomic


def get_settings() -> SystemSettings:
    settings = db.session.get(SystemSettings, DEFAULT_SETTINGS_ID)
    if settings is not None:
        return settings

    settings = SystemSettings(id=DEFAULT_SETTINGS_ID, allow_negative_stock=False)
    db.session.add(settings)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created it first
        db.session.rollback()
        settings = db.session.get(SystemSettings, DEFAULT_SETTINGS_ID)
    return settings


def allow_negative_stock() -> bool:
    return bool(get_settings().allow_negative_stock)


def update_settings(*, allow_negative_stock, actor_id: str | None = None) -> SystemSettings:
    if not isinstance(allow_negative_stock, bool):
        raise ValidationError("allow_negative_stock must be a boolean value")

    get_settings()

    def _op():
        settings = db.session.get(SystemSettings, DEFAULT_SETTINGS_ID)
        settings.allow_negative_stock = allow_negative_stock
        settings.updated_by = actor_id
        db.session.flush()
        return settings

    settings = run_atomic(_op, label="settings.update")
    current_app.logger.info(
        "allow_negative_stock set to %s by %s", allow_negative_stock, actor_id
    )
    return settings
