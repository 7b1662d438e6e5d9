# Overview: Flask API routes for system settings.

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import settings_service
from .common import internal_error, json_error

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings_route():
    try:
        return jsonify(settings_service.get_settings().to_dict())
    except Exception:
        return internal_error("load settings")


@settings_bp.put("")
@require_auth
def update_settings_route():
    """Request body: {"allow_negative_stock": true | false}"""
    data = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_settings(
            allow_negative_stock=data.get("allow_negative_stock"),
            actor_id=g.actor_id,
        )
        return jsonify(settings.to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("update settings")
