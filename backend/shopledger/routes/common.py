# Overview: Helpers shared by the API blueprints (error bodies, argument parsing).

from __future__ import annotations

from flask import current_app, jsonify

from ..errors import LedgerError, ValidationError


def json_error(exc: LedgerError):
    """Serialize a ledger error with the status its class declares."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def optional_int(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def flag_arg(args, name: str) -> bool:
    return (args.get(name) or "false").strip().lower() in ("1", "true", "yes")
