# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request


def require_auth(f):
    """
    Require an authenticated actor.

    Authentication itself happens upstream; this layer only receives the
    opaque actor id in the configured header (ACTOR_HEADER) and exposes it
    as g.actor_id so mutating services can record who did what.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("ACTOR_HEADER", "X-Actor-Id")
        actor_id = (request.headers.get(header) or "").strip()

        if not actor_id:
            return jsonify({"error": "Authentication required"}), 401

        if len(actor_id) > 64:
            return jsonify({"error": "Invalid actor id"}), 401

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function
