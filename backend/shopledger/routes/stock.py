# Overview: Flask API route for manual stock adjustments.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import inventory_service
from .common import internal_error, json_error, optional_int

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/adjust")
@require_auth
def adjust_stock_route():
    """
    Manually add (IN) or remove (OUT) stock.

    Request body:
    {
        "product_id": 1,          // required
        "adjustment_type": "IN",  // IN or OUT
        "quantity": "5",          // > 0
        "notes": "..."            // optional
    }

    OUT never drives stock below zero, regardless of settings.
    """
    data = request.get_json(silent=True) or {}
    try:
        product_id = optional_int(data.get("product_id"), "product_id")
        if product_id is None:
            return jsonify({"error": "product_id is required"}), 400

        product, movement = inventory_service.adjust_stock(
            product_id=product_id,
            adjustment_type=data.get("adjustment_type"),
            quantity=data.get("quantity"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("adjust stock")
