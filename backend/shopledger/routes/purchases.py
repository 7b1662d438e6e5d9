# Overview: Flask API routes for purchase invoices; parses input and returns JSON responses.

"""
Purchase Routes

POST creates the whole invoice in one transaction: items, stock increments,
vendor balance, and the initial payment if any.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import purchase_service
from .common import internal_error, json_error, optional_int

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
def list_purchases_route():
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 1000))
    try:
        vendor_id = optional_int(request.args.get("vendor_id"), "vendor_id")
        purchases = purchase_service.list_purchases(vendor_id=vendor_id, limit=limit)
        return jsonify([p.to_dict() for p in purchases])
    except LedgerError as e:
        return json_error(e)


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Request body:
    {
        "vendor_id": 1,                                        // required
        "purchase_date": "2024-05-01",                         // optional, default now
        "items": [{"product_id": 1, "quantity": "100", "rate": "5"}],
        "paid_amount": "200",                                  // optional, default 0
        "payment_mode": "CASH",                                // CASH, BANK, ONLINE
        "notes": "..."
    }

    Returns:
        Created purchase with items (201)
    """
    data = request.get_json(silent=True) or {}
    try:
        vendor_id = optional_int(data.get("vendor_id"), "vendor_id")
        if vendor_id is None:
            return jsonify({"error": "vendor_id is required"}), 400

        purchase = purchase_service.create_purchase(
            vendor_id=vendor_id,
            items=data.get("items"),
            paid_amount=data.get("paid_amount"),
            payment_mode=data.get("payment_mode"),
            purchase_date=data.get("purchase_date"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify(purchase.to_dict(include_items=True)), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("create purchase")


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(purchase_service.get_purchase(purchase_id).to_dict(include_items=True))
    except LedgerError as e:
        return json_error(e)


@purchases_bp.get("/by-vendor/<int:vendor_id>")
def purchases_by_vendor_route(vendor_id: int):
    """Purchases from this vendor with due > 0, newest first."""
    try:
        purchases = purchase_service.list_open_purchases_for_vendor(vendor_id)
        return jsonify([p.to_dict() for p in purchases])
    except LedgerError as e:
        return json_error(e)
