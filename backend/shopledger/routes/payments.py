# Overview: Flask API routes for invoice payments; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import payment_service
from .common import internal_error, json_error, optional_int

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment-history")


@payments_bp.get("")
def list_payments_route():
    """
    Query parameters (exactly one):
    - sale_id
    - purchase_id
    """
    try:
        entries = payment_service.list_payment_history(
            sale_id=optional_int(request.args.get("sale_id"), "sale_id"),
            purchase_id=optional_int(request.args.get("purchase_id"), "purchase_id"),
        )
        return jsonify([e.to_dict() for e in entries])
    except LedgerError as e:
        return json_error(e)


@payments_bp.post("")
@require_auth
def record_payment_route():
    """
    Request body:
    {
        "sale_id": 1,            // or "purchase_id", exactly one
        "amount": "300",         // 0 < amount <= due
        "payment_mode": "CASH",  // CASH, BANK, ONLINE
        "payment_date": "...",   // optional, default now
        "notes": "..."
    }

    Returns:
        {"payment": PaymentHistory, "invoice": Sale | Purchase} (201)
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice, entry = payment_service.record_payment(
            amount=data.get("amount"),
            sale_id=optional_int(data.get("sale_id"), "sale_id"),
            purchase_id=optional_int(data.get("purchase_id"), "purchase_id"),
            payment_mode=data.get("payment_mode"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify({"payment": entry.to_dict(), "invoice": invoice.to_dict()}), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("record payment")
