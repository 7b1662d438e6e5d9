# Overview: Flask API routes for sale invoices; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import sales_service, settings_service
from .common import internal_error, json_error, optional_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 1000))
    try:
        customer_id = optional_int(request.args.get("customer_id"), "customer_id")
        sales = sales_service.list_sales(customer_id=customer_id, limit=limit)
        return jsonify([s.to_dict() for s in sales])
    except LedgerError as e:
        return json_error(e)


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Request body (exactly one of customer_id / walk_in_customer_name):
    {
        "customer_id": 1,
        "walk_in_customer_name": "Ali",
        "sale_date": "2024-05-01",
        "items": [{"product_id": 1, "quantity": "20", "rate": "7.50"}],
        "received_amount": "150",
        "additional_charges": "0",
        "charges_description": "Delivery",
        "payment_mode": "CASH",
        "notes": "..."
    }

    Walk-in sales must be fully paid. The negative-stock setting is read
    once here and passed down.
    """
    data = request.get_json(silent=True) or {}
    try:
        customer_id = optional_int(data.get("customer_id"), "customer_id")
        sale = sales_service.create_sale(
            items=data.get("items"),
            customer_id=customer_id,
            walk_in_customer_name=data.get("walk_in_customer_name"),
            received_amount=data.get("received_amount"),
            payment_mode=data.get("payment_mode"),
            sale_date=data.get("sale_date"),
            notes=data.get("notes"),
            additional_charges=data.get("additional_charges"),
            charges_description=data.get("charges_description"),
            actor_id=g.actor_id,
            allow_negative_stock=settings_service.allow_negative_stock(),
        )
        return jsonify(sale.to_dict(include_items=True)), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("create sale")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict(include_items=True))
    except LedgerError as e:
        return json_error(e)


@sales_bp.get("/by-customer/<int:customer_id>")
def sales_by_customer_route(customer_id: int):
    """Sales to this customer with due > 0, newest first."""
    try:
        sales = sales_service.list_open_sales_for_customer(customer_id)
        return jsonify([s.to_dict() for s in sales])
    except LedgerError as e:
        return json_error(e)
