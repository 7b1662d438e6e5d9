# Overview: Flask API routes for the product catalogue; parses input and returns JSON responses.

"""
Product Routes

Stock is read-only here: it moves through purchases, sales and
POST /api/stock/adjust. DELETE deactivates; products are never removed.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..models import Product
from ..services import inventory_service
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .common import flag_arg, internal_error, json_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "minimum_stock_level"},
    required_on_create={"name", "unit"},
)


@products_bp.get("")
def list_products_route():
    """
    Query parameters:
    - include_inactive: include deactivated products (default: false)
    - search: case-insensitive name filter
    """
    products = inventory_service.list_products(
        include_inactive=flag_arg(request.args, "include_inactive"),
        search=request.args.get("search"),
    )
    return jsonify([p.to_dict() for p in products])


@products_bp.post("")
@require_auth
def create_product_route():
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = inventory_service.create_product(
            name=patch["name"],
            unit=patch["unit"],
            minimum_stock_level=patch.get("minimum_stock_level") or 0,
        )
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("create product")


@products_bp.get("/low-stock")
def low_stock_route():
    products = inventory_service.list_low_stock_products()
    return jsonify([p.to_dict() for p in products])


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(inventory_service.get_product(product_id).to_dict())
    except LedgerError as e:
        return json_error(e)


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = inventory_service.update_product(
            product_id,
            name=patch.get("name"),
            unit=patch.get("unit"),
            minimum_stock_level=patch.get("minimum_stock_level"),
        )
        return jsonify(product.to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("update product")


@products_bp.delete("/<int:product_id>")
@require_auth
def deactivate_product_route(product_id: int):
    try:
        product = inventory_service.deactivate_product(product_id)
        return jsonify(product.to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("deactivate product")


@products_bp.get("/<int:product_id>/movements")
def list_movements_route(product_id: int):
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 1000))
    try:
        movements = inventory_service.list_stock_movements(product_id, limit=limit)
        return jsonify([m.to_dict() for m in movements])
    except LedgerError as e:
        return json_error(e)
