# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..models import Customer
from ..services import customer_service, ledger_service
from ..validation import ModelValidationPolicy, enforce_rules_party, validate_payload
from .common import flag_arg, internal_error, json_error

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "opening_balance"},
    required_on_create={"name"},
)
UPDATE_POLICY = ModelValidationPolicy(writable_fields={"name", "phone", "address"})


@customers_bp.get("")
def list_customers_route():
    customers = customer_service.list_customers(
        include_inactive=flag_arg(request.args, "include_inactive"),
    )
    return jsonify([c.to_dict() for c in customers])


@customers_bp.get("/search")
def search_customers_route():
    """Active customers by name or phone, at most 10, ordered by name."""
    customers = customer_service.search_customers(request.args.get("q"))
    return jsonify([c.to_dict() for c in customers])


@customers_bp.post("")
@require_auth
def create_customer_route():
    """
    Request body:
    {
        "name": "Customer Name",  // required
        "phone": "...",           // optional
        "address": "...",         // optional
        "opening_balance": "250"  // optional, >= 0; becomes an OB-* sale
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=data, policy=CREATE_POLICY, partial=False)
        enforce_rules_party(patch)
        customer = customer_service.create_customer(
            name=patch["name"],
            phone=patch.get("phone"),
            address=patch.get("address"),
            opening_balance=patch.get("opening_balance"),
            actor_id=g.actor_id,
        )
        return jsonify(customer.to_dict()), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("create customer")


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(customer_id).to_dict())
    except LedgerError as e:
        return json_error(e)


@customers_bp.patch("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=data, policy=UPDATE_POLICY, partial=True)
        enforce_rules_party(patch)
        customer = customer_service.update_customer(
            customer_id,
            name=patch.get("name"),
            phone=(patch["phone"] or "") if "phone" in patch else None,
            address=(patch["address"] or "") if "address" in patch else None,
        )
        return jsonify(customer.to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("update customer")


@customers_bp.delete("/<int:customer_id>")
@require_auth
def deactivate_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.deactivate_customer(customer_id).to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("deactivate customer")


@customers_bp.get("/<int:customer_id>/transactions")
def customer_transactions_route(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
        txs = ledger_service.list_ledger_transactions(customer_id=customer_id)
        return jsonify([t.to_dict() for t in txs])
    except LedgerError as e:
        return json_error(e)
