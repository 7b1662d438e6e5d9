# Overview: Flask API routes for vendor operations; parses input and returns JSON responses.

"""
Vendor Routes

Reads are open; create/update/deactivate need an actor.
The vendor balance is read-only: it moves through purchases and payments.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..models import Vendor
from ..services import ledger_service, vendor_service
from ..validation import ModelValidationPolicy, enforce_rules_party, validate_payload
from .common import flag_arg, internal_error, json_error

vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")

CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "opening_balance"},
    required_on_create={"name"},
)
UPDATE_POLICY = ModelValidationPolicy(writable_fields={"name", "phone", "address"})


@vendors_bp.get("")
def list_vendors_route():
    """
    Query parameters:
    - include_inactive: include deactivated vendors (default: false)
    - search: name or phone contains
    """
    vendors = vendor_service.list_vendors(
        include_inactive=flag_arg(request.args, "include_inactive"),
        search=request.args.get("search"),
    )
    return jsonify([v.to_dict() for v in vendors])


@vendors_bp.post("")
@require_auth
def create_vendor_route():
    """
    Request body:
    {
        "name": "Vendor Name",     // required
        "phone": "...",            // optional
        "address": "...",          // optional
        "opening_balance": "1500"  // optional, >= 0; becomes an OB-* purchase
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Vendor, payload=data, policy=CREATE_POLICY, partial=False)
        enforce_rules_party(patch)
        vendor = vendor_service.create_vendor(
            name=patch["name"],
            phone=patch.get("phone"),
            address=patch.get("address"),
            opening_balance=patch.get("opening_balance"),
            actor_id=g.actor_id,
        )
        return jsonify(vendor.to_dict()), 201
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("create vendor")


@vendors_bp.get("/<int:vendor_id>")
def get_vendor_route(vendor_id: int):
    try:
        return jsonify(vendor_service.get_vendor(vendor_id).to_dict())
    except LedgerError as e:
        return json_error(e)


@vendors_bp.patch("/<int:vendor_id>")
@require_auth
def update_vendor_route(vendor_id: int):
    data = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Vendor, payload=data, policy=UPDATE_POLICY, partial=True)
        enforce_rules_party(patch)
        vendor = vendor_service.update_vendor(
            vendor_id,
            name=patch.get("name"),
            # Explicit null / "" clears the field
            phone=(patch["phone"] or "") if "phone" in patch else None,
            address=(patch["address"] or "") if "address" in patch else None,
        )
        return jsonify(vendor.to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("update vendor")


@vendors_bp.delete("/<int:vendor_id>")
@require_auth
def deactivate_vendor_route(vendor_id: int):
    try:
        return jsonify(vendor_service.deactivate_vendor(vendor_id).to_dict())
    except LedgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("deactivate vendor")


@vendors_bp.get("/<int:vendor_id>/transactions")
def vendor_transactions_route(vendor_id: int):
    try:
        vendor_service.get_vendor(vendor_id)
        txs = ledger_service.list_ledger_transactions(vendor_id=vendor_id)
        return jsonify([t.to_dict() for t in txs])
    except LedgerError as e:
        return json_error(e)
