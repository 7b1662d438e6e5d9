# Overview: Service-layer operations for vendors; encapsulates business logic and database work.

"""
Vendor Service

Vendors are the payable side of the party ledger. A vendor may be registered
with an opening balance: that amount becomes a synthetic OB-* purchase with no
items, so it can be paid down through the normal payment flow and the
balance == sum(due) invariant holds from day one.

Vendors are never deleted (purchases keep their FK); deactivation hides them
from lists and blocks new purchases.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app


from ..errors import PartyInactive, PartyNotFound, ValidationError
from ..extensions import db
from ..models import Vendor
from ..validation import parse_money
from .concurrency import lock_for_update, run_atomic


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_vendor(vendor_id: int, *, lock: bool = False) -> Vendor:
    query = db.session.query(Vendor).filter_by(id=vendor_id)
    if lock:
        query = lock_for_update(query)
    vendor = query.first()
    if not vendor:
        raise PartyNotFound(f"Vendor not found: {vendor_id}")
    return vendor


def validate_active_vendor(vendor_id: int, *, lock: bool = False) -> Vendor:
    """Resolve a vendor that may receive new purchases."""
    vendor = get_vendor(vendor_id, lock=lock)
    if not vendor.is_active:
        raise PartyInactive(f"Vendor {vendor.name} is inactive")
    return vendor


def create_vendor(
    *,
    name: str,
    phone: str | None = None,
    address: str | None = None,
    opening_balance: Decimal | int | str | None = None,
    actor_id: str | None = None,
) -> Vendor:
    """
    Create a vendor, optionally with an opening balance owed to them.

    Raises:
        ValidationError: blank name or negative opening balance
    """
    if not name or not name.strip():
        raise ValidationError("Vendor name is required")
    opening = parse_money(opening_balance or 0, "opening_balance")
    if opening < 0:
        raise ValidationError("opening_balance cannot be negative")

    def _op():
        vendor = Vendor(
            name=name.strip(),
            phone=_clean(phone),
            address=_clean(address),
            balance=Decimal("0"),
            is_active=True,
        )
        db.session.add(vendor)
        db.session.flush()

        if opening > 0:
            from .purchase_service import record_opening_balance_purchase
            record_opening_balance_purchase(vendor_id=vendor.id, amount=opening, actor_id=actor_id)
            db.session.refresh(vendor)
        return vendor

    vendor = run_atomic(_op, label="vendor.create")
    current_app.logger.info("Vendor %s created (opening balance %s)", vendor.id, opening)
    return vendor


def update_vendor(
    vendor_id: int,
    *,
    name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Vendor:
    """Update contact details. The balance is not editable."""
    def _op():
        vendor = get_vendor(vendor_id, lock=True)
        if not vendor.is_active:
            raise PartyInactive("Cannot update inactive vendor")
        if name is not None:
            if not name.strip():
                raise ValidationError("Vendor name cannot be empty")
            vendor.name = name.strip()
        if phone is not None:
            vendor.phone = _clean(phone)
        if address is not None:
            vendor.address = _clean(address)
        db.session.flush()
        return vendor

    return run_atomic(_op, label="vendor.update")


def deactivate_vendor(vendor_id: int) -> Vendor:
    def _op():
        vendor = get_vendor(vendor_id, lock=True)
        vendor.is_active = False
        db.session.flush()
        return vendor

    return run_atomic(_op, label="vendor.deactivate")


def list_vendors(*, include_inactive: bool = False, search: str | None = None) -> list[Vendor]:
    query = db.session.query(Vendor)
    if not include_inactive:
        query = query.filter(Vendor.is_active.is_(True))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(Vendor.name.ilike(term) | Vendor.phone.ilike(term))
    return query.order_by(Vendor.created_at.desc(), Vendor.id.desc()).all()
