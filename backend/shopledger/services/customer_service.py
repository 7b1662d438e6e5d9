# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customer Service

Customers are the receivable side of the party ledger. Same lifecycle as
vendors: optional opening balance (a synthetic OB-* sale), soft delete only.
Walk-in buyers are not customers; they exist only as a name on their sale.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app


from ..errors import PartyInactive, PartyNotFound, ValidationError
from ..extensions import db
from ..models import Customer
from ..validation import parse_money
from .concurrency import lock_for_update, run_atomic

SEARCH_LIMIT = 10


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_customer(customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if not customer:
        raise PartyNotFound(f"Customer not found: {customer_id}")
    return customer


def validate_active_customer(customer_id: int, *, lock: bool = False) -> Customer:
    customer = get_customer(customer_id, lock=lock)
    if not customer.is_active:
        raise PartyInactive(f"Customer {customer.name} is inactive")
    return customer


def create_customer(
    *,
    name: str,
    phone: str | None = None,
    address: str | None = None,
    opening_balance: Decimal | int | str | None = None,
    actor_id: str | None = None,
) -> Customer:
    if not name or not name.strip():
        raise ValidationError("Customer name is required")
    opening = parse_money(opening_balance or 0, "opening_balance")
    if opening < 0:
        raise ValidationError("opening_balance cannot be negative")

    def _op():
        customer = Customer(
            name=name.strip(),
            phone=_clean(phone),
            address=_clean(address),
            balance=Decimal("0"),
            is_active=True,
        )
        db.session.add(customer)
        db.session.flush()

        if opening > 0:
            from .sales_service import record_opening_balance_sale
            record_opening_balance_sale(customer_id=customer.id, amount=opening, actor_id=actor_id)
            db.session.refresh(customer)
        return customer

    customer = run_atomic(_op, label="customer.create")
    current_app.logger.info("Customer %s created (opening balance %s)", customer.id, opening)
    return customer


def update_customer(
    customer_id: int,
    *,
    name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Customer:
    def _op():
        customer = get_customer(customer_id, lock=True)
        if not customer.is_active:
            raise PartyInactive("Cannot update inactive customer")
        if name is not None:
            if not name.strip():
                raise ValidationError("Customer name cannot be empty")
            customer.name = name.strip()
        if phone is not None:
            customer.phone = _clean(phone)
        if address is not None:
            customer.address = _clean(address)
        db.session.flush()
        return customer

    return run_atomic(_op, label="customer.update")


def deactivate_customer(customer_id: int) -> Customer:
    def _op():
        customer = get_customer(customer_id, lock=True)
        customer.is_active = False
        db.session.flush()
        return customer

    return run_atomic(_op, label="customer.deactivate")


def list_customers(*, include_inactive: bool = False) -> list[Customer]:
    query = db.session.query(Customer)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def search_customers(term: str | None, limit: int = SEARCH_LIMIT) -> list[Customer]:
    """Active customers whose name or phone contains term (empty term -> [])."""
    if not term or not term.strip():
        return []
    like = f"%{term.strip()}%"
    return (
        db.session.query(Customer)
        .filter(
            Customer.is_active.is_(True),
            Customer.name.ilike(like) | Customer.phone.ilike(like),
        )
        .order_by(Customer.name)
        .limit(limit)
        .all()
    )
