# Overview: Party ledger; atomic vendor/customer balance changes plus their audit rows.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update

from ..amounts import money
from ..errors import PartyInactive, PartyNotFound, ValidationError
from ..extensions import db
from ..models import Customer, LedgerTransaction, Vendor
from ..time_utils import utcnow
"""
Party Ledger Invariants (authoritative)

- Vendor.balance / Customer.balance == sum(due_amount) over that party's
  invoices, at every commit.
- Balances change ONLY via apply_balance_delta(), called by the purchase,
  sale, payment and opening-balance flows inside their own transaction.
  There is no public "adjust balance" operation and no route for one.
- The change is a single SQL increment (balance = balance + :delta), never a
  read-modify-write, so concurrent invoices/payments cannot lose updates.
- LedgerTransaction rows are informational; nothing reads them back to derive
  a balance.
"""

PARTY_VENDOR = "vendor"
PARTY_CUSTOMER = "customer"

PARTY_MODELS = {
    PARTY_VENDOR: Vendor,
    PARTY_CUSTOMER: Customer,
}

TX_PAYMENT = "PAYMENT"
TX_RECEIPT = "RECEIPT"
TX_OPENING_BALANCE = "OPENING_BALANCE"

# created_by for PaymentHistory rows written without an authenticated actor
SYSTEM_ACTOR = "system"


def _party_model(party_type: str):
    model = PARTY_MODELS.get(party_type)
    if model is None:
        raise ValidationError(f"Invalid party type: {party_type}")
    return model


def apply_balance_delta(
    *,
    party_type: str,
    party_id: int,
    delta: Decimal,
    require_active: bool = True,
) -> tuple[Decimal, Decimal]:
    """
    Atomically add delta to a party balance.

    Does NOT commit. Returns (balance_before, balance_after) as seen by this
    transaction.

    require_active=False lets payments settle debts of a deactivated party.
    """
    model = _party_model(party_type)
    delta = money(delta)

    stmt = update(model).where(model.id == party_id).values(balance=model.balance + delta)
    if require_active:
        stmt = stmt.where(model.is_active.is_(True))

    result = db.session.execute(stmt, execution_options={"synchronize_session": False})
    if not result.rowcount:
        party = db.session.get(model, party_id, populate_existing=True)
        if party is None:
            raise PartyNotFound(f"{party_type.capitalize()} not found: {party_id}")
        raise PartyInactive(f"{party_type.capitalize()} {party.name} is inactive")

    balance_after = money(
        db.session.execute(select(model.balance).where(model.id == party_id)).scalar_one()
    )
    return balance_after - delta, balance_after


def append_ledger_transaction(
    *,
    transaction_type: str,
    amount: Decimal,
    balance_before: Decimal,
    balance_after: Decimal,
    vendor_id: int | None = None,
    customer_id: int | None = None,
    purchase_id: int | None = None,
    sale_id: int | None = None,
    description: Optional[str] = None,
    transaction_date: Optional[datetime] = None,
    actor_id: str | None = None,
) -> LedgerTransaction:
    """
    Append-only party ledger audit row.

    - No balance logic here.
    - No deletes/updates of existing rows.
    """
    if (vendor_id is None) == (customer_id is None):
        raise ValidationError("Ledger transaction needs exactly one of vendor_id / customer_id")

    tx = LedgerTransaction(
        transaction_type=transaction_type,
        vendor_id=vendor_id,
        customer_id=customer_id,
        purchase_id=purchase_id,
        sale_id=sale_id,
        amount=money(amount),
        balance_before=money(balance_before),
        balance_after=money(balance_after),
        description=description,
        transaction_date=transaction_date or utcnow(),
        created_by=actor_id,
    )
    db.session.add(tx)
    db.session.flush()  # ensures tx.id is assigned without committing
    return tx


def list_ledger_transactions(
    *,
    vendor_id: int | None = None,
    customer_id: int | None = None,
    limit: int = 200,
) -> list[LedgerTransaction]:
    query = db.session.query(LedgerTransaction)
    if vendor_id is not None:
        query = query.filter(LedgerTransaction.vendor_id == vendor_id)
    if customer_id is not None:
        query = query.filter(LedgerTransaction.customer_id == customer_id)
    return (
        query.order_by(LedgerTransaction.transaction_date.desc(), LedgerTransaction.id.desc())
        .limit(limit)
        .all()
    )
