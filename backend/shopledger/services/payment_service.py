# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recorder

Applies a payment to exactly one invoice (sale OR purchase).

DESIGN PRINCIPLES:
- Partial payments: any amount in (0, due] is accepted; due == 0 is settled
- The invoice update is a compare-and-swap:
      paid = paid + :amt, due = due - :amt  WHERE id = :id AND due >= :amt
  so two concurrent payments can never overdraw the same invoice. The loser
  gets PaymentExceedsDue carrying the due it lost to.
- Party balance moves by -amount in the same transaction (walk-in sales
  have no party and skip this step).
- PaymentHistory is append-only; balance_before/after are the invoice due.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import select, update

from ..amounts import money
from ..errors import InvoiceNotFound, PaymentExceedsDue, ValidationError
from ..extensions import db
from ..models import PaymentHistory, Purchase, Sale
from ..time_utils import coerce_business_datetime
from ..validation import normalize_payment_mode, require_positive_amount
from .concurrency import lock_for_update, run_atomic
from .ledger_service import (
    PARTY_CUSTOMER,
    PARTY_VENDOR,
    SYSTEM_ACTOR,
    TX_PAYMENT,
    TX_RECEIPT,
    append_ledger_transaction,
    apply_balance_delta,
)


def _invoice_model(sale_id, purchase_id):
    if (sale_id is None) == (purchase_id is None):
        raise ValidationError("Provide exactly one of sale_id or purchase_id")
    if sale_id is not None:
        return Sale, sale_id
    return Purchase, purchase_id


def _get_invoice(model, invoice_id, *, lock: bool = False):
    query = db.session.query(model).filter_by(id=invoice_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if invoice is None:
        label = "Sale" if model is Sale else "Purchase"
        raise InvoiceNotFound(f"{label} not found: {invoice_id}")
    return invoice


def record_payment(
    *,
    amount,
    sale_id: int | None = None,
    purchase_id: int | None = None,
    payment_mode: str | None = None,
    payment_date=None,
    notes: str | None = None,
    actor_id: str | None = None,
):
    """
    Record a payment against a sale or purchase.

    Returns:
        (invoice, PaymentHistory) with the invoice refreshed after commit

    Raises:
        ValidationError: both/neither invoice id, amount <= 0, bad date
        InvoiceNotFound: invoice missing
        PaymentExceedsDue: amount > due (checked up front and again in the UPDATE)
    """
    model, invoice_id = _invoice_model(sale_id, purchase_id)
    amt = require_positive_amount(amount)
    mode = normalize_payment_mode(payment_mode)
    try:
        when = coerce_business_datetime(payment_date)
    except ValueError:
        raise ValidationError("Invalid payment_date")

    invoice = _get_invoice(model, invoice_id)
    due = money(invoice.due_amount)
    if amt > due:
        raise PaymentExceedsDue(due, amt)

    def _op():
        _get_invoice(model, invoice_id, lock=True)
        result = db.session.execute(
            update(model)
            .where(model.id == invoice_id, model.due_amount >= amt)
            .values(
                paid_amount=model.paid_amount + amt,
                due_amount=model.due_amount - amt,
            ),
            execution_options={"synchronize_session": False},
        )
        if not result.rowcount:
            current_due = money(
                db.session.execute(select(model.due_amount).where(model.id == invoice_id)).scalar_one()
            )
            raise PaymentExceedsDue(current_due, amt)

        due_after = money(
            db.session.execute(select(model.due_amount).where(model.id == invoice_id)).scalar_one()
        )
        due_before = due_after + amt

        if model is Purchase:
            balance_before, balance_after = apply_balance_delta(
                party_type=PARTY_VENDOR, party_id=invoice.vendor_id, delta=-amt, require_active=False,
            )
            append_ledger_transaction(
                transaction_type=TX_PAYMENT,
                amount=amt,
                balance_before=balance_before,
                balance_after=balance_after,
                vendor_id=invoice.vendor_id,
                purchase_id=invoice_id,
                description=f"Payment for purchase {invoice.invoice_number}",
                transaction_date=when,
                actor_id=actor_id,
            )
        elif invoice.customer_id is not None:
            balance_before, balance_after = apply_balance_delta(
                party_type=PARTY_CUSTOMER, party_id=invoice.customer_id, delta=-amt, require_active=False,
            )
            append_ledger_transaction(
                transaction_type=TX_RECEIPT,
                amount=amt,
                balance_before=balance_before,
                balance_after=balance_after,
                customer_id=invoice.customer_id,
                sale_id=invoice_id,
                description=f"Receipt for sale {invoice.invoice_number}",
                transaction_date=when,
                actor_id=actor_id,
            )

        entry = PaymentHistory(
            sale_id=sale_id,
            purchase_id=purchase_id,
            amount=amt,
            payment_mode=mode,
            payment_date=when,
            notes=notes,
            balance_before=due_before,
            balance_after=due_after,
            created_by=actor_id or SYSTEM_ACTOR,
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    entry = run_atomic(_op, label="payment.record")
    invoice = db.session.get(model, invoice_id, populate_existing=True)

    current_app.logger.info(
        "Payment %s (%s) recorded on %s: due %s -> %s by %s",
        amt, mode, invoice.invoice_number, entry.balance_before, entry.balance_after, actor_id,
    )
    return invoice, entry


def list_payment_history(*, sale_id: int | None = None, purchase_id: int | None = None) -> list[PaymentHistory]:
    """Payments applied to one invoice, newest first."""
    model, invoice_id = _invoice_model(sale_id, purchase_id)
    _get_invoice(model, invoice_id)

    column = PaymentHistory.sale_id if model is Sale else PaymentHistory.purchase_id
    return (
        db.session.query(PaymentHistory)
        .filter(column == invoice_id)
        .order_by(PaymentHistory.payment_date.desc(), PaymentHistory.id.desc())
        .all()
    )
