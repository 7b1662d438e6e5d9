# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase Service

Creating a purchase is one transaction that touches four things:

1. the Purchase row (+ one PurchaseItem per line)
2. stock: +qty per line via inventory_service.apply_stock_change (PURCHASE)
3. the vendor balance: +due via ledger_service.apply_balance_delta
4. if something was paid up front: a LedgerTransaction(PAYMENT) and a
   PaymentHistory row for the initial payment

Either all of it commits or none of it does. Purchases always add stock, so
the negative-stock policy never applies here.

paid_amount is not clamped to the total; paying more than the invoice leaves
a negative due (an advance held by the vendor).
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..amounts import ZERO, line_total, money
from ..errors import (
    InvoiceNotFound,
    ProductInactive,
    ProductNotFound,
    PurchaseCreationFailed,
    TransactionTimeout,
    ValidationError,
)
from ..extensions import db
from ..models import PaymentHistory, Purchase, PurchaseItem
from ..models.inventory import MOVEMENT_PURCHASE
from ..time_utils import coerce_business_datetime
from ..validation import normalize_payment_mode, optional_non_negative_amount, parse_line_items
from .concurrency import run_atomic
from .document_service import PREFIX_OPENING_BALANCE, PREFIX_PURCHASE, next_invoice_number
from .inventory_service import apply_stock_change, get_products_by_ids
from .ledger_service import (
    PARTY_VENDOR,
    SYSTEM_ACTOR,
    TX_OPENING_BALANCE,
    TX_PAYMENT,
    append_ledger_transaction,
    apply_balance_delta,
)
from .vendor_service import get_vendor, validate_active_vendor

REFERENCE_PURCHASE = "PURCHASE"


def _resolve_products(lines: list[dict]) -> dict:
    products = get_products_by_ids([line["product_id"] for line in lines])
    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise ProductNotFound(f"Product not found: {line['product_id']}")
        if not product.is_active:
            raise ProductInactive(f"Product {product.name} is inactive")
    return products


def create_purchase(
    *,
    vendor_id: int,
    items,
    paid_amount=0,
    payment_mode: str | None = None,
    purchase_date=None,
    notes: str | None = None,
    actor_id: str | None = None,
) -> Purchase:
    """
    Record a purchase invoice from a vendor.

    Args:
        vendor_id: Active vendor supplying the goods
        items: [{product_id, quantity, rate}, ...] (rate may be sent as unit_price)
        paid_amount: Paid at purchase time (>= 0, default 0)
        payment_mode: CASH / BANK / ONLINE (anything else -> CASH)
        purchase_date: datetime/date/ISO string, default now
        notes: Free text, also used on the initial PaymentHistory row
        actor_id: Authenticated actor recorded on audit rows

    Raises:
        ValidationError: bad items or amounts
        PartyNotFound / PartyInactive: vendor problems
        ProductNotFound / ProductInactive: any line's product
        PurchaseCreationFailed: the store failed mid-write (wraps the cause)
    """
    lines = parse_line_items(items)
    paid = optional_non_negative_amount(paid_amount, "paid_amount")
    mode = normalize_payment_mode(payment_mode)
    try:
        when = coerce_business_datetime(purchase_date)
    except ValueError:
        raise ValidationError("Invalid purchase_date")

    vendor = validate_active_vendor(vendor_id)
    products = _resolve_products(lines)

    total = money(sum((line_total(line["quantity"], line["rate"]) for line in lines), ZERO))
    due = total - paid
    invoice_number = next_invoice_number(PREFIX_PURCHASE)

    def _op():
        get_products_by_ids(products, lock=True)
        validate_active_vendor(vendor.id, lock=True)

        purchase = Purchase(
            invoice_number=invoice_number,
            vendor_id=vendor.id,
            purchase_date=when,
            total_amount=total,
            paid_amount=paid,
            due_amount=due,
            notes=notes,
            is_opening_balance=False,
            created_by=actor_id,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=line["rate"],
                total_price=line_total(line["quantity"], line["rate"]),
            ))
            apply_stock_change(
                product_id=line["product_id"],
                delta=line["quantity"],
                movement_type=MOVEMENT_PURCHASE,
                reference_type=REFERENCE_PURCHASE,
                reference_id=purchase.id,
                notes=f"Purchase {invoice_number}",
                actor_id=actor_id,
            )

        balance_before, balance_after = apply_balance_delta(
            party_type=PARTY_VENDOR, party_id=vendor.id, delta=due,
        )

        if paid > 0:
            append_ledger_transaction(
                transaction_type=TX_PAYMENT,
                amount=paid,
                balance_before=balance_before,
                balance_after=balance_after,
                vendor_id=vendor.id,
                purchase_id=purchase.id,
                description=f"Payment for purchase {invoice_number}",
                transaction_date=when,
                actor_id=actor_id,
            )
            db.session.add(PaymentHistory(
                purchase_id=purchase.id,
                amount=paid,
                payment_mode=mode,
                payment_date=when,
                notes=notes,
                balance_before=total,
                balance_after=due,
                created_by=actor_id or SYSTEM_ACTOR,
            ))

        db.session.flush()
        return purchase

    try:
        purchase = run_atomic(_op, label="purchase.create")
    except (TransactionTimeout, SQLAlchemyError) as exc:
        current_app.logger.warning("Purchase creation failed for vendor %s: %s", vendor_id, exc)
        raise PurchaseCreationFailed("Failed to create purchase", cause=exc) from exc

    current_app.logger.info(
        "Purchase %s created for vendor %s: total=%s paid=%s due=%s (%d lines) by %s",
        purchase.invoice_number, vendor_id, total, paid, due, len(lines), actor_id,
    )
    return purchase


def record_opening_balance_purchase(*, vendor_id: int, amount: Decimal, actor_id: str | None = None) -> Purchase:
    """
    Book a vendor's opening balance as an item-less OB-* purchase.

    Does NOT commit; runs inside the vendor-creation transaction.
    """
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Opening balance must be greater than 0")

    invoice_number = next_invoice_number(PREFIX_OPENING_BALANCE)
    purchase = Purchase(
        invoice_number=invoice_number,
        vendor_id=vendor_id,
        purchase_date=coerce_business_datetime(None),
        total_amount=amount,
        paid_amount=ZERO,
        due_amount=amount,
        notes="Opening balance",
        is_opening_balance=True,
        created_by=actor_id,
    )
    db.session.add(purchase)
    db.session.flush()

    balance_before, balance_after = apply_balance_delta(
        party_type=PARTY_VENDOR, party_id=vendor_id, delta=amount,
    )
    append_ledger_transaction(
        transaction_type=TX_OPENING_BALANCE,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        vendor_id=vendor_id,
        purchase_id=purchase.id,
        description=f"Opening balance {invoice_number}",
        transaction_date=purchase.purchase_date,
        actor_id=actor_id,
    )
    return purchase


# =============================================================================
# QUERIES
# =============================================================================

def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise InvoiceNotFound(f"Purchase not found: {purchase_id}")
    return purchase


def list_purchases(*, vendor_id: int | None = None, limit: int = 200) -> list[Purchase]:
    query = db.session.query(Purchase)
    if vendor_id is not None:
        query = query.filter(Purchase.vendor_id == vendor_id)
    return query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).limit(limit).all()


def list_open_purchases_for_vendor(vendor_id: int) -> list[Purchase]:
    """Purchases from this vendor that still have something due, newest first."""
    get_vendor(vendor_id)
    return (
        db.session.query(Purchase)
        .filter(Purchase.vendor_id == vendor_id, Purchase.due_amount > 0)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .all()
    )
