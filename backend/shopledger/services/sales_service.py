# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service

A sale goes to exactly one of:
- a registered customer (customer_id): unpaid remainder is added to the
  customer's balance
- a walk-in (walk_in_customer_name): no party, so it must be paid in full

Everything that can be decided without writing is decided first: buyer,
lines, totals, the walk-in rule and stock sufficiency. Only then does the
single transaction start. Inside it the stock decrement is conditional
(WHERE stock_quantity >= qty), so a concurrent sale that drained the product
in the meantime still fails with InsufficientStock and rolls everything back.

allow_negative_stock is an argument, not a lookup: routes read the setting
once per request and pass it in. Default False blocks over-selling.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..amounts import ZERO, line_total, money, quantity
from ..errors import (
    InsufficientStock,
    InvoiceNotFound,
    ProductInactive,
    ProductNotFound,
    SaleCreationFailed,
    TransactionTimeout,
    ValidationError,
    WalkInMustBeFullyPaid,
)
from ..extensions import db
from ..models import PaymentHistory, Sale, SaleItem
from ..models.inventory import MOVEMENT_SALE
from ..time_utils import coerce_business_datetime
from ..validation import normalize_payment_mode, optional_non_negative_amount, parse_line_items
from .concurrency import run_atomic
from .customer_service import get_customer, validate_active_customer
from .document_service import PREFIX_OPENING_BALANCE, PREFIX_SALE, next_invoice_number
from .inventory_service import apply_stock_change, get_products_by_ids
from .ledger_service import (
    PARTY_CUSTOMER,
    SYSTEM_ACTOR,
    TX_OPENING_BALANCE,
    TX_RECEIPT,
    append_ledger_transaction,
    apply_balance_delta,
)

REFERENCE_SALE = "SALE"


def _resolve_buyer(customer_id, walk_in_customer_name):
    name = walk_in_customer_name.strip() if isinstance(walk_in_customer_name, str) else None
    if customer_id is not None and name:
        raise ValidationError("Provide either customer_id or walk_in_customer_name, not both")
    if customer_id is None and not name:
        raise ValidationError("Customer is required: pass customer_id or walk_in_customer_name")
    if customer_id is not None:
        return validate_active_customer(customer_id), None
    return None, name


def check_stock_available(lines: list[dict], products: dict) -> None:
    """
    Raise InsufficientStock for the first product whose requested quantity,
    summed over all lines, exceeds what is on hand.
    """
    requested = defaultdict(lambda: ZERO)
    for line in lines:
        requested[line["product_id"]] += line["quantity"]

    for product_id, wanted in requested.items():
        product = products[product_id]
        available = quantity(product.stock_quantity)
        if available < wanted:
            raise InsufficientStock(product.name, available, quantity(wanted), product_id=product_id)


def create_sale(
    *,
    items,
    customer_id: int | None = None,
    walk_in_customer_name: str | None = None,
    received_amount=0,
    payment_mode: str | None = None,
    sale_date=None,
    notes: str | None = None,
    additional_charges=0,
    charges_description: str | None = None,
    actor_id: str | None = None,
    allow_negative_stock: bool = False,
) -> Sale:
    """
    Record a sale.

    total = sum(qty * rate) + additional_charges; due = total - received.

    Raises:
        ValidationError: buyer/lines/amounts invalid
        WalkInMustBeFullyPaid: walk-in sale with due != 0
        PartyNotFound / PartyInactive: customer problems
        ProductNotFound / ProductInactive: any line's product
        InsufficientStock: over-sell while allow_negative_stock is False
        SaleCreationFailed: the store failed mid-write (wraps the cause)
    """
    lines = parse_line_items(items)
    received = optional_non_negative_amount(received_amount, "received_amount")
    charges = optional_non_negative_amount(additional_charges, "additional_charges")
    mode = normalize_payment_mode(payment_mode)
    try:
        when = coerce_business_datetime(sale_date)
    except ValueError:
        raise ValidationError("Invalid sale_date")

    subtotal = money(sum((line_total(line["quantity"], line["rate"]) for line in lines), ZERO))
    total = subtotal + charges
    due = total - received

    customer, walk_in_name = _resolve_buyer(customer_id, walk_in_customer_name)
    if customer is None and due != 0:
        raise WalkInMustBeFullyPaid(total, received)

    products = get_products_by_ids([line["product_id"] for line in lines])
    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise ProductNotFound(f"Product not found: {line['product_id']}")
        if not product.is_active:
            raise ProductInactive(f"Product {product.name} is inactive")

    if not allow_negative_stock:
        check_stock_available(lines, products)

    invoice_number = next_invoice_number(PREFIX_SALE)
    description = (charges_description or "").strip() or None

    def _op():
        locked = get_products_by_ids(products, lock=True)
        if not allow_negative_stock:
            check_stock_available(lines, locked)
        if customer is not None:
            validate_active_customer(customer.id, lock=True)

        sale = Sale(
            invoice_number=invoice_number,
            customer_id=customer.id if customer else None,
            is_walk_in=customer is None,
            walk_in_customer_name=walk_in_name,
            sale_date=when,
            subtotal=subtotal,
            additional_charges=charges,
            charges_description=description,
            total_amount=total,
            paid_amount=received,
            due_amount=due,
            notes=notes,
            is_opening_balance=False,
            created_by=actor_id,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=line["rate"],
                total_price=line_total(line["quantity"], line["rate"]),
            ))
            apply_stock_change(
                product_id=line["product_id"],
                delta=-line["quantity"],
                movement_type=MOVEMENT_SALE,
                reference_type=REFERENCE_SALE,
                reference_id=sale.id,
                notes=f"Sale {invoice_number}",
                actor_id=actor_id,
                allow_negative=allow_negative_stock,
            )

        if customer is not None:
            balance_before, balance_after = apply_balance_delta(
                party_type=PARTY_CUSTOMER, party_id=customer.id, delta=due,
            )
            if received > 0:
                append_ledger_transaction(
                    transaction_type=TX_RECEIPT,
                    amount=received,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    customer_id=customer.id,
                    sale_id=sale.id,
                    description=f"Receipt for sale {invoice_number}",
                    transaction_date=when,
                    actor_id=actor_id,
                )

        if received > 0:
            db.session.add(PaymentHistory(
                sale_id=sale.id,
                amount=received,
                payment_mode=mode,
                payment_date=when,
                notes=notes,
                balance_before=total,
                balance_after=due,
                created_by=actor_id or SYSTEM_ACTOR,
            ))

        db.session.flush()
        return sale

    try:
        sale = run_atomic(_op, label="sale.create")
    except (TransactionTimeout, SQLAlchemyError) as exc:
        current_app.logger.warning("Sale creation failed: %s", exc)
        raise SaleCreationFailed("Failed to create sale", cause=exc) from exc

    current_app.logger.info(
        "Sale %s created for %s: total=%s received=%s due=%s (%d lines) by %s",
        sale.invoice_number,
        f"customer {customer.id}" if customer else f"walk-in {walk_in_name!r}",
        total, received, due, len(lines), actor_id,
    )
    return sale


def record_opening_balance_sale(*, customer_id: int, amount: Decimal, actor_id: str | None = None) -> Sale:
    """
    Book a customer's opening balance as an item-less OB-* sale.

    Does NOT commit; runs inside the customer-creation transaction.
    """
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Opening balance must be greater than 0")

    invoice_number = next_invoice_number(PREFIX_OPENING_BALANCE)
    sale = Sale(
        invoice_number=invoice_number,
        customer_id=customer_id,
        is_walk_in=False,
        sale_date=coerce_business_datetime(None),
        subtotal=amount,
        additional_charges=ZERO,
        total_amount=amount,
        paid_amount=ZERO,
        due_amount=amount,
        notes="Opening balance",
        is_opening_balance=True,
        created_by=actor_id,
    )
    db.session.add(sale)
    db.session.flush()

    balance_before, balance_after = apply_balance_delta(
        party_type=PARTY_CUSTOMER, party_id=customer_id, delta=amount,
    )
    append_ledger_transaction(
        transaction_type=TX_OPENING_BALANCE,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        customer_id=customer_id,
        sale_id=sale.id,
        description=f"Opening balance {invoice_number}",
        transaction_date=sale.sale_date,
        actor_id=actor_id,
    )
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise InvoiceNotFound(f"Sale not found: {sale_id}")
    return sale


def list_sales(*, customer_id: int | None = None, limit: int = 200) -> list[Sale]:
    query = db.session.query(Sale)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def list_open_sales_for_customer(customer_id: int) -> list[Sale]:
    get_customer(customer_id)
    return (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer_id, Sale.due_amount > 0)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
