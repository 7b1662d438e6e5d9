# Overview: Read-only consistency checks over invoices, party balances, and stock.

"""
Reconciliation

Recomputes the ledger invariants from the stored rows and reports every row
that disagrees. Nothing here writes; drift is reported, never repaired.

Checks:
- invoices:  total == paid + due (and, for sales, total == subtotal + charges)
- parties:   balance == sum(due) over the party's invoices
- stock:     stock_quantity == +PURCHASE -SALE +ADJUSTMENT_IN -ADJUSTMENT_OUT
"""

from __future__ import annotations

from sqlalchemy import case, func

from ..amounts import money, quantity
from ..extensions import db
from ..models import Customer, Product, Purchase, Sale, StockMovement, Vendor
from ..models.inventory import MOVEMENT_ADJUSTMENT_IN, MOVEMENT_PURCHASE


def check_invoice_totals() -> list[dict]:
    problems = []
    for kind, model in (("purchase", Purchase), ("sale", Sale)):
        for invoice in db.session.query(model).order_by(model.id):
            total = money(invoice.total_amount)
            paid_plus_due = money(invoice.paid_amount) + money(invoice.due_amount)
            if total != paid_plus_due:
                problems.append({
                    "invoice_type": kind,
                    "invoice_id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "check": "total == paid + due",
                    "expected": str(paid_plus_due),
                    "actual": str(total),
                })
            if kind == "sale":
                expected = money(invoice.subtotal) + money(invoice.additional_charges)
                if total != expected:
                    problems.append({
                        "invoice_type": kind,
                        "invoice_id": invoice.id,
                        "invoice_number": invoice.invoice_number,
                        "check": "total == subtotal + additional_charges",
                        "expected": str(expected),
                        "actual": str(total),
                    })
    return problems


def _party_drift(party_model, invoice_model, fk_column, label: str) -> list[dict]:
    due_sums = dict(
        db.session.query(fk_column, func.coalesce(func.sum(invoice_model.due_amount), 0))
        .filter(fk_column.isnot(None))
        .group_by(fk_column)
        .all()
    )
    problems = []
    for party in db.session.query(party_model).order_by(party_model.id):
        expected = money(due_sums.get(party.id, 0))
        actual = money(party.balance)
        if expected != actual:
            problems.append({
                "party_type": label,
                "party_id": party.id,
                "name": party.name,
                "expected": str(expected),
                "actual": str(actual),
            })
    return problems


def check_party_balances() -> list[dict]:
    return (
        _party_drift(Vendor, Purchase, Purchase.vendor_id, "vendor")
        + _party_drift(Customer, Sale, Sale.customer_id, "customer")
    )


def check_stock_movements() -> list[dict]:
    signed = case(
        (StockMovement.movement_type.in_((MOVEMENT_PURCHASE, MOVEMENT_ADJUSTMENT_IN)), StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    movement_sums = dict(
        db.session.query(StockMovement.product_id, func.coalesce(func.sum(signed), 0))
        .group_by(StockMovement.product_id)
        .all()
    )
    problems = []
    for product in db.session.query(Product).order_by(Product.id):
        expected = quantity(movement_sums.get(product.id, 0))
        actual = quantity(product.stock_quantity)
        if expected != actual:
            problems.append({
                "product_id": product.id,
                "name": product.name,
                "expected": str(expected),
                "actual": str(actual),
            })
    return problems


def run_reconciliation() -> dict:
    report = {
        "invoices": check_invoice_totals(),
        "parties": check_party_balances(),
        "stock": check_stock_movements(),
    }
    report["ok"] = not any(report[key] for key in ("invoices", "parties", "stock"))
    return report
