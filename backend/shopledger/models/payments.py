from __future__ import annotations

from ..extensions import db
from ..amounts import decimal_str
from ..time_utils import to_utc_z


class PaymentHistory(db.Model):
    """
    One payment applied to one invoice (sale XOR purchase).

    balance_before / balance_after are the invoice's due_amount around the
    payment, not the party balance. Append-only.
    """
    __tablename__ = "payment_history"
    __table_args__ = (
        db.CheckConstraint(
            "(sale_id IS NULL) <> (purchase_id IS NULL)",
            name="ck_payment_history_one_invoice",
        ),
        db.CheckConstraint("amount > 0", name="ck_payment_history_amount_positive"),
        db.Index("ix_payment_history_sale_date", "sale_id", "payment_date"),
        db.Index("ix_payment_history_purchase_date", "purchase_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_mode = db.Column(db.String(16), nullable=False, default="CASH")  # CASH, BANK, ONLINE
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    balance_before = db.Column(db.Numeric(14, 2), nullable=False)
    balance_after = db.Column(db.Numeric(14, 2), nullable=False)

    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "amount": decimal_str(self.amount),
            "payment_mode": self.payment_mode,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "balance_before": decimal_str(self.balance_before),
            "balance_after": decimal_str(self.balance_after),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class LedgerTransaction(db.Model):
    """
    Informational party-ledger audit row.

    Written in the same DB transaction as the invoice it describes.
    balance_before / balance_after refer to the party balance. Never read
    back by the services; the party balance itself is authoritative.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.Index("ix_ledger_transactions_vendor", "vendor_id", "transaction_date"),
        db.Index("ix_ledger_transactions_customer", "customer_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # PAYMENT (to vendor), RECEIPT (from customer), OPENING_BALANCE
    transaction_type = db.Column(db.String(32), nullable=False, index=True)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    balance_before = db.Column(db.Numeric(14, 2), nullable=False)
    balance_after = db.Column(db.Numeric(14, 2), nullable=False)

    description = db.Column(db.String(255), nullable=True)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_type": self.transaction_type,
            "vendor_id": self.vendor_id,
            "customer_id": self.customer_id,
            "purchase_id": self.purchase_id,
            "sale_id": self.sale_id,
            "amount": decimal_str(self.amount),
            "balance_before": decimal_str(self.balance_before),
            "balance_after": decimal_str(self.balance_after),
            "description": self.description,
            "transaction_date": to_utc_z(self.transaction_date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
