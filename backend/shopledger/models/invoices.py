from __future__ import annotations

from ..extensions import db
from ..amounts import decimal_str
from ..time_utils import to_utc_z


class Purchase(db.Model):
    """
    Purchase invoice from a vendor.

    Invariant: total_amount == paid_amount + due_amount.
    Created once with its items; afterwards only payment_service moves
    paid_amount up and due_amount down (never the reverse). Never deleted.

    Opening-balance entries (is_opening_balance=True, OB-* numbers) carry no
    items; they make a vendor's starting balance payable like any invoice.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_purchases_invoice_number"),
        db.Index("ix_purchases_vendor_due", "vendor_id", "due_amount"),
        db.Index("ix_purchases_purchase_date", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    due_amount = db.Column(db.Numeric(14, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    is_opening_balance = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("purchases", lazy="dynamic"))

    @property
    def is_settled(self) -> bool:
        return self.due_amount is not None and self.due_amount <= 0

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "purchase_date": to_utc_z(self.purchase_date),
            "total_amount": decimal_str(self.total_amount),
            "paid_amount": decimal_str(self.paid_amount),
            "due_amount": decimal_str(self.due_amount),
            "notes": self.notes,
            "is_opening_balance": self.is_opening_balance,
            "is_settled": self.is_settled,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """Immutable line of a purchase invoice."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    total_price = db.Column(db.Numeric(14, 2), nullable=False)

    purchase = db.relationship("Purchase", backref=db.backref("items", lazy=True, order_by="PurchaseItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": decimal_str(self.quantity),
            "unit_price": decimal_str(self.unit_price),
            "total_price": decimal_str(self.total_price),
        }


class Sale(db.Model):
    """
    Sale invoice to a registered customer or a walk-in.

    Walk-in sales have customer_id NULL, a walk_in_customer_name, and are
    always created fully paid (due_amount == 0).

    Invariants:
    - total_amount == subtotal + additional_charges
    - total_amount == paid_amount + due_amount
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        db.Index("ix_sales_customer_due", "customer_id", "due_amount"),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)

    # NULL for walk-in sales
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    is_walk_in = db.Column(db.Boolean, nullable=False, default=False)
    walk_in_customer_name = db.Column(db.String(255), nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    additional_charges = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    charges_description = db.Column(db.String(255), nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    due_amount = db.Column(db.Numeric(14, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    is_opening_balance = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy="dynamic"))

    @property
    def is_settled(self) -> bool:
        return self.due_amount is not None and self.due_amount <= 0

    @property
    def customer_name(self) -> str | None:
        if self.customer is not None:
            return self.customer.name
        if self.is_walk_in:
            return self.walk_in_customer_name or "Walk-in Customer"
        return None

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "is_walk_in": self.is_walk_in,
            "walk_in_customer_name": self.walk_in_customer_name,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal": decimal_str(self.subtotal),
            "additional_charges": decimal_str(self.additional_charges),
            "charges_description": self.charges_description,
            "total_amount": decimal_str(self.total_amount),
            "paid_amount": decimal_str(self.paid_amount),
            "due_amount": decimal_str(self.due_amount),
            "notes": self.notes,
            "is_opening_balance": self.is_opening_balance,
            "is_settled": self.is_settled,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Immutable line of a sale invoice."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    total_price = db.Column(db.Numeric(14, 2), nullable=False)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": decimal_str(self.quantity),
            "unit_price": decimal_str(self.unit_price),
            "total_price": decimal_str(self.total_price),
        }
