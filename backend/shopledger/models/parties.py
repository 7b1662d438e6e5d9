from __future__ import annotations

from ..extensions import db
from ..amounts import decimal_str
from ..time_utils import to_utc_z


class Vendor(db.Model):
    """
    Supplier the shop buys from.

    balance is what the shop owes this vendor: the sum of due_amount over the
    vendor's purchases (opening-balance entries included). It moves only
    through ledger_service.apply_balance_delta, inside the same transaction as
    the purchase or payment that justifies it.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_active_created", "is_active", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r} balance={self.balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "balance": decimal_str(self.balance),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """
    Registered customer buying on account.

    balance is what the customer owes the shop (sum of due_amount over the
    customer's sales). Walk-in sales never touch a Customer row.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active_created", "is_active", "created_at"),
        db.Index("ix_customers_phone", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "balance": decimal_str(self.balance),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
