from __future__ import annotations

from ..extensions import db
from ..amounts import decimal_str
from ..time_utils import to_utc_z

# Stock movement types
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_SALE = "SALE"
MOVEMENT_ADJUSTMENT_IN = "ADJUSTMENT_IN"
MOVEMENT_ADJUSTMENT_OUT = "ADJUSTMENT_OUT"

MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
)


class Product(db.Model):
    """
    Product master data with its current stock level.

    stock_quantity is a stored running balance, changed only through atomic
    SQL increments issued by inventory_service (never read-modify-write).
    Every change is mirrored by exactly one StockMovement row.

    Products are never deleted: historical invoice lines keep their FK, so
    removal is is_active=False.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        db.CheckConstraint("minimum_stock_level >= 0", name="ck_products_min_level_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # BAG, KG, TON, PIECE, METER, SQFT, CUFT
    unit = db.Column(db.String(16), nullable=False)

    # Signed: may go below zero only while negative stock is allowed
    stock_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    minimum_stock_level = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity is not None and self.stock_quantity <= self.minimum_stock_level

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "stock_quantity": decimal_str(self.stock_quantity),
            "minimum_stock_level": decimal_str(self.minimum_stock_level),
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for one stock change of one product.

    balance_before / balance_after are the product's stock around this
    change, as seen inside the transaction that made it.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)

    # Always positive; direction comes from movement_type
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    balance_before = db.Column(db.Numeric(14, 3), nullable=False)
    balance_after = db.Column(db.Numeric(14, 3), nullable=False)

    # PURCHASE / SALE (invoice id) or MANUAL_ADJUSTMENT (no id)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": decimal_str(self.quantity),
            "balance_before": decimal_str(self.balance_before),
            "balance_after": decimal_str(self.balance_after),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
