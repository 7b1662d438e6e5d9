# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/shopledger/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import select, update

from ..amounts import quantity as to_quantity
from ..errors import (
    InsufficientStock,
    InvalidQuantity,
    ProductInactive,
    ProductNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
    MOVEMENT_TYPES,
)
from ..validation import ADJUSTMENT_TYPES, PRODUCT_UNITS, parse_quantity, require_positive_quantity
from .concurrency import lock_for_update, run_atomic
"""
Inventory Store Invariants (authoritative)

Stock model:
- Product.stock_quantity is a stored running balance.
- It changes ONLY through apply_stock_change(), which issues an atomic SQL
  increment/decrement and appends exactly one StockMovement in the same
  transaction. No read-modify-write of stock anywhere.
- Therefore, for every product:
    stock_quantity == sum(PURCHASE) - sum(SALE) + sum(ADJUSTMENT_IN) - sum(ADJUSTMENT_OUT)

Negative stock:
- A decrement that would take stock below zero is rejected with
  InsufficientStock unless the caller passes allow_negative=True.
- The check lives inside the UPDATE (WHERE stock_quantity >= qty), so two
  concurrent decrements can never both pass it.
- Manual OUT adjustments never allow negative results.

Lifecycle:
- Products start at stock 0 and are never deleted (is_active=False only).
- Inactive products cannot be bought, sold, or adjusted.
"""

MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound(f"Product not found: {product_id}")
    return product


def get_products_by_ids(product_ids, *, lock: bool = False) -> dict[int, Product]:
    """Batch-fetch products once for an invoice; missing ids are simply absent."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
    if lock:
        query = lock_for_update(query)
    return {p.id: p for p in query.all()}


# =============================================================================
# CORE: STOCK CHANGE
# =============================================================================

def apply_stock_change(
    *,
    product_id: int,
    delta: Decimal,
    movement_type: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
    actor_id: str | None = None,
    allow_negative: bool = False,
) -> StockMovement:
    """
    Atomically move a product's stock by delta and record the movement.

    Does NOT commit: callers run this inside run_atomic() together with the
    invoice or adjustment it belongs to.

    Raises:
        InvalidQuantity: delta is zero
        ProductNotFound / ProductInactive: product missing or deactivated
        InsufficientStock: decrement would go negative and allow_negative is False
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")

    delta = to_quantity(delta)
    qty = abs(delta)
    if qty <= 0:
        raise InvalidQuantity("Quantity must be greater than 0")

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.is_active.is_(True))
        .values(stock_quantity=Product.stock_quantity + delta)
    )
    if delta < 0 and not allow_negative:
        stmt = stmt.where(Product.stock_quantity >= qty)

    result = db.session.execute(stmt, execution_options={"synchronize_session": False})
    if not result.rowcount:
        product = db.session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise ProductNotFound(f"Product not found: {product_id}")
        if not product.is_active:
            raise ProductInactive(f"Product {product.name} is inactive")
        raise InsufficientStock(product.name, to_quantity(product.stock_quantity), qty, product_id=product.id)

    balance_after = to_quantity(
        db.session.execute(select(Product.stock_quantity).where(Product.id == product_id)).scalar_one()
    )

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=qty,
        balance_before=balance_after - delta,
        balance_after=balance_after,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by=actor_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


# =============================================================================
# MANUAL STOCK ADJUSTMENT
# =============================================================================

def adjust_stock(
    *,
    product_id: int,
    adjustment_type: str,
    quantity,
    notes: str | None = None,
    actor_id: str | None = None,
) -> tuple[Product, StockMovement]:
    """
    Manual stock correction (IN adds, OUT removes).

    OUT never takes stock below zero, whatever the negative-stock setting says:
    an operator removing goods that are not on the books is a data-entry error.
    """
    adjustment_type = (adjustment_type or "").strip().upper()
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError("adjustment_type must be IN or OUT")
    qty = require_positive_quantity(quantity)

    is_in = adjustment_type == "IN"

    def _op():
        movement = apply_stock_change(
            product_id=product_id,
            delta=qty if is_in else -qty,
            movement_type=MOVEMENT_ADJUSTMENT_IN if is_in else MOVEMENT_ADJUSTMENT_OUT,
            reference_type=MANUAL_ADJUSTMENT,
            notes=notes or f"Manual {'addition' if is_in else 'removal'} of stock",
            actor_id=actor_id,
            allow_negative=False,
        )
        product = db.session.get(Product, product_id, populate_existing=True)
        return product, movement

    product, movement = run_atomic(_op, label="stock.adjust")
    current_app.logger.info(
        "Stock adjusted %s %s for product %s (%s -> %s) by %s",
        adjustment_type, qty, product_id, movement.balance_before, movement.balance_after, actor_id,
    )
    return product, movement


# =============================================================================
# PRODUCT CATALOGUE
# =============================================================================

def create_product(*, name: str, unit: str, minimum_stock_level=0) -> Product:
    """Create a product with zero stock."""
    if not name or not name.strip():
        raise ValidationError("Product name is required")
    unit = (unit or "").strip().upper()
    if unit not in PRODUCT_UNITS:
        raise ValidationError(f"unit must be one of {', '.join(PRODUCT_UNITS)}")
    min_level = parse_quantity(minimum_stock_level or 0, "minimum_stock_level")
    if min_level < 0:
        raise ValidationError("Minimum stock level must be 0 or greater")

    def _op():
        product = Product(
            name=name.strip(),
            unit=unit,
            stock_quantity=Decimal("0"),
            minimum_stock_level=min_level,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()
        return product

    return run_atomic(_op, label="product.create")


def get_product(product_id: int) -> Product:
    return _get_product(product_id)


def list_products(*, include_inactive: bool = False, search: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search and search.strip():
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def list_low_stock_products() -> list[Product]:
    """Active products at or below their minimum stock level."""
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.minimum_stock_level,
        )
        .order_by(Product.name)
        .all()
    )


def update_product(
    product_id: int,
    *,
    name: str | None = None,
    unit: str | None = None,
    minimum_stock_level=None,
) -> Product:
    """
    Update catalogue fields. Stock is deliberately not editable here; it moves
    only through invoices and adjustments.
    """
    def _op():
        product = _get_product(product_id, lock=True)
        if name is not None:
            if not name.strip():
                raise ValidationError("Product name cannot be empty")
            product.name = name.strip()
        if unit is not None:
            normalized = unit.strip().upper()
            if normalized not in PRODUCT_UNITS:
                raise ValidationError(f"unit must be one of {', '.join(PRODUCT_UNITS)}")
            product.unit = normalized
        if minimum_stock_level is not None:
            level = parse_quantity(minimum_stock_level, "minimum_stock_level")
            if level < 0:
                raise ValidationError("Minimum stock level must be 0 or greater")
            product.minimum_stock_level = level
        db.session.flush()
        return product

    return run_atomic(_op, label="product.update")


def deactivate_product(product_id: int) -> Product:
    def _op():
        product = _get_product(product_id, lock=True)
        product.is_active = False
        db.session.flush()
        return product

    return run_atomic(_op, label="product.deactivate")


def list_stock_movements(product_id: int, limit: int = 200) -> list[StockMovement]:
    _get_product(product_id)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
