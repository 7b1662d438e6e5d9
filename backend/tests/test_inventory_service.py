"""
Inventory store tests.

Stock changes only through apply_stock_change / adjust_stock, each change
leaves exactly one movement, and OUT never goes below zero.
"""

from decimal import Decimal

import pytest

from shopledger.errors import (
    InsufficientStock,
    InvalidQuantity,
    ProductInactive,
    ProductNotFound,
    ValidationError,
)
from shopledger.models import StockMovement
from shopledger.models.inventory import MOVEMENT_ADJUSTMENT_IN, MOVEMENT_ADJUSTMENT_OUT, MOVEMENT_SALE
from shopledger.services import inventory_service

from conftest import refresh


class TestProductCatalogue:
    def test_new_product_starts_with_zero_stock(self, db_session):
        product = inventory_service.create_product(name="  Cement  ", unit="bag", minimum_stock_level=10)

        assert product.name == "Cement"
        assert product.unit == "BAG"
        assert product.stock_quantity == Decimal("0")
        assert product.minimum_stock_level == Decimal("10")
        assert product.is_active is True

    def test_rejects_unknown_unit(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_product(name="Sand", unit="LITRE")

    def test_rejects_negative_minimum_level(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_product(name="Sand", unit="CUFT", minimum_stock_level=-1)

    def test_update_does_not_touch_stock(self, db_session, make_product):
        product = make_product(stock=5)

        updated = inventory_service.update_product(product.id, name="Cement OPC", minimum_stock_level=2)

        assert updated.name == "Cement OPC"
        assert updated.minimum_stock_level == Decimal("2")
        assert updated.stock_quantity == Decimal("5")

    def test_deactivate_hides_from_default_list(self, db_session, make_product):
        keep = make_product(name="Bricks", unit="PIECE")
        gone = make_product(name="Gravel", unit="TON")

        inventory_service.deactivate_product(gone.id)

        names = [p.name for p in inventory_service.list_products()]
        assert names == ["Bricks"]
        all_names = {p.name for p in inventory_service.list_products(include_inactive=True)}
        assert all_names == {"Bricks", "Gravel"}
        assert refresh(keep).is_active is True

    def test_search_by_name(self, db_session, make_product):
        make_product(name="Steel Bar 10mm", unit="KG")
        make_product(name="Cement", unit="BAG")

        assert [p.name for p in inventory_service.list_products(search="steel")] == ["Steel Bar 10mm"]

    def test_low_stock_lists_products_at_or_below_minimum(self, db_session, make_product):
        make_product(name="At minimum", stock=10, minimum_stock_level=10)
        make_product(name="Below", stock=3, minimum_stock_level=10)
        make_product(name="Plenty", stock=50, minimum_stock_level=10)

        names = [p.name for p in inventory_service.list_low_stock_products()]
        assert names == ["At minimum", "Below"]

    def test_get_missing_product(self, db_session):
        with pytest.raises(ProductNotFound):
            inventory_service.get_product(9999)


class TestStockAdjustment:
    def test_adjust_in_then_out(self, db_session, make_product):
        product = make_product(minimum_stock_level=10)

        product, movement = inventory_service.adjust_stock(
            product_id=product.id, adjustment_type="IN", quantity=50, actor_id="u1",
        )
        assert product.stock_quantity == Decimal("50")
        assert movement.movement_type == MOVEMENT_ADJUSTMENT_IN
        assert movement.balance_before == Decimal("0")
        assert movement.balance_after == Decimal("50")
        assert movement.reference_type == "MANUAL_ADJUSTMENT"
        assert movement.notes == "Manual addition of stock"

        product, movement = inventory_service.adjust_stock(
            product_id=product.id, adjustment_type="out", quantity="12.5", notes="Damaged bags",
        )
        assert product.stock_quantity == Decimal("37.5")
        assert movement.movement_type == MOVEMENT_ADJUSTMENT_OUT
        assert movement.quantity == Decimal("12.5")
        assert movement.notes == "Damaged bags"

    def test_out_to_exactly_zero_is_allowed(self, db_session, make_product):
        product = make_product(stock=8)

        product, _ = inventory_service.adjust_stock(product_id=product.id, adjustment_type="OUT", quantity=8)

        assert product.stock_quantity == Decimal("0")

    def test_out_below_zero_is_rejected_without_side_effects(self, db_session, make_product):
        product = make_product(stock=8)
        before = db_session.query(StockMovement).count()

        with pytest.raises(InsufficientStock) as exc_info:
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="OUT", quantity="8.001")

        assert exc_info.value.details["available"] == "8.000"
        assert refresh(product).stock_quantity == Decimal("8")
        assert db_session.query(StockMovement).count() == before

    def test_invalid_adjustment_type(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="SET", quantity=1)

    def test_zero_quantity_rejected(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="IN", quantity=0)

    def test_inactive_product_cannot_be_adjusted(self, db_session, make_product):
        product = make_product(stock=5)
        inventory_service.deactivate_product(product.id)

        with pytest.raises(ProductInactive):
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="IN", quantity=1)

    def test_movements_listed_newest_first(self, db_session, make_product):
        product = make_product()
        for qty in (1, 2, 3):
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="IN", quantity=qty)

        movements = inventory_service.list_stock_movements(product.id)
        assert [m.quantity for m in movements] == [Decimal("3"), Decimal("2"), Decimal("1")]
        assert movements[0].balance_after == Decimal("6")


class TestApplyStockChange:
    def test_zero_delta_is_invalid_quantity(self, db_session, make_product):
        product = make_product()
        with pytest.raises(InvalidQuantity):
            inventory_service.apply_stock_change(
                product_id=product.id, delta=Decimal("0"), movement_type=MOVEMENT_SALE,
            )
        db_session.rollback()

    def test_negative_allowed_only_when_asked(self, db_session, make_product):
        product = make_product(stock=2)

        with pytest.raises(InsufficientStock):
            inventory_service.apply_stock_change(
                product_id=product.id, delta=Decimal("-5"), movement_type=MOVEMENT_SALE,
            )
        db_session.rollback()

        movement = inventory_service.apply_stock_change(
            product_id=product.id, delta=Decimal("-5"), movement_type=MOVEMENT_SALE, allow_negative=True,
        )
        db_session.commit()

        assert movement.balance_before == Decimal("2")
        assert movement.balance_after == Decimal("-3")
        assert refresh(product).stock_quantity == Decimal("-3")

    def test_missing_product(self, db_session):
        with pytest.raises(ProductNotFound):
            inventory_service.apply_stock_change(
                product_id=424242, delta=Decimal("1"), movement_type=MOVEMENT_ADJUSTMENT_IN,
            )
        db_session.rollback()
