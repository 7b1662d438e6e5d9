"""
Sale creation tests: walk-in rule, stock sufficiency, customer balance.
"""

from decimal import Decimal

import pytest

from shopledger.errors import (
    InsufficientStock,
    PartyInactive,
    ProductNotFound,
    ValidationError,
    WalkInMustBeFullyPaid,
)
from shopledger.models import LedgerTransaction, PaymentHistory, Sale, StockMovement
from shopledger.services import customer_service, inventory_service, sales_service

from conftest import refresh


def _line(product, qty, rate=10):
    return {"product_id": product.id, "quantity": qty, "rate": rate}


class TestWalkInSales:
    def test_fully_paid_walk_in_sale(self, db_session):
        product = inventory_service.create_product(name="Cement", unit="BAG", minimum_stock_level=10)
        inventory_service.adjust_stock(product_id=product.id, adjustment_type="IN", quantity=50)

        sale = sales_service.create_sale(
            items=[_line(product, 20, rate=10)],
            walk_in_customer_name="Ali",
            received_amount=200,
            actor_id="cashier",
        )

        assert sale.invoice_number.startswith("INV-")
        assert sale.is_walk_in is True
        assert sale.customer_id is None
        assert sale.customer_name == "Ali"
        assert sale.due_amount == Decimal("0")
        assert refresh(product).stock_quantity == Decimal("30")

        payment = db_session.query(PaymentHistory).filter_by(sale_id=sale.id).one()
        assert payment.balance_before == Decimal("200")
        assert payment.balance_after == Decimal("0")
        # Walk-ins have no party ledger
        assert db_session.query(LedgerTransaction).count() == 0

    def test_underpaid_walk_in_is_rejected_before_any_write(self, db_session, make_product):
        product = make_product(stock=50)
        movements_before = db_session.query(StockMovement).count()

        with pytest.raises(WalkInMustBeFullyPaid) as exc_info:
            sales_service.create_sale(
                items=[_line(product, 20, rate=10)],
                walk_in_customer_name="Ali",
                received_amount=150,
            )

        assert exc_info.value.details == {"total_amount": "200.00", "received_amount": "150.00"}
        assert db_session.query(Sale).count() == 0
        assert db_session.query(PaymentHistory).count() == 0
        assert db_session.query(StockMovement).count() == movements_before
        assert refresh(product).stock_quantity == Decimal("50")

    def test_overpaid_walk_in_is_rejected(self, db_session, make_product):
        product = make_product(stock=5)
        with pytest.raises(WalkInMustBeFullyPaid):
            sales_service.create_sale(
                items=[_line(product, 1, rate=10)], walk_in_customer_name="Ali", received_amount=11,
            )

    def test_additional_charges_are_part_of_total(self, db_session, make_product):
        product = make_product(stock=5)

        sale = sales_service.create_sale(
            items=[_line(product, 2, rate=100)],
            walk_in_customer_name="Ali",
            additional_charges=50,
            charges_description="Delivery",
            received_amount=250,
        )

        assert sale.subtotal == Decimal("200")
        assert sale.additional_charges == Decimal("50")
        assert sale.total_amount == Decimal("250")
        assert sale.charges_description == "Delivery"


class TestBuyerSelection:
    def test_requires_a_buyer(self, db_session, make_product):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            sales_service.create_sale(items=[_line(product, 1)], walk_in_customer_name="   ")

    def test_rejects_both_customer_and_walk_in(self, db_session, make_product, make_customer):
        product = make_product(stock=5)
        customer = make_customer()
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                items=[_line(product, 1)], customer_id=customer.id, walk_in_customer_name="Ali",
            )

    def test_inactive_customer(self, db_session, make_product, make_customer):
        product = make_product(stock=5)
        customer = make_customer()
        customer_service.deactivate_customer(customer.id)

        with pytest.raises(PartyInactive):
            sales_service.create_sale(items=[_line(product, 1)], customer_id=customer.id)


class TestCustomerSales:
    def test_credit_sale_increases_customer_balance(self, db_session, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()

        sale = sales_service.create_sale(
            items=[_line(product, 4, rate=25)],
            customer_id=customer.id,
            received_amount=30,
            payment_mode="ONLINE",
            actor_id="cashier",
        )

        assert sale.total_amount == Decimal("100")
        assert sale.due_amount == Decimal("70")
        assert refresh(customer).balance == Decimal("70")

        tx = db_session.query(LedgerTransaction).filter_by(sale_id=sale.id).one()
        assert tx.transaction_type == "RECEIPT"
        assert tx.amount == Decimal("30")
        assert tx.balance_after == Decimal("70")

        payment = db_session.query(PaymentHistory).filter_by(sale_id=sale.id).one()
        assert payment.payment_mode == "ONLINE"
        assert (payment.balance_before, payment.balance_after) == (Decimal("100"), Decimal("70"))

    def test_unpaid_credit_sale_has_no_receipt(self, db_session, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()

        sale = sales_service.create_sale(items=[_line(product, 1)], customer_id=customer.id)

        assert sale.due_amount == Decimal("10")
        assert db_session.query(PaymentHistory).count() == 0
        assert db_session.query(LedgerTransaction).filter_by(sale_id=sale.id).count() == 0

    def test_open_sales_for_customer(self, db_session, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()

        paid = sales_service.create_sale(items=[_line(product, 1)], customer_id=customer.id, received_amount=10)
        open_sale = sales_service.create_sale(items=[_line(product, 1)], customer_id=customer.id)

        ids = [s.id for s in sales_service.list_open_sales_for_customer(customer.id)]
        assert ids == [open_sale.id]
        assert paid.id not in ids


class TestStockSufficiency:
    def test_selling_exactly_available_stock(self, db_session, make_product):
        product = make_product(stock="7.5")

        sales_service.create_sale(
            items=[_line(product, "7.5", rate=2)], walk_in_customer_name="Ali", received_amount=15,
        )

        assert refresh(product).stock_quantity == Decimal("0")

    def test_selling_a_hair_more_fails_and_changes_nothing(self, db_session, make_product):
        product = make_product(name="Steel", unit="KG", stock="7.5")

        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.create_sale(
                items=[_line(product, "7.501", rate=2)], walk_in_customer_name="Ali", received_amount="15.00",
            )

        assert str(exc_info.value) == "Insufficient stock for Steel. Available: 7.500, Required: 7.501"
        assert refresh(product).stock_quantity == Decimal("7.5")
        assert db_session.query(Sale).count() == 0

    def test_lines_for_the_same_product_are_summed(self, db_session, make_product):
        product = make_product(stock=10)

        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.create_sale(
                items=[_line(product, 6), _line(product, 5)], walk_in_customer_name="Ali", received_amount=110,
            )

        assert exc_info.value.details["requested"] == "11.000"
        assert refresh(product).stock_quantity == Decimal("10")

    def test_first_short_product_aborts_whole_sale(self, db_session, make_product):
        plenty = make_product(name="Plenty", stock=100)
        short = make_product(name="Short", stock=1)

        with pytest.raises(InsufficientStock):
            sales_service.create_sale(
                items=[_line(plenty, 10), _line(short, 2)], walk_in_customer_name="Ali", received_amount=120,
            )

        assert refresh(plenty).stock_quantity == Decimal("100")

    def test_negative_stock_allowed_when_caller_says_so(self, db_session, make_product):
        product = make_product(stock=2)

        sale = sales_service.create_sale(
            items=[_line(product, 5)],
            walk_in_customer_name="Ali",
            received_amount=50,
            allow_negative_stock=True,
        )

        assert refresh(product).stock_quantity == Decimal("-3")
        movement = db_session.query(StockMovement).filter_by(reference_type="SALE", reference_id=sale.id).one()
        assert movement.balance_before == Decimal("2")
        assert movement.balance_after == Decimal("-3")

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            sales_service.create_sale(
                items=[{"product_id": 5555, "quantity": 1, "rate": 1}],
                walk_in_customer_name="Ali",
                received_amount=1,
            )


class TestInputPrecision:
    def test_quantity_beyond_three_places_is_rejected(self, db_session, make_product):
        product = make_product(stock=30)

        with pytest.raises(ValidationError) as exc_info:
            sales_service.create_sale(
                items=[_line(product, "30.0004", rate=1)], walk_in_customer_name="Ali", received_amount=30,
            )

        assert str(exc_info.value) == "Item 1 quantity cannot have more than 3 decimal places"
        assert refresh(product).stock_quantity == Decimal("30")
        assert db_session.query(Sale).count() == 0

    def test_rate_beyond_two_places_is_rejected(self, db_session, make_product):
        product = make_product(stock=10)

        with pytest.raises(ValidationError):
            sales_service.create_sale(
                items=[_line(product, 1, rate="5.555")], walk_in_customer_name="Ali", received_amount="5.56",
            )

    def test_trailing_zeros_are_accepted(self, db_session, make_product):
        product = make_product(stock=10)

        sale = sales_service.create_sale(
            items=[_line(product, "2.5000", rate="4.000")], walk_in_customer_name="Ali", received_amount="10.00",
        )

        assert sale.total_amount == Decimal("10")
        assert refresh(product).stock_quantity == Decimal("7.5")
