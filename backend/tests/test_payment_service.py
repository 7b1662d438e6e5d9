"""
Payment recorder tests.

Covers settling, over-payment rejection, payment ordering and the history
rows written for each payment.
"""

from decimal import Decimal

import pytest

from shopledger.errors import InvoiceNotFound, PaymentExceedsDue, ValidationError
from shopledger.models import LedgerTransaction, PaymentHistory
from shopledger.services import customer_service, payment_service, purchase_service, sales_service

from conftest import refresh


@pytest.fixture
def purchase_with_due(make_vendor, make_product):
    """100 units at 5 with 200 paid: due 300 on the vendor."""
    vendor = make_vendor()
    product = make_product()
    purchase = purchase_service.create_purchase(
        vendor_id=vendor.id,
        items=[{"product_id": product.id, "quantity": 100, "rate": 5}],
        paid_amount=200,
    )
    return vendor, purchase


class TestPurchasePayments:
    def test_paying_the_full_due_settles_the_invoice(self, db_session, purchase_with_due):
        vendor, purchase = purchase_with_due

        invoice, entry = payment_service.record_payment(purchase_id=purchase.id, amount=300, actor_id="clerk")

        assert invoice.due_amount == Decimal("0")
        assert invoice.paid_amount == Decimal("500")
        assert invoice.is_settled is True
        assert refresh(vendor).balance == Decimal("0")
        assert entry.balance_before == Decimal("300")
        assert entry.balance_after == Decimal("0")
        assert entry.created_by == "clerk"

        tx = (
            db_session.query(LedgerTransaction)
            .filter_by(purchase_id=purchase.id)
            .order_by(LedgerTransaction.id.desc())
            .first()
        )
        assert tx.transaction_type == "PAYMENT"
        assert (tx.balance_before, tx.balance_after) == (Decimal("300"), Decimal("0"))

    def test_paying_more_than_due_is_rejected_without_changes(self, db_session, purchase_with_due):
        vendor, purchase = purchase_with_due
        history_before = db_session.query(PaymentHistory).count()

        with pytest.raises(PaymentExceedsDue) as exc_info:
            payment_service.record_payment(purchase_id=purchase.id, amount=301)

        assert str(exc_info.value) == "Payment amount cannot exceed due amount of Rs. 300.00"
        assert refresh(purchase).due_amount == Decimal("300")
        assert refresh(purchase).paid_amount == Decimal("200")
        assert refresh(vendor).balance == Decimal("300")
        assert db_session.query(PaymentHistory).count() == history_before

    def test_paying_a_settled_invoice_is_rejected(self, db_session, purchase_with_due):
        _, purchase = purchase_with_due
        payment_service.record_payment(purchase_id=purchase.id, amount=300)

        with pytest.raises(PaymentExceedsDue):
            payment_service.record_payment(purchase_id=purchase.id, amount="0.01")

    @pytest.mark.parametrize("first, second", [(100, 50), (50, 100)])
    def test_payment_order_does_not_change_the_outcome(self, db_session, purchase_with_due, first, second):
        vendor, purchase = purchase_with_due

        _, entry_1 = payment_service.record_payment(purchase_id=purchase.id, amount=first)
        invoice, entry_2 = payment_service.record_payment(purchase_id=purchase.id, amount=second)

        assert invoice.due_amount == Decimal("150")
        assert refresh(vendor).balance == Decimal("150")
        assert entry_1.balance_before == Decimal("300")
        assert entry_2.balance_before == entry_1.balance_after == Decimal(300 - first)

    def test_history_lists_newest_first(self, db_session, purchase_with_due):
        _, purchase = purchase_with_due
        payment_service.record_payment(purchase_id=purchase.id, amount=10, payment_date="2024-01-01")
        payment_service.record_payment(purchase_id=purchase.id, amount=20, payment_date="2024-02-01")

        entries = payment_service.list_payment_history(purchase_id=purchase.id)

        # The initial payment recorded at creation is dated now, so it sorts first
        assert [e.amount for e in entries] == [Decimal("200"), Decimal("20"), Decimal("10")]


class TestSalePayments:
    def test_receipt_reduces_customer_balance(self, db_session, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 2, "rate": 50}], customer_id=customer.id,
        )

        invoice, entry = payment_service.record_payment(sale_id=sale.id, amount=40, payment_mode="cheque")

        assert invoice.due_amount == Decimal("60")
        assert entry.payment_mode == "CASH"
        assert refresh(customer).balance == Decimal("60")
        tx = db_session.query(LedgerTransaction).filter_by(sale_id=sale.id).one()
        assert tx.transaction_type == "RECEIPT"

    def test_deactivated_customer_can_still_pay(self, db_session, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "rate": 80}], customer_id=customer.id,
        )
        customer_service.deactivate_customer(customer.id)

        invoice, _ = payment_service.record_payment(sale_id=sale.id, amount=80)

        assert invoice.due_amount == Decimal("0")
        assert refresh(customer).balance == Decimal("0")

    def test_walk_in_sale_has_nothing_due(self, db_session, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "rate": 80}],
            walk_in_customer_name="Ali",
            received_amount=80,
        )

        with pytest.raises(PaymentExceedsDue):
            payment_service.record_payment(sale_id=sale.id, amount=1)

    def test_opening_balance_invoice_can_be_paid(self, db_session, make_customer):
        customer = make_customer(opening_balance=500)
        opening = sales_service.list_open_sales_for_customer(customer.id)[0]

        invoice, entry = payment_service.record_payment(sale_id=opening.id, amount=500)

        assert invoice.is_opening_balance is True
        assert invoice.due_amount == Decimal("0")
        assert refresh(customer).balance == Decimal("0")


class TestPaymentValidation:
    def test_needs_exactly_one_invoice(self, db_session):
        with pytest.raises(ValidationError):
            payment_service.record_payment(amount=10)
        with pytest.raises(ValidationError):
            payment_service.record_payment(amount=10, sale_id=1, purchase_id=1)

    @pytest.mark.parametrize("amount", [0, -5, "abc", None])
    def test_amount_must_be_positive(self, db_session, purchase_with_due, amount):
        _, purchase = purchase_with_due
        with pytest.raises(ValidationError):
            payment_service.record_payment(purchase_id=purchase.id, amount=amount)

    def test_missing_invoice(self, db_session):
        with pytest.raises(InvoiceNotFound):
            payment_service.record_payment(sale_id=404, amount=1)

    def test_invalid_date(self, db_session, purchase_with_due):
        _, purchase = purchase_with_due
        with pytest.raises(ValidationError):
            payment_service.record_payment(purchase_id=purchase.id, amount=1, payment_date="yesterday")

    def test_amount_finer_than_paisa_is_rejected_not_rounded(self, db_session, purchase_with_due):
        vendor, purchase = purchase_with_due

        with pytest.raises(ValidationError) as exc_info:
            payment_service.record_payment(purchase_id=purchase.id, amount="300.004")

        assert str(exc_info.value) == "amount cannot have more than 2 decimal places"
        assert refresh(purchase).due_amount == Decimal("300")
        assert refresh(vendor).balance == Decimal("300")
        assert db_session.query(PaymentHistory).filter_by(purchase_id=purchase.id).count() == 1
