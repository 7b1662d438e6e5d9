"""
Concurrency tests against a file-backed SQLite database.

Each worker thread gets its own app context (and therefore its own session
and connection), so the database is what serializes the writes.
"""

import threading
from decimal import Decimal

import pytest

from shopledger import create_app
from shopledger.errors import InsufficientStock, PaymentExceedsDue
from shopledger.extensions import db
from shopledger.models import PaymentHistory, Product, Vendor
from shopledger.services import (
    concurrency,
    customer_service,
    inventory_service,
    payment_service,
    purchase_service,
    reconcile_service,
    sales_service,
    vendor_service,
)


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_workers(app, target, args_list):
    results = []
    lock = threading.Lock()

    def worker(*args):
        with app.app_context():
            try:
                outcome = target(*args)
                with lock:
                    results.append(outcome)
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentPayments:
    def test_racing_payments_never_overdraw(self, file_app):
        with file_app.app_context():
            vendor = vendor_service.create_vendor(name="V")
            product = inventory_service.create_product(name="Cement", unit="BAG")
            purchase = purchase_service.create_purchase(
                vendor_id=vendor.id,
                items=[{"product_id": product.id, "quantity": 100, "rate": 5}],
                paid_amount=200,
            )
            vendor_id, purchase_id = vendor.id, purchase.id

        def pay(_):
            _, entry = payment_service.record_payment(purchase_id=purchase_id, amount=100, actor_id="racer")
            return entry.balance_before

        results = _run_workers(file_app, pay, [(i,) for i in range(5)])

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert sorted(successes) == [Decimal("100"), Decimal("200"), Decimal("300")]
        assert len(failures) == 2
        assert all(isinstance(f, PaymentExceedsDue) for f in failures)

        with file_app.app_context():
            assert db.session.get(Vendor, vendor_id).balance == Decimal("0")
            history = db.session.query(PaymentHistory).filter_by(purchase_id=purchase_id).count()
            assert history == 1 + 3
            assert reconcile_service.run_reconciliation()["ok"] is True


class TestConcurrentSales:
    def test_racing_sales_cannot_oversell(self, file_app):
        with file_app.app_context():
            product = inventory_service.create_product(name="Cement", unit="BAG")
            inventory_service.adjust_stock(product_id=product.id, adjustment_type="IN", quantity=10)
            product_id = product.id

        def sell(name):
            sale = sales_service.create_sale(
                items=[{"product_id": product_id, "quantity": 6, "rate": 10}],
                walk_in_customer_name=name,
                received_amount=60,
            )
            return sale.id

        results = _run_workers(file_app, sell, [("Ali",), ("Sara",)])

        sold = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(sold) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0], InsufficientStock)

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock_quantity == Decimal("4")
            assert reconcile_service.run_reconciliation()["ok"] is True


class TestConcurrentPurchases:
    def test_vendor_balance_has_no_lost_updates(self, file_app):
        with file_app.app_context():
            vendor = vendor_service.create_vendor(name="V")
            product = inventory_service.create_product(name="Sand", unit="CUFT")
            vendor_id, product_id = vendor.id, product.id

        def buy(_):
            return purchase_service.create_purchase(
                vendor_id=vendor_id,
                items=[{"product_id": product_id, "quantity": 2, "rate": 5}],
            ).id

        results = _run_workers(file_app, buy, [(i,) for i in range(8)])

        assert not [r for r in results if isinstance(r, Exception)]
        with file_app.app_context():
            assert db.session.get(Vendor, vendor_id).balance == Decimal("80")
            assert db.session.get(Product, product_id).stock_quantity == Decimal("16")
            assert reconcile_service.run_reconciliation()["ok"] is True


@pytest.fixture
def lock_log(monkeypatch):
    """Record which tables are re-read with SELECT ... FOR UPDATE."""
    seen = []
    real = concurrency.lock_for_update

    def recording(query):
        seen.append(query.column_descriptions[0]["entity"].__tablename__)
        return real(query)

    for module in (inventory_service, vendor_service, customer_service, payment_service):
        monkeypatch.setattr(module, "lock_for_update", recording)
    return seen


class TestRowLocks:
    def test_sale_locks_products_and_customer(self, db_session, make_product, make_customer, lock_log):
        product = make_product(stock=10)
        customer = make_customer()

        sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 2, "rate": 10}], customer_id=customer.id,
        )

        assert lock_log == ["products", "customers"]

    def test_purchase_locks_products_and_vendor(self, db_session, make_product, make_vendor, lock_log):
        product = make_product()
        vendor = make_vendor()

        purchase_service.create_purchase(
            vendor_id=vendor.id, items=[{"product_id": product.id, "quantity": 2, "rate": 10}],
        )

        assert lock_log == ["products", "vendors"]

    def test_payment_locks_the_invoice(self, db_session, make_product, make_vendor, lock_log):
        product = make_product()
        vendor = make_vendor()
        purchase = purchase_service.create_purchase(
            vendor_id=vendor.id, items=[{"product_id": product.id, "quantity": 2, "rate": 10}],
        )
        lock_log.clear()

        payment_service.record_payment(purchase_id=purchase.id, amount=5)

        assert lock_log == ["purchases"]

    def test_locked_sale_still_blocks_overselling(self, db_session, make_product, lock_log):
        product = make_product(stock=1)

        with pytest.raises(InsufficientStock):
            sales_service.create_sale(
                items=[{"product_id": product.id, "quantity": 2, "rate": 10}],
                walk_in_customer_name="Ali",
                received_amount=20,
            )

        assert lock_log == []
