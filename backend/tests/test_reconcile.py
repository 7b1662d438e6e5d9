"""
Ledger invariants after a mixed workload, and drift detection when a row is
tampered with outside the services.
"""

from decimal import Decimal

from sqlalchemy import update

from shopledger.cli import ledger_group
from shopledger.models import Customer, Product, Purchase
from shopledger.services import inventory_service, payment_service, purchase_service, reconcile_service, sales_service


def _workload(make_product, make_vendor, make_customer):
    cement = make_product(name="Cement", stock=20)
    steel = make_product(name="Steel", unit="KG")
    vendor = make_vendor(opening_balance=1000)
    customer = make_customer(opening_balance=300)

    purchase = purchase_service.create_purchase(
        vendor_id=vendor.id,
        items=[
            {"product_id": cement.id, "quantity": 100, "rate": 5},
            {"product_id": steel.id, "quantity": "250.5", "rate": "210.75"},
        ],
        paid_amount=200,
    )
    sale = sales_service.create_sale(
        items=[{"product_id": cement.id, "quantity": 30, "rate": 7}],
        customer_id=customer.id,
        received_amount=50,
        additional_charges=25,
    )
    sales_service.create_sale(
        items=[{"product_id": steel.id, "quantity": 10, "rate": 250}],
        walk_in_customer_name="Ali",
        received_amount=2500,
    )
    payment_service.record_payment(purchase_id=purchase.id, amount=100)
    payment_service.record_payment(sale_id=sale.id, amount=75)
    inventory_service.adjust_stock(product_id=cement.id, adjustment_type="OUT", quantity=4)
    return cement, vendor, customer


class TestReconciliation:
    def test_clean_after_mixed_workload(self, db_session, make_product, make_vendor, make_customer):
        _workload(make_product, make_vendor, make_customer)

        report = reconcile_service.run_reconciliation()

        assert report == {"invoices": [], "parties": [], "stock": [], "ok": True}

    def test_detects_tampered_party_balance(self, db_session, make_product, make_vendor, make_customer):
        _, _, customer = _workload(make_product, make_vendor, make_customer)
        db_session.execute(update(Customer).where(Customer.id == customer.id).values(balance=Decimal("1")))
        db_session.commit()

        problems = reconcile_service.check_party_balances()

        assert len(problems) == 1
        assert problems[0]["party_type"] == "customer"
        assert problems[0]["actual"] == "1.00"

    def test_detects_tampered_stock(self, db_session, make_product, make_vendor, make_customer):
        cement, _, _ = _workload(make_product, make_vendor, make_customer)
        db_session.execute(update(Product).where(Product.id == cement.id).values(stock_quantity=Decimal("999")))
        db_session.commit()

        problems = reconcile_service.check_stock_movements()

        assert [p["product_id"] for p in problems] == [cement.id]

    def test_detects_broken_invoice_total(self, db_session, make_product, make_vendor, make_customer):
        _, vendor, _ = _workload(make_product, make_vendor, make_customer)
        db_session.execute(
            update(Purchase).where(Purchase.vendor_id == vendor.id).values(paid_amount=Purchase.paid_amount + 1)
        )
        db_session.commit()

        problems = reconcile_service.check_invoice_totals()

        assert problems
        assert all(p["invoice_type"] == "purchase" for p in problems)


class TestLedgerCli:
    def test_reconcile_passes_on_clean_data(self, app, db_session, make_product, make_vendor, make_customer):
        _workload(make_product, make_vendor, make_customer)

        result = app.test_cli_runner().invoke(ledger_group, ["reconcile"])

        assert result.exit_code == 0
        assert "PASS stock" in result.output

    def test_reconcile_fails_on_drift(self, app, db_session, make_product):
        product = make_product(stock=5)
        db_session.execute(update(Product).where(Product.id == product.id).values(stock_quantity=Decimal("6")))
        db_session.commit()

        result = app.test_cli_runner().invoke(ledger_group, ["reconcile"])

        assert result.exit_code == 1
        assert "FAIL stock" in result.output

    def test_settings_toggle(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(ledger_group, ["settings", "--allow-negative-stock"])
        assert "allow_negative_stock: True" in result.output

        result = runner.invoke(ledger_group, ["settings"])
        assert "allow_negative_stock: True" in result.output

        result = runner.invoke(ledger_group, ["settings", "--no-allow-negative-stock"])
        assert "allow_negative_stock: False" in result.output
