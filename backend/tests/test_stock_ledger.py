# Overview: Pytest coverage for stock changes across the sale lifecycle.

"""
Stock Ledger Tests

Stock moves only through the sale hooks and restock/correction calls, and
never goes below zero: a rejected change leaves stock, sale and credit
account exactly as they were.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from dukapos.errors import AccessDenied, InsufficientStock, NotFound, ValidationError
from dukapos.extensions import db
from dukapos.models import CreditAccount, Product, Sale
from dukapos.services import sales_service, stock_service

from conftest import CREDIT, make_product, sale_patch


def _stock(product_id):
    return db.session.get(Product, product_id).stock_quantity


class TestSaleInsert:
    def test_cash_sale_decrements_stock(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        assert _stock(product_a.id) == 7
        assert sale.total_price == Decimal("24.00")

    def test_sale_of_entire_stock_allowed(self, db_session, ctx_a, product_a):
        sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=10))
        assert _stock(product_a.id) == 0

    def test_insufficient_stock_rejected_without_side_effects(self, db_session, ctx_a, product_a):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=11))

        assert exc.value.details["requested_quantity"] == 11
        assert exc.value.details["available"] == 10
        assert _stock(product_a.id) == 10
        assert db_session.query(Sale).count() == 0

    def test_rejected_credit_sale_opens_no_account(self, db_session, ctx_a, product_a):
        with pytest.raises(InsufficientStock):
            sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=50, payment_method="credit"), CREDIT)
        assert db_session.query(CreditAccount).count() == 0

    def test_credit_sale_without_customer_leaves_stock(self, db_session, ctx_a, product_a):
        with pytest.raises(ValidationError):
            sales_service.record_sale(ctx_a, sale_patch(product_a, payment_method="credit"), {"due_date": "2025-09-30"})
        assert _stock(product_a.id) == 10


class TestSaleEdit:
    def test_increase_applies_only_delta(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        sales_service.edit_sale(ctx_a, sale.id, {"quantity": 5})
        assert _stock(product_a.id) == 5

    def test_decrease_restores_delta(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        sales_service.edit_sale(ctx_a, sale.id, {"quantity": 1})
        assert _stock(product_a.id) == 9

    def test_increase_up_to_stock_plus_old_quantity(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        sales_service.edit_sale(ctx_a, sale.id, {"quantity": 10})
        assert _stock(product_a.id) == 0

    def test_increase_beyond_available_rejected(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        with pytest.raises(InsufficientStock) as exc:
            sales_service.edit_sale(ctx_a, sale.id, {"quantity": 11})

        # Available for this sale is current stock plus what it already holds
        assert exc.value.details["available"] == 10
        assert _stock(product_a.id) == 7
        assert db.session.get(Sale, sale.id).quantity == 3

    def test_edit_reprices_total(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        edited = sales_service.edit_sale(ctx_a, sale.id, {"selling_price": Decimal("9.50")})
        assert edited.total_price == Decimal("28.50")
        assert _stock(product_a.id) == 7

    def test_change_product_restores_old_and_takes_new(self, db_session, ctx_a, business_a, product_a):
        other = make_product(db_session, business_a, name="Salt 500g", stock=4, buying_price="1.00")
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))

        sales_service.edit_sale(ctx_a, sale.id, {"product_id": other.id, "quantity": 2})

        assert _stock(product_a.id) == 10
        assert _stock(other.id) == 2

    def test_change_to_short_product_rolls_back(self, db_session, ctx_a, business_a, product_a):
        other = make_product(db_session, business_a, name="Salt 500g", stock=1, buying_price="1.00")
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))

        with pytest.raises(InsufficientStock):
            sales_service.edit_sale(ctx_a, sale.id, {"product_id": other.id, "quantity": 2})

        assert _stock(product_a.id) == 7
        assert _stock(other.id) == 1
        assert db.session.get(Sale, sale.id).product_id == product_a.id


class TestSaleDelete:
    def test_delete_restores_stock(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=3))
        assert _stock(product_a.id) == 7

        sales_service.delete_sale(ctx_a, sale.id)

        assert _stock(product_a.id) == 10
        assert db.session.get(Sale, sale.id) is None

    def test_delete_credit_sale_removes_account(self, db_session, ctx_a, product_a):
        sale = sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=4, payment_method="credit"), CREDIT)
        sales_service.delete_sale(ctx_a, sale.id)
        assert db_session.query(CreditAccount).count() == 0
        assert _stock(product_a.id) == 10

    def test_delete_requires_admin(self, db_session, clerk_ctx_a, product_a):
        sale = sales_service.record_sale(clerk_ctx_a, sale_patch(product_a, quantity=3))
        with pytest.raises(AccessDenied):
            sales_service.delete_sale(clerk_ctx_a, sale.id)
        assert _stock(product_a.id) == 7


class TestRestockAndCorrection:
    def test_add_stock(self, db_session, ctx_a, product_a):
        product = stock_service.add_stock(ctx_a, product_a.id, 5)
        assert product.stock_quantity == 15

    @pytest.mark.parametrize("qty", [0, -1, "3", 2.5, True])
    def test_add_stock_rejects_bad_quantity(self, db_session, ctx_a, product_a, qty):
        with pytest.raises(ValidationError):
            stock_service.add_stock(ctx_a, product_a.id, qty)
        assert _stock(product_a.id) == 10

    def test_add_stock_unknown_product(self, db_session, ctx_a):
        with pytest.raises(NotFound):
            stock_service.add_stock(ctx_a, 999999, 1)

    def test_set_stock_rejects_negative(self, db_session, ctx_a, product_a):
        with pytest.raises(ValidationError):
            stock_service.set_stock(ctx_a, product_a.id, -1)

    def test_storage_backstop_rejects_negative_stock(self, db_session, product_a):
        product = db.session.get(Product, product_a.id)
        product.stock_quantity = -1
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()
        assert _stock(product_a.id) == 10


class TestSequencesNeverGoNegative:
    """Any interleaving of inserts, edits and deletes keeps stock >= 0 and consistent."""

    @pytest.mark.parametrize(
        "steps",
        [
            [("sell", 4), ("sell", 4), ("sell", 4)],
            [("sell", 6), ("edit", 0, 9), ("sell", 2), ("delete", 0), ("sell", 8)],
            [("sell", 1), ("sell", 1), ("edit", 1, 9), ("edit", 0, 3), ("delete", 1)],
            [("sell", 10), ("delete", 0), ("sell", 10), ("edit", 1, 11)],
        ],
    )
    def test_sequence(self, db_session, ctx_a, product_a, steps):
        sales = []
        for step in steps:
            try:
                if step[0] == "sell":
                    sales.append(sales_service.record_sale(ctx_a, sale_patch(product_a, quantity=step[1])).id)
                elif step[0] == "edit":
                    sales_service.edit_sale(ctx_a, sales[step[1]], {"quantity": step[2]})
                else:
                    sales_service.delete_sale(ctx_a, sales[step[1]])
            except InsufficientStock:
                pass

            held = sum(s.quantity for s in db_session.query(Sale).filter_by(product_id=product_a.id))
            stock = _stock(product_a.id)
            assert stock >= 0
            assert stock + held == 10
