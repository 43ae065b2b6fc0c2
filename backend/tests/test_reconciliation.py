# Overview: Pytest coverage for the actual/pending reconciliation split.

from decimal import Decimal

import pytest

from dukapos.services.reconciliation_service import (
    SETTLEMENT_CREDIT,
    SETTLEMENT_PAID,
    payment_ratio,
    reconcile,
)


class TestNonCreditSales:
    @pytest.mark.parametrize("method", ["cash", "mpesa", "bank"])
    def test_all_actual(self, method):
        rec = reconcile("24.00", "9.00", method)
        assert rec.actual_revenue == Decimal("24.00")
        assert rec.pending_revenue == Decimal("0.00")
        assert rec.actual_profit == Decimal("9.00")
        assert rec.pending_profit == Decimal("0.00")
        assert rec.settlement == SETTLEMENT_PAID
        assert rec.is_paid

    def test_credit_columns_ignored_for_cash(self):
        rec = reconcile("24.00", "9.00", "cash", "24.00", "0.00", has_account=True)
        assert rec.actual_revenue == Decimal("24.00")


class TestCreditSales:
    def test_without_account_all_pending(self):
        rec = reconcile("32.00", "12.00", "credit")
        assert rec.actual_revenue == Decimal("0.00")
        assert rec.pending_revenue == Decimal("32.00")
        assert rec.actual_profit == Decimal("0.00")
        assert rec.pending_profit == Decimal("12.00")
        assert rec.settlement == SETTLEMENT_CREDIT

    def test_unpaid_account(self):
        rec = reconcile("32.00", "12.00", "credit", "32.00", "0.00", has_account=True)
        assert rec.payment_ratio == Decimal("0")
        assert rec.actual_revenue == Decimal("0.00")
        assert rec.pending_revenue == Decimal("32.00")
        assert not rec.is_paid

    def test_half_paid(self):
        rec = reconcile("32.00", "12.00", "credit", "32.00", "16.00", has_account=True)
        assert rec.payment_ratio == Decimal("0.5")
        assert rec.actual_revenue == Decimal("16.00")
        assert rec.pending_revenue == Decimal("16.00")
        assert rec.actual_profit == Decimal("6.00")
        assert rec.pending_profit == Decimal("6.00")
        assert rec.settlement == SETTLEMENT_CREDIT

    def test_fully_paid_counts_as_paid(self):
        rec = reconcile("32.00", "12.00", "credit", "32.00", "32.00", has_account=True)
        assert rec.actual_revenue == Decimal("32.00")
        assert rec.pending_revenue == Decimal("0.00")
        assert rec.settlement == SETTLEMENT_PAID

    def test_zero_owed_ratio_is_zero(self):
        assert payment_ratio("0.00", "0.00") == Decimal("0")
        rec = reconcile("0.00", "0.00", "credit", "0.00", "0.00", has_account=True)
        assert rec.settlement == SETTLEMENT_CREDIT

    def test_negative_profit_split(self):
        rec = reconcile("10.00", "-4.00", "credit", "10.00", "5.00", has_account=True)
        assert rec.actual_profit == Decimal("-2.00")
        assert rec.pending_profit == Decimal("-2.00")

    def test_overpaid_account_clamped_to_total(self):
        rec = reconcile("10.00", "4.00", "credit", "10.00", "15.00", has_account=True)
        assert rec.payment_ratio == Decimal("1")
        assert rec.actual_revenue == Decimal("10.00")
        assert rec.pending_revenue == Decimal("0.00")
        assert rec.pending_profit == Decimal("0.00")
        assert rec.settlement == SETTLEMENT_PAID

    def test_negative_paid_clamped_to_zero(self):
        rec = reconcile("10.00", "4.00", "credit", "10.00", "-3.00", has_account=True)
        assert rec.payment_ratio == Decimal("0")
        assert rec.actual_revenue == Decimal("0.00")
        assert rec.pending_revenue == Decimal("10.00")

    @pytest.mark.parametrize("paid", ["-5.00", "0.00", "2.50", "10.00", "12.00"])
    def test_ratio_within_unit_interval(self, paid):
        assert Decimal("0") <= payment_ratio("10.00", paid) <= Decimal("1")


class TestSplitAlwaysSumsToWhole:
    """actual + pending == whole, with both parts non-negative, for any paid fraction."""

    @pytest.mark.parametrize(
        "total,profit,paid",
        [
            ("10.00", "3.33", "3.33"),
            ("10.00", "3.33", "6.67"),
            ("0.03", "0.01", "0.01"),
            ("99.99", "45.45", "33.33"),
            ("1000.00", "0.01", "999.99"),
            ("7.00", "2.00", "7.00"),
        ],
    )
    def test_split(self, total, profit, paid):
        rec = reconcile(total, profit, "credit", total, paid, has_account=True)
        assert rec.actual_revenue + rec.pending_revenue == Decimal(total)
        assert rec.actual_profit + rec.pending_profit == Decimal(profit)
        assert rec.actual_revenue >= 0
        assert rec.pending_revenue >= 0
        assert rec.actual_revenue <= Decimal(total)

    def test_to_dict_strings(self):
        data = reconcile("24.00", "9.00", "cash").to_dict()
        assert data["actual_revenue"] == "24.00"
        assert data["pending_revenue"] == "0.00"
        assert data["settlement"] == "paid"
