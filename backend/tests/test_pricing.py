# Overview: Pytest coverage for sale pricing and Decimal money helpers.

from decimal import Decimal

import pytest

from dukapos.money import money_str, to_decimal, to_money
from dukapos.services import pricing_service


class TestMoneyHelpers:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_half_up_rounding(self):
        assert to_money("2.675") == Decimal("2.68")
        assert to_money("2.665") == Decimal("2.67")

    def test_thousands_separator_accepted(self):
        assert to_money("1,250.5") == Decimal("1250.50")
        assert to_money("12,345,678") == Decimal("12345678.00")

    @pytest.mark.parametrize("value", ["1,5", "12,34", "1,50", "1,2345", ",100", "100,"])
    def test_decimal_comma_rejected(self, value):
        with pytest.raises(ValueError):
            to_money(value)

    @pytest.mark.parametrize("value", [True, None, "", "abc", "NaN", "Infinity", [1]])
    def test_rejects_non_amounts(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_money_str_two_places(self):
        assert money_str(Decimal("24")) == "24.00"
        assert money_str(None) is None


class TestSalePricing:
    def test_total_price(self):
        assert pricing_service.total_price(3, "8.00") == Decimal("24.00")

    def test_profit(self):
        assert pricing_service.profit(3, "8.00", "5.00") == Decimal("9.00")

    def test_loss_is_negative_not_clamped(self):
        assert pricing_service.profit(2, "4.00", "5.50") == Decimal("-3.00")

    def test_total_buying_price(self):
        assert pricing_service.total_buying_price(Decimal("5.00"), 10) == Decimal("50.00")

    @pytest.mark.parametrize(
        "quantity,selling_price,buying_price",
        [
            (1, "0.00", "0.00"),
            (7, "0.33", "0.10"),
            (12, "19.99", "20.01"),
            (250, "1.05", "0.95"),
        ],
    )
    def test_profit_is_total_minus_cost(self, quantity, selling_price, buying_price):
        total = pricing_service.total_price(quantity, selling_price)
        cost = Decimal(buying_price) * quantity
        assert pricing_service.profit(quantity, selling_price, buying_price) == total - cost

    def test_apply_pricing_overwrites_supplied_total(self):
        class _Sale:
            quantity = 4
            selling_price = Decimal("8.00")
            total_price = Decimal("999.00")

        sale = _Sale()
        pricing_service.apply_pricing(sale)
        assert sale.total_price == Decimal("32.00")

    def test_sale_profit_without_product_uses_zero_cost(self):
        class _Sale:
            quantity = 2
            selling_price = Decimal("8.00")
            product = None

        assert pricing_service.sale_profit(_Sale()) == Decimal("16.00")
