# Overview: Sale pricing; the single source of truth for derived money columns.

"""
Sale Pricing Engine

Every derived monetary value in the system comes from here:
- Sale.total_price (stored, always recomputed before persistence)
- per-sale profit (computed on read, never stored)
- Product.total_buying_price (computed on read, never stored)

All arithmetic is Decimal; results are quantized to cents (ROUND_HALF_UP).
Profit may be negative and is never clamped.
"""

from __future__ import annotations

from decimal import Decimal

from dukapos.money import quantize, to_decimal


def total_price(quantity: int, selling_price) -> Decimal:
    return quantize(Decimal(int(quantity)) * to_decimal(selling_price))


def profit(quantity: int, selling_price, buying_price) -> Decimal:
    """(selling_price - buying_price) x quantity; a loss is negative."""
    margin = to_decimal(selling_price) - to_decimal(buying_price)
    return quantize(margin * Decimal(int(quantity)))


def total_buying_price(buying_price, stock_quantity: int) -> Decimal:
    return quantize(to_decimal(buying_price) * Decimal(int(stock_quantity)))


def sale_profit(sale) -> Decimal:
    """
    Profit for a stored Sale using its product's current unit cost.

    A sale whose product row is gone has no cost basis; its profit is the
    full selling value.
    """
    buying_price = sale.product.buying_price if sale.product is not None else Decimal("0")
    return profit(sale.quantity, sale.selling_price, buying_price)


def apply_pricing(sale) -> None:
    """Overwrite sale.total_price from its quantity and selling price."""
    sale.total_price = total_price(sale.quantity, sale.selling_price)
