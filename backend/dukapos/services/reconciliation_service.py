# Overview: Reconciliation Calculator; splits a sale into realized and outstanding value.

"""
Reconciliation Calculator

Splits a sale's revenue and profit into "actual" (cash-equivalent, realized)
and "pending" (outstanding credit) portions. Exactly three cases:

1. payment_method != credit       -> all actual, counts as paid
2. credit with a credit account   -> split by payment_ratio = paid / owed
                                     (0 when owed == 0); paid iff ratio >= 1
3. credit without a credit account -> all pending, counts as credit

Rounding: actual = quantize(value x ratio) and pending = value - actual, so
actual + pending == value exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dukapos.money import ZERO, quantize, to_decimal
from .pricing_service import sale_profit

SETTLEMENT_PAID = "paid"
SETTLEMENT_CREDIT = "credit"


@dataclass(frozen=True)
class Reconciliation:
    actual_revenue: Decimal
    pending_revenue: Decimal
    actual_profit: Decimal
    pending_profit: Decimal
    payment_ratio: Decimal
    settlement: str

    @property
    def is_paid(self) -> bool:
        return self.settlement == SETTLEMENT_PAID

    def to_dict(self) -> dict:
        return {
            "actual_revenue": str(self.actual_revenue),
            "pending_revenue": str(self.pending_revenue),
            "actual_profit": str(self.actual_profit),
            "pending_profit": str(self.pending_profit),
            "payment_ratio": str(self.payment_ratio),
            "settlement": self.settlement,
        }


def payment_ratio(amount_owed, amount_paid) -> Decimal:
    """amount_paid / amount_owed clamped to [0, 1], defined as 0 when nothing is owed."""
    owed = to_decimal(amount_owed)
    if owed <= 0:
        return Decimal("0")
    ratio = to_decimal(amount_paid) / owed
    return min(max(ratio, Decimal("0")), Decimal("1"))


def _split(value: Decimal, ratio: Decimal) -> tuple[Decimal, Decimal]:
    value = quantize(value)
    actual = quantize(value * ratio)
    return actual, value - actual


def reconcile(
    total_price,
    profit,
    payment_method: str,
    amount_owed=None,
    amount_paid=None,
    *,
    has_account: bool = False,
) -> Reconciliation:
    """Pure three-way split for one sale."""
    total_price = quantize(to_decimal(total_price))
    profit = quantize(to_decimal(profit))

    if payment_method != "credit":
        return Reconciliation(
            actual_revenue=total_price,
            pending_revenue=ZERO,
            actual_profit=profit,
            pending_profit=ZERO,
            payment_ratio=Decimal("1"),
            settlement=SETTLEMENT_PAID,
        )

    if not has_account:
        return Reconciliation(
            actual_revenue=ZERO,
            pending_revenue=total_price,
            actual_profit=ZERO,
            pending_profit=profit,
            payment_ratio=Decimal("0"),
            settlement=SETTLEMENT_CREDIT,
        )

    ratio = payment_ratio(amount_owed, amount_paid)
    actual_revenue, pending_revenue = _split(total_price, ratio)
    actual_profit, pending_profit = _split(profit, ratio)
    return Reconciliation(
        actual_revenue=actual_revenue,
        pending_revenue=pending_revenue,
        actual_profit=actual_profit,
        pending_profit=pending_profit,
        payment_ratio=ratio,
        settlement=SETTLEMENT_PAID if ratio >= 1 else SETTLEMENT_CREDIT,
    )


def reconcile_sale(sale) -> Reconciliation:
    """Reconcile a stored Sale with its product cost and optional credit account."""
    account = sale.credit_account
    return reconcile(
        sale.total_price,
        sale_profit(sale),
        sale.payment_method,
        account.amount_owed if account is not None else None,
        account.amount_paid if account is not None else None,
        has_account=account is not None,
    )
