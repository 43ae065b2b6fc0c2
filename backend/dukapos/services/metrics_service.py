# Overview: Metrics Aggregator; folds reconciled sales into dashboard figures.

"""
Metrics Aggregator

Given a tenant-local date range [from, to] (inclusive), the sales in it are
reconciled one by one (reconciliation_service) and folded into:

- totals: totalSalesAmount, actualRevenue, pendingRevenue, totalProfit,
  actualProfit, pendingProfit
- counts: totalSalesCount, paidSalesCount, creditSalesCount
- averageSale (0 when there are no sales)
- salesGrowth: actual revenue against the immediately preceding window of
  the same length; 0 when the previous actual revenue is 0
- topProducts / bottomProducts: grouped by product name and sorted by
  summed total_price descending; bottom is the tail of that same list,
  reversed (the two overlap when there are fewer than 2N products)
- dailySeries: per local calendar day, ascending

Day boundaries are taken in the business's timezone and converted to UTC
for querying; the stored sale_date is UTC.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import joinedload

from ..errors import ValidationError
from ..models import Sale
from dukapos.money import ZERO, quantize, to_decimal
from dukapos.time_utils import local_date, local_day_bounds, local_today
from .pricing_service import sale_profit
from .reconciliation_service import reconcile_sale
from .tenant_service import TenantContext, business_timezone, scoped_query

logger = logging.getLogger(__name__)

DEFAULT_RANK_LIMIT = 10
UNKNOWN_PRODUCT = "Unknown Product"


@dataclass
class ProductRank:
    name: str
    total_sales: Decimal = ZERO
    quantity: int = 0

    def to_dict(self) -> dict:
        return {"name": self.name, "totalSales": str(self.total_sales), "quantity": self.quantity}


@dataclass
class DailyPoint:
    day: date
    sales: Decimal = ZERO
    profit: Decimal = ZERO
    actual_revenue: Decimal = ZERO
    actual_profit: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "sales": str(self.sales),
            "profit": str(self.profit),
            "actualRevenue": str(self.actual_revenue),
            "actualProfit": str(self.actual_profit),
        }


@dataclass
class SalesTotals:
    total_sales_amount: Decimal = ZERO
    actual_revenue: Decimal = ZERO
    pending_revenue: Decimal = ZERO
    total_profit: Decimal = ZERO
    actual_profit: Decimal = ZERO
    pending_profit: Decimal = ZERO
    total_sales_count: int = 0
    paid_sales_count: int = 0
    credit_sales_count: int = 0

    @property
    def average_sale(self) -> Decimal:
        if self.total_sales_count <= 0:
            return ZERO
        return quantize(self.total_sales_amount / self.total_sales_count)


@dataclass
class DashboardMetrics:
    date_from: date
    date_to: date
    period_length_days: int
    totals: SalesTotals
    previous_actual_revenue: Decimal
    sales_growth: Decimal
    top_products: list[ProductRank] = field(default_factory=list)
    bottom_products: list[ProductRank] = field(default_factory=list)
    daily_series: list[DailyPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        t = self.totals
        return {
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
            "periodLengthDays": self.period_length_days,
            "totalSalesAmount": str(t.total_sales_amount),
            "actualRevenue": str(t.actual_revenue),
            "pendingRevenue": str(t.pending_revenue),
            "totalProfit": str(t.total_profit),
            "actualProfit": str(t.actual_profit),
            "pendingProfit": str(t.pending_profit),
            "totalSalesCount": t.total_sales_count,
            "paidSalesCount": t.paid_sales_count,
            "creditSalesCount": t.credit_sales_count,
            "averageSale": str(t.average_sale),
            "previousActualRevenue": str(self.previous_actual_revenue),
            "salesGrowth": str(self.sales_growth),
            "topProducts": [p.to_dict() for p in self.top_products],
            "bottomProducts": [p.to_dict() for p in self.bottom_products],
            "dailySeries": [d.to_dict() for d in self.daily_series],
        }


def period_length_days(date_from: date, date_to: date) -> int:
    """ceil((end of to-day - start of from-day) / 1 day)."""
    start = datetime.combine(date_from, time.min)
    end = datetime.combine(date_to, time.max)
    return math.ceil((end - start) / timedelta(days=1))


def previous_window(date_from: date, date_to: date) -> tuple[date, date]:
    days = period_length_days(date_from, date_to)
    return date_from - timedelta(days=days), date_to - timedelta(days=days)


def sales_growth(current, previous) -> Decimal:
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous <= 0:
        return ZERO
    return quantize((current - previous) / previous * 100)


def summarize(sales) -> SalesTotals:
    totals = SalesTotals()
    for sale in sales:
        rec = reconcile_sale(sale)
        totals.total_sales_amount += quantize(to_decimal(sale.total_price))
        totals.total_profit += sale_profit(sale)
        totals.actual_revenue += rec.actual_revenue
        totals.pending_revenue += rec.pending_revenue
        totals.actual_profit += rec.actual_profit
        totals.pending_profit += rec.pending_profit
        totals.total_sales_count += 1
        if rec.is_paid:
            totals.paid_sales_count += 1
        else:
            totals.credit_sales_count += 1
    return totals


def rank_products(sales, limit: int = DEFAULT_RANK_LIMIT) -> tuple[list[ProductRank], list[ProductRank]]:
    groups: "OrderedDict[str, ProductRank]" = OrderedDict()
    for sale in sales:
        name = sale.product.name if sale.product is not None else UNKNOWN_PRODUCT
        rank = groups.get(name)
        if rank is None:
            rank = groups[name] = ProductRank(name=name)
        rank.total_sales += quantize(to_decimal(sale.total_price))
        rank.quantity += sale.quantity

    ranked = sorted(groups.values(), key=lambda r: r.total_sales, reverse=True)
    if limit <= 0:
        return [], []
    top = ranked[:limit]
    bottom = list(reversed(ranked[-limit:]))
    return top, bottom


def daily_series(sales, tz_name: str | None) -> list[DailyPoint]:
    points: dict[date, DailyPoint] = {}
    for sale in sales:
        day = local_date(sale.sale_date, tz_name)
        point = points.get(day)
        if point is None:
            point = points[day] = DailyPoint(day=day)
        rec = reconcile_sale(sale)
        point.sales += quantize(to_decimal(sale.total_price))
        point.profit += sale_profit(sale)
        point.actual_revenue += rec.actual_revenue
        point.actual_profit += rec.actual_profit
    return [points[d] for d in sorted(points)]


def sales_in_range(ctx: TenantContext, date_from: date, date_to: date, tz_name: str | None) -> list[Sale]:
    start, end = local_day_bounds(date_from, date_to, tz_name)
    return (
        scoped_query(Sale, ctx)
        .options(joinedload(Sale.product), joinedload(Sale.credit_account))
        .filter(Sale.sale_date >= start, Sale.sale_date <= end)
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )


def dashboard_metrics(
    ctx: TenantContext,
    date_from: date | None = None,
    date_to: date | None = None,
    *,
    rank_limit: int = DEFAULT_RANK_LIMIT,
) -> DashboardMetrics:
    """
    Dashboard figures for [date_from, date_to] in the business's calendar.

    Both bounds default to the business's local today.
    """
    tz_name = business_timezone(ctx)
    today = local_today(tz_name)
    date_from = date_from or today
    date_to = date_to or today
    if date_from > date_to:
        raise ValidationError(
            "from must not be after to",
            details={"from": date_from.isoformat(), "to": date_to.isoformat()},
        )

    sales = sales_in_range(ctx, date_from, date_to, tz_name)
    totals = summarize(sales)

    prev_from, prev_to = previous_window(date_from, date_to)
    previous = summarize(sales_in_range(ctx, prev_from, prev_to, tz_name))

    top, bottom = rank_products(sales, rank_limit)

    metrics = DashboardMetrics(
        date_from=date_from,
        date_to=date_to,
        period_length_days=period_length_days(date_from, date_to),
        totals=totals,
        previous_actual_revenue=previous.actual_revenue,
        sales_growth=sales_growth(totals.actual_revenue, previous.actual_revenue),
        top_products=top,
        bottom_products=bottom,
        daily_series=daily_series(sales, tz_name),
    )
    logger.debug(
        "Dashboard metrics business_id=%s %s..%s sales=%s",
        ctx.business_id, date_from, date_to, totals.total_sales_count,
    )
    return metrics
