"""
Sales Service - sale lifecycle over the stock ledger, pricing and credit

Each public operation is one database transaction:
- record_sale: price -> decrement stock -> open credit account (credit only)
- edit_sale: re-price -> re-apply stock by delta -> keep the credit account
  in step with the sale's method and total
- delete_sale: restore stock -> remove sale (its credit account cascades)

Any failure rolls back the whole operation; a sale that would take stock
below zero leaves stock, sale and credit account untouched.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import joinedload

from ..errors import ValidationError
from ..extensions import db
from ..models import CreditAccount, Product, Sale
from dukapos.money import to_decimal
from dukapos.time_utils import local_day_bounds, utcnow
from .concurrency import atomic
from .credit_service import coerce_due_date, open_account, sync_owed_with_sale, require_customer_name
from .pricing_service import apply_pricing, sale_profit
from .reconciliation_service import reconcile_sale
from .stock_service import on_sale_deleted, on_sale_inserted, on_sale_updated
from .tenant_service import TenantContext, business_timezone, get_owned, require_admin, scoped_query

logger = logging.getLogger(__name__)

SALE_MUTABLE_FIELDS = {"product_id", "quantity", "selling_price", "payment_method", "sale_date", "description"}


def serialize_sale(sale: Sale) -> dict:
    """Sale row plus computed profit, actual/pending split and credit account."""
    data = sale.to_dict()
    data["profit"] = str(sale_profit(sale))
    data["reconciliation"] = reconcile_sale(sale).to_dict()
    data["credit_account"] = sale.credit_account.to_dict() if sale.credit_account is not None else None
    return data


def get_sale(ctx: TenantContext, sale_id: int) -> Sale:
    return get_owned(ctx, Sale, sale_id, label="Sale")


def list_sales(
    ctx: TenantContext,
    search: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    payment_method: str | None = None,
) -> list[Sale]:
    """
    Newest first. Search matches product name, sale description or credit
    customer name; dates are the business's local calendar days.
    """
    query = (
        scoped_query(Sale, ctx)
        .options(joinedload(Sale.product), joinedload(Sale.credit_account))
        .outerjoin(Product, Sale.product_id == Product.id)
        .outerjoin(CreditAccount, CreditAccount.sale_id == Sale.id)
    )

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(term),
            Sale.description.ilike(term),
            CreditAccount.customer_name.ilike(term),
        ))

    if payment_method:
        query = query.filter(Sale.payment_method == payment_method.lower())

    if date_from or date_to:
        tz_name = business_timezone(ctx)
        if date_from:
            start, _ = local_day_bounds(date_from, date_from, tz_name)
            query = query.filter(Sale.sale_date >= start)
        if date_to:
            _, end = local_day_bounds(date_to, date_to, tz_name)
            query = query.filter(Sale.sale_date <= end)

    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()


def record_sale(ctx: TenantContext, patch: dict, credit: dict | None = None) -> Sale:
    """
    Record a sale from a validated patch (see validation.SALE_POLICY).

    For credit sales `credit` must carry customer_name and due_date.
    total_price is always computed here, never taken from input.
    """
    credit = credit or {}
    with atomic("record sale"):
        product = get_owned(ctx, Product, patch["product_id"], label="Product")

        sale = Sale(
            business_id=ctx.business_id,
            product_id=product.id,
            quantity=patch["quantity"],
            selling_price=to_decimal(patch["selling_price"]),
            payment_method=patch["payment_method"],
            sale_date=patch.get("sale_date") or utcnow(),
            description=patch.get("description"),
            created_by_user_id=ctx.user_id,
        )
        if sale.is_credit:
            # Fail before touching stock
            require_customer_name(credit.get("customer_name"))
            coerce_due_date(credit.get("due_date"))

        apply_pricing(sale)
        db.session.add(sale)
        db.session.flush()

        on_sale_inserted(ctx, product.id, sale.quantity)

        if sale.is_credit:
            open_account(ctx, sale, credit.get("customer_name"), credit.get("due_date"))

        sale_id = sale.id

    sale = get_sale(ctx, sale_id)
    logger.info(
        "Sale recorded id=%s product_id=%s qty=%s total=%s method=%s business_id=%s",
        sale.id, sale.product_id, sale.quantity, sale.total_price, sale.payment_method, ctx.business_id,
    )
    return sale


def _sync_credit_account(ctx: TenantContext, sale: Sale, credit: dict) -> None:
    account = sale.credit_account

    if sale.is_credit:
        if account is None:
            open_account(ctx, sale, credit.get("customer_name"), credit.get("due_date"))
            return
        sync_owed_with_sale(account, sale)
        if "customer_name" in credit:
            account.customer_name = require_customer_name(credit["customer_name"])
        if "due_date" in credit:
            account.due_date = coerce_due_date(credit["due_date"])
        return

    if account is not None:
        if to_decimal(account.amount_paid) > 0:
            raise ValidationError(
                "Cannot change the payment method of a credit sale with recorded payments",
                details={"sale_id": sale.id, "amount_paid": str(account.amount_paid)},
            )
        sale.credit_account = None


def edit_sale(ctx: TenantContext, sale_id: int, patch: dict, credit: dict | None = None) -> Sale:
    """
    Edit quantity, price, method, product, date or description.

    Stock is re-applied by delta (same product) or restore + decrement
    (different product). A credit sale's amount_owed follows the new total.
    """
    credit = credit or {}
    with atomic("edit sale"):
        sale = get_sale(ctx, sale_id)
        old_product_id = sale.product_id
        old_qty = sale.quantity

        new_product_id = patch.get("product_id", old_product_id)
        if new_product_id != old_product_id:
            get_owned(ctx, Product, new_product_id, label="Product")

        for k, v in patch.items():
            if k in SALE_MUTABLE_FIELDS:
                setattr(sale, k, v)
        apply_pricing(sale)
        db.session.flush()

        on_sale_updated(ctx, old_product_id, sale.product_id, old_qty, sale.quantity)

        sale = get_sale(ctx, sale_id)
        _sync_credit_account(ctx, sale, credit)
        db.session.flush()

    sale = get_sale(ctx, sale_id)
    logger.info(
        "Sale edited id=%s fields=%s business_id=%s",
        sale_id, ", ".join(sorted(patch.keys())), ctx.business_id,
    )
    return sale


def delete_sale(ctx: TenantContext, sale_id: int) -> None:
    """Admin only. Restores the sale's quantity to its product."""
    require_admin(ctx, "delete sales")
    with atomic("delete sale"):
        sale = get_sale(ctx, sale_id)
        product_id, qty = sale.product_id, sale.quantity
        on_sale_deleted(ctx, product_id, qty)
        db.session.delete(get_sale(ctx, sale_id))

    logger.info(
        "Sale deleted id=%s restored qty=%s to product_id=%s business_id=%s",
        sale_id, qty, product_id, ctx.business_id,
    )
