# Overview: Credit Account Manager; customer debt per credit sale and its payment status.

"""
Credit Account Manager

One CreditAccount per credit sale. Owed starts at the sale's total price,
paid starts at 0, and status is derived from the two:

    paid            amount_paid >= amount_owed
    partially_paid  0 < amount_paid < amount_owed
    unpaid          otherwise

PAYMENTS:
record_payment accepts 0 < amount <= outstanding. The write is a single
conditional UPDATE keyed on the previously read amount_paid, so two
concurrent payments cannot both land against a stale balance; the loser
gets a StorageError and nothing is written.

EDITS:
edit_account re-derives status from owed/paid. An explicit status in the
edit is an admin-only manual override and is logged at WARNING.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal

from ..errors import InvalidPaymentAmount, StorageError, ValidationError
from ..extensions import db
from ..models import CreditAccount, Sale
from ..models.sales import (
    CREDIT_PAID,
    CREDIT_PARTIALLY_PAID,
    CREDIT_STATUSES,
    CREDIT_UNPAID,
)
from dukapos.money import ZERO, quantize, to_decimal, to_money
from dukapos.time_utils import parse_iso_datetime, utcnow
from .concurrency import atomic, conditional_update
from .reconciliation_service import payment_ratio
from .tenant_service import TenantContext, get_owned, require_admin, scoped_query

logger = logging.getLogger(__name__)

CREDIT_EDITABLE_FIELDS = {"customer_name", "amount_owed", "due_date", "status"}


def derive_status(amount_owed, amount_paid) -> str:
    owed = to_decimal(amount_owed)
    paid = to_decimal(amount_paid)
    if paid >= owed:
        return CREDIT_PAID
    if paid > 0:
        return CREDIT_PARTIALLY_PAID
    return CREDIT_UNPAID


def payment_percentage(amount_owed, amount_paid) -> Decimal:
    return quantize(payment_ratio(amount_owed, amount_paid) * 100)


def coerce_due_date(value) -> datetime:
    """Accept a datetime, a date (midnight UTC) or an ISO-8601 string."""
    if value is None or value == "":
        raise ValidationError("due_date is required for credit sales", details={"field": "due_date"})
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("due_date must be an ISO-8601 date", details={"field": "due_date"})
    raise ValidationError("due_date must be an ISO-8601 date", details={"field": "due_date"})


def require_customer_name(value) -> str:
    name = (value or "").strip() if isinstance(value, str) else ""
    if not name:
        raise ValidationError(
            "customer_name is required for credit sales",
            details={"field": "customer_name"},
        )
    return name


def open_account(ctx: TenantContext, sale: Sale, customer_name, due_date) -> CreditAccount:
    """
    Create the credit account for a credit sale.

    Runs inside the caller's transaction (sales_service); does not commit.
    amount_owed = sale.total_price, amount_paid = 0, status = unpaid.
    """
    if sale.payment_method != "credit":
        raise ValidationError(
            "Credit accounts can only be opened for credit sales",
            details={"sale_id": sale.id, "payment_method": sale.payment_method},
        )
    name = require_customer_name(customer_name)
    due = coerce_due_date(due_date)

    owed = quantize(to_decimal(sale.total_price))
    account = CreditAccount(
        business_id=ctx.business_id,
        sale_id=sale.id,
        customer_name=name,
        amount_owed=owed,
        amount_paid=ZERO,
        due_date=due,
        status=CREDIT_UNPAID,
    )
    sale.credit_account = account
    db.session.add(account)
    db.session.flush()

    logger.info(
        "Credit account opened id=%s sale_id=%s owed=%s business_id=%s",
        account.id, sale.id, owed, ctx.business_id,
    )
    return account


def get_account(ctx: TenantContext, account_id: int) -> CreditAccount:
    return get_owned(ctx, CreditAccount, account_id, label="Credit account")


def record_payment(ctx: TenantContext, account_id: int, amount) -> CreditAccount:
    """
    Apply a payment of 0 < amount <= outstanding and re-derive status.

    Raises InvalidPaymentAmount for a non-positive or excess amount,
    StorageError if the balance changed underneath this request.
    """
    try:
        amount = to_decimal(amount)
    except ValueError:
        raise InvalidPaymentAmount("Payment amount must be a number", details={"amount": str(amount)})
    if amount != quantize(amount):
        raise InvalidPaymentAmount(
            "Payment amount cannot have more than two decimal places",
            details={"amount": str(amount)},
        )
    amount = quantize(amount)

    with atomic("record payment"):
        account = get_account(ctx, account_id)
        owed = to_decimal(account.amount_owed)
        previous_paid = to_decimal(account.amount_paid)
        outstanding = owed - previous_paid

        if amount <= 0:
            raise InvalidPaymentAmount(
                "Payment amount must be greater than zero",
                details={"amount": str(amount)},
            )
        if amount > outstanding:
            raise InvalidPaymentAmount(
                "Payment amount exceeds outstanding balance",
                details={"amount": str(amount), "outstanding": str(quantize(outstanding))},
            )

        new_paid = previous_paid + amount
        matched = conditional_update(
            CreditAccount,
            [
                CreditAccount.id == account.id,
                CreditAccount.business_id == ctx.business_id,
                CreditAccount.amount_paid == previous_paid,
                CreditAccount.amount_owed == owed,
            ],
            {
                "amount_paid": new_paid,
                "status": derive_status(owed, new_paid),
                "updated_at": utcnow(),
            },
        )
        if not matched:
            raise StorageError(
                "Credit account balance changed concurrently; retry the payment",
                details={"credit_account_id": account_id},
            )
        account = get_account(ctx, account_id)

    logger.info(
        "Payment recorded credit_account_id=%s amount=%s paid=%s/%s status=%s business_id=%s",
        account.id, amount, account.amount_paid, account.amount_owed, account.status, ctx.business_id,
    )
    return account


def apply_account_patch(account: CreditAccount, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CREDIT_EDITABLE_FIELDS or k == "status":
            continue
        setattr(account, k, v)


def edit_account(ctx: TenantContext, account_id: int, fields: dict) -> CreditAccount:
    """
    Correct customer_name, amount_owed, due_date and (admin only) status.

    Without an explicit status the status is re-derived from owed/paid.
    """
    patch: dict = {}
    if "customer_name" in fields:
        patch["customer_name"] = require_customer_name(fields["customer_name"])
    if "due_date" in fields:
        patch["due_date"] = coerce_due_date(fields["due_date"])
    if "amount_owed" in fields:
        try:
            patch["amount_owed"] = to_money(fields["amount_owed"])
        except ValueError:
            raise ValidationError("amount_owed must be a number", details={"field": "amount_owed"})
        if patch["amount_owed"] < 0:
            raise ValidationError("amount_owed must be >= 0", details={"field": "amount_owed"})

    override = fields.get("status")
    if override is not None:
        require_admin(ctx, "override credit status")
        if override not in CREDIT_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(CREDIT_STATUSES)}",
                details={"field": "status", "value": override},
            )

    with atomic("edit credit account"):
        account = get_account(ctx, account_id)
        if "amount_owed" in patch and patch["amount_owed"] < to_decimal(account.amount_paid):
            raise ValidationError(
                "amount_owed cannot be less than amount already paid",
                details={"amount_owed": str(patch["amount_owed"]), "amount_paid": str(account.amount_paid)},
            )

        apply_account_patch(account, patch)

        if override is not None:
            derived = derive_status(account.amount_owed, account.amount_paid)
            if override != derived:
                logger.warning(
                    "Manual credit status override credit_account_id=%s %s -> %s (derived %s) by user_id=%s",
                    account.id, account.status, override, derived, ctx.user_id,
                )
            account.status = override
        else:
            account.status = derive_status(account.amount_owed, account.amount_paid)

        db.session.flush()

    logger.info("Credit account edited id=%s status=%s business_id=%s", account.id, account.status, ctx.business_id)
    return account


def sync_owed_with_sale(account: CreditAccount, sale: Sale) -> None:
    """
    Keep amount_owed equal to an edited credit sale's total price.

    Runs inside the caller's transaction; does not commit.
    """
    owed = quantize(to_decimal(sale.total_price))
    paid = to_decimal(account.amount_paid)
    if paid > owed:
        raise ValidationError(
            "Sale total cannot drop below the amount already paid on credit",
            details={"total_price": str(owed), "amount_paid": str(quantize(paid))},
        )
    account.amount_owed = owed
    account.status = derive_status(owed, paid)


def delete_account(ctx: TenantContext, account_id: int) -> None:
    """Admin only. The underlying sale and stock are untouched."""
    require_admin(ctx, "delete credit accounts")
    with atomic("delete credit account"):
        account = get_account(ctx, account_id)
        db.session.delete(account)

    logger.info("Credit account deleted id=%s business_id=%s", account_id, ctx.business_id)


def list_accounts(ctx: TenantContext, search: str | None = None, status: str | None = None) -> list[CreditAccount]:
    """Newest first, optionally filtered by customer name substring and status."""
    query = scoped_query(CreditAccount, ctx)

    if search:
        query = query.filter(CreditAccount.customer_name.ilike(f"%{search.strip()}%"))

    if status:
        if status not in CREDIT_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(CREDIT_STATUSES)}",
                details={"field": "status", "value": status},
            )
        query = query.filter(CreditAccount.status == status)

    return query.order_by(CreditAccount.created_at.desc(), CreditAccount.id.desc()).all()


def credit_summary(ctx: TenantContext, now: datetime | None = None) -> dict:
    """Total outstanding, open (not paid) accounts and overdue accounts."""
    now = now or utcnow()
    accounts = scoped_query(CreditAccount, ctx).all()

    outstanding = ZERO
    open_count = 0
    overdue_count = 0
    for account in accounts:
        outstanding += to_decimal(account.amount_owed) - to_decimal(account.amount_paid)
        if account.status != CREDIT_PAID:
            open_count += 1
            if account.due_date < now:
                overdue_count += 1

    return {
        "total_outstanding": str(quantize(outstanding)),
        "open_count": open_count,
        "overdue_count": overdue_count,
        "account_count": len(accounts),
    }
