"""
Multi-Tenant Service: Tenant Context and Scoping Helpers

Every service call receives an explicit TenantContext built from the
session (see decorators.require_auth). Nothing in the service layer reads
tenant identity from ambient request state.

SECURITY INVARIANTS:
1. Every query touching tenant-owned data filters by ctx.business_id
2. A row owned by another business is reported as NotFound, never as
   "exists elsewhere"
3. Cross-tenant access attempts are logged at WARNING
4. Destructive operations are gated to the admin role

USAGE:
    from dukapos.services.tenant_service import TenantContext, get_owned

    ctx = TenantContext(business_id=1, role="admin", user_id=7)
    product = get_owned(ctx, Product, product_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import AccessDenied, NotFound
from ..extensions import db
from ..models import Business
from ..models.auth import ROLE_ADMIN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    """Identity of the caller: which business, which role, which user."""
    business_id: int
    role: str
    user_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def scoped_query(model, ctx: TenantContext):
    """
    Base query for a tenant-owned model, filtered to ctx.business_id.

    Usage:
        products = scoped_query(Product, ctx).order_by(Product.name).all()
    """
    return db.session.query(model).filter(model.business_id == ctx.business_id)


def get_owned(ctx: TenantContext, model, row_id: int, *, label: str | None = None):
    """
    Load a row by id and verify it belongs to ctx.business_id.

    Raises NotFound if the row is missing or owned by another business.
    """
    label = label or model.__name__
    row = db.session.get(model, row_id)
    if row is None:
        raise NotFound(f"{label} not found", details={"id": row_id})

    if row.business_id != ctx.business_id:
        _log_cross_tenant_attempt(
            f"{label} {row_id} belongs to business {row.business_id}",
            ctx,
        )
        raise NotFound(f"{label} not found", details={"id": row_id})

    return row


def require_admin(ctx: TenantContext, action: str) -> None:
    """Raise AccessDenied unless the caller is an admin."""
    if not ctx.is_admin:
        logger.warning(
            "Denied %s for user_id=%s role=%s business_id=%s",
            action, ctx.user_id, ctx.role, ctx.business_id,
        )
        raise AccessDenied(f"Admin role required to {action}")


def get_business(ctx: TenantContext) -> Business:
    business = db.session.get(Business, ctx.business_id)
    if business is None or not business.is_active:
        raise NotFound("Business not found")
    return business


def business_timezone(ctx: TenantContext) -> str:
    return get_business(ctx).timezone or "UTC"


def _log_cross_tenant_attempt(reason: str, ctx: TenantContext) -> None:
    logger.warning(
        "CROSS_TENANT_ACCESS_DENIED business_id=%s user_id=%s: %s",
        ctx.business_id, ctx.user_id, reason,
    )
