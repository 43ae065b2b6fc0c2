# backend/dukapos/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are scoped to ctx.business_id.
- list_products filters by business
- update_product and delete_product verify ownership (NotFound otherwise)
- delete_product is admin only and cascades to the product's sales

Stock changes after creation go through stock_service; this module never
writes stock_quantity directly on an existing row.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product
from .concurrency import atomic
from .stock_service import set_stock
from .tenant_service import TenantContext, get_owned, require_admin, scoped_query

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "description", "size", "buying_price"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(ctx: TenantContext, search: str | None = None) -> list[Product]:
    """Tenant-scoped listing ordered by name; optional name/description search."""
    query = scoped_query(Product, ctx)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(term), Product.description.ilike(term)))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(ctx: TenantContext, product_id: int) -> Product:
    return get_owned(ctx, Product, product_id, label="Product")


def create_product(ctx: TenantContext, patch: dict) -> Product:
    """Create a product from a validated patch (see validation.PRODUCT_POLICY)."""
    with atomic("create product"):
        p = Product(business_id=ctx.business_id, stock_quantity=patch.get("stock_quantity") or 0)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

    logger.info(
        "Product created id=%s name=%r stock=%s business_id=%s",
        p.id, p.name, p.stock_quantity, ctx.business_id,
    )
    return p


def update_product(ctx: TenantContext, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    stock_quantity, if present, is a direct correction applied through
    stock_service.set_stock in the same transaction.
    """
    with atomic("update product"):
        p = get_product(ctx, product_id)
        apply_product_patch(p, patch)
        db.session.flush()
        if patch.get("stock_quantity") is not None:
            set_stock(ctx, p.id, patch["stock_quantity"])
        p = get_product(ctx, product_id)

    logger.info(
        "Product updated id=%s fields=%s business_id=%s",
        product_id, ", ".join(sorted(patch.keys())), ctx.business_id,
    )
    return p


def delete_product(ctx: TenantContext, product_id: int) -> None:
    """Admin only. Sales of the product (and their credit accounts) are removed with it."""
    require_admin(ctx, "delete products")
    with atomic("delete product"):
        p = get_product(ctx, product_id)
        db.session.delete(p)

    logger.info("Product deleted id=%s business_id=%s", product_id, ctx.business_id)
