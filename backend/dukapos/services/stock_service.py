# Overview: Stock Ledger; keeps Product.stock_quantity consistent with the sale lifecycle.

"""
Stock Ledger

Every change to Product.stock_quantity goes through one atomic conditional
UPDATE:

    UPDATE products
       SET stock_quantity = stock_quantity - :qty
     WHERE id = :id AND business_id = :b AND stock_quantity >= :qty

A zero row count means the guard failed; InsufficientStock is raised and
nothing is applied. The products CHECK (stock_quantity >= 0) constraint is
the storage-level backstop.

Sale hooks (called by sales_service inside its transaction; they never commit):
- on_sale_inserted: decrement by qty
- on_sale_updated: same product -> apply only the delta new_qty - old_qty;
  different products -> restore old, decrement new
- on_sale_deleted: restore qty
"""

from __future__ import annotations

import logging

from ..errors import InsufficientStock, NotFound, ValidationError
from ..models import Product
from .concurrency import atomic, conditional_update
from .tenant_service import TenantContext, get_owned

logger = logging.getLogger(__name__)


def _require_quantity(qty, *, minimum: int, field: str = "quantity") -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    if qty < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={"field": field, "value": qty})
    return qty


def _decrement(ctx: TenantContext, product_id: int, qty: int, *, available_offset: int = 0) -> None:
    if qty == 0:
        return

    matched = conditional_update(
        Product,
        [
            Product.id == product_id,
            Product.business_id == ctx.business_id,
            Product.stock_quantity >= qty,
        ],
        {"stock_quantity": Product.stock_quantity - qty},
    )
    if matched:
        return

    # Guard failed: distinguish a missing product from a short one.
    product = get_owned(ctx, Product, product_id, label="Product")
    raise InsufficientStock(
        f"Insufficient stock for {product.name}",
        details={
            "product_id": product.id,
            "requested_quantity": qty + available_offset,
            "available": product.stock_quantity + available_offset,
        },
    )


def _increment(ctx: TenantContext, product_id: int, qty: int) -> None:
    if qty == 0:
        return

    matched = conditional_update(
        Product,
        [Product.id == product_id, Product.business_id == ctx.business_id],
        {"stock_quantity": Product.stock_quantity + qty},
    )
    if not matched:
        # Raises NotFound (and logs) for a foreign or missing product.
        get_owned(ctx, Product, product_id, label="Product")
        raise NotFound("Product not found", details={"id": product_id})


def on_sale_inserted(ctx: TenantContext, product_id: int, qty: int) -> None:
    _require_quantity(qty, minimum=1)
    _decrement(ctx, product_id, qty)


def on_sale_updated(
    ctx: TenantContext,
    old_product_id: int,
    new_product_id: int,
    old_qty: int,
    new_qty: int,
) -> None:
    """
    Re-apply stock for an edited sale.

    On the same product the effective available stock is
    current + old_qty, so only the difference is checked and applied.
    On different products this is an independent delete + insert.
    """
    _require_quantity(new_qty, minimum=1)

    if old_product_id == new_product_id:
        delta = new_qty - old_qty
        if delta > 0:
            _decrement(ctx, new_product_id, delta, available_offset=old_qty)
        elif delta < 0:
            _increment(ctx, new_product_id, -delta)
        return

    _increment(ctx, old_product_id, old_qty)
    _decrement(ctx, new_product_id, new_qty)


def on_sale_deleted(ctx: TenantContext, product_id: int, qty: int) -> None:
    _increment(ctx, product_id, qty)


def add_stock(ctx: TenantContext, product_id: int, qty: int) -> Product:
    """Restock: add qty (>= 1) units to a product."""
    _require_quantity(qty, minimum=1)
    with atomic("add stock"):
        _increment(ctx, product_id, qty)
        product = get_owned(ctx, Product, product_id, label="Product")

    logger.info(
        "Stock added product_id=%s qty=%s new_quantity=%s business_id=%s",
        product.id, qty, product.stock_quantity, ctx.business_id,
    )
    return product


def set_stock(ctx: TenantContext, product_id: int, qty: int) -> None:
    """
    Direct stock correction (qty >= 0) from the product edit form.

    Runs inside the caller's transaction; does not commit.
    """
    _require_quantity(qty, minimum=0, field="stock_quantity")
    matched = conditional_update(
        Product,
        [Product.id == product_id, Product.business_id == ctx.business_id],
        {"stock_quantity": qty},
    )
    if not matched:
        get_owned(ctx, Product, product_id, label="Product")
        raise NotFound("Product not found", details={"id": product_id})

    logger.info(
        "Stock set product_id=%s quantity=%s business_id=%s",
        product_id, qty, ctx.business_id,
    )
