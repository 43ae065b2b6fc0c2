# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/dukapos/routes/products.py
"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's business
(g.tenant, set by @require_auth).

SECURITY: All routes require authentication; delete requires admin.
"""
from flask import Blueprint, request, g, jsonify, current_app

from ..errors import PosError, ValidationError
from ..models import Product
from ..services import products_service
from ..services import stock_service
from ..validation import PRODUCT_POLICY, validate_payload, enforce_rules_product
from ..decorators import require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - matches name or description
    """
    try:
        products = products_service.list_products(g.tenant, search=request.args.get("search"))
        return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(g.tenant, patch)
        return jsonify(product.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(g.tenant, product_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(g.tenant, product_id, patch)
        return jsonify(product.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Admin only; removes the product's sales and their credit accounts too."""
    try:
        products_service.delete_product(g.tenant, product_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/stock")
@require_auth
def add_stock_route(product_id: int):
    """
    Restock a product.

    Request body: {"quantity": 5}
    """
    payload = request.get_json(silent=True) or {}
    try:
        qty = payload.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise ValidationError("quantity must be an integer", details={"field": "quantity"})
        product = stock_service.add_stock(g.tenant, product_id, qty)
        return jsonify(product.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return jsonify({"error": "Internal server error"}), 500
