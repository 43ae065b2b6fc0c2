# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/dukapos/routes/sales.py
"""
Sales API routes.

A sale payload carries Sale columns plus, for credit sales, the
customer_name and due_date of the credit account opened with it.

POST /api/sales
{
    "product_id": 3,
    "quantity": 4,
    "selling_price": "8.00",
    "payment_method": "credit",          // cash | mpesa | bank | credit
    "customer_name": "Juma",             // credit only
    "due_date": "2025-09-30",            // credit only
    "sale_date": "2025-09-01T10:00:00Z", // optional, defaults to now
    "description": "..."                 // optional
}

total_price is always computed server-side; a client-supplied value is
rejected as a non-writable field.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PosError
from ..models import Sale
from ..services import sales_service
from ..validation import (
    SALE_POLICY,
    validate_payload,
    enforce_rules_sale,
    split_credit_fields,
    parse_date_param,
)
from ..decorators import require_auth

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - search: product name, description or credit customer name
    - from / to: YYYY-MM-DD in the business's timezone (inclusive)
    - payment_method: cash | mpesa | bank | credit
    """
    try:
        sales = sales_service.list_sales(
            g.tenant,
            search=request.args.get("search"),
            date_from=parse_date_param("from", request.args.get("from")),
            date_to=parse_date_param("to", request.args.get("to")),
            payment_method=request.args.get("payment_method"),
        )
        return jsonify({"items": [sales_service.serialize_sale(s) for s in sales], "count": len(sales)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_auth
def record_sale_route():
    payload, credit = split_credit_fields(request.get_json(silent=True))
    try:
        patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
        enforce_rules_sale(patch)
        sale = sales_service.record_sale(g.tenant, patch, credit)
        return jsonify(sales_service.serialize_sale(sale)), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    """Sale with its profit and actual/pending split."""
    try:
        sale = sales_service.get_sale(g.tenant, sale_id)
        return jsonify(sales_service.serialize_sale(sale)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>")
@require_auth
def edit_sale_route(sale_id: int):
    payload, credit = split_credit_fields(request.get_json(silent=True))
    try:
        patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=True)
        enforce_rules_sale(patch)
        sale = sales_service.edit_sale(g.tenant, sale_id, patch, credit)
        return jsonify(sales_service.serialize_sale(sale)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Admin only; restores stock and removes the credit account."""
    try:
        sales_service.delete_sale(g.tenant, sale_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
