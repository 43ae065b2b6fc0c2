# Overview: Flask API routes for credit accounts; parses input and returns JSON responses.

# backend/dukapos/routes/credits.py
"""
Credit account routes.

Accounts are opened by recording a credit sale (see routes/sales.py);
these routes list, correct, pay down and delete them.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PosError
from ..services import credit_service
from ..decorators import require_auth

credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.get("")
@require_auth
def list_credits_route():
    """
    Query params:
    - search: customer name substring (case-insensitive)
    - status: unpaid | partially_paid | paid
    """
    try:
        accounts = credit_service.list_accounts(
            g.tenant,
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
        return jsonify({"items": [a.to_dict() for a in accounts], "count": len(accounts)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list credit accounts")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.get("/summary")
@require_auth
def credit_summary_route():
    try:
        return jsonify(credit_service.credit_summary(g.tenant)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build credit summary")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.get("/<int:account_id>")
@require_auth
def get_credit_route(account_id: int):
    try:
        return jsonify(credit_service.get_account(g.tenant, account_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load credit account")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.patch("/<int:account_id>")
@require_auth
def edit_credit_route(account_id: int):
    """
    Correct customer_name, amount_owed, due_date.

    "status" is an admin-only manual override; without it the status is
    re-derived from owed/paid.
    """
    data = request.get_json(silent=True) or {}
    fields = {k: data[k] for k in credit_service.CREDIT_EDITABLE_FIELDS if k in data}
    try:
        account = credit_service.edit_account(g.tenant, account_id, fields)
        return jsonify(account.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit credit account")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.delete("/<int:account_id>")
@require_auth
def delete_credit_route(account_id: int):
    """Admin only; the sale and stock are left as they are."""
    try:
        credit_service.delete_account(g.tenant, account_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete credit account")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.post("/<int:account_id>/payments")
@require_auth
def record_payment_route(account_id: int):
    """
    Request body: {"amount": "16.00"}

    400 invalid_payment_amount when amount <= 0 or above the outstanding
    balance; 503 storage_error when the balance changed concurrently.
    """
    data = request.get_json(silent=True) or {}
    try:
        account = credit_service.record_payment(g.tenant, account_id, data.get("amount"))
        return jsonify(account.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
