# Overview: Flask API routes for dashboard metrics.

# backend/dukapos/routes/dashboard.py
from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PosError
from ..services import metrics_service
from ..validation import parse_date_param
from ..decorators import require_auth

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """
    Dashboard metrics for a date range in the business's timezone.

    Query params:
    - from: YYYY-MM-DD (default: today)
    - to: YYYY-MM-DD (default: today)
    """
    try:
        metrics = metrics_service.dashboard_metrics(
            g.tenant,
            parse_date_param("from", request.args.get("from")),
            parse_date_param("to", request.args.get("to")),
            rank_limit=current_app.config.get("DASHBOARD_RANK_LIMIT", metrics_service.DEFAULT_RANK_LIMIT),
        )
        return jsonify(metrics.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute dashboard metrics")
        return jsonify({"error": "Internal server error"}), 500
