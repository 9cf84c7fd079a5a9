# Overview: Flask API routes for reports and CSV exports; parses input and returns JSON or CSV responses.

from flask import Blueprint, Response, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import ERPError
from ..services import reporting_service
from ..time_utils import utcnow
from ..validation import parse_optional_int

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _filters(party_field: str) -> dict:
    return {
        "start": request.args.get("start_date") or None,
        "end": request.args.get("end_date") or None,
        party_field: parse_optional_int(request.args.get(party_field), party_field),
        "status": request.args.get("status") or None,
    }


def _csv_response(body: str, prefix: str) -> Response:
    filename = f"{prefix}_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive), customer_id, status."""
    try:
        return jsonify(reporting_service.sales_report(g.scope, **_filters("customer_id"))), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/sales/export")
@require_auth
def export_sales_route():
    try:
        body = reporting_service.export_sales_csv(g.scope, **_filters("customer_id"))
        return _csv_response(body, "sales_report")
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/purchases")
@require_auth
def purchases_report_route():
    try:
        return jsonify(reporting_service.purchases_report(g.scope, **_filters("supplier_id"))), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build purchases report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/purchases/export")
@require_auth
def export_purchases_route():
    try:
        body = reporting_service.export_purchases_csv(g.scope, **_filters("supplier_id"))
        return _csv_response(body, "purchases_report")
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export purchases report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard(g.scope)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500
