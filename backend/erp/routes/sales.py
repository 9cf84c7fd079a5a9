# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

"""
Sales order routes.

Stock is deducted when the order is created; cancelling or deleting a
non-delivered order puts it back.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import sales_service
from ..validation import json_payload, parse_optional_int, parse_pagination

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: status, search (order number / customer), customer_id, page, per_page."""
    try:
        page, per_page = parse_pagination(request.args)
        result = sales_service.list_sales(
            g.scope,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
            customer_id=parse_optional_int(request.args.get("customer_id"), "customer_id"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Body: customer_id, items [{product_id, quantity, unit_price_cents?}],
    tax_cents, notes. Any short line -> 400 with every short product listed
    in ``details``; nothing is saved.
    """
    try:
        data = json_payload(request)
        sale = sales_service.create_sale(
            g.scope,
            g.current_user.id,
            data.get("customer_id"),
            data.get("items"),
            tax_cents=data.get("tax_cents", 0),
            notes=data.get("notes"),
            company_id=data.get("company_id"),
        )
        return jsonify(sale.to_dict(include_items=True)), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(g.scope, sale_id).to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """Only notes and tax_cents, and only while the sale is pending."""
    try:
        data = json_payload(request)
        changes = {k: data[k] for k in ("notes", "tax_cents") if k in data}
        sale = sales_service.update_sale(g.scope, sale_id, **changes)
        return jsonify(sale.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>/status")
@require_auth
def update_sale_status_route(sale_id: int):
    try:
        data = json_payload(request)
        sale = sales_service.transition_sale(g.scope, sale_id, data.get("status"))
        return jsonify(sale.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_sale_route(sale_id: int):
    try:
        sales_service.delete_sale(g.scope, sale_id)
        return jsonify({"message": "Sale deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
