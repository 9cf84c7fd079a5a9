# Overview: Flask API routes for sales returns; parses input and returns JSON responses.

"""
Sales return routes.

A return starts pending, is approved, and restocks its lines when it
is completed. Cancelling never moves stock.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import return_service
from ..validation import json_payload, parse_optional_int, parse_pagination

returns_bp = Blueprint("returns", __name__, url_prefix="/api/sales-returns")


@returns_bp.get("")
@require_auth
def list_returns_route():
    try:
        page, per_page = parse_pagination(request.args)
        result = return_service.list_returns(
            g.scope,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
            sale_id=parse_optional_int(request.args.get("sale_id"), "sale_id"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/sale/<int:sale_id>/returnable-items")
@require_auth
def returnable_items_route(sale_id: int):
    """Per sale line: sold, already returned (non-cancelled returns), still returnable."""
    try:
        return jsonify(return_service.get_returnable_items(g.scope, sale_id)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load returnable items")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("")
@require_auth
def create_return_route():
    """Body: sale_id, items [{sale_item_id, quantity}], reason, notes."""
    try:
        data = json_payload(request)
        sales_return = return_service.create_return(
            g.scope,
            g.current_user.id,
            data.get("sale_id"),
            data.get("items"),
            reason=data.get("reason"),
            notes=data.get("notes"),
            company_id=data.get("company_id"),
        )
        return jsonify(sales_return.to_dict(include_items=True)), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sales return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
@require_auth
def get_return_route(return_id: int):
    try:
        sales_return = return_service.get_return(g.scope, return_id)
        return jsonify(sales_return.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@returns_bp.patch("/<int:return_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_return_status_route(return_id: int):
    try:
        data = json_payload(request)
        sales_return = return_service.transition_return(g.scope, return_id, data.get("status"))
        return jsonify(sales_return.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sales return status")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.delete("/<int:return_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_return_route(return_id: int):
    try:
        return_service.delete_return(g.scope, return_id)
        return jsonify({"message": "Sales return deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sales return")
        return jsonify({"error": "Internal server error"}), 500
