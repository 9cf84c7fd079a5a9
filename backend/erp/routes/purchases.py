# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import purchase_service
from ..validation import json_payload, parse_optional_int, parse_pagination

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    try:
        page, per_page = parse_pagination(request.args)
        result = purchase_service.list_purchases(
            g.scope,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
            supplier_id=parse_optional_int(request.args.get("supplier_id"), "supplier_id"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Body: supplier_id, items [{product_id, quantity, unit_price_cents}],
    tax_cents, notes, expected_delivery (YYYY-MM-DD).
    """
    try:
        data = json_payload(request)
        purchase = purchase_service.create_purchase(
            g.scope,
            g.current_user.id,
            data.get("supplier_id"),
            data.get("items"),
            tax_cents=data.get("tax_cents", 0),
            notes=data.get("notes"),
            expected_delivery=data.get("expected_delivery"),
            company_id=data.get("company_id"),
        )
        return jsonify(purchase.to_dict(include_items=True)), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(g.scope, purchase_id)
        return jsonify(purchase.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.put("/<int:purchase_id>")
@require_auth
def update_purchase_route(purchase_id: int):
    try:
        data = json_payload(request)
        changes = {k: data[k] for k in ("notes", "tax_cents", "expected_delivery") if k in data}
        purchase = purchase_service.update_purchase(g.scope, purchase_id, **changes)
        return jsonify(purchase.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_purchase_status_route(purchase_id: int):
    try:
        data = json_payload(request)
        purchase = purchase_service.transition_purchase(g.scope, purchase_id, data.get("status"))
        return jsonify(purchase.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase status")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>/receive")
@require_auth
def receive_purchase_route(purchase_id: int):
    """
    Receive goods. Body (optional): items [{purchase_item_id | product_id, quantity}].
    Without items every outstanding quantity is received.
    """
    try:
        data = json_payload(request)
        purchase = purchase_service.receive_purchase(g.scope, purchase_id, data.get("items"))
        return jsonify(purchase.to_dict(include_items=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(g.scope, purchase_id)
        return jsonify({"message": "Purchase deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return jsonify({"error": "Internal server error"}), 500
