# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory routes.

Stock normally moves through orders (sales deduct, purchases receive,
completed returns restock). These endpoints cover manual adjustments and
direct edits of location / minimum level.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError, ValidationError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import inventory_service
from ..validation import coerce_int, json_payload, parse_optional_int, parse_pagination

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    try:
        page, per_page = parse_pagination(request.args)
        result = inventory_service.list_inventory(
            g.scope,
            page=page,
            per_page=per_page,
            search=request.args.get("search") or None,
            low_stock=request.args.get("low_stock", "").lower() in ("1", "true", "yes"),
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    """Rows with quantity <= min_stock_level, lowest first."""
    try:
        rows = inventory_service.get_low_stock(g.scope)
        return jsonify({"items": [r.to_dict(include_product=True) for r in rows], "count": len(rows)}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/<int:product_id>")
@require_auth
def get_inventory_route(product_id: int):
    try:
        inventory = inventory_service.get_inventory(g.scope, product_id)
        return jsonify(inventory.to_dict(include_product=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_inventory_route(product_id: int):
    """Body: quantity, location, min_stock_level (all optional)."""
    try:
        data = json_payload(request)
        location = data.get("location")
        if location is not None and not isinstance(location, str):
            raise ValidationError("location must be a string")
        inventory = inventory_service.update_inventory(
            g.scope,
            product_id,
            quantity=parse_optional_int(data.get("quantity"), "quantity"),
            location=location,
            min_stock_level=parse_optional_int(data.get("min_stock_level"), "min_stock_level"),
        )
        return jsonify(inventory.to_dict(include_product=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_inventory_route():
    """
    Body: product_id, quantity, type (add / remove / set), reason.

    remove beyond the available quantity -> 400 insufficient_stock.
    """
    try:
        data = json_payload(request)
        if data.get("product_id") is None:
            raise ValidationError("product_id is required")
        if data.get("quantity") is None:
            raise ValidationError("quantity is required")

        inventory = inventory_service.adjust_inventory(
            g.scope,
            coerce_int(data["product_id"], "product_id"),
            coerce_int(data["quantity"], "quantity"),
            data.get("type"),
            reason=data.get("reason"),
        )
        return jsonify(inventory.to_dict(include_product=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500
