# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/erp/routes/products.py
"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's company.
Creating a product also creates its inventory row; the opening stock,
minimum level and location can be passed alongside the product fields.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..models import Product
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_money,
    json_payload,
    parse_pagination,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "category",
        "unit",
        "cost_price_cents",
        "selling_price_cents",
        "initial_quantity",
        "min_stock_level",
        "location",
        "company_id",
    },
    required_on_create={"sku", "name"},
)

INVENTORY_FIELDS = ("initial_quantity", "min_stock_level", "location", "company_id")

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with their inventory snapshot.

    Query params:
    - search: matches name, sku or description
    - category: exact category
    - page / per_page: pagination (per_page max 100)
    """
    try:
        page, per_page = parse_pagination(request.args)
        result = products_service.list_products(
            g.scope,
            search=request.args.get("search") or None,
            category=request.args.get("category") or None,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/categories")
@require_auth
def list_categories():
    return jsonify({"items": products_service.list_categories(g.scope)}), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a product (and its inventory row). Duplicate SKU -> 409."""
    try:
        payload = json_payload(request)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_money(patch, "cost_price_cents", "selling_price_cents")
        extras = {k: patch.pop(k) for k in INVENTORY_FIELDS if k in patch}

        initial_quantity = extras.get("initial_quantity")
        min_stock_level = extras.get("min_stock_level")
        product = products_service.create_product(
            g.scope,
            patch,
            initial_quantity=coerce_int(initial_quantity, "initial_quantity") if initial_quantity is not None else 0,
            min_stock_level=coerce_int(min_stock_level, "min_stock_level") if min_stock_level is not None else None,
            location=extras.get("location"),
            company_id=extras.get("company_id"),
        )
        return jsonify(product.to_dict(include_inventory=True)), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.scope, product_id)
        return jsonify(product.to_dict(include_inventory=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Update product fields. Stock is changed through /api/inventory."""
    try:
        payload = json_payload(request)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_money(patch, "cost_price_cents", "selling_price_cents")
        for key in INVENTORY_FIELDS:
            patch.pop(key, None)

        product = products_service.update_product(g.scope, product_id, patch)
        return jsonify(product.to_dict(include_inventory=True)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_product_route(product_id: int):
    """Delete a product; refused with 409 while orders reference it."""
    try:
        products_service.delete_product(g.scope, product_id)
        return jsonify({"message": "Product deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
