# Overview: Flask API routes for customers and suppliers; parses input and returns JSON responses.

"""
Customer / supplier routes.

A Customer row is a trading party; its ``type`` (customer, supplier, both)
decides whether it can appear on sales, purchases or both.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..models import Customer
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..models.customers import CUSTOMER_TYPES
from ..services import customer_service
from ..validation import ModelValidationPolicy, enforce_choice, json_payload, parse_pagination, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "city", "country", "type", "company_id"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _patch(partial: bool) -> tuple[dict, object]:
    payload = json_payload(request)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    enforce_choice(patch, "type", CUSTOMER_TYPES)
    company_id = patch.pop("company_id", None)
    return patch, company_id


@customers_bp.get("")
@require_auth
def list_customers_route():
    """
    Query params: search (name / email / phone / city), type, page, per_page.
    """
    try:
        page, per_page = parse_pagination(request.args)
        result = customer_service.list_customers(
            g.scope,
            search=request.args.get("search") or None,
            type=request.args.get("type") or None,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("")
@require_auth
def create_customer_route():
    try:
        patch, company_id = _patch(partial=False)
        customer = customer_service.create_customer(g.scope, patch, company_id=company_id)
        return jsonify(customer.to_dict()), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(g.scope, customer_id).to_dict()), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        patch, _ = _patch(partial=True)
        customer = customer_service.update_customer(g.scope, customer_id, patch)
        return jsonify(customer.to_dict()), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(g.scope, customer_id)
        return jsonify({"message": "Customer deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500
