# Overview: Flask API routes for company (tenant) administration; parses input and returns JSON responses.

"""
Company management routes.

SECURITY: Every route is superadmin-only. Companies are deactivated rather
than deleted once they own data.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_superadmin
from ..errors import ERPError
from ..models import Company
from ..models.tenancy import COMPANY_STATUSES
from ..services import company_service
from ..validation import ModelValidationPolicy, enforce_choice, json_payload, parse_pagination, validate_payload

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "status", "logo", "admin_user"},
    required_on_create={"name"},
)

companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


@companies_bp.get("")
@require_auth
@require_superadmin
def list_companies_route():
    """
    Query params: search (name / email), status, page, per_page.
    """
    try:
        page, per_page = parse_pagination(request.args)
        result = company_service.list_companies(
            search=request.args.get("search") or None,
            status=request.args.get("status") or None,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list companies")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.post("")
@require_auth
@require_superadmin
def create_company_route():
    """
    Create a company, optionally with an initial admin user:

        {"name": "...", "admin_user": {"name": "...", "email": "...", "password": "..."}}
    """
    try:
        payload = json_payload(request)
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=False)
        enforce_choice(patch, "status", COMPANY_STATUSES)
        admin_user = patch.pop("admin_user", None)

        company = company_service.create_company(patch, admin_user=admin_user)

        body = company.to_dict()
        body["users"] = [u.to_dict() for u in company_service.list_company_users(company.id)]
        return jsonify(body), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create company")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.get("/<int:company_id>")
@require_auth
@require_superadmin
def get_company_route(company_id: int):
    try:
        company = company_service.get_company(company_id)
        body = company.to_dict()
        body["users"] = [u.to_dict() for u in company_service.list_company_users(company.id)]
        return jsonify(body), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@companies_bp.put("/<int:company_id>")
@require_auth
@require_superadmin
def update_company_route(company_id: int):
    try:
        payload = json_payload(request)
        payload.pop("admin_user", None)
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=True)
        enforce_choice(patch, "status", COMPANY_STATUSES)

        company = company_service.update_company(company_id, patch)
        return jsonify(company.to_dict()), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update company")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.delete("/<int:company_id>")
@require_auth
@require_superadmin
def delete_company_route(company_id: int):
    try:
        company_service.delete_company(company_id)
        return jsonify({"message": "Company deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete company")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.get("/<int:company_id>/users")
@require_auth
@require_superadmin
def company_users_route(company_id: int):
    try:
        users = company_service.list_company_users(company_id)
        return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@companies_bp.get("/<int:company_id>/stats")
@require_auth
@require_superadmin
def company_stats_route(company_id: int):
    try:
        return jsonify(company_service.company_stats(company_id)), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
