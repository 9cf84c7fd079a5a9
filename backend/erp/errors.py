# Overview: Domain exception taxonomy shared by services and routes.

"""
Domain errors.

Every business-rule violation raised by a service is one of these. Each
carries an HTTP status code and a machine-readable ``kind`` so the route
layer can serialize it without knowing which service raised it.

    NotFoundError            404  referenced entity absent or outside the tenant
    ValidationError          400  malformed input or bounded-quantity violation
    InvalidTransitionError   400  status change not allowed from current state
    InvalidStateError        400  operation requires a specific current status
    InsufficientStockError   400  would drive inventory below zero
    ConflictError            409  uniqueness / referential conflict
"""

from __future__ import annotations


class ERPError(Exception):
    """Base class for domain errors."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.details is not None:
            body["details"] = self.details
        return body


class NotFoundError(ERPError):
    status_code = 404
    kind = "not_found"


class TenantAccessError(NotFoundError):
    """Raised when cross-tenant access is attempted. Surfaces as a 404."""
    kind = "not_found"


class ValidationError(ERPError, ValueError):
    """400-level input problem."""
    status_code = 400
    kind = "validation_error"


class InvalidTransitionError(ERPError):
    status_code = 400
    kind = "invalid_transition"


class InvalidStateError(ERPError):
    status_code = 400
    kind = "invalid_state"


class InsufficientStockError(ValidationError):
    """Stock shortfall; details lists every short line."""
    status_code = 400
    kind = "insufficient_stock"


class ConflictError(ERPError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
    kind = "conflict"


class AuthError(ERPError):
    status_code = 401
    kind = "unauthorized"


class PermissionDeniedError(ERPError):
    status_code = 403
    kind = "forbidden"
