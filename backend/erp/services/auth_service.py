# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor from BCRYPT_ROUNDS). Email is
the login identifier and is unique across all companies.

Login is refused for inactive users and for users whose company has been
deactivated; superadmins have no company and are only checked for
is_active.
"""

import logging

import bcrypt
from flask import current_app

from ..errors import AuthError, PermissionDeniedError, ValidationError
from ..extensions import db
from ..models import User
from erp.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def validate_password_strength(password) -> None:
    """Raises ValidationError unless password is a string of at least 6 characters."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str) or "@" not in email.strip():
        raise ValidationError("A valid email is required")
    return email.strip().lower()


def authenticate(email: str, password: str) -> User:
    """
    Authenticate user with email and password.

    Raises:
        AuthError: unknown email, wrong password or inactive account
        PermissionDeniedError: the user's company is deactivated

    Updates last_login_at on success (caller commits with the new session).
    """
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.session.query(User).filter(User.email == email.strip().lower()).first()

    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise AuthError("Invalid email or password")

    if not user.is_active:
        raise AuthError("Account is deactivated")

    if not user.is_superadmin:
        company = user.company
        if company is None or not company.is_active:
            raise PermissionDeniedError("Company is inactive. Please contact support.")

    user.last_login_at = utcnow()
    return user
