from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

COMPANY_STATUS_ACTIVE = "active"
COMPANY_STATUS_INACTIVE = "inactive"
COMPANY_STATUSES = (COMPANY_STATUS_ACTIVE, COMPANY_STATUS_INACTIVE)


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    All users (except superadmins), customers, products, inventory and
    documents belong to exactly one company. No data may cross company
    boundaries.

    Companies are never hard-deleted while they own data; they are
    deactivated instead, which blocks their users' logins.
    """
    __tablename__ = "companies"
    __table_args__ = (
        db.Index("ix_companies_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=COMPANY_STATUS_ACTIVE)

    # Reference to an externally stored logo (URL or path)
    logo = db.Column(db.String(500), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_active(self) -> bool:
        return self.status == COMPANY_STATUS_ACTIVE

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "status": self.status,
            "logo": self.logo,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
