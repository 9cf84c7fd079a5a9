from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

CUSTOMER_TYPE_CUSTOMER = "customer"
CUSTOMER_TYPE_SUPPLIER = "supplier"
CUSTOMER_TYPE_BOTH = "both"
CUSTOMER_TYPES = (CUSTOMER_TYPE_CUSTOMER, CUSTOMER_TYPE_SUPPLIER, CUSTOMER_TYPE_BOTH)


class Customer(db.Model):
    """
    Trading party within a company.

    A single record may act as a sales customer, a purchase supplier, or
    both (type='both').
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    type = db.Column(db.String(16), nullable=False, default=CUSTOMER_TYPE_CUSTOMER)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("customers", lazy=True))

    @property
    def can_buy(self) -> bool:
        return self.type in (CUSTOMER_TYPE_CUSTOMER, CUSTOMER_TYPE_BOTH)

    @property
    def can_supply(self) -> bool:
        return self.type in (CUSTOMER_TYPE_SUPPLIER, CUSTOMER_TYPE_BOTH)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
