from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer of a company.

    branch_id records the branch that registered the customer; customers
    can buy from any branch of their company.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_company_active", "company_id", "is_active"),
        db.Index("ix_customers_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default="individual")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("customers", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "customer_type": self.customer_type,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
