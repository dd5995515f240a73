from __future__ import annotations

from ..extensions import db
from printshop.pricing import money_str, weight_str
from printshop.time_utils import to_utc_z, to_iso_date


class Invoice(db.Model):
    """
    Customer invoice for print work.

    LIFECYCLE:
    - status: draft -> pending -> processing -> completed (or cancelled)
    - payment_status is derived from verified, completed payments:
      pending -> partially_paid -> paid (refunded is set explicitly)

    Totals are recomputed by invoice_service whenever items or the discount
    change; they are never accepted from clients.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        db.Index("ix_invoices_company_status", "company_id", "status"),
        db.Index("ix_invoices_company_payment_status", "company_id", "payment_status"),
        db.Index("ix_invoices_branch_date", "branch_id", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    invoice_number = db.Column(db.String(64), nullable=False, index=True)
    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_weight = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    weight_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    notes = db.Column(db.Text, nullable=True)
    terms_conditions = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "created_by": self.created_by,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "subtotal": money_str(self.subtotal),
            "total_weight": weight_str(self.total_weight),
            "weight_charge": money_str(self.weight_charge),
            "discount_amount": money_str(self.discount_amount),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "status": self.status,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "terms_conditions": self.terms_conditions,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """
    Invoice line. unit_weight is stored in kilograms.

    line_total = quantity * unit_price; line_weight = quantity * unit_weight.
    """
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    item_description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    unit_weight = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)
    line_weight = db.Column(db.Numeric(10, 3), nullable=False, default=0)

    specifications = db.Column(db.JSON, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "item_description": self.item_description,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "unit_weight": weight_str(self.unit_weight),
            "line_total": money_str(self.line_total),
            "line_weight": weight_str(self.line_weight),
            "specifications": self.specifications,
        }
