from __future__ import annotations

from ..extensions import db
from printshop.pricing import money_str
from printshop.time_utils import to_utc_z, to_iso_date


class Payment(db.Model):
    """
    Money received against an invoice.

    Only payments with status="completed" and verification_status="verified"
    count towards the invoice's paid total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "payment_reference", name="uq_payments_branch_reference"),
        db.Index("ix_payments_invoice_status", "invoice_id", "status"),
        db.Index("ix_payments_branch_verification", "branch_id", "verification_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    received_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    payment_reference = db.Column(db.String(64), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    bank_name = db.Column(db.String(128), nullable=True)
    transaction_id = db.Column(db.String(128), nullable=True)
    cheque_number = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    verification_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    notes = db.Column(db.Text, nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "received_by": self.received_by,
            "payment_reference": self.payment_reference,
            "amount": money_str(self.amount),
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "bank_name": self.bank_name,
            "transaction_id": self.transaction_id,
            "cheque_number": self.cheque_number,
            "status": self.status,
            "verification_status": self.verification_status,
            "notes": self.notes,
            "verified_at": to_utc_z(self.verified_at) if self.verified_at else None,
            "verified_by": self.verified_by,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentVerification(db.Model):
    """
    Customer claim that a bank payment was made against an invoice.

    Staff verify the claim against the bank statement. Verifying a claim
    without a linked payment creates the payment.
    """
    __tablename__ = "payment_verifications"
    __table_args__ = (
        db.Index("ix_payment_verifications_status", "verification_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)

    verification_method = db.Column(db.String(16), nullable=False, default="manual")
    bank_reference = db.Column(db.String(128), nullable=True)
    bank_name = db.Column(db.String(128), nullable=True)
    verification_notes = db.Column(db.Text, nullable=True)

    claimed_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_claimed_date = db.Column(db.Date, nullable=False)

    verification_status = db.Column(db.String(16), nullable=False, default="pending")
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payment_verifications", lazy=True))
    payment = db.relationship("Payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "customer_id": self.customer_id,
            "payment_id": self.payment_id,
            "verification_method": self.verification_method,
            "bank_reference": self.bank_reference,
            "bank_name": self.bank_name,
            "verification_notes": self.verification_notes,
            "claimed_amount": money_str(self.claimed_amount),
            "payment_claimed_date": to_iso_date(self.payment_claimed_date),
            "verification_status": self.verification_status,
            "verified_by": self.verified_by,
            "verified_at": to_utc_z(self.verified_at) if self.verified_at else None,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
        }
