from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"


class InstallmentPayment(db.Model):
    """
    One scheduled month of an installment contract.

    AMOUNTS (cents):
    - amount_due_cents: remaining balance for the month; starts at the
      contract's monthly payment and only ever decreases toward 0
    - amount_paid_cents: cumulative amount credited to the month

    STATUS:
    - pending: untouched
    - partial: amount_paid_cents > 0 and amount_due_cents > 0
    - paid: amount_due_cents == 0

    Created in bulk at approval; never deleted.
    """
    __tablename__ = "installment_payments"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "month_number", name="uq_installment_payments_sale_month"),
        db.CheckConstraint("amount_due_cents >= 0", name="ck_installment_payments_due_non_negative"),
        db.Index("ix_installment_payments_due", "due_date", "amount_due_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    month_number = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)

    amount_due_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    paid_date = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InstallmentPayment id={self.id} sale_id={self.sale_id} month={self.month_number} "
            f"due={self.amount_due_cents} paid={self.amount_paid_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "month_number": self.month_number,
            "due_date": to_iso_date(self.due_date),
            "amount_due_cents": self.amount_due_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "status": self.status,
            "paid_date": to_iso_date(self.paid_date),
            "version_id": self.version_id,
        }


class InstallmentTransaction(db.Model):
    """
    Immutable ledger row for one application of money to one scheduled month.

    An overpayment that cascades across months writes one row per month
    touched.
    """
    __tablename__ = "installment_transactions"
    __table_args__ = (
        db.Index("ix_installment_transactions_payment_date", "payment_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("installment_payments.id"), nullable=False, index=True)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    worker_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment = db.relationship("InstallmentPayment", backref=db.backref("transactions", lazy=True))
    worker = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "amount_paid_cents": self.amount_paid_cents,
            "worker_id": self.worker_id,
            "worker_name": self.worker.username if self.worker else None,
            "payment_date": to_utc_z(self.payment_date),
        }
