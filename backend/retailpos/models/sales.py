from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale record.

    - cash: one row per POS cart line; lines of one checkout share a
      document_number.
    - installment: one row per contract application; the contract and its
      payment schedule reference this row's id.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_document_number", "document_number"),
        db.Index("ix_sales_type_created", "sale_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "S-000123", "I-000045")
    document_number = db.Column(db.String(64), nullable=False)

    # Worker who rang up the sale / submitted the application
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    # Walk-in cash customers and installment sales carry no customer here
    customer_id = db.Column(db.Integer, nullable=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    sale_type = db.Column(db.String(16), nullable=False)  # cash, installment
    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "item_id": self.item_id,
            "sale_type": self.sale_type,
            "quantity": self.quantity,
            "total_price_cents": self.total_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
