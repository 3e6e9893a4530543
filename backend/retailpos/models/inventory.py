from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Item(db.Model):
    """
    Catalog entry sold for cash at the POS or financed through an
    installment contract.

    RESERVATION MODEL:
    - quantity is the physical/notional stock count and never goes negative.
    - A pending installment contract reserves one unit WITHOUT decrementing
      quantity; available quantity = quantity - pending contracts on the item.
    - Cash sales decrement quantity directly.
    - Only a rejected contract touches quantity again (+1).

    Authoritative storage in cents (frontend may only format for display).
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        db.Index("ix_items_available_installment", "available", "installment"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    price_cash_cents = db.Column(db.Integer, nullable=False)
    price_installment_total_cents = db.Column(db.Integer, nullable=True)
    installment_months = db.Column(db.Integer, nullable=False, default=0)
    installment_per_month_cents = db.Column(db.Integer, nullable=True)

    available = db.Column(db.Boolean, nullable=False, default=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    installment = db.Column(db.Boolean, nullable=False, default=False)

    # Opaque attachment; never interpreted by the service layer
    item_image = db.Column(db.LargeBinary, nullable=True)

    date_added = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cash_cents": self.price_cash_cents,
            "price_installment_total_cents": self.price_installment_total_cents,
            "installment_months": self.installment_months,
            "installment_per_month_cents": self.installment_per_month_cents,
            "available": self.available,
            "quantity": self.quantity,
            "installment": self.installment,
            "has_image": self.item_image is not None,
            "date_added": to_utc_z(self.date_added),
            "version_id": self.version_id,
        }


class InventoryLog(db.Model):
    """
    Append-only inventory activity trail.

    change_type:
    - sale: cash sale (negative delta) or a zero-delta marker written when an
      installment contract is applied for, approved, or paid against
    - return: unit released back to stock by a contract rejection (+1)
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    worker_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    change_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_changed = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("inventory_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "worker_id": self.worker_id,
            "change_type": self.change_type,
            "quantity_changed": self.quantity_changed,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
