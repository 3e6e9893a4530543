from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


# Contract lifecycle
CONTRACT_PENDING = "pending"
CONTRACT_ACTIVE = "active"
CONTRACT_COMPLETED = "completed"
CONTRACT_REJECTED = "rejected"

CONTRACT_STATUSES = [
    CONTRACT_PENDING,
    CONTRACT_ACTIVE,
    CONTRACT_COMPLETED,
    CONTRACT_REJECTED,
]

# Approval audit record
APPROVAL_PENDING_REVIEW = "pending_review"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"


class ContractCustomer(db.Model):
    """
    Financed-purchase customer, keyed by national ID-card number.

    Created or updated when a contract is applied for; never deleted once a
    contract references it.
    """
    __tablename__ = "contract_customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    id_card_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    address = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    id_card_image = db.Column(db.LargeBinary, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "id_card_number": self.id_card_number,
            "address": self.address,
            "email": self.email,
            "has_id_card_image": self.id_card_image is not None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InstallmentContract(db.Model):
    """
    One customer's financed purchase of one item.

    STATE MACHINE:
    - pending -> active (approve) -> completed (last scheduled month settled)
    - pending -> rejected (terminal)

    While pending, the item's unit is reserved (counted against available
    quantity) without decrementing Item.quantity.
    """
    __tablename__ = "installment_contracts"
    __table_args__ = (
        db.Index("ix_contracts_item_status", "item_id", "status"),
        db.Index("ix_contracts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("contract_customers.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)

    total_price_cents = db.Column(db.Integer, nullable=False)
    down_payment_cents = db.Column(db.Integer, nullable=False, default=0)
    months = db.Column(db.Integer, nullable=False)
    monthly_payment_cents = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=CONTRACT_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale")
    customer = db.relationship("ContractCustomer", backref=db.backref("contracts", lazy=True))
    item = db.relationship("Item")
    worker = db.relationship("User", foreign_keys=[user_id])
    approval = db.relationship("ContractApproval", back_populates="contract", uselist=False)
    sponsors = db.relationship(
        "ContractSponsor",
        back_populates="contract",
        lazy=True,
        order_by="ContractSponsor.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InstallmentContract id={self.id} sale_id={self.sale_id} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "item_id": self.item_id,
            "total_price_cents": self.total_price_cents,
            "down_payment_cents": self.down_payment_cents,
            "months": self.months,
            "monthly_payment_cents": self.monthly_payment_cents,
            "start_date": to_iso_date(self.start_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class ContractApproval(db.Model):
    """
    One-to-one audit companion of a contract.

    Created in pending_review by the application and updated (never
    re-created) by approve/reject.
    """
    __tablename__ = "contract_approvals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("installment_contracts.id"),
        nullable=False,
        unique=True,
    )
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=APPROVAL_PENDING_REVIEW)
    reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    contract = db.relationship("InstallmentContract", back_populates="approval")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "approver_id": self.approver_id,
            "status": self.status,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class ContractSponsor(db.Model):
    """Co-signer attached to a contract at application time."""
    __tablename__ = "contract_sponsors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("installment_contracts.id"), nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    id_card_number = db.Column(db.String(64), nullable=False, index=True)
    relationship = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    id_card_image = db.Column(db.LargeBinary, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    contract = db.relationship("InstallmentContract", back_populates="sponsors")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "full_name": self.full_name,
            "phone": self.phone,
            "id_card_number": self.id_card_number,
            "relationship": self.relationship,
            "address": self.address,
            "has_id_card_image": self.id_card_image is not None,
            "created_at": to_utc_z(self.created_at),
        }
