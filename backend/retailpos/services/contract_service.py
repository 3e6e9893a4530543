# Overview: Service-layer operations for installment contracts; encapsulates the lifecycle state machine.

"""
Installment Contract Service

STATE MACHINE:
    pending --approve--> active --(last month settled)--> completed
    pending --reject---> rejected

DESIGN PRINCIPLES:
- apply / approve / reject each run as ONE atomic unit of work; partial
  application state is never observable.
- The availability check in apply happens after the item row is locked,
  inside the same transaction as the reservation it guards.
- approve / reject are guarded by the pending state: a second call fails
  with InvalidStateError and changes nothing.
- Completion is driven by payment_service, not by this module.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func

from ..errors import CapacityExhaustedError, InvalidStateError, NotFoundError, ValidationError
from ..models import (
    ContractApproval,
    ContractCustomer,
    InstallmentContract,
    InstallmentPayment,
    Item,
    Sale,
    User,
)
from ..models.contracts import (
    APPROVAL_APPROVED,
    APPROVAL_PENDING_REVIEW,
    APPROVAL_REJECTED,
    CONTRACT_ACTIVE,
    CONTRACT_PENDING,
    CONTRACT_REJECTED,
    CONTRACT_STATUSES,
)
from ..models.payments import PAYMENT_PAID
from ..time_utils import utcnow
from ..validation import coerce_cents, coerce_date, coerce_int, require_fields
from . import customer_service, inventory_service, schedule_service
from .concurrency import atomic, lock_for_update
from .document_service import DOC_INSTALLMENT_SALE, next_document_number

logger = logging.getLogger(__name__)


CONTRACT_REQUIRED_FIELDS = (
    "worker_id",
    "item_id",
    "total_price_cents",
    "months",
    "monthly_payment_cents",
    "start_date",
)


def _parse_contract_data(contract_data: dict) -> dict:
    require_fields(contract_data, CONTRACT_REQUIRED_FIELDS, label="contract")
    return {
        "worker_id": coerce_int(contract_data["worker_id"], "worker_id", minimum=1),
        "item_id": coerce_int(contract_data["item_id"], "item_id", minimum=1),
        "total_price_cents": coerce_cents(contract_data["total_price_cents"], "total_price_cents"),
        "down_payment_cents": coerce_cents(contract_data.get("down_payment_cents") or 0, "down_payment_cents"),
        "months": coerce_int(contract_data["months"], "months"),
        "monthly_payment_cents": coerce_cents(contract_data["monthly_payment_cents"], "monthly_payment_cents"),
        "start_date": coerce_date(contract_data["start_date"], "start_date"),
    }


def _get_contract_for_decision(session, contract_id: int) -> InstallmentContract:
    contract = lock_for_update(session.query(InstallmentContract).filter_by(id=contract_id)).first()
    if contract is None:
        raise NotFoundError(f"Contract {contract_id} not found")
    if contract.status != CONTRACT_PENDING:
        raise InvalidStateError(
            f"Contract {contract_id} not found or already processed",
            details={"status": contract.status},
        )
    return contract


def _get_approval(session, contract: InstallmentContract) -> ContractApproval:
    approval = session.query(ContractApproval).filter_by(contract_id=contract.id).first()
    if approval is None:
        # Applications always write one; a missing row means corrupted history.
        raise InvalidStateError(f"Contract {contract.id} has no approval record")
    return approval


# =============================================================================
# TRANSITIONS
# =============================================================================

def apply_contract(session, customer_data: dict, sponsors_data: list | None, contract_data: dict) -> dict:
    """
    Submit an installment application and reserve one unit of the item.

    Args:
        customer_data: full_name, id_card_number, phone, address, email,
            id_card_image (opaque bytes, optional)
        sponsors_data: list of co-signers (full_name, id_card_number, phone,
            relationship, address, id_card_image)
        contract_data: worker_id, item_id, total_price_cents,
            down_payment_cents, months, monthly_payment_cents, start_date

    Returns:
        {"contract_id", "sale_id", "sale_number"}

    Raises:
        ValidationError: missing or malformed input
        NotFoundError: item does not exist
        CapacityExhaustedError: no unreserved unit left
        StorageError: write/commit failure (everything rolled back)
    """
    require_fields(customer_data, customer_service.CUSTOMER_REQUIRED_FIELDS, label="customer")
    sponsors_data = sponsors_data or []
    if not isinstance(sponsors_data, list):
        raise ValidationError("sponsors must be a list")
    for sponsor in sponsors_data:
        require_fields(sponsor, customer_service.SPONSOR_REQUIRED_FIELDS, label="sponsor")
    terms = _parse_contract_data(contract_data)

    with atomic(session):
        customer, _ = customer_service.upsert_customer(session, customer_data)

        item = inventory_service.get_item(session, terms["item_id"], lock=True)
        available = inventory_service.available_quantity(session, item)
        if available <= 0:
            raise CapacityExhaustedError(
                "Item is no longer available for reservation",
                details={"item_id": item.id, "quantity": item.quantity, "available_quantity": available},
            )

        sale = Sale(
            document_number=next_document_number(session, document_type=DOC_INSTALLMENT_SALE),
            user_id=terms["worker_id"],
            customer_id=None,
            item_id=item.id,
            sale_type="installment",
            quantity=1,
            total_price_cents=terms["total_price_cents"],
        )
        session.add(sale)
        session.flush()

        contract = InstallmentContract(
            sale_id=sale.id,
            user_id=terms["worker_id"],
            customer_id=customer.id,
            item_id=item.id,
            total_price_cents=terms["total_price_cents"],
            down_payment_cents=terms["down_payment_cents"],
            months=terms["months"],
            monthly_payment_cents=terms["monthly_payment_cents"],
            start_date=terms["start_date"],
            status=CONTRACT_PENDING,
        )
        session.add(contract)
        session.flush()

        session.add(ContractApproval(
            contract_id=contract.id,
            approver_id=terms["worker_id"],
            status=APPROVAL_PENDING_REVIEW,
        ))

        for sponsor in sponsors_data:
            session.add(customer_service.build_sponsor(sponsor, contract.id))

        inventory_service.record_zero_change_log(
            session,
            item.id,
            terms["worker_id"],
            note=f"Reserved for contract {contract.id}",
        )

        result = {
            "contract_id": contract.id,
            "sale_id": sale.id,
            "sale_number": sale.document_number,
        }

    logger.info("Contract %s applied for item %s (sale %s)", result["contract_id"], terms["item_id"], result["sale_number"])
    return result


def approve_contract(session, contract_id: int, approver_id: int) -> dict:
    """
    Approve a pending contract and create its payment schedule.

    Item quantity is NOT decremented: the reserved unit stays counted in
    quantity for active and completed contracts.
    """
    approver_id = coerce_int(approver_id, "approver_id", minimum=1)

    with atomic(session):
        contract = _get_contract_for_decision(session, contract_id)
        approval = _get_approval(session, contract)

        contract.status = CONTRACT_ACTIVE
        approval.status = APPROVAL_APPROVED
        approval.approver_id = approver_id
        approval.updated_at = utcnow()

        payments = schedule_service.build_schedule(session, contract)

        inventory_service.record_zero_change_log(
            session,
            contract.item_id,
            approver_id,
            note=f"Contract {contract.id} approved",
        )
        payments_created = len(payments)

    logger.info("Contract %s approved by %s; %s payments scheduled", contract_id, approver_id, payments_created)
    return {
        "contract_id": contract_id,
        "payments_created": payments_created,
        "message": "Contract approved successfully and payment schedule created",
    }


def reject_contract(session, contract_id: int, approver_id: int, reason: str | None = None) -> dict:
    """Reject a pending contract and release its reserved unit (+1 quantity)."""
    approver_id = coerce_int(approver_id, "approver_id", minimum=1)
    reason = reason.strip() if isinstance(reason, str) and reason.strip() else None

    with atomic(session):
        contract = _get_contract_for_decision(session, contract_id)
        approval = _get_approval(session, contract)
        item = inventory_service.get_item(session, contract.item_id, lock=True)

        contract.status = CONTRACT_REJECTED
        approval.status = APPROVAL_REJECTED
        approval.approver_id = approver_id
        approval.reason = reason
        approval.updated_at = utcnow()

        inventory_service.release_reservation(
            session,
            item,
            approver_id,
            note=f"Contract {contract.id} rejected",
        )

    logger.info("Contract %s rejected by %s", contract_id, approver_id)
    return {
        "contract_id": contract_id,
        "message": "Contract rejected successfully",
    }


# =============================================================================
# READ PROJECTIONS
# =============================================================================

def _summary_row(contract: InstallmentContract, customer, item, worker, approval) -> dict:
    data = contract.to_dict()
    data.update({
        "customer_name": customer.full_name if customer else None,
        "customer_phone": customer.phone if customer else None,
        "item_name": item.name if item else None,
        "price_cash_cents": item.price_cash_cents if item else None,
        "price_installment_total_cents": item.price_installment_total_cents if item else None,
        "item_quantity": item.quantity if item else None,
        "worker_name": worker.username if worker else None,
        "approval_status": approval.status if approval else None,
        "rejection_reason": approval.reason if approval else None,
        "approver_id": approval.approver_id if approval else None,
        "decision_date": approval.to_dict()["updated_at"] if approval else None,
    })
    return data


def _contract_query(session):
    return (
        session.query(InstallmentContract, ContractCustomer, Item, User, ContractApproval)
        .outerjoin(ContractCustomer, InstallmentContract.customer_id == ContractCustomer.id)
        .outerjoin(Item, InstallmentContract.item_id == Item.id)
        .outerjoin(User, InstallmentContract.user_id == User.id)
        .outerjoin(ContractApproval, ContractApproval.contract_id == InstallmentContract.id)
    )


def get_pending_contracts(session) -> list[dict]:
    rows = (
        _contract_query(session)
        .filter(InstallmentContract.status == CONTRACT_PENDING)
        .order_by(InstallmentContract.created_at.desc(), InstallmentContract.id.desc())
        .all()
    )
    return [_summary_row(*row) for row in rows]


def get_all_contracts(session, status: str | None = None) -> list[dict]:
    """All contracts, optionally filtered by status, with schedule progress counts."""
    query = _contract_query(session)
    if status and status != "all":
        if status not in CONTRACT_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {CONTRACT_STATUSES}")
        query = query.filter(InstallmentContract.status == status)

    rows = query.order_by(InstallmentContract.created_at.desc(), InstallmentContract.id.desc()).all()

    sale_ids = [row[0].sale_id for row in rows]
    counts: dict[int, tuple[int, int]] = {}
    if sale_ids:
        paid_case = func.sum(case((InstallmentPayment.status == PAYMENT_PAID, 1), else_=0))
        for sale_id, total, paid in (
            session.query(
                InstallmentPayment.sale_id,
                func.count(InstallmentPayment.id),
                paid_case,
            )
            .filter(InstallmentPayment.sale_id.in_(sale_ids))
            .group_by(InstallmentPayment.sale_id)
            .all()
        ):
            counts[sale_id] = (int(total or 0), int(paid or 0))

    result = []
    for row in rows:
        data = _summary_row(*row)
        total, paid = counts.get(row[0].sale_id, (0, 0))
        data["total_payments"] = total
        data["paid_payments"] = paid
        result.append(data)
    return result


def get_contract(session, contract_id: int) -> InstallmentContract:
    contract = session.query(InstallmentContract).filter_by(id=contract_id).first()
    if contract is None:
        raise NotFoundError(f"Contract {contract_id} not found")
    return contract


def get_contract_by_id(session, contract_id: int) -> dict:
    row = _contract_query(session).filter(InstallmentContract.id == contract_id).first()
    if row is None:
        raise NotFoundError(f"Contract {contract_id} not found")

    contract, customer, item, _, _ = row
    data = _summary_row(*row)
    data.update({
        "customer_address": customer.address if customer else None,
        "customer_email": customer.email if customer else None,
        "customer_id_card_number": customer.id_card_number if customer else None,
        "item_description": item.description if item else None,
        "sale_number": contract.sale.document_number if contract.sale else None,
        "sponsors": [s.to_dict() for s in contract.sponsors],
    })
    return data


def get_contract_schedule(session, contract_id: int) -> list[InstallmentPayment]:
    contract = get_contract(session, contract_id)
    return schedule_service.get_payment_schedule(session, contract.sale_id)
