# Overview: Service-layer operations for installment payments; encapsulates business logic and database work.

"""
Installment Payment Engine

Applies a worker-submitted amount to one scheduled month and rolls any
excess forward into later months of the same sale.

CASES (due = target's current amount_due_cents):
- exact:    amount == due  -> target paid
- partial:  amount <  due  -> target partial, amount_due reduced
- overpaid: amount >  due  -> target paid, excess settles later unpaid months
                              in month order until it runs out
- settled:  due == 0       -> the whole amount is excess

DESIGN PRINCIPLES:
- Money is conserved: the transaction rows written by one call always sum
  to the submitted amount. Excess that finds no later unpaid month stays
  credited to the target.
- The cascade is a bounded loop over the sale's remaining months.
- Target and cascade rows are locked before amount_due is read.
- One atomic unit of work; a failure anywhere leaves every schedule row and
  the transaction ledger untouched.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import case, func

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import (
    ContractApproval,
    ContractCustomer,
    InstallmentContract,
    InstallmentPayment,
    InstallmentTransaction,
    Item,
)
from ..models.contracts import CONTRACT_ACTIVE, CONTRACT_COMPLETED
from ..models.payments import PAYMENT_PAID, PAYMENT_PARTIAL
from ..time_utils import today, utcnow
from ..validation import coerce_cents, coerce_int
from . import inventory_service
from .concurrency import atomic, lock_for_update
from .contract_service import get_contract

logger = logging.getLogger(__name__)


# =============================================================================
# ALLOCATION
# =============================================================================

def allocate_payment(amount: int, target_due: int, later_dues: list[int]) -> tuple[int, list[int]]:
    """
    Split a submitted amount between the target month and later months.

    Args:
        amount: submitted amount in cents (> 0)
        target_due: target month's current amount_due_cents
        later_dues: amount_due_cents of later unpaid months, in month order

    Returns:
        (target_credit, portions) where portions[i] is what later_dues[i]
        receives. Trailing months that receive nothing are omitted.
        target_credit + sum(portions) == amount always holds.
    """
    excess = amount - target_due
    portions: list[int] = []
    for due in later_dues:
        if excess <= 0:
            break
        portion = min(excess, due)
        portions.append(portion)
        excess -= portion
    return amount - sum(portions), portions


def _credit(entry: InstallmentPayment, amount: int, paid_on: date) -> None:
    entry.amount_paid_cents = (entry.amount_paid_cents or 0) + amount
    entry.amount_due_cents = max(entry.amount_due_cents - amount, 0)
    if entry.amount_due_cents == 0:
        entry.status = PAYMENT_PAID
        if entry.paid_date is None:
            entry.paid_date = paid_on
    else:
        entry.status = PAYMENT_PARTIAL


def _record_transaction(session, entry: InstallmentPayment, amount: int, worker_id: int, paid_at) -> InstallmentTransaction:
    tx = InstallmentTransaction(
        payment_id=entry.id,
        amount_paid_cents=amount,
        worker_id=worker_id,
        payment_date=paid_at,
    )
    session.add(tx)
    return tx


def _describe(amount: int, target_due: int, portions: list[int]) -> str:
    if amount == target_due:
        return "Payment processed successfully. Payment marked as paid."
    if amount < target_due:
        return f"Partial payment processed. Remaining amount due: {target_due - amount} cents."
    if portions:
        return f"Overpayment processed. Excess applied to {len(portions)} following payment(s)."
    return "Overpayment processed. No following payments to apply the excess to."


# =============================================================================
# PAYMENT APPLICATION
# =============================================================================

def apply_payment(session, payment_id: int, amount_paid_cents, worker_id) -> dict:
    """
    Apply a payment to one scheduled month, cascading any overpayment.

    An overpaid target is credited only what did not roll forward (its own
    due, plus excess with no later unpaid month), not the full submitted
    amount, so the transaction rows of one call sum to amount_paid_cents.
    A month that is already settled accepts payment too: the whole amount
    is excess and rolls into the following unpaid months.

    Returns:
        {"message", "contract_completed", "transactions": [...]}

    Raises:
        ValidationError: amount not a positive integer, worker_id missing
        NotFoundError: payment_id does not exist
        InvalidStateError: contract not active
        StorageError: write/commit failure (everything rolled back)
    """
    if worker_id is None:
        raise ValidationError("worker_id is required")
    worker_id = coerce_int(worker_id, "worker_id", minimum=1)
    amount = coerce_cents(amount_paid_cents, "amount_paid_cents", positive=True)

    with atomic(session):
        target = lock_for_update(session.query(InstallmentPayment).filter_by(id=payment_id)).first()
        if target is None:
            raise NotFoundError(f"Payment {payment_id} not found")

        contract = session.query(InstallmentContract).filter_by(sale_id=target.sale_id).first()
        if contract is None:
            raise NotFoundError(f"No contract found for payment {payment_id}")
        if contract.status != CONTRACT_ACTIVE:
            raise InvalidStateError(
                f"Contract {contract.id} is not active",
                details={"status": contract.status},
            )

        target_due = target.amount_due_cents
        later = []
        if amount > target_due:
            later = (
                lock_for_update(
                    session.query(InstallmentPayment)
                    .filter(
                        InstallmentPayment.sale_id == target.sale_id,
                        InstallmentPayment.month_number > target.month_number,
                        InstallmentPayment.amount_due_cents > 0,
                    )
                    .order_by(InstallmentPayment.month_number)
                )
                .all()
            )

        target_credit, portions = allocate_payment(amount, target_due, [p.amount_due_cents for p in later])

        paid_on = today()
        paid_at = utcnow()

        transactions = []
        # A settled target whose whole amount rolled forward gets no row of its own
        if target_credit > 0:
            _credit(target, target_credit, paid_on)
            transactions.append(_record_transaction(session, target, target_credit, worker_id, paid_at))
        for entry, portion in zip(later, portions):
            _credit(entry, portion, paid_on)
            transactions.append(_record_transaction(session, entry, portion, worker_id, paid_at))

        if amount > target_due and target_credit > target_due:
            logger.info(
                "Excess of %s cents on payment %s had no following month; kept on the target",
                target_credit - target_due,
                payment_id,
            )

        session.flush()

        inventory_service.record_zero_change_log(
            session,
            contract.item_id,
            worker_id,
            note=f"Payment {payment_id} on contract {contract.id}",
        )

        remaining = (
            session.query(func.count(InstallmentPayment.id))
            .filter(
                InstallmentPayment.sale_id == contract.sale_id,
                InstallmentPayment.amount_due_cents > 0,
            )
            .scalar()
        )
        contract_completed = remaining == 0
        if contract_completed:
            contract.status = CONTRACT_COMPLETED
            contract.completed_at = paid_at

        result = {
            "message": _describe(amount, target_due, portions),
            "contract_completed": contract_completed,
            "transactions": [
                {"payment_id": tx.payment_id, "amount_paid_cents": tx.amount_paid_cents}
                for tx in transactions
            ],
        }

    logger.info(
        "Applied %s cents to payment %s (%s transaction rows)%s",
        amount,
        payment_id,
        len(result["transactions"]),
        "; contract completed" if contract_completed else "",
    )
    return result


# =============================================================================
# READ PROJECTIONS
# =============================================================================

def search_active_contracts(session, customer_name: str) -> list[dict]:
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise ValidationError("Customer name is required")

    rows = (
        session.query(InstallmentContract, ContractCustomer, Item, ContractApproval)
        .outerjoin(ContractCustomer, InstallmentContract.customer_id == ContractCustomer.id)
        .outerjoin(Item, InstallmentContract.item_id == Item.id)
        .outerjoin(ContractApproval, ContractApproval.contract_id == InstallmentContract.id)
        .filter(
            ContractCustomer.full_name.ilike(f"%{customer_name}%"),
            InstallmentContract.status == CONTRACT_ACTIVE,
        )
        .order_by(InstallmentContract.created_at.desc(), InstallmentContract.id.desc())
        .all()
    )

    result = []
    for contract, customer, item, approval in rows:
        data = contract.to_dict()
        data["customer_name"] = customer.full_name if customer else None
        data["customer_phone"] = customer.phone if customer else None
        data["item_name"] = item.name if item else None
        data["approval_status"] = approval.status if approval else None
        result.append(data)
    return result


def get_payments_by_contract(session, contract_id: int) -> list[InstallmentPayment]:
    contract = get_contract(session, contract_id)
    return (
        session.query(InstallmentPayment)
        .filter_by(sale_id=contract.sale_id)
        .order_by(InstallmentPayment.month_number)
        .all()
    )


def get_payment_transactions(session, payment_id: int) -> list[InstallmentTransaction]:
    if session.get(InstallmentPayment, payment_id) is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return (
        session.query(InstallmentTransaction)
        .filter_by(payment_id=payment_id)
        .order_by(InstallmentTransaction.payment_date.desc(), InstallmentTransaction.id.desc())
        .all()
    )


def get_payment_summary(session, contract_id: int) -> dict:
    """Contract header plus schedule statistics and percentage paid."""
    row = (
        session.query(InstallmentContract, ContractCustomer, Item)
        .outerjoin(ContractCustomer, InstallmentContract.customer_id == ContractCustomer.id)
        .outerjoin(Item, InstallmentContract.item_id == Item.id)
        .filter(InstallmentContract.id == contract_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Contract {contract_id} not found")
    contract, customer, item = row

    stats = (
        session.query(
            func.count(InstallmentPayment.id),
            func.coalesce(func.sum(InstallmentPayment.amount_due_cents + InstallmentPayment.amount_paid_cents), 0),
            func.coalesce(func.sum(InstallmentPayment.amount_due_cents), 0),
            func.coalesce(func.sum(InstallmentPayment.amount_paid_cents), 0),
            func.coalesce(func.sum(case((InstallmentPayment.amount_due_cents == 0, 1), else_=0)), 0),
            func.coalesce(func.sum(case(
                ((InstallmentPayment.amount_due_cents > 0) & (InstallmentPayment.amount_paid_cents > 0), 1),
                else_=0,
            )), 0),
            func.coalesce(func.sum(case(
                ((InstallmentPayment.amount_due_cents > 0) & (InstallmentPayment.amount_paid_cents == 0), 1),
                else_=0,
            )), 0),
        )
        .filter(InstallmentPayment.sale_id == contract.sale_id)
        .one()
    )
    total_payments, original_total, remaining, paid, completed, partial, pending = (int(v or 0) for v in stats)

    percentage = 0.0
    if original_total > 0:
        percentage = round((original_total - remaining) / original_total * 100, 2)

    header = contract.to_dict()
    header["customer_name"] = customer.full_name if customer else None
    header["item_name"] = item.name if item else None

    return {
        "contract": header,
        "statistics": {
            "total_payments": total_payments,
            "original_total_cents": original_total,
            "total_remaining_due_cents": remaining,
            "total_paid_cents": paid,
            "completed_count": completed,
            "partial_count": partial,
            "pending_count": pending,
        },
        "progress": {
            "percentage": percentage,
            "paid_amount_cents": paid,
            "remaining_amount_cents": remaining,
        },
    }


def get_overdue_payments(session, as_of: date | None = None) -> list[dict]:
    """Unsettled months of active contracts whose due date is before as_of (default today)."""
    as_of = as_of or today()
    rows = (
        session.query(InstallmentPayment, InstallmentContract, ContractCustomer, Item)
        .join(InstallmentContract, InstallmentPayment.sale_id == InstallmentContract.sale_id)
        .join(ContractCustomer, InstallmentContract.customer_id == ContractCustomer.id)
        .join(Item, InstallmentContract.item_id == Item.id)
        .filter(
            InstallmentPayment.due_date < as_of,
            InstallmentPayment.amount_due_cents > 0,
            InstallmentContract.status == CONTRACT_ACTIVE,
        )
        .order_by(InstallmentPayment.due_date, InstallmentPayment.id)
        .all()
    )

    result = []
    for payment, contract, customer, item in rows:
        data = payment.to_dict()
        data["contract_id"] = contract.id
        data["customer_name"] = customer.full_name
        data["customer_phone"] = customer.phone
        data["item_name"] = item.name
        data["days_overdue"] = (as_of - payment.due_date).days
        result.append(data)
    return result
