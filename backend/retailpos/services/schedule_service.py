# Overview: Service-layer operations for installment payment schedules.

"""
Payment Schedule Generator

An approved contract owes `months` monthly payments. Month N is due on
start_date + N calendar months (day clamped to the end of shorter months),
always computed from start_date so clamping never accumulates.

Each row starts at amount_due = monthly payment, amount_paid = 0,
status = pending. A contract with months <= 0 gets no rows.
"""

from __future__ import annotations

import logging
from datetime import date

from ..models import InstallmentContract, InstallmentPayment
from ..models.payments import PAYMENT_PENDING
from ..time_utils import add_months

logger = logging.getLogger(__name__)


def due_dates(start_date: date, months: int) -> list[date]:
    return [add_months(start_date, month) for month in range(1, months + 1)]


def build_schedule(session, contract: InstallmentContract) -> list[InstallmentPayment]:
    """Create the full schedule inside the caller's transaction."""
    if contract.months <= 0:
        logger.warning(
            "Contract %s approved with months=%s; no payments scheduled",
            contract.id,
            contract.months,
        )
        return []

    rows = [
        InstallmentPayment(
            sale_id=contract.sale_id,
            month_number=month_number,
            due_date=due_date,
            amount_due_cents=contract.monthly_payment_cents,
            amount_paid_cents=0,
            status=PAYMENT_PENDING,
        )
        for month_number, due_date in enumerate(due_dates(contract.start_date, contract.months), start=1)
    ]
    session.add_all(rows)
    session.flush()
    return rows


def get_payment_schedule(session, sale_id: int) -> list[InstallmentPayment]:
    return (
        session.query(InstallmentPayment)
        .filter_by(sale_id=sale_id)
        .order_by(InstallmentPayment.month_number)
        .all()
    )
