# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/retailpos/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import func, case

from ..errors import NotFoundError
from ..models import Item, InventoryLog, InstallmentContract
from ..models.contracts import CONTRACT_PENDING
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_item
from .concurrency import atomic, lock_for_update

"""
Inventory Reservation Invariants (authoritative)

Quantity model:
- Item.quantity is a stored counter and never goes negative (CHECK constraint).
- available_quantity = quantity - COUNT(installment_contracts WHERE status='pending').
- A pending contract reserves a unit without touching quantity.
- Approval consumes the reservation conceptually; quantity is left unchanged
  for active and completed contracts.
- Rejection releases the reservation by incrementing quantity by exactly 1.
- Cash sales (POS checkout) decrement quantity directly.

Locking:
- Every mutator of an item's quantity or reservation count (apply, reject,
  checkout) locks the item row first, inside the same atomic unit of work
  that performs the availability check.

Audit:
- Each touch writes an InventoryLog row in the same transaction.
- Zero-delta 'sale' rows mark apply/approve/payment activity.
"""

logger = logging.getLogger(__name__)


CHANGE_SALE = "sale"
CHANGE_RETURN = "return"


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "price_cash_cents",
        "price_installment_total_cents",
        "installment_months",
        "installment_per_month_cents",
        "available",
        "quantity",
        "installment",
        "item_image",
    },
    required_on_create={"name", "price_cash_cents", "quantity"},
)


def get_item(session, item_id: int, *, lock: bool = False) -> Item:
    query = session.query(Item).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def reserved_count(session, item_id: int) -> int:
    """Number of pending contracts holding a unit of this item."""
    return int(
        session.query(func.count(InstallmentContract.id))
        .filter(
            InstallmentContract.item_id == item_id,
            InstallmentContract.status == CONTRACT_PENDING,
        )
        .scalar()
        or 0
    )


def available_quantity(session, item: Item) -> int:
    """
    Units that can still be reserved or sold.

    Callers that act on the result must hold the item row lock inside the
    same transaction.
    """
    return item.quantity - reserved_count(session, item.id)


def log_inventory_change(
    session,
    *,
    item_id: int,
    worker_id: int | None,
    change_type: str,
    quantity_changed: int,
    note: str | None = None,
) -> InventoryLog:
    """Append-only; flushes so the row id is assigned without committing."""
    entry = InventoryLog(
        item_id=item_id,
        worker_id=worker_id,
        change_type=change_type,
        quantity_changed=quantity_changed,
        note=note,
    )
    session.add(entry)
    session.flush()
    return entry


def record_zero_change_log(session, item_id: int, worker_id: int | None, note: str | None = None) -> InventoryLog:
    """Mark that an item was touched without changing its physical count."""
    return log_inventory_change(
        session,
        item_id=item_id,
        worker_id=worker_id,
        change_type=CHANGE_SALE,
        quantity_changed=0,
        note=note,
    )


def release_reservation(session, item: Item, worker_id: int | None, note: str | None = None) -> InventoryLog:
    """
    Return a rejected contract's reserved unit to stock.

    The item row must already be locked by the caller.
    """
    item.quantity = item.quantity + 1
    logger.info("Released reservation on item %s (quantity now %s)", item.id, item.quantity)
    return log_inventory_change(
        session,
        item_id=item.id,
        worker_id=worker_id,
        change_type=CHANGE_RETURN,
        quantity_changed=1,
        note=note,
    )


def decrement_stock(session, item: Item, quantity: int, worker_id: int | None, note: str | None = None) -> InventoryLog:
    """
    Cash-sale path. The item row must already be locked and the caller must
    have checked availability in the same transaction.
    """
    item.quantity = item.quantity - quantity
    if item.quantity <= 0:
        item.available = False
    return log_inventory_change(
        session,
        item_id=item.id,
        worker_id=worker_id,
        change_type=CHANGE_SALE,
        quantity_changed=-quantity,
        note=note,
    )


def _reserved_subquery(session):
    return (
        session.query(
            InstallmentContract.item_id.label("item_id"),
            func.count(InstallmentContract.id).label("reserved_count"),
        )
        .filter(InstallmentContract.status == CONTRACT_PENDING)
        .group_by(InstallmentContract.item_id)
        .subquery()
    )


def _with_available(rows) -> list[dict]:
    result = []
    for item, reserved in rows:
        data = item.to_dict()
        data["reserved_count"] = int(reserved or 0)
        data["available_quantity"] = item.quantity - data["reserved_count"]
        result.append(data)
    return result


def get_installment_items(session) -> list[dict]:
    """Items that can be financed right now: available, installment-eligible, unreserved stock left."""
    reserved = _reserved_subquery(session)
    reserved_col = func.coalesce(reserved.c.reserved_count, 0)
    rows = (
        session.query(Item, reserved_col)
        .outerjoin(reserved, reserved.c.item_id == Item.id)
        .filter(
            Item.available.is_(True),
            Item.installment.is_(True),
            (Item.quantity - reserved_col) > 0,
        )
        .order_by(Item.name, Item.id)
        .all()
    )
    return _with_available(rows)


def list_items(session, *, in_stock_first: bool = False) -> list[dict]:
    reserved = _reserved_subquery(session)
    reserved_col = func.coalesce(reserved.c.reserved_count, 0)
    query = session.query(Item, reserved_col).outerjoin(reserved, reserved.c.item_id == Item.id)
    if in_stock_first:
        in_stock = case(
            ((Item.available.is_(True)) & (Item.quantity > 0), 1),
            else_=2,
        )
        query = query.order_by(in_stock, Item.name, Item.id)
    else:
        query = query.order_by(Item.date_added.desc(), Item.id.desc())
    return _with_available(query.all())


def get_item_detail(session, item_id: int) -> dict:
    item = get_item(session, item_id)
    data = item.to_dict()
    data["reserved_count"] = reserved_count(session, item.id)
    data["available_quantity"] = item.quantity - data["reserved_count"]
    return data


def create_item(session, payload: dict) -> Item:
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)

    with atomic(session):
        item = Item(**patch)
        session.add(item)
        session.flush()

    logger.info("Created item %s (%s) with quantity %s", item.id, item.name, item.quantity)
    return item


def get_inventory_logs(session, item_id: int) -> list[InventoryLog]:
    get_item(session, item_id)
    return (
        session.query(InventoryLog)
        .filter_by(item_id=item_id)
        .order_by(InventoryLog.created_at, InventoryLog.id)
        .all()
    )
