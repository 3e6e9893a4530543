# Overview: Service-layer operations for point-of-sale cash checkout.

from __future__ import annotations

import logging

from ..errors import CapacityExhaustedError, ValidationError
from ..models import Sale
from ..validation import coerce_int
from . import inventory_service
from .concurrency import atomic
from .document_service import DOC_CASH_SALE, next_document_number

logger = logging.getLogger(__name__)


SALE_TYPE_CASH = "cash"


def _normalize_cart(cart) -> dict[int, int]:
    """Collapse cart lines into {item_id: qty}; duplicate lines are summed."""
    if not isinstance(cart, list) or not cart:
        raise ValidationError("Cart is empty")

    lines: dict[int, int] = {}
    for line in cart:
        if not isinstance(line, dict):
            raise ValidationError("Cart lines must be objects")
        raw_id = line.get("item_id", line.get("id"))
        raw_qty = line.get("qty", line.get("quantity"))
        if raw_id is None or raw_qty is None:
            raise ValidationError("Each cart line needs an item id and a qty")
        item_id = coerce_int(raw_id, "item_id", minimum=1)
        qty = coerce_int(raw_qty, "qty", minimum=1)
        lines[item_id] = lines.get(item_id, 0) + qty
    return lines


def list_pos_items(session) -> list[dict]:
    return inventory_service.list_items(session, in_stock_first=True)


def checkout(session, cart, user_id) -> dict:
    """
    Sell a cart for cash in one unit of work.

    Every line is checked against available_quantity (stock minus units held
    by pending contracts) after its item row is locked. If any line is short
    nothing is sold and CapacityExhaustedError lists the short lines.
    Prices come from the stored item, not the client.
    """
    if user_id is None:
        raise ValidationError("User ID is required")
    user_id = coerce_int(user_id, "user_id", minimum=1)
    lines = _normalize_cart(cart)

    with atomic(session):
        # Lock in id order so concurrent checkouts cannot deadlock.
        items = {
            item_id: inventory_service.get_item(session, item_id, lock=True)
            for item_id in sorted(lines)
        }

        insufficient = []
        for item_id, qty in lines.items():
            item = items[item_id]
            available = inventory_service.available_quantity(session, item)
            if available < qty:
                insufficient.append({
                    "id": item.id,
                    "name": item.name,
                    "requested": qty,
                    "available": max(available, 0),
                })
        if insufficient:
            raise CapacityExhaustedError(
                "Insufficient quantity for some items",
                details={"items": insufficient},
            )

        document_number = next_document_number(session, document_type=DOC_CASH_SALE)
        total_price_cents = 0
        for item_id, qty in lines.items():
            item = items[item_id]
            line_total = item.price_cash_cents * qty
            total_price_cents += line_total
            session.add(Sale(
                document_number=document_number,
                user_id=user_id,
                customer_id=None,
                item_id=item.id,
                sale_type=SALE_TYPE_CASH,
                quantity=qty,
                total_price_cents=line_total,
            ))
            inventory_service.decrement_stock(session, item, qty, user_id, note=f"Cash sale {document_number}")

    logger.info("Checkout %s: %s line(s), %s cents", document_number, len(lines), total_price_cents)
    return {
        "message": "Sale processed successfully",
        "sale_number": document_number,
        "total_price_cents": total_price_cents,
        "items_sold": len(lines),
    }
