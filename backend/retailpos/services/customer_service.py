# Overview: Service-layer operations for contract customers and identity lookup.

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import User, ContractCustomer, ContractSponsor
from ..validation import require_fields
from .concurrency import atomic

logger = logging.getLogger(__name__)


CUSTOMER_REQUIRED_FIELDS = ("full_name", "id_card_number")
SPONSOR_REQUIRED_FIELDS = ("full_name", "id_card_number")


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def find_by_id_card(session, id_card_number: str) -> dict | None:
    """
    Identity lookup across worker accounts, contract customers and sponsors.

    Users take precedence over contract customers, which take precedence
    over sponsors. Returns None when the ID card is unknown.
    """
    id_card_number = _clean(id_card_number)
    if not id_card_number:
        raise ValidationError("id_card_number is required")

    user = session.query(User).filter_by(id_card=id_card_number).first()
    if user:
        return {
            "type": "user",
            "id": user.id,
            "full_name": user.full_name or user.username,
            "phone": user.phone,
            "id_card_number": user.id_card,
            "email": user.email,
            "address": None,
        }

    customer = session.query(ContractCustomer).filter_by(id_card_number=id_card_number).first()
    if customer:
        return {
            "type": "contract_customer",
            "id": customer.id,
            "full_name": customer.full_name,
            "phone": customer.phone,
            "id_card_number": customer.id_card_number,
            "email": customer.email,
            "address": customer.address,
        }

    sponsor = (
        session.query(ContractSponsor)
        .filter_by(id_card_number=id_card_number)
        .order_by(ContractSponsor.id.desc())
        .first()
    )
    if sponsor:
        return {
            "type": "sponsor",
            "id": sponsor.id,
            "full_name": sponsor.full_name,
            "phone": sponsor.phone,
            "id_card_number": sponsor.id_card_number,
            "email": None,
            "address": sponsor.address,
        }

    return None


def upsert_customer(session, data: dict) -> tuple[ContractCustomer, bool]:
    """
    Insert or update a contract customer matched by ID-card number.

    Runs inside the caller's transaction. An update keeps the stored ID-card
    image when no new image is supplied.

    Returns:
        (customer, created)
    """
    require_fields(data, CUSTOMER_REQUIRED_FIELDS, label="customer")
    id_card_number = _clean(data["id_card_number"])

    customer = session.query(ContractCustomer).filter_by(id_card_number=id_card_number).first()
    created = customer is None

    if created:
        customer = ContractCustomer(id_card_number=id_card_number)
        session.add(customer)

    customer.full_name = _clean(data["full_name"])
    customer.phone = _clean(data.get("phone"))
    customer.address = _clean(data.get("address"))
    customer.email = _clean(data.get("email"))
    if data.get("id_card_image") is not None:
        customer.id_card_image = data["id_card_image"]

    session.flush()
    return customer, created


def create_or_update_customer(session, data: dict) -> dict:
    """Standalone customer upsert in its own transaction."""
    with atomic(session):
        customer, created = upsert_customer(session, data)
        customer_id = customer.id

    logger.info("%s contract customer %s", "Created" if created else "Updated", customer_id)
    return {
        "customer_id": customer_id,
        "created": created,
        "message": "Customer created successfully" if created else "Customer information updated successfully",
    }


def build_sponsor(data: dict, contract_id: int) -> ContractSponsor:
    require_fields(data, SPONSOR_REQUIRED_FIELDS, label="sponsor")
    return ContractSponsor(
        contract_id=contract_id,
        full_name=_clean(data["full_name"]),
        phone=_clean(data.get("phone")),
        id_card_number=_clean(data["id_card_number"]),
        relationship=_clean(data.get("relationship")),
        address=_clean(data.get("address")),
        id_card_image=data.get("id_card_image"),
    )
