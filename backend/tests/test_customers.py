import pytest

from conftest import apply, customer_payload
from retailpos.errors import ValidationError
from retailpos.models import ContractCustomer
from retailpos.services import customer_service


def test_lookup_prefers_worker_accounts(db_session, worker):
    db_session.add(ContractCustomer(full_name="Shadow", id_card_number="W-100"))
    db_session.commit()

    match = customer_service.find_by_id_card(db_session, "W-100")
    assert match["type"] == "user"
    assert match["id"] == worker.id


def test_lookup_finds_customer_then_sponsor(db_session, worker, item):
    apply(
        db_session,
        worker.id,
        item.id,
        sponsors=[{"full_name": "Sam Sponsor", "id_card_number": "S-1", "address": "2 Side St"}],
    )

    customer = customer_service.find_by_id_card(db_session, "C-200")
    assert customer["type"] == "contract_customer"
    assert customer["full_name"] == "Jane Customer"

    sponsor = customer_service.find_by_id_card(db_session, " S-1 ")
    assert sponsor["type"] == "sponsor"
    assert sponsor["address"] == "2 Side St"

    assert customer_service.find_by_id_card(db_session, "UNKNOWN") is None


def test_lookup_requires_id_card(db_session):
    with pytest.raises(ValidationError):
        customer_service.find_by_id_card(db_session, "   ")


def test_create_then_update(db_session):
    created = customer_service.create_or_update_customer(db_session, customer_payload(id_card_image=b"img"))
    assert created["created"] is True

    updated = customer_service.create_or_update_customer(db_session, customer_payload(full_name="Jane Q. Customer"))
    assert updated["created"] is False
    assert updated["customer_id"] == created["customer_id"]

    stored = db_session.get(ContractCustomer, created["customer_id"])
    assert stored.full_name == "Jane Q. Customer"
    # No new image supplied, so the stored one stays
    assert stored.id_card_image == b"img"


def test_create_requires_name_and_id_card(db_session):
    with pytest.raises(ValidationError) as exc:
        customer_service.create_or_update_customer(db_session, {"phone": "555"})
    assert exc.value.details["missing"] == ["full_name", "id_card_number"]
