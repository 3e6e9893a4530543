"""
Installment contract lifecycle tests.

Verifies:
- apply reserves a unit without touching quantity
- the last unreserved unit cannot be reserved twice
- approve builds the schedule and leaves quantity alone
- reject releases the reservation (+1) exactly once
- a second approve/reject fails with InvalidStateError and changes nothing
"""

from datetime import date

import pytest

from conftest import apply, customer_payload, make_item
from retailpos.errors import (
    CapacityExhaustedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from retailpos.models import (
    ContractApproval,
    ContractCustomer,
    ContractSponsor,
    InstallmentContract,
    InstallmentPayment,
    InventoryLog,
    Item,
    Sale,
)
from retailpos.services import contract_service, inventory_service


def _available(session, item_id):
    item = session.get(Item, item_id)
    return inventory_service.available_quantity(session, item)


# =============================================================================
# APPLY
# =============================================================================


class TestApply:

    def test_apply_creates_pending_contract_and_reserves_unit(self, db_session, worker, item):
        result = apply(db_session, worker.id, item.id)

        contract = db_session.get(InstallmentContract, result["contract_id"])
        assert contract.status == "pending"
        assert contract.sale_id == result["sale_id"]
        assert result["sale_number"].startswith("I-")

        sale = db_session.get(Sale, result["sale_id"])
        assert sale.sale_type == "installment"
        assert sale.customer_id is None

        approval = db_session.query(ContractApproval).filter_by(contract_id=contract.id).one()
        assert approval.status == "pending_review"
        assert approval.approver_id == worker.id

        refreshed = db_session.get(Item, item.id)
        assert refreshed.quantity == 2
        assert _available(db_session, item.id) == 1

        logs = db_session.query(InventoryLog).filter_by(item_id=item.id).all()
        assert [(log.change_type, log.quantity_changed) for log in logs] == [("sale", 0)]

    def test_apply_stores_sponsors_and_images(self, db_session, worker, item):
        sponsors = [
            {"full_name": "Sam Sponsor", "id_card_number": "S-1", "relationship": "brother", "id_card_image": b"\x89PNG"},
            {"full_name": "Pat Sponsor", "id_card_number": "S-2"},
        ]
        result = apply(
            db_session,
            worker.id,
            item.id,
            customer=customer_payload(id_card_image=b"\xff\xd8jpeg"),
            sponsors=sponsors,
        )

        stored = db_session.query(ContractSponsor).filter_by(contract_id=result["contract_id"]).order_by(ContractSponsor.id).all()
        assert [s.full_name for s in stored] == ["Sam Sponsor", "Pat Sponsor"]
        assert stored[0].id_card_image == b"\x89PNG"
        assert stored[1].id_card_image is None

        customer = db_session.query(ContractCustomer).filter_by(id_card_number="C-200").one()
        assert customer.id_card_image == b"\xff\xd8jpeg"

    def test_apply_reuses_customer_by_id_card(self, db_session, worker, item):
        apply(db_session, worker.id, item.id)
        apply(db_session, worker.id, item.id, customer=customer_payload(phone="555-9999"))

        customers = db_session.query(ContractCustomer).all()
        assert len(customers) == 1
        assert customers[0].phone == "555-9999"

    def test_last_unit_cannot_be_reserved_twice(self, db_session, worker):
        single = make_item(db_session, name="Washer", quantity=1)
        apply(db_session, worker.id, single.id)

        with pytest.raises(CapacityExhaustedError):
            apply(db_session, worker.id, single.id, customer=customer_payload(id_card_number="C-999"))

        assert db_session.query(InstallmentContract).count() == 1
        assert db_session.query(Sale).count() == 1
        assert db_session.query(ContractApproval).count() == 1
        # The rejected second customer was rolled back with everything else
        assert db_session.query(ContractCustomer).count() == 1
        assert _available(db_session, single.id) == 0

    def test_out_of_stock_item_rejected(self, db_session, worker):
        empty = make_item(db_session, name="Dryer", quantity=0)
        with pytest.raises(CapacityExhaustedError):
            apply(db_session, worker.id, empty.id)

    def test_unknown_item(self, db_session, worker):
        with pytest.raises(NotFoundError):
            apply(db_session, worker.id, 9999)
        assert db_session.query(ContractCustomer).count() == 0

    def test_missing_contract_fields(self, db_session, worker, item):
        with pytest.raises(ValidationError) as exc:
            contract_service.apply_contract(
                db_session,
                customer_payload(),
                [],
                {"worker_id": worker.id, "item_id": item.id},
            )
        assert "months" in exc.value.details["missing"]
        assert db_session.query(InstallmentContract).count() == 0

    def test_missing_customer_fields(self, db_session, worker, item):
        with pytest.raises(ValidationError):
            apply(db_session, worker.id, item.id, customer={"phone": "555"})

    def test_sponsor_without_id_card(self, db_session, worker, item):
        with pytest.raises(ValidationError):
            apply(db_session, worker.id, item.id, sponsors=[{"full_name": "No Card"}])
        assert db_session.query(InstallmentContract).count() == 0

    def test_decimal_money_rejected(self, db_session, worker, item):
        with pytest.raises(ValidationError):
            apply(db_session, worker.id, item.id, monthly_payment_cents="100.50")


# =============================================================================
# APPROVE
# =============================================================================


class TestApprove:

    def test_approve_builds_schedule(self, db_session, approver, pending_contract, item):
        result = contract_service.approve_contract(db_session, pending_contract["contract_id"], approver.id)
        assert result["payments_created"] == 3

        contract = db_session.get(InstallmentContract, pending_contract["contract_id"])
        assert contract.status == "active"
        assert contract.approval.status == "approved"
        assert contract.approval.approver_id == approver.id

        rows = db_session.query(InstallmentPayment).filter_by(sale_id=contract.sale_id).order_by(InstallmentPayment.month_number).all()
        assert [r.month_number for r in rows] == [1, 2, 3]
        assert [r.due_date for r in rows] == [date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15)]
        assert all(r.amount_due_cents == 10000 and r.amount_paid_cents == 0 and r.status == "pending" for r in rows)

    def test_approve_does_not_touch_quantity(self, db_session, approver, pending_contract, item):
        contract_service.approve_contract(db_session, pending_contract["contract_id"], approver.id)
        refreshed = db_session.get(Item, item.id)
        assert refreshed.quantity == 2
        # No longer pending, so no longer reserved
        assert _available(db_session, item.id) == 2

    def test_approve_twice_fails_without_duplicate_schedule(self, db_session, approver, pending_contract):
        contract_id = pending_contract["contract_id"]
        contract_service.approve_contract(db_session, contract_id, approver.id)

        with pytest.raises(InvalidStateError):
            contract_service.approve_contract(db_session, contract_id, approver.id)

        assert db_session.query(InstallmentPayment).count() == 3

    def test_approve_unknown_contract(self, db_session, approver):
        with pytest.raises(NotFoundError):
            contract_service.approve_contract(db_session, 424242, approver.id)

    def test_zero_month_contract_activates_without_schedule(self, db_session, worker, approver, item):
        result = apply(db_session, worker.id, item.id, months=0)
        approved = contract_service.approve_contract(db_session, result["contract_id"], approver.id)

        assert approved["payments_created"] == 0
        assert db_session.get(InstallmentContract, result["contract_id"]).status == "active"
        assert db_session.query(InstallmentPayment).count() == 0


# =============================================================================
# REJECT
# =============================================================================


class TestReject:

    def test_reject_releases_reservation(self, db_session, approver, pending_contract, item):
        contract_service.reject_contract(db_session, pending_contract["contract_id"], approver.id, "Income not verified")

        contract = db_session.get(InstallmentContract, pending_contract["contract_id"])
        assert contract.status == "rejected"
        assert contract.approval.status == "rejected"
        assert contract.approval.reason == "Income not verified"

        refreshed = db_session.get(Item, item.id)
        assert refreshed.quantity == 3
        assert _available(db_session, item.id) == 3

        returns = db_session.query(InventoryLog).filter_by(item_id=item.id, change_type="return").all()
        assert [log.quantity_changed for log in returns] == [1]

    def test_reject_twice_releases_once(self, db_session, approver, pending_contract, item):
        contract_id = pending_contract["contract_id"]
        contract_service.reject_contract(db_session, contract_id, approver.id, None)

        with pytest.raises(InvalidStateError):
            contract_service.reject_contract(db_session, contract_id, approver.id, None)

        assert db_session.get(Item, item.id).quantity == 3

    def test_reject_active_contract_fails(self, db_session, approver, active_contract, item):
        with pytest.raises(InvalidStateError):
            contract_service.reject_contract(db_session, active_contract.id, approver.id, "late")
        assert db_session.get(Item, item.id).quantity == 2
        assert db_session.get(InstallmentContract, active_contract.id).status == "active"

    def test_approve_rejected_contract_fails(self, db_session, approver, pending_contract):
        contract_id = pending_contract["contract_id"]
        contract_service.reject_contract(db_session, contract_id, approver.id, None)
        with pytest.raises(InvalidStateError):
            contract_service.approve_contract(db_session, contract_id, approver.id)
        assert db_session.query(InstallmentPayment).count() == 0


# =============================================================================
# AVAILABILITY INVARIANT
# =============================================================================


def test_available_quantity_tracks_pending_contracts(db_session, worker, approver):
    stock = make_item(db_session, name="Television", quantity=3)
    first = apply(db_session, worker.id, stock.id, customer=customer_payload(id_card_number="A"))
    second = apply(db_session, worker.id, stock.id, customer=customer_payload(id_card_number="B"))
    assert _available(db_session, stock.id) == 1

    contract_service.approve_contract(db_session, first["contract_id"], approver.id)
    assert db_session.get(Item, stock.id).quantity == 3
    assert _available(db_session, stock.id) == 2

    contract_service.reject_contract(db_session, second["contract_id"], approver.id, None)
    assert db_session.get(Item, stock.id).quantity == 4
    assert _available(db_session, stock.id) == 4


# =============================================================================
# READ PROJECTIONS
# =============================================================================


class TestProjections:

    def test_pending_list(self, db_session, worker, approver, item):
        first = apply(db_session, worker.id, item.id, customer=customer_payload(id_card_number="A", full_name="Ann"))
        second = apply(db_session, worker.id, item.id, customer=customer_payload(id_card_number="B", full_name="Bob"))
        contract_service.approve_contract(db_session, first["contract_id"], approver.id)

        pending = contract_service.get_pending_contracts(db_session)
        assert [c["id"] for c in pending] == [second["contract_id"]]
        assert pending[0]["customer_name"] == "Bob"
        assert pending[0]["item_name"] == item.name
        assert pending[0]["approval_status"] == "pending_review"

    def test_all_contracts_with_progress_and_filter(self, db_session, active_contract, worker, item):
        apply(db_session, worker.id, item.id, customer=customer_payload(id_card_number="Z"))

        everything = contract_service.get_all_contracts(db_session)
        assert len(everything) == 2
        active = contract_service.get_all_contracts(db_session, status="active")
        assert [c["id"] for c in active] == [active_contract.id]
        assert active[0]["total_payments"] == 3
        assert active[0]["paid_payments"] == 0

        with pytest.raises(ValidationError):
            contract_service.get_all_contracts(db_session, status="bogus")

    def test_contract_detail(self, db_session, worker, item):
        result = apply(
            db_session,
            worker.id,
            item.id,
            sponsors=[{"full_name": "Sam Sponsor", "id_card_number": "S-1", "id_card_image": b"img"}],
        )
        detail = contract_service.get_contract_by_id(db_session, result["contract_id"])
        assert detail["sale_number"] == result["sale_number"]
        assert detail["customer_id_card_number"] == "C-200"
        assert detail["worker_name"] == "clerk"
        assert detail["sponsors"][0]["has_id_card_image"] is True
        assert "id_card_image" not in detail["sponsors"][0]

    def test_contract_detail_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            contract_service.get_contract_by_id(db_session, 77)
