"""
HTTP surface tests.

Verifies status codes and the {"error", "details"} failure shape for the
item, contract, payment, customer and POS blueprints.
"""

import io
import json

import pytest

from conftest import contract_payload, customer_payload, make_item
from retailpos.models import ContractCustomer, ContractSponsor


def _apply_json(client, worker_id, item_id, **terms):
    return client.post("/api/contracts/apply", json={
        "customer_data": customer_payload(),
        "sponsors_data": [],
        "contract_data": contract_payload(worker_id, item_id, **terms),
    })


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["details"]["items"] == 0

    def test_cors_allows_dev_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        other = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in other.headers


class TestItemRoutes:

    def test_create_and_fetch(self, client, db_session):
        resp = client.post("/api/items", json={"name": "Heater", "price_cash_cents": 4500, "quantity": 2})
        assert resp.status_code == 201
        item_id = resp.json["item"]["id"]

        detail = client.get(f"/api/items/{item_id}")
        assert detail.status_code == 200
        assert detail.json["item"]["available_quantity"] == 2

        listing = client.get("/api/items")
        assert [i["id"] for i in listing.json["items"]] == [item_id]

    def test_invalid_item(self, client, db_session):
        resp = client.post("/api/items", json={"name": "Heater", "price_cash_cents": "4.50", "quantity": 2})
        assert resp.status_code == 400
        assert "error" in resp.json

    def test_unknown_item(self, client, db_session):
        resp = client.get("/api/items/999")
        assert resp.status_code == 404
        assert resp.json["details"] == {}

        logs = client.get("/api/items/999/logs")
        assert logs.status_code == 404


class TestContractRoutes:

    def test_full_lifecycle(self, client, db_session, worker, approver, item):
        resp = _apply_json(client, worker.id, item.id)
        assert resp.status_code == 201
        contract_id = resp.json["contract_id"]

        pending = client.get("/api/contracts/pending")
        assert [c["id"] for c in pending.json["contracts"]] == [contract_id]

        approved = client.put(f"/api/contracts/{contract_id}/approve", json={"approver_id": approver.id})
        assert approved.status_code == 200
        assert approved.json["payments_created"] == 3

        again = client.put(f"/api/contracts/{contract_id}/approve", json={"approver_id": approver.id})
        assert again.status_code == 409

        schedule = client.get(f"/api/contracts/{contract_id}/payments")
        assert [p["month_number"] for p in schedule.json["payments"]] == [1, 2, 3]

        active = client.get("/api/contracts?status=active")
        assert active.json["contracts"][0]["total_payments"] == 3

        detail = client.get(f"/api/contracts/{contract_id}")
        assert detail.json["contract"]["status"] == "active"

    def test_apply_multipart_with_images(self, client, db_session, worker, item):
        sponsors = [{"full_name": "Sam Sponsor", "id_card_number": "S-1"}]
        resp = client.post(
            "/api/contracts/apply",
            data={
                "customer_data": json.dumps(customer_payload()),
                "sponsors_data": json.dumps(sponsors),
                "contract_data": json.dumps(contract_payload(worker.id, item.id)),
                "customer_id_card_image": (io.BytesIO(b"customer-bytes"), "customer.jpg"),
                "sponsor_0_id_card_image": (io.BytesIO(b"sponsor-bytes"), "sponsor.jpg"),
            },
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201

        customer = db_session.query(ContractCustomer).one()
        assert customer.id_card_image == b"customer-bytes"
        sponsor = db_session.query(ContractSponsor).one()
        assert sponsor.id_card_image == b"sponsor-bytes"

    def test_apply_multipart_bad_json(self, client, db_session):
        resp = client.post(
            "/api/contracts/apply",
            data={"customer_data": "{not json", "contract_data": "{}"},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_apply_when_exhausted(self, client, db_session, worker):
        single = make_item(db_session, name="Washer", quantity=1)
        assert _apply_json(client, worker.id, single.id).status_code == 201

        resp = _apply_json(client, worker.id, single.id)
        assert resp.status_code == 409
        assert resp.json["details"]["available_quantity"] == 0

    def test_apply_missing_fields(self, client, db_session):
        resp = client.post("/api/contracts/apply", json={"customer_data": customer_payload(), "contract_data": {}})
        assert resp.status_code == 400
        assert "worker_id" in resp.json["details"]["missing"]

    def test_reject_and_approver_required(self, client, db_session, worker, approver, item):
        contract_id = _apply_json(client, worker.id, item.id).json["contract_id"]

        missing = client.put(f"/api/contracts/{contract_id}/reject", json={})
        assert missing.status_code == 400

        rejected = client.put(
            f"/api/contracts/{contract_id}/reject",
            json={"approver_id": approver.id, "reason": "Incomplete documents"},
        )
        assert rejected.status_code == 200

        item_detail = client.get(f"/api/items/{item.id}")
        assert item_detail.json["item"]["quantity"] == 3

    def test_unknown_contract(self, client, db_session, approver):
        assert client.get("/api/contracts/55").status_code == 404
        assert client.put("/api/contracts/55/approve", json={"approver_id": approver.id}).status_code == 404

    def test_installment_items(self, client, db_session, item):
        resp = client.get("/api/contracts/items")
        assert [i["id"] for i in resp.json["items"]] == [item.id]


class TestPaymentRoutes:

    def test_process_cascade_and_queries(self, client, db_session, worker, active_contract, schedule):
        resp = client.post("/api/payments/process", json={
            "payment_id": schedule[0].id,
            "amount_paid_cents": 25000,
            "worker_id": worker.id,
        })
        assert resp.status_code == 200
        assert resp.json["contract_completed"] is False
        assert [t["amount_paid_cents"] for t in resp.json["transactions"]] == [10000, 10000, 5000]

        payments = client.get(f"/api/payments/contract/{active_contract.id}")
        assert [p["status"] for p in payments.json["payments"]] == ["paid", "paid", "partial"]

        txs = client.get(f"/api/payments/transactions/{schedule[2].id}")
        assert [t["amount_paid_cents"] for t in txs.json["transactions"]] == [5000]

        summary = client.get(f"/api/payments/summary/{active_contract.id}")
        assert summary.json["summary"]["progress"]["remaining_amount_cents"] == 5000

        search = client.get("/api/payments/search?customer=Jane")
        assert [c["id"] for c in search.json["contracts"]] == [active_contract.id]

    @pytest.mark.parametrize("body,status", [
        ({}, 400),
        ({"payment_id": 1, "worker_id": 1}, 400),
        ({"payment_id": 999, "amount_paid_cents": 100, "worker_id": 1}, 404),
    ])
    def test_process_errors(self, client, db_session, body, status):
        resp = client.post("/api/payments/process", json=body)
        assert resp.status_code == status
        assert "error" in resp.json

    def test_process_decimal_amount(self, client, db_session, worker, schedule):
        resp = client.post("/api/payments/process", json={
            "payment_id": schedule[0].id,
            "amount_paid_cents": 100.5,
            "worker_id": worker.id,
        })
        assert resp.status_code == 400

    def test_search_requires_customer(self, client, db_session):
        assert client.get("/api/payments/search").status_code == 400

    def test_overdue(self, client, db_session, active_contract):
        resp = client.get("/api/payments/overdue?as_of=2024-03-20")
        assert resp.status_code == 200
        assert [p["month_number"] for p in resp.json["payments"]] == [1, 2]

        bad = client.get("/api/payments/overdue?as_of=yesterday")
        assert bad.status_code == 400


class TestCustomerAndPosRoutes:

    def test_check_and_upsert(self, client, db_session):
        missing = client.post("/api/customers/check", json={"id_card_number": "C-200"})
        assert missing.json == {"exists": False, "customer": None}

        created = client.post("/api/customers/create-or-update", json=customer_payload())
        assert created.status_code == 201

        found = client.post("/api/customers/check", json={"id_card_number": "C-200"})
        assert found.json["exists"] is True
        assert found.json["customer"]["type"] == "contract_customer"

        updated = client.post("/api/customers/create-or-update", json=customer_payload(phone="555-7777"))
        assert updated.status_code == 200
        assert updated.json["created"] is False

    def test_checkout(self, client, db_session, worker):
        tv = make_item(db_session, name="TV", quantity=1, price_cash_cents=50000)

        resp = client.post("/api/pos/checkout", json={"user_id": worker.id, "cart": [{"id": tv.id, "qty": 1}]})
        assert resp.status_code == 201
        assert resp.json["total_price_cents"] == 50000

        again = client.post("/api/pos/checkout", json={"user_id": worker.id, "cart": [{"id": tv.id, "qty": 1}]})
        assert again.status_code == 409
        assert again.json["details"]["items"][0]["available"] == 0

        items = client.get("/api/pos/items")
        assert items.json["items"][0]["quantity"] == 0

    def test_empty_cart(self, client, db_session, worker):
        resp = client.post("/api/pos/checkout", json={"user_id": worker.id, "cart": []})
        assert resp.status_code == 400
