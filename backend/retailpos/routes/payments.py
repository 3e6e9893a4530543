# Overview: Flask API routes for installment payments; parses input and returns JSON responses.

# backend/retailpos/routes/payments.py
"""
Installment Payment API Routes

Amounts are integer cents. A payment larger than the month's balance rolls
the excess into following months of the same contract.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import payment_service
from ..validation import coerce_date


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("/search")
def search_contracts_route():
    """Active contracts whose customer name contains ?customer=."""
    try:
        contracts = payment_service.search_active_contracts(db.session, request.args.get("customer", ""))
        return jsonify({"contracts": contracts}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to search contracts")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/contract/<int:contract_id>")
def contract_payments_route(contract_id: int):
    try:
        payments = payment_service.get_payments_by_contract(db.session, contract_id)
        return jsonify({
            "contract_id": contract_id,
            "payments": [p.to_dict() for p in payments],
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load contract payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/process")
def process_payment_route():
    """
    Apply a payment to one scheduled month.

    Request body:
    {
        "payment_id": 12,
        "amount_paid_cents": 25000,
        "worker_id": 1
    }

    Returns:
        200: {"message", "contract_completed", "transactions"}
        400: invalid input
        404: payment not found
        409: contract not active
    """
    payload = request.get_json(silent=True) or {}
    payment_id = payload.get("payment_id")
    amount = payload.get("amount_paid_cents")
    worker_id = payload.get("worker_id")

    if not payment_id or amount is None or not worker_id:
        return jsonify({
            "error": "payment_id, amount_paid_cents and worker_id are required",
            "details": {},
        }), 400

    try:
        result = payment_service.apply_payment(db.session, payment_id, amount, worker_id)
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/transactions/<int:payment_id>")
def payment_transactions_route(payment_id: int):
    try:
        transactions = payment_service.get_payment_transactions(db.session, payment_id)
        return jsonify({
            "payment_id": payment_id,
            "transactions": [t.to_dict() for t in transactions],
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment transactions")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/summary/<int:contract_id>")
def payment_summary_route(contract_id: int):
    try:
        return jsonify({"summary": payment_service.get_payment_summary(db.session, contract_id)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment summary")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/overdue")
def overdue_payments_route():
    """
    Query params:
    - as_of: YYYY-MM-DD (default today)
    """
    try:
        as_of = request.args.get("as_of")
        as_of = coerce_date(as_of, "as_of") if as_of else None
        return jsonify({"payments": payment_service.get_overdue_payments(db.session, as_of=as_of)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load overdue payments")
        return jsonify({"error": "Internal server error"}), 500
