# Overview: Flask API routes for installment contracts; parses input and returns JSON responses.

# backend/retailpos/routes/contracts.py
"""
Installment Contract API Routes

DESIGN:
- POST /apply accepts either a JSON body or a multipart form. The multipart
  form carries customer_data / sponsors_data / contract_data as JSON strings
  plus optional ID-card image files:
    customer_id_card_image
    sponsor_<index>_id_card_image
- Image bytes are passed through untouched; responses only report whether an
  image is stored.
- approve / reject identify the acting worker by approver_id in the body.
"""

import json

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError, ValidationError
from ..extensions import db
from ..services import contract_service, inventory_service


contracts_bp = Blueprint("contracts", __name__, url_prefix="/api/contracts")


def _load_json_field(form, name: str, default):
    raw = form.get(name)
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(f"{name} must be valid JSON")


def _parse_apply_request() -> tuple[dict, list, dict]:
    if request.mimetype == "multipart/form-data":
        customer_data = _load_json_field(request.form, "customer_data", {})
        sponsors_data = _load_json_field(request.form, "sponsors_data", [])
        contract_data = _load_json_field(request.form, "contract_data", {})
        if not isinstance(customer_data, dict) or not isinstance(contract_data, dict):
            raise ValidationError("customer_data and contract_data must be objects")
        if not isinstance(sponsors_data, list):
            raise ValidationError("sponsors_data must be a list")

        customer_file = request.files.get("customer_id_card_image")
        if customer_file:
            customer_data["id_card_image"] = customer_file.read()
        for index, sponsor in enumerate(sponsors_data):
            sponsor_file = request.files.get(f"sponsor_{index}_id_card_image")
            if sponsor_file and isinstance(sponsor, dict):
                sponsor["id_card_image"] = sponsor_file.read()
        return customer_data, sponsors_data, contract_data

    payload = request.get_json(silent=True) or {}
    customer_data = payload.get("customer_data") or {}
    sponsors_data = payload.get("sponsors_data") or []
    contract_data = payload.get("contract_data") or {}
    if not isinstance(customer_data, dict) or not isinstance(contract_data, dict):
        raise ValidationError("customer_data and contract_data must be objects")
    if not isinstance(sponsors_data, list):
        raise ValidationError("sponsors_data must be a list")

    # JSON cannot carry raw image bytes
    for record in [customer_data, *[s for s in sponsors_data if isinstance(s, dict)]]:
        if record.get("id_card_image") is not None:
            raise ValidationError("ID-card images must be uploaded as multipart files")
    return customer_data, sponsors_data, contract_data


# =============================================================================
# QUERIES
# =============================================================================

@contracts_bp.get("/items")
def installment_items_route():
    """Items that can currently be financed."""
    try:
        return jsonify({"items": inventory_service.get_installment_items(db.session)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load installment items")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.get("/pending")
def pending_contracts_route():
    try:
        return jsonify({"contracts": contract_service.get_pending_contracts(db.session)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load pending contracts")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.get("")
def list_contracts_route():
    """
    List contracts.

    Query params:
    - status: pending | active | completed | rejected | all (default all)
    """
    try:
        status = request.args.get("status")
        contracts = contract_service.get_all_contracts(db.session, status=status)
        return jsonify({"contracts": contracts}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list contracts")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.get("/<int:contract_id>")
def get_contract_route(contract_id: int):
    try:
        return jsonify({"contract": contract_service.get_contract_by_id(db.session, contract_id)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.get("/<int:contract_id>/payments")
def contract_schedule_route(contract_id: int):
    try:
        payments = contract_service.get_contract_schedule(db.session, contract_id)
        return jsonify({
            "contract_id": contract_id,
            "payments": [p.to_dict() for p in payments],
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load contract schedule")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# TRANSITIONS
# =============================================================================

@contracts_bp.post("/apply")
def apply_contract_route():
    """
    Submit an installment application.

    JSON body:
    {
        "customer_data": {"full_name": "...", "id_card_number": "...", "phone": "..."},
        "sponsors_data": [{"full_name": "...", "id_card_number": "..."}],
        "contract_data": {
            "worker_id": 1,
            "item_id": 3,
            "total_price_cents": 120000,
            "down_payment_cents": 20000,
            "months": 10,
            "monthly_payment_cents": 10000,
            "start_date": "2024-01-31"
        }
    }

    Returns:
        201: {"contract_id", "sale_id", "sale_number"}
        400: invalid input
        404: item not found
        409: no unreserved unit left
    """
    try:
        customer_data, sponsors_data, contract_data = _parse_apply_request()
        result = contract_service.apply_contract(db.session, customer_data, sponsors_data, contract_data)
        result["message"] = "Contract application submitted successfully"
        return jsonify(result), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply for contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.put("/<int:contract_id>/approve")
def approve_contract_route(contract_id: int):
    payload = request.get_json(silent=True) or {}
    approver_id = payload.get("approver_id")
    if not approver_id:
        return jsonify({"error": "Approver ID is required", "details": {}}), 400

    try:
        result = contract_service.approve_contract(db.session, contract_id, approver_id)
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.put("/<int:contract_id>/reject")
def reject_contract_route(contract_id: int):
    payload = request.get_json(silent=True) or {}
    approver_id = payload.get("approver_id")
    if not approver_id:
        return jsonify({"error": "Approver ID is required", "details": {}}), 400

    try:
        result = contract_service.reject_contract(db.session, contract_id, approver_id, payload.get("reason"))
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject contract")
        return jsonify({"error": "Internal server error"}), 500
