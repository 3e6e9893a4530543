# Overview: Flask API routes for customer identity lookup and upsert.

# backend/retailpos/routes/customers.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import customer_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("/check")
def check_customer_route():
    """
    Look up an ID-card number across workers, customers and sponsors.

    Request body: {"id_card_number": "..."}
    """
    payload = request.get_json(silent=True) or {}
    try:
        match = customer_service.find_by_id_card(db.session, payload.get("id_card_number"))
        if match is None:
            return jsonify({"exists": False, "customer": None}), 200
        return jsonify({"exists": True, "customer": match}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/create-or-update")
def create_or_update_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        result = customer_service.create_or_update_customer(db.session, payload)
        return jsonify(result), 201 if result["created"] else 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save customer")
        return jsonify({"error": "Internal server error"}), 500
