# Overview: Flask API routes for the item catalog and its inventory log.

# backend/retailpos/routes/items.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import inventory_service


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
def list_items_route():
    try:
        items = inventory_service.list_items(db.session)
        return jsonify({"items": items}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("")
def create_item_route():
    """
    Create an item.

    Request body (prices in cents):
    {
        "name": "Refrigerator",
        "price_cash_cents": 150000,
        "price_installment_total_cents": 180000,
        "installment_months": 12,
        "installment_per_month_cents": 15000,
        "quantity": 3,
        "installment": true
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.create_item(db.session, payload)
        return jsonify({"item": item.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    try:
        return jsonify({"item": inventory_service.get_item_detail(db.session, item_id)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>/logs")
def get_item_logs_route(item_id: int):
    try:
        logs = inventory_service.get_inventory_logs(db.session, item_id)
        return jsonify({"item_id": item_id, "logs": [log.to_dict() for log in logs]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load inventory logs")
        return jsonify({"error": "Internal server error"}), 500
