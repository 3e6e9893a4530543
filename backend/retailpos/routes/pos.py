# Overview: Flask API routes for point-of-sale cash checkout.

# backend/retailpos/routes/pos.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import pos_service


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.get("/items")
def pos_items_route():
    """All items, in-stock first."""
    try:
        return jsonify({"items": pos_service.list_pos_items(db.session)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load POS items")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/checkout")
def checkout_route():
    """
    Sell a cart for cash.

    Request body:
    {
        "user_id": 1,
        "cart": [{"id": 3, "qty": 2}, {"id": 5, "qty": 1}]
    }

    Returns:
        201: {"message", "sale_number", "total_price_cents", "items_sold"}
        400: empty cart / missing user
        404: unknown item
        409: insufficient quantity (details.items lists the short lines)
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = pos_service.checkout(db.session, payload.get("cart"), payload.get("user_id"))
        return jsonify(result), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500
