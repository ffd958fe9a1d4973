# Overview: Flask API routes for buy/sell carts; parses input and returns JSON responses.

"""
Cart routes. <kind> is "buy" or "sell"; every route works on the acting
user's open cart of that kind.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import FulfillmentError
from ..services import cart_service
from ..decorators import require_actor


carts_bp = Blueprint("carts", __name__, url_prefix="/api/cart")


@carts_bp.get("/<kind>")
@require_actor
def get_cart_route(kind: str):
    try:
        cart = cart_service.find_open_cart(g.current_user.id, kind)
        return jsonify(cart_service.cart_summary(cart)), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code


@carts_bp.post("/<kind>/add")
@require_actor
def add_to_cart_route(kind: str):
    """
    Add a product to the cart.

    Body: {"product_id": int, "quantity": int (default 1)}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        quantity = data.get("quantity", 1)

        if not product_id:
            return jsonify({"error": "Product ID is required"}), 400
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            return jsonify({"error": "product_id must be an integer"}), 400

        line = cart_service.add_to_cart(g.current_user.id, kind, product_id, quantity)
        return jsonify({"line": line.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add cart line")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.put("/<kind>/update")
@require_actor
def update_cart_route(kind: str):
    """
    Set a line's quantity; 0 removes the line.

    Body: {"product_id": int, "quantity": int}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        quantity = data.get("quantity")

        if not product_id or quantity is None:
            return jsonify({"error": "product_id and quantity required"}), 400

        line = cart_service.update_line(g.current_user.id, kind, product_id, quantity)
        return jsonify({"line": line.to_dict() if line else None}), 200

    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update cart line")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.delete("/<kind>/remove/<int:product_id>")
@require_actor
def remove_from_cart_route(kind: str, product_id: int):
    try:
        cart_service.remove_line(g.current_user.id, kind, product_id)
        return jsonify({"message": "Item removed from cart"}), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove cart line")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.delete("/<kind>/clear")
@require_actor
def clear_cart_route(kind: str):
    try:
        deleted = cart_service.clear_cart(g.current_user.id, kind)
        return jsonify({"message": "Cart cleared successfully", "deleted_items": deleted}), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500
