# Overview: Flask API routes for checkout and orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import FulfillmentError
from ..services import order_service
from ..decorators import require_actor, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/checkout")
@require_actor
@require_role("buyer", "seller")
def checkout_route():
    """
    Turn the actor's cart into an order.

    Body: {"cart_id": int, "payment_method": "cash" | "upi"}
    Buyers create buy orders, sellers create sell orders.
    """
    try:
        data = request.get_json(silent=True) or {}
        cart_id = data.get("cart_id")
        payment_method = data.get("payment_method")

        if not isinstance(cart_id, int) or isinstance(cart_id, bool):
            return jsonify({"error": "cart_id must be an integer"}), 400

        result = order_service.create_order(
            actor_id=g.current_user.id,
            cart_id=cart_id,
            order_kind=order_service.kind_for_role(g.actor_role),
            payment_method=payment_method,
        )
        return jsonify({"order": result}), 201

    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_actor
def list_orders_route():
    """
    List the actor's orders, newest first.

    Query params: kind, status, page (default 1), limit (default 10)
    """
    try:
        page = request.args.get("page", 1, type=int)
        limit = request.args.get("limit", 10, type=int)
        result = order_service.list_orders(
            g.current_user.id,
            kind=request.args.get("kind"),
            status=request.args.get("status"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "orders": [o.to_dict() for o in result["orders"]],
            "pagination": result["pagination"],
        }), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user.id, g.actor_role)
        return jsonify({"order": order.to_dict(include_lines=True)}), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_actor
def update_order_status_route(order_id: int):
    """
    Body: {"status": "completed" | "cancelled"}
    Owner or admin only; only pending orders can change.
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        order = order_service.update_order_status(order_id, g.current_user.id, g.actor_role, status)
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
