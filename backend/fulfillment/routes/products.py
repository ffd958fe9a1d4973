# Overview: Flask API routes for product and serial lookups; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..services import inventory_service, serial_service
from ..decorators import require_actor


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_actor
def list_products_route():
    """
    List catalog products with live available quantities.

    Query params:
    - name: str (optional) - exact product name filter
    """
    products = inventory_service.list_products(name=request.args.get("name"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code


@products_bp.get("/<int:product_id>/serials")
@require_actor
def list_serials_route(product_id: int):
    """
    List a product's serial ledger rows, lowest number first.

    Query params:
    - consumed: "true" | "false" (optional) - only consumed / unconsumed units
    """
    consumed_arg = request.args.get("consumed")
    consumed = None
    if consumed_arg is not None:
        if consumed_arg.lower() not in ("true", "false"):
            return jsonify({"error": "consumed must be true or false"}), 400
        consumed = consumed_arg.lower() == "true"

    try:
        inventory_service.get_product(product_id)
        serials = serial_service.list_serials(product_id, consumed=consumed)
        return jsonify({"serials": [s.to_dict() for s in serials]}), 200
    except FulfillmentError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list serials")
        return jsonify({"error": "Internal server error"}), 500
