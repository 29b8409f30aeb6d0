# Overview: Flask API routes for the sales ledger and checkout; parses input and returns JSON responses.

# backend/vendnexus/routes/sales.py
"""Sales ledger and checkout routes. The ledger is read-only over HTTP; checkout is the only writer."""

from flask import Blueprint, current_app, jsonify, request

from ..models import PaymentMethod
from ..services import checkout_service, ledger_service
from ..services.checkout_service import CheckoutError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    Sale records, newest first.

    Query params:
    - machine_id: str (optional)
    - limit: int (optional)
    """
    machine_id = request.args.get("machine_id") or None
    limit = request.args.get("limit", type=int)
    sales = ledger_service.list_sales(machine_id=machine_id, limit=limit)
    return jsonify({"items": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/summary")
def summary_route():
    machine_id = request.args.get("machine_id") or None
    return jsonify(ledger_service.aggregate(machine_id=machine_id).to_dict()), 200


@sales_bp.get("/transactions")
def transactions_route():
    """Sale lines grouped back into checkouts, newest first."""
    machine_id = request.args.get("machine_id") or None
    limit = request.args.get("limit", type=int)
    rows = ledger_service.transactions(machine_id=machine_id, limit=limit)
    return jsonify({"items": rows}), 200


@sales_bp.get("/payment-methods")
def payment_methods_route():
    return jsonify({"items": [{"name": m.name, "label": m.value} for m in PaymentMethod]}), 200


@sales_bp.post("/checkout")
def checkout_route():
    """
    Check out a cart.

    Body:
    {
        "payment_method": "UPI",
        "items": [{"product_id": "p1", "quantity": 2}, ...]
    }

    An empty items list records nothing and returns 200 with no sales.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        method = PaymentMethod.parse(data.get("payment_method"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        cart = checkout_service.build_cart(data.get("items", []))
        records = checkout_service.checkout(cart, method)
    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500

    body = {
        "sales": [r.to_dict() for r in records],
        "cart": [item.to_dict() for item in cart],
        "total_cents": checkout_service.cart_total_cents(cart),
        "item_count": checkout_service.cart_item_count(cart),
    }
    return jsonify(body), 201 if records else 200
