# Overview: Flask API routes for the AI assistant; async views awaiting the advisory oracle.

# backend/vendnexus/routes/assistant.py
"""
Assistant routes.

Catalog and ledger reads happen before the oracle is awaited. Oracle
failures come back as normal 200 bodies (an apology text or an error
field); only bad input and invalid popup transitions are 4xx.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import catalog_service, ledger_service
from ..services.advisory_session import (
    PCM_SAMPLE_RATE,
    AdvisorySession,
    PriceSuggestionStateError,
    smart_reorder,
)
from ..services.catalog_service import CatalogError
from ..services.insight_context import build_assistant_context, build_snapshot
from ..validation import ValidationError
from .products import normalize_money_fields

assistant_bp = Blueprint("assistant", __name__, url_prefix="/api/assistant")


def get_advisory() -> AdvisorySession:
    return current_app.extensions["vendnexus.advisory"]


def _insight_snapshot() -> dict:
    return build_snapshot(
        catalog_service.list_products(),
        ledger_service.list_sales(),
        catalog_service.list_machines(),
        recent_sales_limit=current_app.config["RECENT_SALES_LIMIT"],
    )


@assistant_bp.post("/insight")
async def insight_route():
    """Body: {"query": "..."}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        return jsonify({"error": "query is required"}), 400

    snapshot = _insight_snapshot()
    text = await get_advisory().oracle.get_insight(query.strip(), snapshot)
    return jsonify({"text": text}), 200


@assistant_bp.post("/smart-reorder")
async def smart_reorder_route():
    advisory = get_advisory()
    text = await smart_reorder(
        advisory.oracle,
        catalog_service.list_products(),
        catalog_service.list_machines(),
    )
    return jsonify({"text": text}), 200


@assistant_bp.get("/chat")
def transcript_route():
    return jsonify(get_advisory().chat.to_dict()), 200


@assistant_bp.delete("/chat")
def reset_chat_route():
    chat = get_advisory().chat
    chat.reset()
    return jsonify(chat.to_dict()), 200


@assistant_bp.post("/chat")
async def chat_route():
    """Body: {"message": "..."}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "message is required"}), 400

    advisory = get_advisory()
    snapshot = build_assistant_context(
        catalog_service.list_products(),
        ledger_service.list_sales(),
        catalog_service.list_machines(),
    )

    try:
        reply = await advisory.chat.send(advisory.oracle, message, snapshot)
    except Exception:
        current_app.logger.exception("Failed to send chat message")
        return jsonify({"error": "Internal server error"}), 500

    audio = None
    samples = advisory.chat.last_audio
    if samples is not None:
        audio = {
            "sample_rate": PCM_SAMPLE_RATE,
            "frames": int(samples.shape[0]),
            "duration_seconds": round(samples.shape[0] / PCM_SAMPLE_RATE, 3),
        }
    return jsonify({"reply": reply.to_dict(), "audio": audio}), 200


@assistant_bp.get("/price-suggestion")
def price_suggestion_state_route():
    return jsonify(get_advisory().popup.to_dict()), 200


@assistant_bp.post("/price-suggestion")
async def request_price_suggestion_route():
    """
    Body, one of:
    - {"product_id": "p1"}: a saved product
    - {"product": {"name": ..., "price": ..., ...}}: the unsaved add/edit form;
      an "id" inside it pulls that product's sales history

    Returns the popup state after the oracle answers: ready, failed, or idle
    if the request was dismissed or superseded meanwhile.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    if "product" in data:
        try:
            product = catalog_service.draft_product(normalize_money_fields(data["product"]))
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except CatalogError as e:
            return jsonify({"error": str(e), "details": e.details}), 400
    else:
        product_id = data.get("product_id")
        if not isinstance(product_id, str) or not product_id:
            return jsonify({"error": "product_id or product is required"}), 400

        product = catalog_service.get_product(product_id)
        if product is None:
            return jsonify({"error": "Product not found"}), 404

    advisory = get_advisory()
    sales_window = ledger_service.sales_for_product(product.id) if product.id else []
    try:
        state = await advisory.popup.request(advisory.oracle, product, sales_window)
    except PriceSuggestionStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(state), 200


@assistant_bp.post("/price-suggestion/apply")
def apply_price_suggestion_route():
    """
    Close the popup and return the suggested price.

    The catalog is not written; save the price with PUT /api/products/<id>.
    """
    try:
        applied = get_advisory().popup.apply()
    except PriceSuggestionStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(applied), 200


@assistant_bp.post("/price-suggestion/dismiss")
def dismiss_price_suggestion_route():
    popup = get_advisory().popup
    popup.dismiss()
    return jsonify(popup.to_dict()), 200


@assistant_bp.post("/product-image")
async def product_image_route():
    """Body: {"name": "Cold Brew Coffee"}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return jsonify({"error": "name is required"}), 400

    image = await get_advisory().oracle.generate_product_image(name.strip())
    return jsonify({"image": image}), 200
