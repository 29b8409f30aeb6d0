# Overview: Flask API routes for catalog products; parses input and returns JSON responses.

# backend/vendnexus/routes/products.py
"""
Product routes.

Payloads carry money as integer cents (price_cents, cost_cents). Dollar
amounts (price, cost) are accepted too and converted before validation;
sending both forms of the same field is rejected.
"""
from flask import Blueprint, current_app, request

from ..money import to_cents
from ..services import catalog_service, ledger_service
from ..services.catalog_service import CatalogError
from ..time_utils import now_ms
from ..validation import ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

DOLLAR_FIELDS = {"price": "price_cents", "cost": "cost_cents"}


def normalize_money_fields(payload: dict) -> dict:
    """Map dollar fields onto their cents columns."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    normalized = dict(payload)
    for dollars_key, cents_key in DOLLAR_FIELDS.items():
        if dollars_key not in normalized:
            continue
        if cents_key in normalized:
            raise ValidationError(f"Send either {dollars_key} or {cents_key}, not both")
        raw = normalized.pop(dollars_key)
        if raw is None:
            normalized[cents_key] = None
            continue
        try:
            normalized[cents_key] = to_cents(raw)
        except ValueError:
            raise ValidationError(f"{dollars_key} must be a number")
    return normalized


@products_bp.get("")
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - machine_id: str (optional) - only this machine
    - search: str (optional) - case-insensitive match on name or category
    """
    machine_id = request.args.get("machine_id") or None
    search = request.args.get("search") or None

    now = now_ms()
    products = catalog_service.list_products(machine_id=machine_id, search=search)
    return {"now": now, "items": [catalog_service.product_view(p, now) for p in products]}


@products_bp.get("/low-stock")
def low_stock_route():
    machine_id = request.args.get("machine_id") or None
    products = catalog_service.low_stock_products(machine_id=machine_id)
    return {"items": [p.to_dict() for p in products]}


@products_bp.get("/expiry-alerts")
def expiry_alerts_route():
    alerts = catalog_service.expiry_alerts()
    return {
        "now": alerts["now"],
        "expired": [p.to_dict() for p in alerts["expired"]],
        "near_expiry": [p.to_dict() for p in alerts["near_expiry"]],
    }


@products_bp.get("/<product_id>")
def get_product_route(product_id: str):
    product = catalog_service.get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return catalog_service.product_view(product, now_ms())


@products_bp.get("/<product_id>/sales")
def product_sales_route(product_id: str):
    """Sale history for one product id; survives product removal."""
    sales = ledger_service.sales_for_product(product_id)
    return {"product_id": product_id, "items": [s.to_dict() for s in sales]}


@products_bp.post("")
def create_product_route():
    """
    Create a product, or replace one if the payload carries an existing id.

    Returns 201 on create, 200 on replace.
    """
    try:
        payload = normalize_money_fields(request.get_json(silent=True) or {})
        existed = bool(payload.get("id")) and catalog_service.get_product(payload["id"]) is not None
        product = catalog_service.upsert_product(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CatalogError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to save product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 200 if existed else 201


@products_bp.put("/<product_id>")
def replace_product_route(product_id: str):
    """Replace an existing product. Omitted optional fields keep their values."""
    if catalog_service.get_product(product_id) is None:
        return {"error": "Product not found"}, 404

    try:
        payload = normalize_money_fields(request.get_json(silent=True) or {})
        if payload.get("id") not in (None, product_id):
            return {"error": "Payload id does not match URL"}, 400
        payload["id"] = product_id
        product = catalog_service.upsert_product(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CatalogError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to replace product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 200


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    if not catalog_service.remove_product(product_id):
        return {"error": "Product not found"}, 404
    return {"ok": True}, 200
