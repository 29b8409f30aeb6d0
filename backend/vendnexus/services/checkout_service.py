"""
Checkout Service - cart to ledger

Turns a cart into sale records and stock decrements in one transaction.

PRICING: revenue and profit use the price/cost captured on the CartItem when
it was added, never the live catalog row.

OVERSELL: a cart may ask for more than is in stock. The sale is recorded in
full and stock clamps at zero.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..extensions import db
from ..models import CartItem, PaymentMethod, Product, SaleRecord
from ..time_utils import now_ms
from . import catalog_service, ledger_service

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised for malformed checkout input. Nothing has been written when this is raised."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# ---------------------------------------------------------------------------
# Cart helpers
# ---------------------------------------------------------------------------

def add_to_cart(cart: list[CartItem], product: Product, quantity: int = 1) -> list[CartItem]:
    """
    Return a new cart with `quantity` more units of `product`.

    An existing line keeps the prices it captured on first add.
    """
    updated: list[CartItem] = []
    found = False
    for item in cart:
        if item.product_id == product.id:
            updated.append(item.with_quantity(item.cart_quantity + quantity))
            found = True
        else:
            updated.append(item)
    if not found:
        updated.append(CartItem.from_product(product, cart_quantity=quantity))
    return updated


def remove_from_cart(cart: list[CartItem], product_id: str) -> list[CartItem]:
    return [item for item in cart if item.product_id != product_id]


def cart_total_cents(cart: Iterable[CartItem]) -> int:
    return sum(item.line_total_cents for item in cart)


def cart_item_count(cart: Iterable[CartItem]) -> int:
    return sum(item.cart_quantity for item in cart)


def build_cart(items: list[dict]) -> list[CartItem]:
    """
    Build a cart from [{"product_id": ..., "quantity": ...}, ...].

    Prices are captured from the catalog now, as if each line were added to
    the cart at this moment. Repeated product ids merge into one line.

    Raises:
        CheckoutError: unknown product, bad quantity, or malformed item
    """
    if not isinstance(items, list):
        raise CheckoutError("items must be a list")

    cart: list[CartItem] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise CheckoutError("Each item must be an object", details={"index": index})

        product_id = raw.get("product_id")
        quantity = raw.get("quantity", 1)

        if not isinstance(product_id, str) or not product_id:
            raise CheckoutError("product_id is required", details={"index": index})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise CheckoutError("quantity must be a positive integer", details={"index": index})

        product = catalog_service.get_product(product_id)
        if product is None:
            raise CheckoutError("Product not found", details={"product_id": product_id})

        cart = add_to_cart(cart, product, quantity)
    return cart


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

def checkout(cart: list[CartItem], method: PaymentMethod) -> list[SaleRecord]:
    """
    Record one sale per cart line and decrement stock, in cart order.

    - Every record shares one timestamp.
    - Stock clamps at zero.
    - An empty cart is a no-op and returns [].
    - A line whose product has been removed since it was carted still records
      its sale; there is no stock left to decrement.

    All lines commit together.
    """
    if not cart:
        return []

    method = PaymentMethod.parse(method)
    timestamp = now_ms()
    records: list[SaleRecord] = []

    try:
        for item in cart:
            sale = SaleRecord(
                product_id=item.product_id,
                product_name=item.name,
                machine_id=item.machine_id,
                quantity=item.cart_quantity,
                revenue_cents=item.price_cents * item.cart_quantity,
                profit_cents=(item.price_cents - item.cost_cents) * item.cart_quantity,
                timestamp=timestamp,
                payment_method=method,
            )
            records.append(ledger_service.record(sale))

            product = catalog_service.get_product(item.product_id)
            if product is not None:
                catalog_service.set_quantity(product, product.quantity - item.cart_quantity)
            else:
                logger.warning("Checkout line for removed product %s; stock not decremented", item.product_id)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Checkout via %s: %d line(s), %d cents",
        method.value, len(records), sum(r.revenue_cents for r in records),
    )
    return records
