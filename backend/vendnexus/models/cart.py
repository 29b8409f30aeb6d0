from __future__ import annotations

from dataclasses import dataclass, replace

from ..money import to_dollars
from .catalog import Product


@dataclass(frozen=True)
class CartItem:
    """
    Product snapshot taken when the customer first adds it to the cart.

    price_cents and cost_cents are frozen here so a price edit made while the
    cart is open cannot change what the customer is charged. Never persisted.
    """
    product_id: str
    machine_id: str
    name: str
    category: str
    price_cents: int
    cost_cents: int
    stock_at_add: int
    cart_quantity: int = 1

    @classmethod
    def from_product(cls, product: Product, cart_quantity: int = 1) -> "CartItem":
        return cls(
            product_id=product.id,
            machine_id=product.machine_id,
            name=product.name,
            category=product.category,
            price_cents=product.price_cents,
            cost_cents=product.cost_cents,
            stock_at_add=product.quantity,
            cart_quantity=cart_quantity,
        )

    def with_quantity(self, cart_quantity: int) -> "CartItem":
        return replace(self, cart_quantity=cart_quantity)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.cart_quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "machine_id": self.machine_id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "price": to_dollars(self.price_cents),
            "cart_quantity": self.cart_quantity,
            "stock_at_add": self.stock_at_add,
            "line_total_cents": self.line_total_cents,
        }
