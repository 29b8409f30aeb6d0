# Overview: Builds bounded, JSON-serializable snapshots of catalog and ledger state for the oracle.

from __future__ import annotations

import json
from typing import Iterable, Sequence

from ..models import Machine, Product, SaleRecord
from ..money import to_dollars

DEFAULT_RECENT_SALES_LIMIT = 50


def _newest_first(sales: Iterable[SaleRecord]) -> list[SaleRecord]:
    return sorted(sales, key=lambda s: (s.timestamp, s.id or 0), reverse=True)


def build_snapshot(
    products: Sequence[Product],
    sales: Iterable[SaleRecord],
    machines: Sequence[Machine],
    recent_sales_limit: int = DEFAULT_RECENT_SALES_LIMIT,
) -> dict:
    """
    Snapshot for general insight queries.

    - machines: full rows
    - inventory: name, quantity and machine only; price/cost/image are dropped
      to keep the prompt small
    - recent_sales: the `recent_sales_limit` newest sales, full detail, newest first
    """
    recent = _newest_first(sales)[: max(recent_sales_limit, 0)]
    return {
        "machines": [m.to_dict() for m in machines],
        "inventory": [
            {"name": p.name, "qty": p.quantity, "machine": p.machine_id}
            for p in products
        ],
        "recent_sales": [s.to_dict() for s in recent],
    }


def build_price_context(product: Product, sales: Iterable[SaleRecord]) -> dict:
    """
    Narrow snapshot for a single-product price suggestion.

    Sales are filtered to this product's id and the window totals are summed
    here, so the model gets exact numbers instead of doing arithmetic.
    """
    window = [s for s in _newest_first(sales) if s.product_id == product.id]
    units_sold = sum(s.quantity for s in window)
    revenue_cents = sum(s.revenue_cents for s in window)

    return {
        "product": {
            "id": product.id,
            "name": product.name,
            "category": product.category,
            "machine_id": product.machine_id,
            "price": to_dollars(product.price_cents),
            "cost": to_dollars(product.cost_cents),
            "quantity": product.quantity,
            "min_quantity": product.min_quantity,
        },
        "sales": [s.to_dict() for s in window],
        "units_sold": units_sold,
        "revenue_cents": revenue_cents,
        "revenue": to_dollars(revenue_cents),
    }


def build_assistant_context(
    products: Sequence[Product],
    sales: Iterable[SaleRecord],
    machines: Sequence[Machine],
) -> dict:
    """System state handed to the chat assistant on every turn."""
    sales = list(sales)
    total_revenue_cents = sum(s.revenue_cents for s in sales)
    return {
        "products": [p.to_dict() for p in products],
        "sales_summary": {
            "total_revenue": to_dollars(total_revenue_cents),
            "total_sales_count": len(sales),
        },
        "machines": [m.to_dict() for m in machines],
    }


def serialize(context) -> str:
    """Deterministic JSON: sorted keys, compact separators."""
    return json.dumps(context, sort_keys=True, separators=(",", ":"), default=str)
