# Overview: Service-layer operations for the sales ledger; append and derived aggregates.

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import SaleRecord
from ..money import to_dollars
"""
VendNexus Sales Ledger Invariants (authoritative)

- Append-only: record() is the only writer. No updates, no deletes.
- record() flushes but never commits; the caller's transaction (checkout)
  commits the sale together with the stock decrement.
- Aggregates are recomputed from the full ledger on every call. The working
  set is a few hundred rows. Nothing is cached.
- Append order is id order.
"""


@dataclass
class LedgerSummary:
    total_revenue_cents: int = 0
    total_profit_cents: int = 0
    total_units: int = 0
    sale_count: int = 0
    # product_name -> revenue cents, in first-seen append order
    revenue_by_product: dict[str, int] = field(default_factory=dict)

    @property
    def margin_pct(self) -> float:
        if not self.total_revenue_cents:
            return 0.0
        return round(self.total_profit_cents / self.total_revenue_cents * 100, 1)

    def to_dict(self) -> dict:
        return {
            "total_revenue_cents": self.total_revenue_cents,
            "total_profit_cents": self.total_profit_cents,
            "total_revenue": to_dollars(self.total_revenue_cents),
            "total_profit": to_dollars(self.total_profit_cents),
            "total_units": self.total_units,
            "sale_count": self.sale_count,
            "margin_pct": self.margin_pct,
            "revenue_by_product": [
                {"name": name, "revenue_cents": cents, "revenue": to_dollars(cents)}
                for name, cents in self.revenue_by_product.items()
            ],
        }


def record(sale: SaleRecord) -> SaleRecord:
    """
    Append one sale record.

    - No domain logic here.
    - No deletes/updates of existing records.
    """
    db.session.add(sale)
    db.session.flush()  # ensures sale.id is assigned without committing
    return sale


def _ledger_query(machine_id: str | None):
    query = db.session.query(SaleRecord)
    if machine_id:
        query = query.filter(SaleRecord.machine_id == machine_id)
    return query


def list_sales(machine_id: str | None = None, limit: int | None = None) -> list[SaleRecord]:
    """Newest first: timestamp desc, then append order desc for ties."""
    query = _ledger_query(machine_id).order_by(SaleRecord.timestamp.desc(), SaleRecord.id.desc())
    if limit is not None:
        query = query.limit(max(limit, 0))
    return query.all()


def sales_for_product(product_id: str) -> list[SaleRecord]:
    return (
        db.session.query(SaleRecord)
        .filter(SaleRecord.product_id == product_id)
        .order_by(SaleRecord.timestamp.desc(), SaleRecord.id.desc())
        .all()
    )


def summarize(sales) -> LedgerSummary:
    """Fold any iterable of sale records into a summary, in iteration order."""
    summary = LedgerSummary()
    for sale in sales:
        summary.total_revenue_cents += sale.revenue_cents
        summary.total_profit_cents += sale.profit_cents
        summary.total_units += sale.quantity
        summary.sale_count += 1
        summary.revenue_by_product[sale.product_name] = (
            summary.revenue_by_product.get(sale.product_name, 0) + sale.revenue_cents
        )
    return summary


def aggregate(machine_id: str | None = None) -> LedgerSummary:
    """
    Revenue, profit, units and per-product revenue over the whole ledger.

    Recomputed on every call, walking records in append order so the
    per-product mapping is insertion-stable.
    """
    return summarize(_ledger_query(machine_id).order_by(SaleRecord.id.asc()).all())


def transactions(machine_id: str | None = None, limit: int | None = None) -> list[dict]:
    """
    Group sale lines into checkouts.

    All lines of one checkout share a timestamp, so grouping on
    (timestamp, payment_method) reconstructs each transaction.
    """
    if limit is not None and limit <= 0:
        return []

    groups: dict[tuple[int, str], list[SaleRecord]] = {}
    for sale in list_sales(machine_id=machine_id):
        groups.setdefault((sale.timestamp, sale.payment_method.value), []).append(sale)

    rows = []
    for (timestamp, method), lines in groups.items():
        lines.sort(key=lambda s: s.id)
        summary = summarize(lines)
        rows.append({
            "timestamp": timestamp,
            "payment_method": method,
            "machine_ids": sorted({s.machine_id for s in lines}),
            "lines": [s.to_dict() for s in lines],
            "total_revenue_cents": summary.total_revenue_cents,
            "total_profit_cents": summary.total_profit_cents,
            "total_units": summary.total_units,
        })
        if limit is not None and len(rows) >= limit:
            break
    return rows
