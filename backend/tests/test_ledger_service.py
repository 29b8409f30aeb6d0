from vendnexus.extensions import db
from vendnexus.models import PaymentMethod, SaleRecord
from vendnexus.services import ledger_service


def _sale(product_id, name, revenue_cents, profit_cents, timestamp, quantity=1,
          machine_id="m1", method=PaymentMethod.CASH):
    return SaleRecord(
        product_id=product_id, product_name=name, machine_id=machine_id,
        quantity=quantity, revenue_cents=revenue_cents, profit_cents=profit_cents,
        timestamp=timestamp, payment_method=method,
    )


def test_empty_ledger_aggregates_to_zero(app):
    summary = ledger_service.aggregate()

    assert summary.total_revenue_cents == 0
    assert summary.total_profit_cents == 0
    assert summary.sale_count == 0
    assert summary.revenue_by_product == {}
    assert summary.margin_pct == 0.0


def test_aggregate_sums_exactly_and_keeps_first_seen_order(app, now):
    for sale in [
        _sale("p2", "Energy Blast", 350, 230, now - 3000),
        _sale("p1", "Sparkle Water", 750, 510, now - 2000, quantity=3),
        _sale("p5", "Sparkle Water", 275, 195, now - 1000, machine_id="m2"),
    ]:
        ledger_service.record(sale)
    db.session.commit()

    summary = ledger_service.aggregate()

    assert summary.total_revenue_cents == 1375
    assert summary.total_profit_cents == 935
    assert summary.total_units == 5
    assert list(summary.revenue_by_product.items()) == [("Energy Blast", 350), ("Sparkle Water", 1025)]

    by_machine = ledger_service.aggregate(machine_id="m2")
    assert by_machine.total_revenue_cents == 275


def test_aggregate_is_additive_across_appends(app, now):
    ledger_service.record(_sale("p1", "Sparkle Water", 250, 170, now))
    db.session.commit()
    before = ledger_service.aggregate()

    ledger_service.record(_sale("p3", "Protein Bar", 400, 200, now + 1))
    db.session.commit()
    after = ledger_service.aggregate()

    assert after.total_revenue_cents == before.total_revenue_cents + 400
    assert after.total_profit_cents == before.total_profit_cents + 200


def test_list_sales_newest_first_with_limit(app, now):
    for offset in (5, 1, 3):
        ledger_service.record(_sale("p1", "Sparkle Water", 250, 170, now - offset))
    db.session.commit()

    sales = ledger_service.list_sales(limit=2)
    assert [s.timestamp for s in sales] == [now - 1, now - 3]


def test_transactions_group_lines_sharing_a_checkout(app, now):
    ledger_service.record(_sale("p1", "Sparkle Water", 500, 340, now, quantity=2, method=PaymentMethod.UPI))
    ledger_service.record(_sale("p3", "Protein Bar", 400, 200, now, method=PaymentMethod.UPI))
    ledger_service.record(_sale("p2", "Energy Blast", 350, 230, now - 60_000))
    db.session.commit()

    rows = ledger_service.transactions()

    assert len(rows) == 2
    assert rows[0]["payment_method"] == "UPI"
    assert [line["product_id"] for line in rows[0]["lines"]] == ["p1", "p3"]
    assert rows[0]["total_revenue_cents"] == 900
    assert rows[0]["total_units"] == 3
    assert rows[1]["payment_method"] == "Cash"


def test_transactions_limit_zero_returns_nothing(app, now):
    ledger_service.record(_sale("p1", "Sparkle Water", 250, 170, now))
    db.session.commit()

    assert ledger_service.transactions(limit=0) == []
    assert len(ledger_service.transactions(limit=1)) == 1
