from vendnexus.extensions import db
from vendnexus.models import SaleRecord


def test_health_reports_missing_api_key(client, seeded, monkeypatch):
    monkeypatch.delenv("API_KEY", raising=False)
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json["status"] == "degraded"
    assert resp.json["checks"]["database"]["details"] == {"machines": 3, "products": 8, "sales": 50}


def test_machines(client, seeded):
    resp = client.get("/api/machines")
    assert [m["id"] for m in resp.json["items"]] == ["m1", "m2", "m3"]

    resp = client.get("/api/machines/m3")
    assert resp.json["status"] == "MAINTENANCE"
    assert [p["id"] for p in resp.json["products"]] == ["p8"]

    assert client.get("/api/machines/m9").status_code == 404


def test_list_products_with_search_and_expiry_status(client, seeded):
    resp = client.get("/api/products", query_string={"search": "snack", "machine_id": "m1"})

    assert resp.status_code == 200
    items = {p["id"]: p for p in resp.json["items"]}
    assert set(items) == {"p3", "p4"}
    assert items["p4"]["expiry_status"] == "expired"
    assert items["p3"]["price"] == 4.0


def test_create_replace_delete_product(client, seeded):
    resp = client.post("/api/products", json={"name": "Trail Mix", "machine_id": "m2", "price": 2.25})
    assert resp.status_code == 201
    product_id = resp.json["id"]
    assert resp.json["price_cents"] == 225
    assert resp.json["quantity"] == 10

    resp = client.put(f"/api/products/{product_id}", json={"name": "Trail Mix", "machine_id": "m2", "quantity": -3})
    assert resp.status_code == 200
    assert resp.json["quantity"] == 0
    assert resp.json["price_cents"] == 225

    assert client.delete(f"/api/products/{product_id}").status_code == 200
    assert client.get(f"/api/products/{product_id}").status_code == 404
    assert client.delete(f"/api/products/{product_id}").status_code == 404


def test_product_validation_errors(client, seeded):
    assert client.post("/api/products", json={"name": "Trail Mix"}).status_code == 400
    assert client.post("/api/products", json={"name": "X", "machine_id": "m9"}).status_code == 400
    assert client.post("/api/products", json={"name": "X", "machine_id": "m1", "price": "abc"}).status_code == 400
    assert client.post(
        "/api/products", json={"name": "X", "machine_id": "m1", "price": 1, "price_cents": 100}
    ).status_code == 400
    assert client.put("/api/products/nope", json={"name": "X", "machine_id": "m1"}).status_code == 404


def test_alert_endpoints(client, seeded):
    low = client.get("/api/products/low-stock").json["items"]
    assert {p["id"] for p in low} == {"p2", "p5", "p8"}

    alerts = client.get("/api/products/expiry-alerts").json
    assert [p["id"] for p in alerts["expired"]] == ["p4"]
    assert [p["id"] for p in alerts["near_expiry"]] == ["p6"]


def test_checkout_flow(client, seeded):
    before = client.get("/api/sales/summary").json

    resp = client.post("/api/sales/checkout", json={
        "payment_method": "Credit Card",
        "items": [{"product_id": "p1", "quantity": 3}, {"product_id": "p8", "quantity": 2}],
    })

    assert resp.status_code == 201
    assert [s["revenue_cents"] for s in resp.json["sales"]] == [750, 300]
    assert resp.json["total_cents"] == 1050
    assert resp.json["item_count"] == 5
    assert client.get("/api/products/p1").json["quantity"] == 42
    assert client.get("/api/products/p8").json["quantity"] == 0

    after = client.get("/api/sales/summary").json
    assert after["total_revenue_cents"] - before["total_revenue_cents"] == 1050
    assert after["sale_count"] == before["sale_count"] + 2

    latest = client.get("/api/sales/transactions", query_string={"limit": 1}).json["items"][0]
    assert [line["product_id"] for line in latest["lines"]] == ["p1", "p8"]


def test_checkout_rejects_bad_input(client, seeded):
    resp = client.post("/api/sales/checkout", json={"payment_method": "Bitcoin", "items": []})
    assert resp.status_code == 400

    resp = client.post("/api/sales/checkout", json={"payment_method": "UPI", "items": [{"product_id": "nope"}]})
    assert resp.status_code == 400
    assert resp.json["details"] == {"product_id": "nope"}
    assert db.session.query(SaleRecord).count() == 50


def test_empty_checkout_records_nothing(client, seeded):
    resp = client.post("/api/sales/checkout", json={"payment_method": "Cash", "items": []})
    assert resp.status_code == 200
    assert resp.json["sales"] == []


def test_list_sales_limit(client, seeded):
    items = client.get("/api/sales", query_string={"limit": 5}).json["items"]
    timestamps = [s["timestamp"] for s in items]
    assert len(items) == 5
    assert timestamps == sorted(timestamps, reverse=True)


def test_insight_uses_bounded_snapshot(client, seeded, fake_oracle, app):
    app.config["RECENT_SALES_LIMIT"] = 10

    resp = client.post("/api/assistant/insight", json={"query": "Top seller?"})

    assert resp.status_code == 200
    assert resp.json["text"] == fake_oracle.insight_text
    _, query, snapshot = fake_oracle.calls[0]
    assert query == "Top seller?"
    assert len(snapshot["recent_sales"]) == 10
    assert len(snapshot["inventory"]) == 8


def test_insight_requires_query(client, seeded):
    assert client.post("/api/assistant/insight", json={}).status_code == 400


def test_chat_round_trip(client, seeded, fake_oracle):
    resp = client.post("/api/assistant/chat", json={"message": "How is Corp Tower A?"})

    assert resp.status_code == 200
    assert resp.json["reply"]["role"] == "model"
    assert resp.json["audio"] is None
    snapshot = fake_oracle.calls[0][3]
    assert snapshot["sales_summary"]["total_sales_count"] == 50

    transcript = client.get("/api/assistant/chat").json["messages"]
    assert [m["role"] for m in transcript] == ["model", "user", "model"]

    assert len(client.delete("/api/assistant/chat").json["messages"]) == 1
    assert client.post("/api/assistant/chat", json={"message": " "}).status_code == 400


def test_price_suggestion_lifecycle(client, seeded, fake_oracle):
    resp = client.post("/api/assistant/price-suggestion", json={"product_id": "p2"})
    assert resp.status_code == 200
    assert resp.json["state"] == "ready"
    assert all(s.product_id == "p2" for s in fake_oracle.calls[0][2])

    resp = client.post("/api/assistant/price-suggestion", json={"product_id": "p3"})
    assert resp.status_code == 409

    resp = client.post("/api/assistant/price-suggestion/apply")
    assert resp.json == {"product_id": "p2", "price_cents": 299}
    assert client.get("/api/products/p2").json["price_cents"] == 350

    assert client.post("/api/assistant/price-suggestion/apply").status_code == 409
    assert client.get("/api/assistant/price-suggestion").json["state"] == "idle"


def test_price_suggestion_unknown_product(client, seeded):
    assert client.post("/api/assistant/price-suggestion", json={"product_id": "nope"}).status_code == 404


def test_dismiss_price_suggestion(client, seeded):
    client.post("/api/assistant/price-suggestion", json={"product_id": "p2"})
    resp = client.post("/api/assistant/price-suggestion/dismiss")
    assert resp.json["state"] == "idle"


def test_smart_reorder_and_image(client, seeded, fake_oracle):
    resp = client.post("/api/assistant/smart-reorder")
    assert resp.json["text"] == fake_oracle.insight_text
    assert fake_oracle.calls[0][2]["recent_sales"] == []

    resp = client.post("/api/assistant/product-image", json={"name": "Vegan Cookie"})
    assert resp.json["image"].startswith("data:image/png")
    assert client.post("/api/assistant/product-image", json={}).status_code == 400


def test_cors_header_for_dev_origin(client, seeded):
    resp = client.get("/api/machines", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_non_object_bodies_are_rejected(client, seeded):
    for path in (
        "/api/assistant/insight",
        "/api/assistant/chat",
        "/api/assistant/price-suggestion",
        "/api/assistant/product-image",
        "/api/sales/checkout",
    ):
        resp = client.post(path, json=["hi"])
        assert resp.status_code == 400, path
        assert resp.json["error"] == "Invalid JSON payload"


def test_mistyped_fields_are_rejected(client, seeded, fake_oracle):
    assert client.post("/api/assistant/insight", json={"query": 5}).status_code == 400
    assert client.post("/api/assistant/product-image", json={"name": ["Cola"]}).status_code == 400
    assert client.post("/api/assistant/price-suggestion", json={"product_id": ["p2"]}).status_code == 400
    assert client.post("/api/sales/checkout", json={"payment_method": ["UPI"], "items": []}).status_code == 400
    assert fake_oracle.calls == []


def test_price_suggestion_for_unsaved_product(client, seeded, fake_oracle):
    resp = client.post("/api/assistant/price-suggestion", json={
        "product": {"name": "Matcha Latte", "category": "Beverage", "price": 4.5, "cost": 1.8,
                    "quantity": 12, "min_quantity": 4, "machine_id": "m2"},
    })

    assert resp.status_code == 200
    assert resp.json["state"] == "ready"
    _, product_id, sales_window = fake_oracle.calls[0]
    assert product_id is None
    assert sales_window == []

    applied = client.post("/api/assistant/price-suggestion/apply").json
    assert applied == {"product_id": None, "price_cents": 299}
    assert len(client.get("/api/products").json["items"]) == 8
    assert db.session.query(SaleRecord).count() == 50


def test_price_suggestion_for_edited_product_uses_its_history(client, seeded, fake_oracle):
    resp = client.post("/api/assistant/price-suggestion", json={
        "product": {"id": "p1", "name": "Sparkle Water", "price": 2.25, "machine_id": "m1"},
    })

    assert resp.status_code == 200
    _, product_id, sales_window = fake_oracle.calls[0]
    assert product_id == "p1"
    assert all(s.product_id == "p1" for s in sales_window)
    assert client.get("/api/products/p1").json["price_cents"] == 250


def test_price_suggestion_draft_validation(client, seeded):
    resp = client.post("/api/assistant/price-suggestion", json={"product": {"price": 2}})
    assert resp.status_code == 400
    resp = client.post("/api/assistant/price-suggestion", json={"product": {"name": "X", "machine_id": "m9"}})
    assert resp.status_code == 400
    resp = client.post("/api/assistant/price-suggestion", json={"product": "Matcha"})
    assert resp.status_code == 400


def test_checkout_returns_cart_with_stock_at_add(client, seeded):
    resp = client.post("/api/sales/checkout", json={
        "payment_method": "Cash",
        "items": [{"product_id": "p5", "quantity": 7}],
    })

    line = resp.json["cart"][0]
    assert line["product_id"] == "p5"
    assert line["cart_quantity"] == 7
    assert line["stock_at_add"] == 5
    assert client.get("/api/products/p5").json["quantity"] == 0


def test_transactions_limit_zero(client, seeded):
    assert client.get("/api/sales/transactions", query_string={"limit": 0}).json["items"] == []
