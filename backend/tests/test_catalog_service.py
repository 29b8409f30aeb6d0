import pytest

from vendnexus.extensions import db
from vendnexus.models import PaymentMethod, Product, SaleRecord
from vendnexus.services import catalog_service
from vendnexus.services.catalog_service import CatalogError
from vendnexus.time_utils import DAY_MS, WEEK_MS
from vendnexus.validation import ValidationError


def test_upsert_creates_product_with_defaults(machine, now):
    product = catalog_service.upsert_product({"name": "Trail Mix", "machine_id": "m1"})

    assert product.id.startswith("p-")
    assert product.category == "Snack"
    assert product.price_cents == 100
    assert product.cost_cents == 50
    assert product.quantity == 10
    assert product.min_quantity == 5
    assert product.expiry_date >= now + 30 * DAY_MS


def test_upsert_requires_name_and_machine(machine):
    with pytest.raises(ValidationError):
        catalog_service.upsert_product({"machine_id": "m1"})
    with pytest.raises(ValidationError):
        catalog_service.upsert_product({"name": "Trail Mix"})


def test_upsert_unknown_machine_leaves_catalog_untouched(machine):
    with pytest.raises(CatalogError) as exc:
        catalog_service.upsert_product({"name": "Trail Mix", "machine_id": "m9"})

    assert exc.value.details == {"machine_id": "m9"}
    db.session.rollback()
    assert catalog_service.list_products() == []


def test_upsert_rejects_negative_price(machine):
    with pytest.raises(ValidationError):
        catalog_service.upsert_product({"name": "Trail Mix", "machine_id": "m1", "price_cents": -1})


def test_replace_keeps_omitted_fields_and_clamps_quantity(make_product):
    make_product("p1", price_cents=250, min_quantity=10)

    product = catalog_service.upsert_product(
        {"id": "p1", "name": "Sparkle Water XL", "machine_id": "m1", "quantity": -4}
    )

    assert product.id == "p1"
    assert product.name == "Sparkle Water XL"
    assert product.price_cents == 250
    assert product.min_quantity == 10
    assert product.quantity == 0
    assert len(catalog_service.list_products()) == 1


def test_list_products_search_matches_name_or_category(make_product):
    make_product("p1", name="Sparkle Water", category="Beverage")
    make_product("p3", name="Protein Bar", category="Snack")
    make_product("p4", name="Cheese Crisps", category="Snack")

    assert [p.id for p in catalog_service.list_products(search="SNACK")] == ["p4", "p3"]
    assert [p.id for p in catalog_service.list_products(search="water")] == ["p1"]
    assert catalog_service.list_products(search="%") == []
    assert len(catalog_service.list_products(search="  ")) == 3


def test_list_products_filters_by_machine(seeded):
    names = [p.name for p in catalog_service.list_products(machine_id="m2")]
    assert names == ["Cold Brew Coffee", "Sparkle Water", "Vegan Cookie"]


def test_remove_product_keeps_sale_history(make_product, now):
    make_product("p1")
    db.session.add(SaleRecord(
        product_id="p1", product_name="Sparkle Water", machine_id="m1", quantity=1,
        revenue_cents=250, profit_cents=170, timestamp=now, payment_method=PaymentMethod.CASH,
    ))
    db.session.commit()

    assert catalog_service.remove_product("p1") is True
    assert catalog_service.remove_product("p1") is False
    assert catalog_service.get_product("p1") is None
    assert db.session.query(SaleRecord).filter_by(product_id="p1").count() == 1


def test_low_stock_is_inclusive():
    assert catalog_service.is_low_stock(Product(quantity=10, min_quantity=10))
    assert not catalog_service.is_low_stock(Product(quantity=11, min_quantity=10))


def test_expiry_status_boundaries(now):
    assert catalog_service.expiry_status(Product(expiry_date=now - 1), now) == "expired"
    assert catalog_service.expiry_status(Product(expiry_date=now), now) == "near_expiry"
    assert catalog_service.expiry_status(Product(expiry_date=now + WEEK_MS), now) == "near_expiry"
    assert catalog_service.expiry_status(Product(expiry_date=now + WEEK_MS + 1), now) == "ok"
    assert catalog_service.expiry_status(Product(expiry_date=None), now) == "ok"


def test_seeded_alerts(seeded):
    alerts = catalog_service.expiry_alerts(now=seeded)

    assert [p.id for p in alerts["expired"]] == ["p4"]
    assert [p.id for p in alerts["near_expiry"]] == ["p6"]
    assert {p.id for p in catalog_service.low_stock_products()} == {"p2", "p5", "p8"}


def test_draft_product_is_never_added_to_the_catalog(machine):
    draft = catalog_service.draft_product({"name": "Matcha Latte", "price_cents": 450, "quantity": -2})

    assert draft.id is None
    assert draft.price_cents == 450
    assert draft.cost_cents == 50
    assert draft.quantity == 0
    assert draft.category == "Snack"
    db.session.commit()
    assert catalog_service.list_products() == []


def test_draft_product_checks_machine(machine):
    with pytest.raises(CatalogError):
        catalog_service.draft_product({"name": "Matcha Latte", "machine_id": "m9"})
    with pytest.raises(ValidationError):
        catalog_service.draft_product({"price_cents": 450})
