"""
Pytest fixtures for VendNexus backend tests.

Provides an app on a fresh in-memory database, the test client, the demo
seed, and a FakeOracle standing in for the generative model.
"""

import pytest

from vendnexus import create_app
from vendnexus.extensions import db
from vendnexus.models import Machine, MachineStatus, Product
from vendnexus.seed import seed_database
from vendnexus.services.oracle_service import (
    AdvisoryOracle,
    ChatReply,
    PriceSuggestion,
)
from vendnexus.time_utils import DAY_MS, now_ms


class FakeOracle(AdvisoryOracle):
    """Canned responses; records every call as (operation, args)."""

    def __init__(self):
        self.calls = []
        self.insight_text = "Restock Energy Blast in Nexus Prime."
        self.price_result = PriceSuggestion(suggested_price_cents=299, reasoning="Steady demand at a low price.")
        self.chat_reply = ChatReply(text="All three machines are reporting.")
        self.image = "data:image/png;base64,iVBORw0KGgo="

    async def get_insight(self, query, snapshot):
        self.calls.append(("insight", query, snapshot))
        return self.insight_text

    async def get_price_suggestion(self, product, sales_window):
        self.calls.append(("price", product.id, list(sales_window)))
        return self.price_result

    async def chat(self, history, current_message, snapshot):
        self.calls.append(("chat", list(history), current_message, snapshot))
        return self.chat_reply

    async def generate_product_image(self, name):
        self.calls.append(("image", name))
        return self.image


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def app(fake_oracle):
    """Create application for testing. Unseeded unless a test asks for `seeded`."""
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SEED_ON_STARTUP": False,
        },
        oracle=fake_oracle,
    )

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def now():
    return now_ms()


@pytest.fixture
def seeded(app, now):
    """Demo network with a reproducible set of 50 mock sales."""
    seed_database(sales_count=50, random_seed=7, now=now)
    return now


@pytest.fixture
def machine(app):
    machine = Machine(id="m1", name="Nexus Prime", location="Downtown Metro Station", status=MachineStatus.ONLINE)
    db.session.add(machine)
    db.session.commit()
    return machine


@pytest.fixture
def make_product(machine, now):
    """Factory for products in machine m1."""
    def _make(product_id="p1", **fields):
        values = {
            "machine_id": machine.id,
            "name": "Sparkle Water",
            "category": "Beverage",
            "price_cents": 250,
            "cost_cents": 80,
            "quantity": 45,
            "min_quantity": 10,
            "image": "https://picsum.photos/id/400/200/200",
            "expiry_date": now + 30 * DAY_MS,
        }
        values.update(fields)
        product = Product(id=product_id, **values)
        db.session.add(product)
        db.session.commit()
        return product
    return _make

