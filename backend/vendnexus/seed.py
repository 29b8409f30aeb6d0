# Overview: Demo network loaded at startup: three machines, eight products and a week of mock sales.

from __future__ import annotations

import logging
import random

from .extensions import db
from .models import Machine, MachineStatus, PaymentMethod, Product, SaleRecord
from .time_utils import DAY_MS, now_ms

logger = logging.getLogger(__name__)

MACHINES = [
    {"id": "m1", "name": "Nexus Prime", "location": "Downtown Metro Station", "status": MachineStatus.ONLINE},
    {"id": "m2", "name": "Corp Tower A", "location": "Tech Park Lobby", "status": MachineStatus.LOW_STOCK},
    {"id": "m3", "name": "Uni Campus West", "location": "Student Union Building", "status": MachineStatus.MAINTENANCE},
]

# expiry_days is relative to seeding time; p4 is already expired, p6 is inside the 7-day window
INITIAL_PRODUCTS = [
    # Machine 1
    {"id": "p1", "machine_id": "m1", "name": "Sparkle Water", "category": "Beverage",
     "price_cents": 250, "cost_cents": 80, "quantity": 45, "min_quantity": 10, "image_id": 400, "expiry_days": 30},
    {"id": "p2", "machine_id": "m1", "name": "Energy Blast", "category": "Beverage",
     "price_cents": 350, "cost_cents": 120, "quantity": 8, "min_quantity": 15, "image_id": 401, "expiry_days": 60},
    {"id": "p3", "machine_id": "m1", "name": "Protein Bar", "category": "Snack",
     "price_cents": 400, "cost_cents": 200, "quantity": 20, "min_quantity": 10, "image_id": 402, "expiry_days": 120},
    {"id": "p4", "machine_id": "m1", "name": "Cheese Crisps", "category": "Snack",
     "price_cents": 175, "cost_cents": 50, "quantity": 30, "min_quantity": 10, "image_id": 403, "expiry_days": -2},
    # Machine 2
    {"id": "p5", "machine_id": "m2", "name": "Sparkle Water", "category": "Beverage",
     "price_cents": 275, "cost_cents": 80, "quantity": 5, "min_quantity": 10, "image_id": 400, "expiry_days": 25},
    {"id": "p6", "machine_id": "m2", "name": "Cold Brew Coffee", "category": "Beverage",
     "price_cents": 500, "cost_cents": 250, "quantity": 12, "min_quantity": 8, "image_id": 404, "expiry_days": 4},
    {"id": "p7", "machine_id": "m2", "name": "Vegan Cookie", "category": "Snack",
     "price_cents": 350, "cost_cents": 150, "quantity": 15, "min_quantity": 5, "image_id": 405, "expiry_days": 15},
    # Machine 3
    {"id": "p8", "machine_id": "m3", "name": "Cola Classic", "category": "Beverage",
     "price_cents": 150, "cost_cents": 60, "quantity": 0, "min_quantity": 20, "image_id": 406, "expiry_days": 90},
]

MOCK_SALES_WINDOW_MS = 7 * DAY_MS


def build_products(now: int) -> list[Product]:
    return [
        Product(
            id=row["id"],
            machine_id=row["machine_id"],
            name=row["name"],
            category=row["category"],
            price_cents=row["price_cents"],
            cost_cents=row["cost_cents"],
            quantity=row["quantity"],
            min_quantity=row["min_quantity"],
            image=f"https://picsum.photos/id/{row['image_id']}/200/200",
            expiry_date=now + row["expiry_days"] * DAY_MS,
        )
        for row in INITIAL_PRODUCTS
    ]


def generate_mock_sales(count: int, now: int, rng: random.Random) -> list[SaleRecord]:
    """
    `count` single-line sales of random seed products over the last 7 days.

    Returned oldest first, so inserting them in order keeps append order
    and time order aligned.
    """
    methods = list(PaymentMethod)
    sales = []
    for _ in range(count):
        row = rng.choice(INITIAL_PRODUCTS)
        qty = rng.randint(1, 3)
        sales.append(SaleRecord(
            product_id=row["id"],
            product_name=row["name"],
            machine_id=row["machine_id"],
            quantity=qty,
            revenue_cents=row["price_cents"] * qty,
            profit_cents=(row["price_cents"] - row["cost_cents"]) * qty,
            timestamp=now - rng.randrange(MOCK_SALES_WINDOW_MS),
            payment_method=rng.choice(methods),
        ))
    sales.sort(key=lambda s: s.timestamp)
    return sales


def seed_database(sales_count: int = 50, random_seed: int | None = None, now: int | None = None) -> dict:
    """
    Load the demo network into an empty database.

    Mock sales do not touch stock; the seeded quantities are the current
    levels after those sales.

    Raises:
        RuntimeError: the catalog already has machines
    """
    if db.session.query(Machine).count():
        raise RuntimeError("Database already seeded")

    if now is None:
        now = now_ms()
    rng = random.Random(random_seed)

    db.session.add_all(Machine(**row) for row in MACHINES)
    db.session.flush()
    db.session.add_all(build_products(now))
    sales = generate_mock_sales(sales_count, now, rng)
    db.session.add_all(sales)
    db.session.commit()

    logger.info("Seeded %d machines, %d products, %d sales", len(MACHINES), len(INITIAL_PRODUCTS), len(sales))
    return {"machines": len(MACHINES), "products": len(INITIAL_PRODUCTS), "sales": len(sales)}
