# backend/vendnexus/services/catalog_service.py
"""
Catalog Service - products and machines

The catalog owns every Product and Machine row. All writes are synchronous
and commit as a whole: a rejected write leaves the catalog untouched.

STOCK INVARIANT: Product.quantity >= 0. Writers clamp, they never reject.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Machine, Product
from ..time_utils import DAY_MS, WEEK_MS, now_ms
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "id", "machine_id", "name", "category", "price_cents", "cost_cents",
        "quantity", "min_quantity", "image", "expiry_date",
    },
    required_on_create={"name", "machine_id"},
)

# Unsaved form input for advisory calls
DRAFT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields,
    required_on_create={"name"},
)

# Defaults for fields a new product may omit
DEFAULT_CATEGORY = "Snack"
DEFAULT_IMAGE = "https://picsum.photos/200"
DEFAULT_PRICE_CENTS = 100
DEFAULT_COST_CENTS = 50
DEFAULT_QUANTITY = 10
DEFAULT_MIN_QUANTITY = 5
DEFAULT_SHELF_LIFE_MS = 30 * DAY_MS

EXPIRED = "expired"
NEAR_EXPIRY = "near_expiry"
FRESH = "ok"


class CatalogError(ValueError):
    """Raised for catalog operations that reference unknown rows."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def clamp_quantity(quantity: int) -> int:
    return max(0, quantity)


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------

def list_machines() -> list[Machine]:
    return db.session.query(Machine).order_by(Machine.id.asc()).all()


def get_machine(machine_id: str) -> Machine | None:
    return db.session.get(Machine, machine_id)


def require_machine(machine_id: str) -> Machine:
    machine = get_machine(machine_id)
    if machine is None:
        raise CatalogError(f"Unknown machine: {machine_id}", details={"machine_id": machine_id})
    return machine


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def list_products(machine_id: str | None = None, search: str | None = None) -> list[Product]:
    """
    Snapshot of the catalog, ordered by name then id.

    Args:
        machine_id: only products stocked in this machine
        search: case-insensitive substring matched against name OR category
    """
    query = db.session.query(Product)

    if machine_id:
        query = query.filter(Product.machine_id == machine_id)

    term = (search or "").strip().lower()
    if term:
        query = query.filter(
            or_(
                func.lower(Product.name).contains(term, autoescape=True),
                func.lower(Product.category).contains(term, autoescape=True),
            )
        )

    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def new_product_id() -> str:
    return f"p-{uuid.uuid4().hex[:12]}"


def upsert_product(payload: dict) -> Product:
    """
    Insert or replace a product by id.

    A payload without an id (or with an id not in the catalog) creates a new
    product; missing optional fields take the add-form defaults. A payload
    whose id exists replaces the fields it carries; omitted optional fields
    keep their current values.

    Raises:
        ValidationError: malformed payload, missing name or machine_id
        CatalogError: machine_id is not a known machine
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY)
    enforce_rules_product(patch)

    machine_id = patch["machine_id"]
    require_machine(machine_id)

    product_id = patch.get("id") or None
    product = get_product(product_id) if product_id else None
    created = product is None

    if created:
        product = Product(id=product_id or new_product_id())
        db.session.add(product)

    product.machine_id = machine_id
    product.name = patch["name"]
    product.category = patch.get("category") or product.category or DEFAULT_CATEGORY
    product.image = patch.get("image") or product.image or DEFAULT_IMAGE
    product.price_cents = _field_or_default(patch, "price_cents", product.price_cents, DEFAULT_PRICE_CENTS)
    product.cost_cents = _field_or_default(patch, "cost_cents", product.cost_cents, DEFAULT_COST_CENTS)
    product.quantity = clamp_quantity(
        _field_or_default(patch, "quantity", product.quantity, DEFAULT_QUANTITY)
    )
    product.min_quantity = _field_or_default(patch, "min_quantity", product.min_quantity, DEFAULT_MIN_QUANTITY)

    if "expiry_date" in patch:
        product.expiry_date = patch["expiry_date"]
    elif created:
        product.expiry_date = now_ms() + DEFAULT_SHELF_LIFE_MS

    db.session.commit()
    logger.info("%s product %s (%s) in machine %s",
                "Created" if created else "Replaced", product.id, product.name, machine_id)
    return product


def draft_product(payload: dict) -> Product:
    """
    Build an unsaved Product from add/edit form input.

    Only name is required. The result is never added to the session, so
    advice can be asked for a product before it exists in the catalog.

    Raises:
        ValidationError: malformed payload or missing name
        CatalogError: machine_id given but not a known machine
    """
    patch = validate_payload(model=Product, payload=payload, policy=DRAFT_POLICY)
    enforce_rules_product(patch)

    machine_id = patch.get("machine_id") or None
    if machine_id:
        require_machine(machine_id)

    return Product(
        id=patch.get("id") or None,
        machine_id=machine_id,
        name=patch["name"],
        category=patch.get("category") or DEFAULT_CATEGORY,
        image=patch.get("image") or DEFAULT_IMAGE,
        price_cents=_field_or_default(patch, "price_cents", None, DEFAULT_PRICE_CENTS),
        cost_cents=_field_or_default(patch, "cost_cents", None, DEFAULT_COST_CENTS),
        quantity=clamp_quantity(_field_or_default(patch, "quantity", None, DEFAULT_QUANTITY)),
        min_quantity=_field_or_default(patch, "min_quantity", None, DEFAULT_MIN_QUANTITY),
        expiry_date=patch.get("expiry_date"),
    )


def _field_or_default(patch: dict, field: str, current, default):
    value = patch.get(field)
    if value is not None:
        return value
    return current if current is not None else default


def remove_product(product_id: str) -> bool:
    """
    Hard-delete a product. Sale history keeps its denormalized name.

    Returns:
        True if deleted, False if not found
    """
    product = get_product(product_id)
    if product is None:
        return False

    db.session.delete(product)
    db.session.commit()
    logger.info("Removed product %s", product_id)
    return True


def set_quantity(product: Product, quantity: int) -> None:
    """Stock writer used by checkout; does not commit."""
    product.quantity = clamp_quantity(quantity)


# ---------------------------------------------------------------------------
# Derived predicates
# ---------------------------------------------------------------------------

def is_low_stock(product: Product) -> bool:
    return product.quantity <= product.min_quantity


def is_expired(product: Product, now: int) -> bool:
    return product.expiry_date is not None and product.expiry_date < now


def is_near_expiry(product: Product, now: int) -> bool:
    return product.expiry_date is not None and now <= product.expiry_date <= now + WEEK_MS


def expiry_status(product: Product, now: int) -> str:
    """Exactly one of expired / near_expiry / ok for a single `now`."""
    if is_expired(product, now):
        return EXPIRED
    if is_near_expiry(product, now):
        return NEAR_EXPIRY
    return FRESH


def low_stock_products(machine_id: str | None = None) -> list[Product]:
    return [p for p in list_products(machine_id=machine_id) if is_low_stock(p)]


def expiry_alerts(now: int | None = None) -> dict:
    """Expired and near-expiry products, evaluated against one shared `now`."""
    if now is None:
        now = now_ms()

    expired: list[Product] = []
    near: list[Product] = []
    for product in list_products():
        status = expiry_status(product, now)
        if status == EXPIRED:
            expired.append(product)
        elif status == NEAR_EXPIRY:
            near.append(product)

    return {"now": now, "expired": expired, "near_expiry": near}


def product_view(product: Product, now: int) -> dict:
    """to_dict() plus the time-dependent expiry status."""
    data = product.to_dict()
    data["expiry_status"] = expiry_status(product, now)
    return data

