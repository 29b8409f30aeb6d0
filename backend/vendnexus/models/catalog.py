from __future__ import annotations

import enum

from ..extensions import db
from ..money import to_dollars
from ..time_utils import to_utc_z


class MachineStatus(str, enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    MAINTENANCE = "MAINTENANCE"
    LOW_STOCK = "LOW_STOCK"


class Machine(db.Model):
    """
    A vending machine in the network.

    Machines are seeded once and never change while the process runs;
    no status transitions are modelled.
    """
    __tablename__ = "machines"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    status = db.Column(db.Enum(MachineStatus), nullable=False, default=MachineStatus.ONLINE)

    def __repr__(self) -> str:
        return f"<Machine id={self.id!r} name={self.name!r} status={self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "status": self.status.value,
        }


class Product(db.Model):
    """
    A product slot stocked in exactly one machine.

    MONEY: price_cents and cost_cents are authoritative; to_dict() adds
    dollar floats for display only. cost <= price is expected, not enforced.

    STOCK: quantity never goes below zero. Every writer clamps.

    CATEGORY: free text, deliberately not an enum.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_machine_name", "machine_id", "name"),
    )

    id = db.Column(db.String(64), primary_key=True)
    machine_id = db.Column(db.String(32), db.ForeignKey("machines.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Snack")

    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=0)

    image = db.Column(db.String(1024), nullable=False, default="")

    # Epoch millis; NULL means the product does not expire
    expiry_date = db.Column(db.BigInteger, nullable=True)

    machine = db.relationship("Machine", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} name={self.name!r} machine_id={self.machine_id!r} qty={self.quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "machine_id": self.machine_id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "price": to_dollars(self.price_cents),
            "cost": to_dollars(self.cost_cents),
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "image": self.image,
            "expiry_date": self.expiry_date,
            "expiry_date_iso": to_utc_z(self.expiry_date),
            "is_low_stock": self.is_low_stock,
        }
