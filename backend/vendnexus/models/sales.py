from __future__ import annotations

import enum

from ..extensions import db
from ..money import to_dollars
from ..time_utils import to_utc_z


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "Credit Card"
    UPI = "UPI"
    WALLET = "Wallet"
    CASH = "Cash"
    QR_CODE = "QR Code"

    @classmethod
    def parse(cls, value: str) -> "PaymentMethod":
        """Accept either the member name (QR_CODE) or its label (QR Code)."""
        if isinstance(value, cls):
            return value
        for method in cls:
            if value in (method.name, method.value):
                return method
        raise ValueError(f"Unknown payment method: {value!r}")


class SaleRecord(db.Model):
    """
    One line of a completed checkout.

    LEDGER INVARIANTS:
    - Append-only: rows are inserted by the ledger service and never updated or deleted.
    - id is autoincrementing, so id order is append order.
    - product_name, revenue and profit are captured at sale time. product_id is
      NOT a foreign key; history must survive product edits and deletes.
    - Every line of one checkout carries the same timestamp.
    """
    __tablename__ = "sale_records"
    __table_args__ = (
        db.Index("ix_sale_records_machine_timestamp", "machine_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    machine_id = db.Column(db.String(32), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    revenue_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    # Epoch millis
    timestamp = db.Column(db.BigInteger, nullable=False, index=True)
    payment_method = db.Column(db.Enum(PaymentMethod), nullable=False)

    def __repr__(self) -> str:
        return f"<SaleRecord id={self.id} product={self.product_name!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "machine_id": self.machine_id,
            "quantity": self.quantity,
            "revenue_cents": self.revenue_cents,
            "profit_cents": self.profit_cents,
            "revenue": to_dollars(self.revenue_cents),
            "profit": to_dollars(self.profit_cents),
            "timestamp": self.timestamp,
            "timestamp_iso": to_utc_z(self.timestamp),
            "payment_method": self.payment_method.value,
        }
