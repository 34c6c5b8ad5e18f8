"""
Plain value objects passed between the checkout engine and its repositories.

They carry no session state, so the engine runs the same against the SQL
repositories and against an in-memory store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum

from stockpro.time_utils import to_utc_z


@dataclass(frozen=True)
class ItemSnapshot:
    id: int
    name: str
    category: str
    price_cents: int
    quantity: int
    unit: str
    barcode: str | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, item) -> "ItemSnapshot":
        return cls(
            id=item.id,
            name=item.name,
            category=item.category,
            price_cents=item.price_cents,
            quantity=item.quantity,
            unit=item.unit,
            barcode=item.barcode,
            is_active=item.is_active,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Cashier:
    """The identity performing a checkout or stock-in."""
    user_id: int | None
    email: str

    @classmethod
    def from_user(cls, user) -> "Cashier":
        return cls(user_id=user.id, email=user.email)


@dataclass(frozen=True)
class TransactionEntry:
    """
    One row of the transaction log.

    id and timestamp are None until the log has stored the entry.
    """
    type: str
    item_id: int
    item_name: str
    quantity: int
    unit: str
    unit_price_cents: int
    line_total_cents: int
    cashier_email: str
    cashier_user_id: int | None = None
    note: str | None = None
    receipt_number: str | None = None
    tax_rate_bp: int | None = None
    id: int | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_model(cls, record) -> "TransactionEntry":
        return cls(
            type=record.type,
            item_id=record.item_id,
            item_name=record.item_name,
            quantity=record.quantity,
            unit=record.unit,
            unit_price_cents=record.unit_price_cents,
            line_total_cents=record.line_total_cents,
            cashier_email=record.cashier_email,
            cashier_user_id=record.cashier_user_id,
            note=record.note,
            receipt_number=record.receipt_number,
            tax_rate_bp=record.tax_rate_bp,
            id=record.id,
            timestamp=record.timestamp,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = to_utc_z(self.timestamp)
        return data


class DecrementStatus(Enum):
    APPLIED = "APPLIED"
    INSUFFICIENT = "INSUFFICIENT"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class DecrementResult:
    """
    Outcome of an atomic conditional decrement.

    item is the post-decrement state when APPLIED, the unchanged current
    state when INSUFFICIENT, and None when NOT_FOUND.
    """
    status: DecrementStatus
    item: ItemSnapshot | None = None

    @property
    def applied(self) -> bool:
        return self.status is DecrementStatus.APPLIED

    @property
    def available(self) -> int:
        return self.item.quantity if self.item is not None else 0
