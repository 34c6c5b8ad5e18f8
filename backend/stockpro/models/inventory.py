from __future__ import annotations

from ..extensions import db
from stockpro.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    One stocked product or material.

    quantity is the authoritative on-hand count. It is only changed through
    inventory_service.stock_in (increment) and the checkout engine's
    conditional decrement; the CHECK constraint backs the non-negative rule
    at the database level.

    Prices are stored in minor units (kobo/cents); the frontend only formats.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_items_price_non_negative"),
        db.UniqueConstraint("barcode", name="uq_items_barcode"),
        db.Index("ix_items_name", "name"),
        db.Index("ix_items_active_quantity", "is_active", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, default="")
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    # Optional scannable code; NULL (not "") when absent so uniqueness holds
    barcode = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "unit": self.unit,
            "barcode": self.barcode,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
