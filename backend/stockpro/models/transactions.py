from __future__ import annotations

from ..extensions import db
from stockpro.time_utils import to_utc_z


STOCK_IN = "Stock In"
STOCK_OUT = "Stock Out"
TRANSACTION_TYPES = (STOCK_IN, STOCK_OUT)


class TransactionRecord(db.Model):
    """
    Append-only log of stock movements.

    One row per stock-in submission and one row per committed checkout line.
    Rows are never updated or deleted; reports read them as-is.

    item_name/unit/unit_price_cents are copied at write time so history
    survives later edits to the item.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        db.CheckConstraint(
            "type IN ('Stock In', 'Stock Out')", name="ck_transactions_type"
        ),
        db.Index("ix_transactions_timestamp", "timestamp"),
        db.Index("ix_transactions_cashier_timestamp", "cashier_email", "timestamp"),
        db.Index("ix_transactions_receipt", "receipt_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False, index=True)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)

    # Magnitude of the movement; direction comes from type
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False, default=0)

    cashier_email = db.Column(db.String(255), nullable=False)
    cashier_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    note = db.Column(db.String(255), nullable=True)

    # Stock Out only: groups the lines of one checkout
    receipt_number = db.Column(db.String(32), nullable=True)
    tax_rate_bp = db.Column(db.Integer, nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "cashier_email": self.cashier_email,
            "cashier_user_id": self.cashier_user_id,
            "note": self.note,
            "receipt_number": self.receipt_number,
            "tax_rate_bp": self.tax_rate_bp,
            "timestamp": to_utc_z(self.timestamp),
        }
