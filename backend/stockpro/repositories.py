"""
Repository interfaces for the inventory store and the transaction log,
plus their SQLAlchemy implementations.

A UnitOfWork groups both repositories in one atomic scope:

    with SqlUnitOfWork() as uow:
        result = uow.inventory.decrement_if_available(item_id, 3)
        uow.transactions.append(entry)
        uow.commit()

Leaving the block without commit() rolls everything back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from .domain import DecrementResult, DecrementStatus, ItemSnapshot, TransactionEntry
from .extensions import db
from .models import DocumentSequence, InventoryItem, TransactionRecord
from .services.concurrency import begin_write
from .time_utils import utcnow


RECEIPT_DOCUMENT_TYPE = "RECEIPT"
RECEIPT_PREFIX = "RCP"


def format_receipt_number(number: int) -> str:
    return f"{RECEIPT_PREFIX}-{number:06d}"


class InventoryRepository(ABC):

    @abstractmethod
    def list_items(self, include_inactive: bool = False) -> list[ItemSnapshot]:
        """Return every item ordered by name."""

    @abstractmethod
    def get_item(self, item_id: int) -> ItemSnapshot | None:
        """Return the current authoritative state of an item, or None."""

    @abstractmethod
    def decrement_if_available(self, item_id: int, amount: int) -> DecrementResult:
        """Atomically subtract amount only if quantity >= amount."""

    @abstractmethod
    def increment(self, item_id: int, amount: int) -> ItemSnapshot | None:
        """Atomically add amount; None if the item does not exist."""


class TransactionRepository(ABC):

    @abstractmethod
    def append(self, entry: TransactionEntry) -> TransactionEntry:
        """Store an entry; returns it with id and timestamp assigned."""

    @abstractmethod
    def list_by_receipt(self, receipt_number: str) -> list[TransactionEntry]:
        """Return the Stock Out lines of one receipt in line order."""


class UnitOfWork(ABC):
    inventory: InventoryRepository
    transactions: TransactionRepository

    # False for stores whose decrements land immediately and cannot be undone
    atomic: bool = True

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def next_receipt_number(self) -> str:
        """Allocate a unique receipt number inside this unit of work."""

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class SqlInventoryRepository(InventoryRepository):

    def __init__(self, session=None):
        self.session = session or db.session

    def _load(self, item_id: int) -> InventoryItem | None:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_items(self, include_inactive: bool = False) -> list[ItemSnapshot]:
        stmt = select(InventoryItem).order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        if not include_inactive:
            stmt = stmt.where(InventoryItem.is_active.is_(True))
        return [ItemSnapshot.from_model(i) for i in self.session.execute(stmt).scalars()]

    def get_item(self, item_id: int) -> ItemSnapshot | None:
        item = self._load(item_id)
        if item is None or not item.is_active:
            return None
        return ItemSnapshot.from_model(item)

    def decrement_if_available(self, item_id: int, amount: int) -> DecrementResult:
        if amount <= 0:
            raise ValueError("amount must be > 0")

        stmt = (
            update(InventoryItem)
            .where(
                InventoryItem.id == item_id,
                InventoryItem.is_active.is_(True),
                InventoryItem.quantity >= amount,
            )
            .values(quantity=InventoryItem.quantity - amount)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        current = self.get_item(item_id)
        if result.rowcount == 1 and current is not None:
            return DecrementResult(DecrementStatus.APPLIED, current)
        if current is None:
            return DecrementResult(DecrementStatus.NOT_FOUND)
        return DecrementResult(DecrementStatus.INSUFFICIENT, current)

    def increment(self, item_id: int, amount: int) -> ItemSnapshot | None:
        if amount <= 0:
            raise ValueError("amount must be > 0")

        stmt = (
            update(InventoryItem)
            .where(InventoryItem.id == item_id, InventoryItem.is_active.is_(True))
            .values(quantity=InventoryItem.quantity + amount)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return self.get_item(item_id)


class SqlTransactionRepository(TransactionRepository):

    def __init__(self, session=None):
        self.session = session or db.session

    def append(self, entry: TransactionEntry) -> TransactionEntry:
        record = TransactionRecord(
            type=entry.type,
            item_id=entry.item_id,
            item_name=entry.item_name,
            quantity=entry.quantity,
            unit=entry.unit,
            unit_price_cents=entry.unit_price_cents,
            line_total_cents=entry.line_total_cents,
            cashier_email=entry.cashier_email,
            cashier_user_id=entry.cashier_user_id,
            note=entry.note,
            receipt_number=entry.receipt_number,
            tax_rate_bp=entry.tax_rate_bp,
            timestamp=utcnow(),
        )
        self.session.add(record)
        self.session.flush()
        return TransactionEntry.from_model(record)

    def list_by_receipt(self, receipt_number: str) -> list[TransactionEntry]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.receipt_number == receipt_number)
            .order_by(TransactionRecord.id.asc())
        )
        return [TransactionEntry.from_model(r) for r in self.session.execute(stmt).scalars()]


class SqlUnitOfWork(UnitOfWork):
    """
    One database transaction spanning inventory writes, log appends and
    receipt numbering. On SQLite the write lock is taken on entry.
    """

    def __init__(self, session=None):
        self.session = session or db.session
        self.inventory = SqlInventoryRepository(self.session)
        self.transactions = SqlTransactionRepository(self.session)
        self._done = False

    def __enter__(self) -> "SqlUnitOfWork":
        self._done = False
        begin_write(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._done:
            self.rollback()

    def next_receipt_number(self) -> str:
        stmt = (
            update(DocumentSequence)
            .where(DocumentSequence.document_type == RECEIPT_DOCUMENT_TYPE)
            .values(next_number=DocumentSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )
        if not self.session.execute(stmt).rowcount:
            try:
                with self.session.begin_nested():
                    self.session.add(
                        DocumentSequence(document_type=RECEIPT_DOCUMENT_TYPE, next_number=2)
                    )
                return format_receipt_number(1)
            except IntegrityError:
                # Another writer created the row first
                self.session.execute(stmt)

        current = self.session.execute(
            select(DocumentSequence.next_number).where(
                DocumentSequence.document_type == RECEIPT_DOCUMENT_TYPE
            )
        ).scalar_one()
        return format_receipt_number(current - 1)

    def commit(self) -> None:
        self.session.commit()
        self._done = True

    def rollback(self) -> None:
        self.session.rollback()
        self._done = True
