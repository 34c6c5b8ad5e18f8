"""
Checkout Service - converts a cart into stock decrements, Stock Out
transaction records and a receipt.

WHY all-or-nothing: a checkout either commits every line or none of them.
Every line is decremented with an atomic conditional update inside one unit
of work; if any line fails, the whole unit of work is rolled back and the
caller gets the full list of failing lines. A receipt is therefore never
shown for a checkout that was only partly applied.

Stores that cannot roll back (uow.atomic is False) keep the lines that
landed: their records are written and PartialCommitError names both sets.

State per invocation:
    IDLE -> VALIDATING -> COMMITTING -> RECEIPT_READY
    IDLE -> REJECTED            (empty cart)
    VALIDATING -> REJECTED      (missing item / insufficient stock)
    VALIDATING -> PARTIALLY_COMMITTED  (non-atomic store, some lines failed)
    any -> UNAVAILABLE          (store failure after retries)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy import desc, func, select

from ..domain import Cashier, TransactionEntry
from ..extensions import db
from ..models import STOCK_OUT, TransactionRecord
from ..money import line_total_cents, tax_cents
from ..repositories import SqlTransactionRepository, SqlUnitOfWork
from ..time_utils import to_utc_z
from .concurrency import TRANSIENT_ERRORS, backoff_delay


logger = logging.getLogger(__name__)

ITEM_NOT_FOUND = "ItemNotFound"
INSUFFICIENT_STOCK = "InsufficientStock"

MAX_NOTE_LENGTH = 255


class CheckoutState(Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    COMMITTING = "COMMITTING"
    RECEIPT_READY = "RECEIPT_READY"
    REJECTED = "REJECTED"
    PARTIALLY_COMMITTED = "PARTIALLY_COMMITTED"
    UNAVAILABLE = "UNAVAILABLE"


class CheckoutError(Exception):
    """Base class for checkout failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class EmptyCartError(CheckoutError):
    """Nothing to check out; rejected before any store call."""
    def __init__(self):
        super().__init__("Cart is empty")


class InvalidCheckoutError(CheckoutError):
    """Local input problem (e.g. note too long)."""


@dataclass(frozen=True)
class LineFailure:
    item_id: int
    item_name: str
    reason: str
    requested_quantity: int
    available_quantity: int

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "reason": self.reason,
            "requested_quantity": self.requested_quantity,
            "available_quantity": self.available_quantity,
        }


class CheckoutRejected(CheckoutError):
    """
    One or more lines failed validation. Nothing was written.
    """
    def __init__(self, failures: list[LineFailure]):
        names = ", ".join(f.item_name for f in failures)
        super().__init__(
            f"Checkout rejected: {names}",
            details={"lines": [f.to_dict() for f in failures]},
        )
        self.failures = failures


class PartialCommitError(CheckoutError):
    """
    Some lines committed and others did not.

    Only raised for stores that cannot roll back a unit of work; the SQL
    unit of work never produces it. Committed lines leave the cart.
    """
    def __init__(self, committed: list[TransactionEntry], failures: list[LineFailure]):
        super().__init__(
            "Checkout partially applied",
            details={
                "committed": [e.to_dict() for e in committed],
                "failed": [f.to_dict() for f in failures],
            },
        )
        self.committed = committed
        self.failures = failures


class ExternalUnavailable(CheckoutError):
    """
    The inventory store could not be reached or stayed locked.

    outcome_unknown is True when the failure hit the final commit: the
    checkout may or may not have been applied, so stock must be re-checked
    before resubmitting.
    """
    def __init__(self, outcome_unknown: bool):
        message = (
            "Inventory store failed while committing; verify stock before retrying"
            if outcome_unknown
            else "Inventory store unavailable; nothing was recorded, please retry"
        )
        super().__init__(message, details={"outcome_unknown": outcome_unknown})
        self.outcome_unknown = outcome_unknown


@dataclass(frozen=True)
class ReceiptLine:
    item_id: int
    item_name: str
    quantity: int
    unit: str
    unit_price_cents: int
    line_total_cents: int

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class Receipt:
    receipt_number: str
    lines: tuple[ReceiptLine, ...]
    subtotal_cents: int
    tax_rate_bp: int
    tax_cents: int
    total_cents: int
    cashier_email: str
    note: str | None
    timestamp: datetime | None

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "receipt_number": self.receipt_number,
            "lines": [line.to_dict() for line in self.lines],
            "item_count": self.item_count,
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bp": self.tax_rate_bp,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "cashier_email": self.cashier_email,
            "note": self.note,
            "timestamp": to_utc_z(self.timestamp),
        }


def build_receipt(entries: list[TransactionEntry], tax_rate_bp: int) -> Receipt:
    """
    Build a receipt from the Stock Out records of one checkout.

    Used both right after commit and to reconstruct a receipt later.
    """
    if not entries:
        raise CheckoutError("Receipt has no lines")

    first = entries[0]
    lines = tuple(
        ReceiptLine(
            item_id=e.item_id,
            item_name=e.item_name,
            quantity=e.quantity,
            unit=e.unit,
            unit_price_cents=e.unit_price_cents,
            line_total_cents=e.line_total_cents,
        )
        for e in entries
    )
    subtotal = sum(line.line_total_cents for line in lines)
    tax = tax_cents(subtotal, tax_rate_bp)
    return Receipt(
        receipt_number=first.receipt_number,
        lines=lines,
        subtotal_cents=subtotal,
        tax_rate_bp=tax_rate_bp,
        tax_cents=tax,
        total_cents=subtotal + tax,
        cashier_email=first.cashier_email,
        note=first.note,
        timestamp=max((e.timestamp for e in entries if e.timestamp), default=None),
    )


def _normalize_note(note) -> str | None:
    if note is None:
        return None
    if not isinstance(note, str):
        raise InvalidCheckoutError("note must be a string")
    note = note.strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise InvalidCheckoutError(f"note exceeds max length {MAX_NOTE_LENGTH}")
    return note or None


class CheckoutEngine:
    """
    Runs one checkout against a unit of work.

    uow_factory returns a fresh UnitOfWork per attempt. transient_errors are
    the store's retryable exceptions (lock timeouts, dropped connections);
    they are retried with exponential backoff up to `attempts` times, except
    when raised by the final commit.
    """

    def __init__(
        self,
        uow_factory,
        *,
        tax_rate_bp: int,
        transient_errors: tuple[type[BaseException], ...] = (),
        attempts: int = 3,
        backoff_base: float = 0.1,
    ):
        if tax_rate_bp < 0:
            raise ValueError("tax_rate_bp must be >= 0")
        self.uow_factory = uow_factory
        self.tax_rate_bp = tax_rate_bp
        self.transient_errors = transient_errors
        self.attempts = attempts
        self.backoff_base = backoff_base
        self.state = CheckoutState.IDLE
        self._commit_sent = False

    def checkout(self, cart, cashier: Cashier, note: str | None = None) -> Receipt:
        self.state = CheckoutState.IDLE
        self._commit_sent = False

        if cart.is_empty():
            self.state = CheckoutState.REJECTED
            raise EmptyCartError()
        note = _normalize_note(note)
        lines = cart.lines()

        for attempt in range(self.attempts):
            try:
                receipt = self._run(lines, cashier, note)
            except PartialCommitError as exc:
                for entry in exc.committed:
                    cart.remove_item(entry.item_id)
                raise
            except self.transient_errors as exc:
                if self._commit_sent:
                    self.state = CheckoutState.UNAVAILABLE
                    logger.error("Checkout commit failed with unknown outcome: %s", exc)
                    raise ExternalUnavailable(outcome_unknown=True) from exc
                if attempt >= self.attempts - 1:
                    self.state = CheckoutState.UNAVAILABLE
                    logger.error("Checkout gave up after %d attempts: %s", self.attempts, exc)
                    raise ExternalUnavailable(outcome_unknown=False) from exc
                logger.warning("Checkout attempt %d failed, retrying: %s", attempt + 1, exc)
                time.sleep(backoff_delay(attempt, self.backoff_base))
                continue

            for line in lines:
                cart.remove_item(line.item_id)
            return receipt

        raise ExternalUnavailable(outcome_unknown=False)

    def _append_stock_out(self, uow, applied, cashier: Cashier, note: str | None, receipt_number: str):
        entries = []
        for line, item in applied:
            entries.append(
                uow.transactions.append(
                    TransactionEntry(
                        type=STOCK_OUT,
                        item_id=item.id,
                        item_name=item.name,
                        quantity=line.requested_quantity,
                        unit=item.unit,
                        unit_price_cents=item.price_cents,
                        line_total_cents=line_total_cents(item.price_cents, line.requested_quantity),
                        cashier_email=cashier.email,
                        cashier_user_id=cashier.user_id,
                        note=note,
                        receipt_number=receipt_number,
                        tax_rate_bp=self.tax_rate_bp,
                    )
                )
            )
        return entries

    def _run(self, lines, cashier: Cashier, note: str | None) -> Receipt:
        with self.uow_factory() as uow:
            self.state = CheckoutState.VALIDATING
            receipt_number = uow.next_receipt_number()

            applied = []
            failures: list[LineFailure] = []
            for line in lines:
                result = uow.inventory.decrement_if_available(line.item_id, line.requested_quantity)
                if result.applied:
                    applied.append((line, result.item))
                    continue
                failures.append(
                    LineFailure(
                        item_id=line.item_id,
                        item_name=result.item.name if result.item else line.name,
                        reason=INSUFFICIENT_STOCK if result.item else ITEM_NOT_FOUND,
                        requested_quantity=line.requested_quantity,
                        available_quantity=result.available,
                    )
                )

            if failures and applied and not uow.atomic:
                # The decrements already landed; log them so stock reconciles
                self.state = CheckoutState.COMMITTING
                entries = self._append_stock_out(uow, applied, cashier, note, receipt_number)
                self._commit_sent = True
                uow.commit()
                self.state = CheckoutState.PARTIALLY_COMMITTED
                logger.error(
                    "Checkout %s by %s partially applied: %d committed, %d failed",
                    receipt_number, cashier.email, len(entries), len(failures),
                )
                raise PartialCommitError(entries, failures)

            if failures:
                uow.rollback()
                self.state = CheckoutState.REJECTED
                logger.info(
                    "Checkout by %s rejected: %s",
                    cashier.email,
                    ", ".join(f"{f.item_id}:{f.reason}" for f in failures),
                )
                raise CheckoutRejected(failures)

            self.state = CheckoutState.COMMITTING
            entries = self._append_stock_out(uow, applied, cashier, note, receipt_number)

            self._commit_sent = True
            uow.commit()

        self.state = CheckoutState.RECEIPT_READY
        receipt = build_receipt(entries, self.tax_rate_bp)
        logger.info(
            "Checkout %s by %s committed: %d line(s), total %d",
            receipt.receipt_number, cashier.email, len(receipt.lines), receipt.total_cents,
        )
        return receipt


def checkout(cart, cashier: Cashier, note: str | None = None, *, tax_rate_bp: int | None = None) -> Receipt:
    """
    Check out a cart against the database.

    Committed lines are removed from the cart; on rejection the cart is left
    as-is so the cashier can correct it.
    """
    if tax_rate_bp is None:
        tax_rate_bp = current_app.config["STOCKPRO_TAX_RATE_BP"]

    engine = CheckoutEngine(
        SqlUnitOfWork,
        tax_rate_bp=tax_rate_bp,
        transient_errors=TRANSIENT_ERRORS,
    )
    return engine.checkout(cart, cashier, note)


def get_receipt(receipt_number: str) -> Receipt | None:
    """Rebuild a receipt from its Stock Out records."""
    entries = SqlTransactionRepository(db.session).list_by_receipt(receipt_number)
    entries = [e for e in entries if e.type == STOCK_OUT]
    if not entries:
        return None
    return build_receipt(entries, entries[0].tax_rate_bp or 0)


def recent_receipt_numbers(cashier_email: str | None = None, limit: int = 20) -> list[str]:
    """Most recent receipt numbers, newest first."""
    stmt = (
        select(TransactionRecord.receipt_number, func.max(TransactionRecord.id).label("last_id"))
        .where(TransactionRecord.receipt_number.isnot(None))
        .group_by(TransactionRecord.receipt_number)
        .order_by(desc("last_id"))
        .limit(limit)
    )
    if cashier_email is not None:
        stmt = stmt.where(TransactionRecord.cashier_email == cashier_email)
    return [row.receipt_number for row in db.session.execute(stmt)]
