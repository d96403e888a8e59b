"""
The Ledger

Session-owned list of transactions, persisted as a JSON array in the
key/value store after every change.

Entries are kept in insertion order (oldest first). Views that want the
newest first (recent entries, the pending list) reverse on read.
"""

import datetime
import json
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from smartbill.categories import normalize, reconcile_income_flag
from smartbill.models.transaction import MANUAL_MERCHANT, Category, Transaction
from smartbill.services.storage import CorruptValueError, KeyValueStore, StorageKeys
from smartbill.validation.amounts import ZERO, sanitize_amount

logger = structlog.get_logger(__name__)

# camelCase field names written by earlier versions of the app
_LEGACY_FIELDS = {
    "isAutoImported": "is_auto_imported",
    "needConfirmation": "need_confirmation",
    "rawSource": "raw_source",
}


def seed_demo_transactions(today: datetime.date) -> list[Transaction]:
    """Two pending auto-imported entries shown on first run."""
    return [
        Transaction(
            amount=Decimal("45"),
            category=Category.FOOD,
            merchant="瑞幸咖啡",
            date=today,
            is_auto_imported=True,
            need_confirmation=True,
        ),
        Transaction(
            amount=Decimal("12"),
            category=Category.TRANSPORT,
            merchant="滴滴出行",
            date=today,
            is_auto_imported=True,
            need_confirmation=True,
        ),
    ]


def _record_to_transaction(record: Any) -> Optional[Transaction]:
    """Rebuild a stored record, or None if it cannot be salvaged."""
    if not isinstance(record, Mapping):
        return None

    data = {_LEGACY_FIELDS.get(k, k): v for k, v in record.items()}
    if data.get("id") is None:
        data.pop("id", None)
    else:
        data["id"] = str(data["id"])
    if not isinstance(data.get("merchant"), str) or not data["merchant"].strip():
        data.pop("merchant", None)
    data["amount"] = sanitize_amount(data.get("amount"))
    data["category"] = normalize(data.get("category"))

    try:
        return Transaction.model_validate(data)
    except ValidationError as e:
        logger.warning("ledger_record_skipped", error=str(e))
        return None


class Ledger:
    """
    The user's transactions.

    All mutations persist immediately, and the in-memory list only changes
    once the write has succeeded. Reads never touch the store.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = StorageKeys.TRANSACTIONS,
        today: Callable[[], datetime.date] = datetime.date.today,
    ):
        self._store = store
        self._key = key
        self._today = today
        self._transactions: list[Transaction] = []

    def load(self, seed: bool = True) -> "Ledger":
        """
        Restore the ledger from the store.

        Absent data seeds the demo entries when `seed` is set. Corrupt data
        starts an empty ledger; unreadable records are skipped.
        """
        try:
            records = self._store.get_json(self._key)
        except CorruptValueError as e:
            logger.warning("ledger_corrupt", key=self._key, error=str(e))
            self._transactions = []
            return self

        if records is None:
            self._transactions = []
            if seed:
                self._commit(seed_demo_transactions(self._today()))
            return self

        if not isinstance(records, list):
            logger.warning("ledger_corrupt", key=self._key, error="not a list")
            self._transactions = []
            return self

        loaded = (_record_to_transaction(r) for r in records)
        self._transactions = [t for t in loaded if t is not None]
        return self

    def _commit(self, transactions: list[Transaction]) -> None:
        """Persist `transactions`, then make them the ledger. A failed write changes nothing."""
        self._store.set_json(
            self._key,
            [t.model_dump(mode="json") for t in transactions],
        )
        self._transactions = transactions

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """All entries in insertion order."""
        return tuple(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def add(self, transaction: Transaction) -> Transaction:
        """Append an entry and persist."""
        self._commit(self._transactions + [transaction])
        return transaction

    def extend(self, transactions: list[Transaction]) -> list[Transaction]:
        """Append a batch of entries with a single write: all of them or none."""
        batch = list(transactions)
        if batch:
            self._commit(self._transactions + batch)
        return batch

    def add_manual(
        self,
        amount: Any,
        category: Any,
        merchant: Optional[str] = None,
        is_income: bool = False,
        date: Optional[datetime.date] = None,
    ) -> Transaction:
        """
        Record an entry typed in by the user.

        Raises:
            InvalidAmountError: If the amount is not a positive number
        """
        value = sanitize_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(amount)

        transaction = Transaction(
            amount=value,
            category=reconcile_income_flag(normalize(category), is_income),
            merchant=(merchant or "").strip() or MANUAL_MERCHANT,
            date=date or self._today(),
        )
        return self.add(transaction)

    def get(self, transaction_id: str) -> Transaction:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        raise TransactionNotFoundError(transaction_id)

    def _index(self, transaction_id: str) -> int:
        for i, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return i
        raise TransactionNotFoundError(transaction_id)

    def confirm(self, transaction_id: str) -> Transaction:
        """Mark a pending entry as confirmed. Confirming twice is a no-op."""
        i = self._index(transaction_id)
        confirmed = self._transactions[i].model_copy(update={"need_confirmation": False})
        updated = list(self._transactions)
        updated[i] = confirmed
        self._commit(updated)
        return confirmed

    def delete(self, transaction_id: str) -> Transaction:
        """Remove an entry (confirmed or pending)."""
        updated = list(self._transactions)
        removed = updated.pop(self._index(transaction_id))
        self._commit(updated)
        return removed

    def pending(self) -> list[Transaction]:
        """Entries awaiting confirmation, newest first."""
        return [t for t in reversed(self._transactions) if t.need_confirmation]

    def confirmed(self) -> list[Transaction]:
        """Confirmed entries in insertion order."""
        return [t for t in self._transactions if not t.need_confirmation]

    def recent(self, limit: int = 10) -> list[Transaction]:
        """The `limit` most recently added entries, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._transactions[-limit:]))

    def export_json(self) -> str:
        """The full ledger as pretty-printed JSON."""
        return json.dumps(
            [t.model_dump(mode="json") for t in self._transactions],
            ensure_ascii=False,
            indent=2,
        )


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidAmountError(LedgerError):
    """A manual entry was given a zero, negative or unreadable amount."""

    def __init__(self, amount: Any):
        self.amount = amount
        super().__init__(f"Amount must be a positive number, got {amount!r}")


class TransactionNotFoundError(LedgerError):
    """No entry with the given id exists."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")
