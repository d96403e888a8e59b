"""
Transaction Reconciler

Validates the model's proposed transactions and commits the usable ones
to the ledger.

CRITICAL: This is the only path from model output to ledger entries. A
candidate that fails any check is dropped silently (and counted); a bad
candidate never aborts the rest of the batch.
"""

import datetime
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from smartbill.categories import coerce_income_flag, normalize, reconcile_income_flag
from smartbill.models.llm import ModelResult, TransactionCandidate
from smartbill.models.transaction import UNKNOWN_MERCHANT, Transaction
from smartbill.validation.amounts import ZERO, sanitize_amount

logger = structlog.get_logger(__name__)


def notification_text(count: int) -> str:
    """Toast shown after a reply added entries to the ledger."""
    return f"已添加 {count} 笔记录"


@dataclass
class ReconciliationResult:
    """What one model response did to the ledger."""
    added: list[Transaction] = field(default_factory=list)
    dropped_count: int = 0
    sanitized_message: str = ""

    @property
    def added_count(self) -> int:
        return len(self.added)

    @property
    def notification(self) -> str:
        return notification_text(self.added_count) if self.added else ""


def _parse_date(value: Any, today: datetime.date) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return today
    return today


def _merchant(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()[:200]
    return UNKNOWN_MERCHANT


class TransactionReconciler:
    """
    Turns TransactionCandidates into Transactions.

    Rules per candidate, in order:
    1. Amount sanitized; <= 0 drops the candidate
    2. Category normalized, then forced to agree with the income flag
    3. Merchant defaults to 未知, date defaults to today
    4. Entries are appended in received order, no deduplication
    """

    def __init__(self, today: Callable[[], datetime.date] = datetime.date.today):
        self._today = today

    def to_transaction(self, candidate: TransactionCandidate, today: datetime.date) -> Optional[Transaction]:
        """Build a ledger entry from one candidate, or None to drop it."""
        amount = sanitize_amount(candidate.amount)
        if amount <= ZERO:
            return None

        is_income = coerce_income_flag(candidate.is_income)
        category = reconcile_income_flag(normalize(candidate.category), is_income)

        return Transaction(
            amount=amount,
            category=category,
            merchant=_merchant(candidate.merchant),
            date=_parse_date(candidate.date, today),
            is_auto_imported=False,
            need_confirmation=False,
        )

    def apply(
        self,
        result: ModelResult,
        commit: Callable[[list[Transaction]], Any],
    ) -> ReconciliationResult:
        """
        Commit every valid candidate in `result` as one batch.

        Args:
            result: The gateway's result for one turn
            commit: Batch append (usually Ledger.extend); called once, and
                only when there is something to add

        Returns:
            ReconciliationResult with the entries added and the drop count

        Raises:
            Whatever `commit` raises. Nothing is reported as added then.
        """
        outcome = ReconciliationResult(sanitized_message=result.reply)
        today = self._today()
        batch: list[Transaction] = []

        for candidate in result.transactions:
            try:
                transaction = self.to_transaction(candidate, today)
            except ValueError as e:
                # pydantic.ValidationError is a ValueError
                logger.warning("candidate_rejected", error=str(e))
                transaction = None

            if transaction is None:
                outcome.dropped_count += 1
                continue

            batch.append(transaction)

        if batch:
            commit(batch)
            outcome.added = batch

        if outcome.added or outcome.dropped_count:
            logger.info(
                "reconciled_candidates",
                added=outcome.added_count,
                dropped=outcome.dropped_count,
            )
        return outcome
