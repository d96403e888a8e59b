"""Per-day income and expense totals for the calendar view."""

import calendar
import datetime
from collections.abc import Iterable

from smartbill.models.summary import DayTotals
from smartbill.models.transaction import Transaction


def month_calendar(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> dict[datetime.date, DayTotals]:
    """
    Totals for every day of `year`-`month`.

    Every day of the month has an entry (zeros for quiet days). Pending
    entries are left out.
    """
    days = calendar.monthrange(year, month)[1]
    totals = {
        datetime.date(year, month, day): DayTotals()
        for day in range(1, days + 1)
    }

    for transaction in transactions:
        if transaction.need_confirmation:
            continue
        day = totals.get(transaction.date)
        if day is None:
            continue
        if transaction.is_income:
            day.income += transaction.amount
        else:
            day.expense += transaction.amount
        day.count += 1

    return totals


def transactions_on(
    transactions: Iterable[Transaction],
    day: datetime.date,
) -> list[Transaction]:
    """Confirmed entries dated `day`, in ledger order."""
    return [t for t in transactions if t.date == day and not t.need_confirmation]
