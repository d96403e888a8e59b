"""
Derived Ledger Summaries

None of these models are persisted. They are recomputed from the ledger
whenever they are needed, so they can never drift from it.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from smartbill.models.transaction import Category


class CategoryTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Category
    total: Decimal


class ContextSummary(BaseModel):
    """
    Grounding snapshot of the user's finances as of one day.

    Aggregates only ever include confirmed transactions. `recent_lines`
    is the exception: it lists the latest entries whatever their state so
    the assistant can mention what is still pending.
    """
    model_config = ConfigDict(frozen=True)

    as_of: date
    monthly_budget: Decimal

    # Month to date
    month_expense: Decimal = Decimal("0")
    month_income: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    usage_percent: int = 0

    # Today
    today_expense: Decimal = Decimal("0")
    today_income: Decimal = Decimal("0")
    today_items: tuple[str, ...] = ()

    # Breakdowns
    top_expense_categories: tuple[CategoryTotal, ...] = ()
    top_income_categories: tuple[CategoryTotal, ...] = ()

    # Latest entries, newest first
    recent_lines: tuple[str, ...] = ()
    pending_count: int = Field(default=0, ge=0)

    @property
    def has_records(self) -> bool:
        return bool(self.recent_lines)

    @property
    def month_key(self) -> str:
        return self.as_of.strftime("%Y-%m")


class DayTotals(BaseModel):
    """Confirmed income and expense for one calendar day."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    count: int = 0

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class BudgetAssessment(BaseModel):
    """Plain-language verdict on how the month is going."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    title: str
    message: str
    tips: tuple[str, ...] = ()
