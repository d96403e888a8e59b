"""
Ledger Context Formatter

Turns the ledger into the grounding summary sent with every model
request, so replies can quote the user's real numbers.

`build_context` is a pure function: same transactions, budget and day in,
same summary out. It accepts Transaction models or loosely-typed mappings
(older stored records), and reads every amount through sanitize_amount so
a bad record can only ever contribute zero.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from smartbill.categories import normalize
from smartbill.models.summary import CategoryTotal, ContextSummary
from smartbill.models.transaction import UNKNOWN_MERCHANT, Category, Transaction
from smartbill.validation.amounts import ZERO, format_amount, sanitize_amount


LedgerRecord = Union[Transaction, Mapping[str, Any]]

NO_RECORDS = "暂无"
NONE_TODAY = "无"
PENDING_MARK = "(待确认)"


def _field(record: LedgerRecord, name: str, legacy: Optional[str] = None) -> Any:
    if isinstance(record, Mapping):
        if name in record:
            return record[name]
        return record.get(legacy) if legacy else None
    return getattr(record, name, None)


def _record_date(record: LedgerRecord) -> str:
    value = _field(record, "date")
    if isinstance(value, date):
        return value.isoformat()
    return value if isinstance(value, str) else ""


def _record_category(record: LedgerRecord) -> Category:
    return normalize(_field(record, "category"))


def _is_pending(record: LedgerRecord) -> bool:
    return bool(_field(record, "need_confirmation", "needConfirmation"))


def _merchant(record: LedgerRecord) -> str:
    merchant = _field(record, "merchant")
    return merchant if isinstance(merchant, str) and merchant else UNKNOWN_MERCHANT


def usage_percent(expense: Decimal, budget: Decimal) -> int:
    """Budget usage rounded half-up; a non-positive budget reports 0%."""
    if budget <= 0:
        return 0
    ratio = expense / budget * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rank(totals: dict[Category, Decimal], limit: int) -> tuple[CategoryTotal, ...]:
    # sorted() is stable, so equal totals keep first-encountered order
    ranked = sorted(
        (CategoryTotal(category=c, total=t) for c, t in totals.items() if t > 0),
        key=lambda ct: ct.total,
        reverse=True,
    )
    return tuple(ranked[:limit])


def format_line(record: LedgerRecord) -> str:
    """One ledger entry as a display line."""
    line = (
        f"- {_record_date(record)} | {_merchant(record)} | "
        f"{_record_category(record).value} | ¥{format_amount(sanitize_amount(_field(record, 'amount')))}"
    )
    if _is_pending(record):
        line = f"{line} {PENDING_MARK}"
    return line


def build_context(
    transactions: Iterable[LedgerRecord],
    monthly_budget: Any,
    as_of: date,
    recent_limit: int = 10,
    top_expense: int = 5,
    top_income: int = 3,
) -> ContextSummary:
    """
    Summarize the ledger as of `as_of`.

    Args:
        transactions: Ledger entries in insertion order (oldest first)
        monthly_budget: Budget for the month; non-numeric values count as 0
        as_of: The local "today"

    Returns:
        A ContextSummary whose aggregates cover confirmed entries only
    """
    records = list(transactions)
    budget = sanitize_amount(monthly_budget)
    today = as_of.isoformat()
    month = today[:7]

    month_expense = ZERO
    month_income = ZERO
    today_expense = ZERO
    today_income = ZERO
    today_items: list[str] = []
    expense_by_category: dict[Category, Decimal] = {}
    income_by_category: dict[Category, Decimal] = {}
    pending = 0

    for record in records:
        if _is_pending(record):
            pending += 1
            continue

        record_date = _record_date(record)
        if not record_date.startswith(month):
            continue

        amount = sanitize_amount(_field(record, "amount"))
        category = _record_category(record)
        is_income = category == Category.INCOME

        if is_income:
            month_income += amount
            income_by_category[category] = income_by_category.get(category, ZERO) + amount
        else:
            month_expense += amount
            expense_by_category[category] = expense_by_category.get(category, ZERO) + amount

        if record_date == today:
            if is_income:
                today_income += amount
            else:
                today_expense += amount
            today_items.append(f"{_merchant(record)}(¥{format_amount(amount)})")

    recent = [format_line(r) for r in reversed(records[-recent_limit:])] if recent_limit > 0 else []

    return ContextSummary(
        as_of=as_of,
        monthly_budget=budget,
        month_expense=month_expense,
        month_income=month_income,
        net=month_income - month_expense,
        remaining=budget - month_expense,
        usage_percent=usage_percent(month_expense, budget),
        today_expense=today_expense,
        today_income=today_income,
        today_items=tuple(today_items),
        top_expense_categories=_rank(expense_by_category, top_expense),
        top_income_categories=_rank(income_by_category, top_income),
        recent_lines=tuple(recent),
        pending_count=pending,
    )


def _breakdown(items: tuple[CategoryTotal, ...]) -> str:
    if not items:
        return NONE_TODAY
    return "、".join(f"{ct.category.value} ¥{format_amount(ct.total)}" for ct in items)


def render_context_text(summary: ContextSummary) -> str:
    """Render a summary as the grounding block of the system prompt."""
    return "\n".join([
        f"# 当前财务概况 (日期: {summary.as_of.isoformat()})",
        "",
        "# 本月预算信息",
        f"- 月度预算: ¥{format_amount(summary.monthly_budget)}",
        f"- 本月已消费: ¥{format_amount(summary.month_expense)}",
        f"- 本月收入: ¥{format_amount(summary.month_income)}",
        f"- 本月结余: ¥{format_amount(summary.net)}",
        f"- 剩余可用: ¥{format_amount(summary.remaining)}",
        f"- 预算使用进度: {summary.usage_percent}%",
        f"- 主要支出分类: {_breakdown(summary.top_expense_categories)}",
        f"- 收入来源: {_breakdown(summary.top_income_categories)}",
        "",
        f"- 今日已确认支出: ¥{format_amount(summary.today_expense)}",
        f"- 今日已确认收入: ¥{format_amount(summary.today_income)}",
        f"- 今日明细: {', '.join(summary.today_items) or NONE_TODAY}",
        f"- 待确认记录: {summary.pending_count} 笔",
        "- 最近记录:",
        "\n".join(summary.recent_lines) or NO_RECORDS,
    ])
