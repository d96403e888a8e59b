"""
Budget Assessment

Scores the month so far against the budget and produces a short verdict
with tips. Derived entirely from a ContextSummary.
"""

import calendar
from decimal import Decimal

from smartbill.models.summary import BudgetAssessment, ContextSummary
from smartbill.validation.amounts import ZERO

# (upper ratio bound, health score)
_SCORE_BANDS = (
    (Decimal("0.5"), 95),
    (Decimal("0.7"), 85),
    (Decimal("0.85"), 70),
    (Decimal("1"), 55),
)
OVER_BUDGET_SCORE = 30
PACE_TOLERANCE = Decimal("0.2")


def _whole(amount: Decimal) -> str:
    return f"{amount:.0f}"


def budget_ratio(summary: ContextSummary) -> Decimal:
    if summary.monthly_budget <= 0:
        return Decimal("Infinity") if summary.month_expense > 0 else ZERO
    return summary.month_expense / summary.monthly_budget


def health_score(summary: ContextSummary) -> int:
    """100 for an empty month, then lower the more of the budget is gone."""
    if summary.month_expense == 0 and summary.month_income == 0:
        return 100
    ratio = budget_ratio(summary)
    for bound, score in _SCORE_BANDS:
        if ratio < bound:
            return score
    return OVER_BUDGET_SCORE


def expected_spend(summary: ContextSummary) -> Decimal:
    """Budget share for the days elapsed so far, assuming even spending."""
    days_in_month = calendar.monthrange(summary.as_of.year, summary.as_of.month)[1]
    return summary.monthly_budget / days_in_month * summary.as_of.day


def assess_budget(summary: ContextSummary) -> BudgetAssessment:
    """Plain-language assessment of the month as of `summary.as_of`."""
    if summary.month_expense == 0 and summary.month_income == 0:
        return BudgetAssessment(
            score=100,
            title="记账新手",
            message="还没有任何消费记录，开始记账吧，让 AI 帮你分析财务状况！",
            tips=("在对话框里说一句“午饭35”即可记账", "支持语音、拍照识别账单"),
        )

    spent = summary.month_expense
    remaining = summary.remaining
    ratio = budget_ratio(summary)
    daily_avg = spent / summary.as_of.day
    top = summary.top_expense_categories[0] if summary.top_expense_categories else None
    tips: list[str] = []

    if ratio < Decimal("0.5"):
        title = "省钱达人"
        message = f"本月已消费 ¥{_whole(spent)}，只用了 {summary.usage_percent}% 的预算"
        if top:
            tips.append(f"主要支出是{top.category.value}，共 ¥{_whole(top.total)}")
        tips.append("继续保持！可以适当享受一下")
    elif ratio < Decimal("0.75"):
        title = "消费理性"
        message = f"本月已消费 ¥{_whole(spent)}，预算使用 {summary.usage_percent}%"
        if top:
            tips.append(f"{top.category.value}占比最高，达 ¥{_whole(top.total)}")
        tips.append(f"日均消费 ¥{_whole(daily_avg)}，注意保持")
    elif ratio < Decimal("0.9"):
        title = "预算预警"
        message = f"本月已消费 ¥{_whole(spent)}，预算剩余不多"
        tips.append(f"⚠️ 本月剩余预算仅 ¥{_whole(max(ZERO, remaining))}")
        tips.append(f"日均 ¥{_whole(daily_avg)}，建议控制消费")
        if top:
            tips.append(f"减少{top.category.value}类开支可有效节流")
    elif ratio < 1:
        title = "预算紧张"
        message = f"本月已消费 ¥{_whole(spent)}，即将超支！"
        tips.append(f"🚨 剩余预算仅 ¥{_whole(max(ZERO, remaining))}")
        tips.append("建议立即调整消费习惯")
        if top:
            tips.append(f"{top.category.value}支出过高，需重点关注")
    else:
        title = "预算超支"
        message = f"本月已消费 ¥{_whole(spent)}，超出预算 ¥{_whole(abs(remaining))}"
        tips.append(f"❌ 已超支 ¥{_whole(abs(remaining))}")
        tips.append("建议设置下月预算时降低 20%")
        if top:
            tips.append(f"{top.category.value}是最大支出项")

    expected = expected_spend(summary)
    if expected > 0:
        trend = (spent - expected) / expected
        if trend > PACE_TOLERANCE:
            tips.append("📈 消费速度高于预期")
        elif trend < -PACE_TOLERANCE:
            tips.append("📉 消费控制良好")

    return BudgetAssessment(
        score=health_score(summary),
        title=title,
        message=message,
        tips=tuple(tips),
    )
