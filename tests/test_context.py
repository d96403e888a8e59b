"""Tests for the ledger context formatter, budget assessment and calendar."""

from datetime import date
from decimal import Decimal

from conftest import TODAY, make_txn

from smartbill.ledger import assess_budget, build_context, month_calendar, render_context_text
from smartbill.ledger.advice import health_score
from smartbill.models.transaction import Category


class TestBuildContext:
    """Tests for build_context()."""

    def test_empty_ledger(self):
        """Test an empty ledger summarizes to zeros."""
        summary = build_context([], 3000, TODAY)
        assert summary.month_expense == 0
        assert summary.remaining == Decimal("3000")
        assert summary.usage_percent == 0
        assert summary.recent_lines == ()
        assert summary.has_records is False

    def test_over_budget(self):
        """Test remaining goes negative and usage exceeds 100%."""
        ledger = [make_txn(1000), make_txn(2300, Category.SHOPPING)]
        summary = build_context(ledger, 3000, TODAY)
        assert summary.month_expense == Decimal("3300")
        assert summary.remaining == Decimal("-300")
        assert summary.usage_percent == 110

    def test_pending_excluded_from_totals(self):
        """Test pending entries never count."""
        ledger = [make_txn(45, pending=True), make_txn(10)]
        summary = build_context(ledger, 3000, TODAY)
        assert summary.month_expense == Decimal("10")
        assert summary.today_expense == Decimal("10")
        assert summary.pending_count == 1

    def test_confirming_changes_totals(self):
        """Test the same entry counts once it is confirmed."""
        pending = make_txn(45, pending=True)
        before = build_context([pending], 3000, TODAY)
        after = build_context([pending.model_copy(update={"need_confirmation": False})], 3000, TODAY)
        assert after.month_expense - before.month_expense == Decimal("45")

    def test_income_separated_from_expense(self):
        """Test income is decided by category."""
        ledger = [make_txn(8000, Category.INCOME, "公司"), make_txn(35)]
        summary = build_context(ledger, 3000, TODAY)
        assert summary.month_income == Decimal("8000")
        assert summary.month_expense == Decimal("35")
        assert summary.net == Decimal("7965")
        assert summary.today_income == Decimal("8000")

    def test_other_months_excluded(self):
        """Test the month filter."""
        ledger = [make_txn(100, day=date(2024, 4, 30)), make_txn(20)]
        summary = build_context(ledger, 3000, TODAY)
        assert summary.month_expense == Decimal("20")

    def test_usage_rounds_half_up(self):
        """Test usage_percent rounding."""
        summary = build_context([make_txn(5)], 1000, TODAY)
        assert summary.usage_percent == 1  # 0.5% rounds up

    def test_zero_budget(self):
        """Test a zero budget reports 0% and full overspend."""
        summary = build_context([make_txn(50)], 0, TODAY)
        assert summary.usage_percent == 0
        assert summary.remaining == Decimal("-50")

    def test_top_categories_sorted_with_stable_ties(self):
        """Test category ranking."""
        ledger = [
            make_txn(10, Category.TRANSPORT),
            make_txn(50, Category.FOOD),
            make_txn(10, Category.SHOPPING),
        ]
        summary = build_context(ledger, 3000, TODAY)
        ranked = [ct.category for ct in summary.top_expense_categories]
        assert ranked == [Category.FOOD, Category.TRANSPORT, Category.SHOPPING]

    def test_top_categories_limit(self):
        """Test only the top N are kept."""
        ledger = [make_txn(i + 1, c) for i, c in enumerate(list(Category)[:7])]
        summary = build_context(ledger, 3000, TODAY, top_expense=5)
        assert len(summary.top_expense_categories) == 5

    def test_recent_lines_newest_first_and_marked(self):
        """Test recent lines include pending entries, marked."""
        ledger = [make_txn(i + 1, merchant=f"m{i}") for i in range(12)]
        ledger.append(make_txn(45, merchant="瑞幸咖啡", pending=True))
        summary = build_context(ledger, 3000, TODAY)
        assert len(summary.recent_lines) == 10
        assert summary.recent_lines[0] == "- 2024-05-15 | 瑞幸咖啡 | 餐饮 | ¥45 (待确认)"
        assert "m11" in summary.recent_lines[1]

    def test_malformed_records_contribute_zero(self):
        """Test loosely typed records with bad amounts are read safely."""
        ledger = [
            {"amount": "NaN", "category": "餐饮", "merchant": "x", "date": "2024-05-15", "needConfirmation": False},
            {"amount": None, "category": "交通", "date": "2024-05-15"},
            {"amount": "20", "category": "food", "merchant": "y", "date": "2024-05-10"},
        ]
        summary = build_context(ledger, 3000, TODAY)
        assert summary.month_expense == Decimal("20")
        assert summary.top_expense_categories[0].category == Category.FOOD

    def test_deterministic(self):
        """Test same inputs produce the same summary."""
        ledger = [make_txn(10), make_txn(20, Category.TRANSPORT)]
        assert build_context(ledger, 3000, TODAY) == build_context(ledger, 3000, TODAY)


class TestRenderContextText:
    """Tests for render_context_text()."""

    def test_empty_placeholders(self):
        """Test empty data renders placeholders."""
        text = render_context_text(build_context([], 3000, TODAY))
        assert "暂无" in text
        assert "今日明细: 无" in text
        assert "月度预算: ¥3000" in text
        assert "预算使用进度: 0%" in text

    def test_today_items_listed(self):
        """Test today's confirmed items appear."""
        text = render_context_text(build_context([make_txn(35, merchant="食堂")], 3000, TODAY))
        assert "食堂(¥35)" in text
        assert "2024-05-15" in text


class TestBudgetAssessment:
    """Tests for assess_budget()."""

    def test_beginner(self):
        """Test an empty month."""
        assessment = assess_budget(build_context([], 3000, TODAY))
        assert assessment.score == 100
        assert assessment.title == "记账新手"

    def test_low_usage(self):
        """Test a frugal month."""
        assessment = assess_budget(build_context([make_txn(300)], 3000, TODAY))
        assert assessment.title == "省钱达人"
        assert assessment.score == 95
        assert "📉 消费控制良好" in assessment.tips

    def test_over_budget(self):
        """Test an overspent month."""
        assessment = assess_budget(build_context([make_txn(3300)], 3000, TODAY))
        assert assessment.title == "预算超支"
        assert assessment.score == 30
        assert "❌ 已超支 ¥300" in assessment.tips
        assert "📈 消费速度高于预期" in assessment.tips

    def test_health_score_bands(self):
        """Test the score bands."""
        assert health_score(build_context([make_txn(1800)], 3000, TODAY)) == 85  # 60%
        assert health_score(build_context([make_txn(2400)], 3000, TODAY)) == 70  # 80%
        assert health_score(build_context([make_txn(2800)], 3000, TODAY)) == 55  # 93%


class TestMonthCalendar:
    """Tests for month_calendar()."""

    def test_every_day_present(self):
        """Test the calendar covers the whole month."""
        days = month_calendar([], 2024, 2)
        assert len(days) == 29

    def test_daily_totals(self):
        """Test income and expense per day, pending excluded."""
        ledger = [
            make_txn(35),
            make_txn(8000, Category.INCOME),
            make_txn(45, pending=True),
            make_txn(10, day=date(2024, 5, 1)),
        ]
        days = month_calendar(ledger, 2024, 5)
        assert days[TODAY].expense == Decimal("35")
        assert days[TODAY].income == Decimal("8000")
        assert days[TODAY].count == 2
        assert days[date(2024, 5, 1)].net == Decimal("-10")
