"""
Category Normalizer

Maps whatever label the model (or a person) produced onto the closed
Category set.

DESIGN DECISION: We use ordered keyword matching rather than asking the
model again because:
1. It is total - every input maps to some category, OTHER at worst
2. It is deterministic and idempotent (a category's own label maps back to it)
3. It is easy to audit when an entry lands in the wrong bucket

Rule order IS the priority. Income indicators are checked first so that
"工资" never ends up as an expense, then food, shopping, transport,
entertainment, housing, health and education. The first rule that matches
wins; anything else is OTHER.
"""

import re
from typing import Any, Optional

from smartbill.models.transaction import Category


# (category, CJK substrings, English words). Order encodes priority.
_RULES: tuple[tuple[Category, tuple[str, ...], tuple[str, ...]], ...] = (
    (
        Category.INCOME,
        ("收", "入", "工资", "钱"),
        ("income", "salary", "wage", "wages", "payroll", "bonus", "refund", "earning", "earnings"),
    ),
    (
        Category.FOOD,
        ("餐", "吃", "饭"),
        ("food", "meal", "lunch", "dinner", "breakfast", "restaurant", "cafe", "coffee", "snack", "grocery", "groceries", "dining"),
    ),
    (
        Category.SHOPPING,
        ("购", "买", "淘宝"),
        ("shopping", "shop", "purchase", "clothes", "taobao"),
    ),
    (
        Category.TRANSPORT,
        ("交", "车", "打车"),
        ("transport", "transportation", "taxi", "bus", "metro", "subway", "train", "uber", "didi", "fuel", "parking", "flight"),
    ),
    (
        Category.ENTERTAINMENT,
        ("娱", "电影", "游戏"),
        ("entertainment", "movie", "movies", "cinema", "game", "games", "concert", "ktv"),
    ),
    (
        Category.HOUSING,
        ("住", "房", "租"),
        ("housing", "rent", "mortgage", "utilities", "electricity", "water"),
    ),
    (
        Category.HEALTH,
        ("医", "药", "看病"),
        ("health", "medical", "hospital", "pharmacy", "doctor", "medicine", "clinic"),
    ),
    (
        Category.EDUCATION,
        ("教", "学费", "培训"),
        ("education", "tuition", "course", "courses", "training", "school", "books"),
    ),
)

_WORD_PATTERNS: tuple[tuple[Category, Optional[re.Pattern]], ...] = tuple(
    (
        category,
        re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)
        if words else None,
    )
    for category, _, words in _RULES
)


def normalize(raw_label: Any) -> Category:
    """
    Map a free-form label onto a Category.

    Never fails: None, non-strings and unmatched text all map to OTHER.
    """
    if isinstance(raw_label, Category):
        return raw_label
    if not isinstance(raw_label, str):
        return Category.OTHER

    label = raw_label.strip()
    if not label:
        return Category.OTHER

    for (category, substrings, _), (_, pattern) in zip(_RULES, _WORD_PATTERNS):
        if any(s in label for s in substrings):
            return category
        if pattern is not None and pattern.search(label):
            return category

    return Category.OTHER


def coerce_income_flag(value: Any) -> bool:
    """
    Read the model's `is_income` flag strictly.

    Only an actual True (or the string "true") counts; a missing flag
    means expense.
    """
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def reconcile_income_flag(category: Category, is_income: bool) -> Category:
    """
    Make the category agree with the explicit income flag.

    After this, the result is INCOME if and only if is_income is True.
    """
    if is_income and category != Category.INCOME:
        return Category.INCOME
    if not is_income and category == Category.INCOME:
        return Category.OTHER
    return category


def is_income_category(category: Any) -> bool:
    """Income predicate shared by every aggregate in the app."""
    return normalize(category) == Category.INCOME
