"""Category normalization package."""

from smartbill.categories.normalizer import (
    coerce_income_flag,
    is_income_category,
    normalize,
    reconcile_income_flag,
)

__all__ = [
    "coerce_income_flag",
    "is_income_category",
    "normalize",
    "reconcile_income_flag",
]
