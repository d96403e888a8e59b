"""
Ledger Data Models

DESIGN DECISION: Amounts are stored as non-negative Decimals. Whether a
transaction is money in or money out is carried by its category
(INCOME vs everything else), never by a negative sign.

Transactions are frozen. The only state change a transaction ever sees is
confirmation, which the ledger performs by replacing the record with a copy.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


UNKNOWN_MERCHANT = "未知"
MANUAL_MERCHANT = "手动记账"


class Category(str, Enum):
    """
    Closed set of ledger categories.

    Values are the display labels the assistant and the UI speak in.
    """
    FOOD = "餐饮"
    SHOPPING = "购物"
    TRANSPORT = "交通"
    ENTERTAINMENT = "娱乐"
    HOUSING = "住房"
    HEALTH = "医疗"
    EDUCATION = "教育"
    INCOME = "收入"
    OTHER = "其他"


def new_transaction_id() -> str:
    return uuid4().hex


class Transaction(BaseModel):
    """
    A single ledger entry.

    CRITICAL: entries with need_confirmation=True are excluded from every
    aggregate until the user confirms them.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_transaction_id,
        description="Opaque identifier, assigned once"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Non-negative amount in CNY"
    )
    category: Category
    merchant: str = Field(
        default=UNKNOWN_MERCHANT,
        max_length=200,
    )
    date: datetime.date = Field(
        ...,
        description="Local calendar date of the transaction"
    )
    is_auto_imported: bool = Field(
        default=False,
        description="Created by the passive import path rather than chat or manual entry"
    )
    need_confirmation: bool = Field(
        default=False,
        description="Awaiting explicit user acknowledgement"
    )
    raw_source: Optional[str] = Field(
        default=None,
        description="Original text the entry was imported from"
    )

    @property
    def is_income(self) -> bool:
        return self.category == Category.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the category."""
        return self.amount if self.is_income else -self.amount
