"""Pydantic models for Expense data"""
import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

TITLE_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 50
AMOUNT_MIN = Decimal("0.01")
AMOUNT_MAX = Decimal("999999999.99")
CATEGORY_PATTERN = re.compile(r"[A-Za-z0-9 \-]+")


def _to_decimal(value):
    # Floats go through their shortest repr so 19.99 stays 19.99
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class ExpenseIn(BaseModel):
    """
    Client-supplied expense fields for create and update.
    Every field constraint is checked here, before the store is touched.
    """
    model_config = ConfigDict(extra="ignore")

    title: str
    amount: Decimal
    category: str
    date: date

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        if len(value) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title must not exceed {TITLE_MAX_LENGTH} characters")
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value):
        return _to_decimal(value)

    @field_validator("amount")
    @classmethod
    def check_amount(cls, value: Decimal) -> Decimal:
        if value < AMOUNT_MIN:
            raise ValueError("Amount must be greater than 0")
        if value > AMOUNT_MAX:
            raise ValueError("Amount is too large")
        return value

    @field_validator("category")
    @classmethod
    def check_category(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Category is required")
        if len(value) > CATEGORY_MAX_LENGTH:
            raise ValueError(f"Category must not exceed {CATEGORY_MAX_LENGTH} characters")
        if not CATEGORY_PATTERN.fullmatch(value):
            raise ValueError("Category contains invalid characters")
        return value

    @field_validator("date")
    @classmethod
    def check_date(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Date cannot be in the future")
        return value


class Expense(BaseModel):
    """
    Represents a single persisted expense.
    `id` is assigned by the store; `owner_id` is serialized as `ownerId`.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: Optional[str] = None
    title: str
    amount: Decimal
    category: str
    date: date
    owner_id: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value):
        return _to_decimal(value)

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class ExpenseListResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    expenses: List[Expense] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    count: int = 0

    @field_serializer("total_amount", when_used="json")
    def serialize_total(self, value: Decimal) -> float:
        return float(value)


class MessageResponse(BaseModel):
    message: str
