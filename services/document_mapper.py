"""
Translation between Expense records and MongoDB documents.

Outbound, the decimal amount becomes a float and the calendar date becomes the
datetime of local midnight in the configured zone. Inbound, the float goes back
through its string form so 12.34 comes back as Decimal("12.34"), and the stored
instant is read back as a date in the same zone.
"""
import logging
import math
from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.expense import Expense
from services.errors import MappingError

logger = logging.getLogger(__name__)


def date_to_timestamp(value: date, tz: Optional[tzinfo]) -> datetime:
    # No zone means server local time, with the offset in force on that day
    if tz is None:
        return datetime.combine(value, time.min).astimezone()
    return datetime.combine(value, time.min, tzinfo=tz)


def timestamp_to_date(value: datetime, tz: Optional[tzinfo]) -> date:
    # The driver hands back naive datetimes that are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


def amount_to_float(value: Decimal) -> float:
    return float(value)


def float_to_amount(value: float) -> Decimal:
    return Decimal(str(value))


def expense_to_document(expense: Expense, tz: Optional[tzinfo]) -> Dict[str, Any]:
    """Builds the stored document for an expense. The id is never part of it."""
    return {
        "title": expense.title,
        "amount": amount_to_float(expense.amount),
        "category": expense.category,
        "date": date_to_timestamp(expense.date, tz),
        "ownerId": expense.owner_id,
    }


def parse_document(document: Dict[str, Any], tz: Optional[tzinfo]) -> Expense:
    """Converts a stored document into an Expense, raising MappingError on bad data."""
    document_id = document.get("_id")
    if document_id is None:
        raise MappingError(None, "missing _id")

    amount = document.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise MappingError(document_id, f"amount is {type(amount).__name__}, expected a number")
    if isinstance(amount, float) and not math.isfinite(amount):
        raise MappingError(document_id, f"amount is not finite: {amount}")

    stored_date = document.get("date")
    if not isinstance(stored_date, datetime):
        raise MappingError(document_id, f"date is {type(stored_date).__name__}, expected a timestamp")

    owner_id = document.get("ownerId")
    if owner_id is not None and not isinstance(owner_id, str):
        raise MappingError(document_id, "ownerId is not a string")

    try:
        return Expense(
            id=str(document_id),
            title=document["title"],
            amount=float_to_amount(amount),
            category=document["category"],
            date=timestamp_to_date(stored_date, tz),
            owner_id=owner_id,
        )
    except KeyError as e:
        raise MappingError(document_id, f"missing field {e}") from e
    except (ValidationError, InvalidOperation, OverflowError, ValueError) as e:
        raise MappingError(document_id, str(e)) from e


def document_to_expense(document: Dict[str, Any], tz: Optional[tzinfo]) -> Optional[Expense]:
    """Like parse_document, but a malformed document yields None and a log entry."""
    try:
        return parse_document(document, tz)
    except MappingError as e:
        logger.warning(f"Skipping stored expense: {e}")
        return None
