"""Expiry classification and sheet date helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime

from .models import Category

DATE_FORMAT = "%d/%m/%Y"

# Inclusive upper bounds in days, checked in order
THRESHOLDS: tuple[tuple[int, Category], ...] = (
    (7, Category.EXPIRED),
    (30, Category.SOON),
    (90, Category.MEDIUM),
    (180, Category.LATER),
)


@dataclass
class ExpiryStatus:
    status: str  # css-like status name for the presentation layer
    label: str


_STATUS = {
    Category.EXPIRED: ExpiryStatus("expired", "EXPIRED / EXPIRING SOON"),
    Category.SOON: ExpiryStatus("warning", "EXPIRING WITHIN 1 MONTH"),
    Category.MEDIUM: ExpiryStatus("caution", "EXPIRING WITHIN 3 MONTHS"),
    Category.LATER: ExpiryStatus("good", "EXPIRING WITHIN 6 MONTHS"),
    Category.FRESH: ExpiryStatus("fresh", "FRESH"),
}


def parse_date(text: str | None) -> date | None:
    """Parse a ``DD/MM/YYYY`` cell. Blank or malformed text gives None."""
    if not text or not text.strip():
        return None
    parts = text.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def format_date(value: date | None) -> str:
    if value is None:
        return ""
    return value.strftime(DATE_FORMAT)


def days_until_expiry(expiry: date | None, today: date | None = None) -> float:
    """Whole days from today to the expiry date.

    A missing date counts as never expiring (``math.inf``).
    """
    if expiry is None:
        return math.inf
    if today is None:
        today = date.today()
    if isinstance(expiry, datetime):
        expiry = expiry.date()
    return (expiry - today).days


def classify_days(days: float) -> Category:
    for limit, category in THRESHOLDS:
        if days <= limit:
            return category
    return Category.FRESH


def classify(expiry: date | None, today: date | None = None) -> Category:
    return classify_days(days_until_expiry(expiry, today))


def expiry_status(expiry: date | None, today: date | None = None) -> ExpiryStatus:
    """Display status and label for an expiry date."""
    return _STATUS[classify(expiry, today)]
