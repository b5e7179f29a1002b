"""Data models for inventory items, sessions and rotation state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum


class Category(str, Enum):
    """Expiry urgency bucket."""

    EXPIRED = "expired"
    SOON = "soon"
    MEDIUM = "medium"
    LATER = "later"
    FRESH = "fresh"


# Canonical order used when building the selection pool
CATEGORY_ORDER: tuple[Category, ...] = (
    Category.EXPIRED,
    Category.SOON,
    Category.MEDIUM,
    Category.LATER,
    Category.FRESH,
)


@dataclass
class Item:
    """A single inventory row from the backing sheet."""

    name: str
    row_index: int  # sheet row number, stable identity
    category: str = ""  # free-text category column from the sheet
    size: str = ""
    quantity_storage: int = 0
    quantity_kitchen: int = 0
    expiry_date: date | None = None
    last_update: date | None = None

    def adjusted(self, location: str, delta: int, today: date) -> Item:
        """Return a copy with one quantity changed (clamped at zero)."""
        if location == "storage":
            return replace(
                self,
                quantity_storage=max(0, self.quantity_storage + delta),
                last_update=today,
            )
        if location == "kitchen":
            return replace(
                self,
                quantity_kitchen=max(0, self.quantity_kitchen + delta),
                last_update=today,
            )
        raise ValueError(f"Unknown location: {location!r} (storage / kitchen)")


class SessionStatus(str, Enum):
    SIGNED_OUT = "signed_out"
    AUTHORIZING = "authorizing"
    ACTIVE = "active"
    REFRESH_PENDING = "refresh_pending"
    EXPIRED = "expired"

    @property
    def signed_in(self) -> bool:
        return self in (SessionStatus.ACTIVE, SessionStatus.REFRESH_PENDING)


@dataclass
class TokenGrant:
    """Result of a credential issuance: the token and its lifetime."""

    access_token: str
    expires_in: int = 3600  # seconds


@dataclass
class Session:
    """The current access credential. Times are epoch seconds."""

    credential: str
    issued_at: float
    expires_at: float

    def remaining(self, now: float) -> float:
        return self.expires_at - now


@dataclass
class RotationState:
    current_item: Item | None = None
    sampled_items: list[Item] = field(default_factory=list)
    progress: float = 0.0  # 0 <= progress < 100
