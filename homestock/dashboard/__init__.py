"""Home inventory dashboard engine: session lifecycle and item rotation."""

from .auth import CredentialManager, GoogleTokenProvider, TokenProvider, refresh_delay
from .config import DashboardConfig, WeightConfig, load_config, save_config
from .engine import DashboardEngine
from .errors import (
    AuthError,
    DashboardError,
    DataFormatError,
    NetworkError,
    SessionExpiredError,
    WriteError,
)
from .expiry import classify, days_until_expiry, expiry_status, format_date, parse_date
from .models import Category, Item, RotationState, Session, SessionStatus, TokenGrant
from .rotation import RotationScheduler
from .selector import sample_items, select
from .sheets import GoogleSheetsGateway, SheetsGateway, parse_rows
from .storage import JsonFileStore, KeyValueStore, MemoryStore
from .timers import Timers

__all__ = [
    "DashboardEngine",
    "CredentialManager",
    "TokenProvider",
    "GoogleTokenProvider",
    "refresh_delay",
    "RotationScheduler",
    "Timers",
    "SheetsGateway",
    "GoogleSheetsGateway",
    "parse_rows",
    "select",
    "sample_items",
    "classify",
    "days_until_expiry",
    "expiry_status",
    "parse_date",
    "format_date",
    "Category",
    "Item",
    "RotationState",
    "Session",
    "SessionStatus",
    "TokenGrant",
    "DashboardConfig",
    "WeightConfig",
    "load_config",
    "save_config",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "DashboardError",
    "AuthError",
    "SessionExpiredError",
    "NetworkError",
    "DataFormatError",
    "WriteError",
]
