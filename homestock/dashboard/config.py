"""Dashboard settings: defaults, TOML bootstrap file and the saved JSON record."""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path

from .storage import KeyValueStore

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

SETTINGS_KEY = "inventoryDashboardSettings"

MIN_ROTATION_INTERVAL = 5
MAX_ROTATION_INTERVAL = 300


@dataclass
class WeightConfig:
    """Advisory per-category weights. They need not sum to 100."""

    expired: int = 50
    soon: int = 25
    medium: int = 15
    later: int = 7
    fresh: int = 3

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class DashboardConfig:
    client_id: str = ""
    client_secret: str = ""
    spreadsheet_id: str = ""
    sheet_name: str = "Master"
    rotation_interval: int = 60  # seconds
    table_rows: int = 10
    weights: WeightConfig = field(default_factory=WeightConfig)

    def to_record(self) -> dict:
        """JSON record in the saved-settings format."""
        return {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "spreadsheetId": self.spreadsheet_id,
            "sheetName": self.sheet_name,
            "rotationInterval": self.rotation_interval,
            "tableRows": self.table_rows,
            "weights": self.weights.as_dict(),
        }


def clamp_interval(seconds) -> int:
    try:
        value = int(seconds)
    except (TypeError, ValueError):
        return DashboardConfig.rotation_interval
    return max(MIN_ROTATION_INTERVAL, min(MAX_ROTATION_INTERVAL, value))


def _int(value, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default


def _merge_weights(base: WeightConfig, raw: dict) -> WeightConfig:
    merged = base.as_dict()
    for name in merged:
        if name in raw:
            merged[name] = _int(raw[name], merged[name])
    return WeightConfig(**merged)


def _apply(config: DashboardConfig, raw: dict) -> DashboardConfig:
    """Overlay a settings mapping (snake_case or saved camelCase keys)."""

    def pick(*keys):
        for key in keys:
            if key in raw:
                return raw[key]
        return None

    client_id = pick("clientId", "client_id")
    client_secret = pick("clientSecret", "client_secret")
    spreadsheet_id = pick("spreadsheetId", "spreadsheet_id")
    sheet_name = pick("sheetName", "sheet_name")
    interval = pick("rotationInterval", "rotationIntervalSeconds", "rotation_interval")
    table_rows = pick("tableRows", "table_rows")
    weights = pick("weights")

    return DashboardConfig(
        client_id=str(client_id) if client_id is not None else config.client_id,
        client_secret=(
            str(client_secret) if client_secret is not None else config.client_secret
        ),
        spreadsheet_id=(
            str(spreadsheet_id) if spreadsheet_id is not None else config.spreadsheet_id
        ),
        sheet_name=str(sheet_name) if sheet_name else config.sheet_name,
        rotation_interval=(
            clamp_interval(interval) if interval is not None else config.rotation_interval
        ),
        table_rows=(
            _int(table_rows, config.table_rows, minimum=1)
            if table_rows is not None
            else config.table_rows
        ),
        weights=(
            _merge_weights(config.weights, weights)
            if isinstance(weights, dict)
            else config.weights
        ),
    )


def load_config(
    store: KeyValueStore | None = None,
    path: str | Path | None = None,
) -> DashboardConfig:
    """Load settings.

    Defaults are overlaid with the optional TOML file at ``path`` and then
    with the JSON record saved in ``store``. Empty client credentials fall
    back to the ``HOMESTOCK_CLIENT_ID`` / ``HOMESTOCK_CLIENT_SECRET``
    environment variables.
    """
    config = DashboardConfig()

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)
            config = _apply(config, raw.get("dashboard", raw))

    if store is not None:
        saved = store.get(SETTINGS_KEY)
        if saved:
            try:
                record = json.loads(saved)
            except ValueError:
                logger.warning("Ignoring malformed saved settings")
            else:
                if isinstance(record, dict):
                    config = _apply(config, record)

    if not config.client_id:
        config.client_id = os.environ.get("HOMESTOCK_CLIENT_ID", "")
    if not config.client_secret:
        config.client_secret = os.environ.get("HOMESTOCK_CLIENT_SECRET", "")

    return config


def save_config(store: KeyValueStore, config: DashboardConfig) -> None:
    store.set(SETTINGS_KEY, json.dumps(config.to_record()))
