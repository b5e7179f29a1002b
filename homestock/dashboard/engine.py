"""Dashboard engine: session, data sync and rotation wired together."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from datetime import date

from .auth import CredentialManager, GoogleTokenProvider, TokenProvider
from .config import DashboardConfig, save_config
from .errors import NetworkError, SessionExpiredError, WriteError
from .expiry import ExpiryStatus, expiry_status
from .models import Item, RotationState, SessionStatus
from .rotation import RotationScheduler
from .sheets import GoogleSheetsGateway, SheetsGateway, parse_rows, write_values
from .storage import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

DATA_REFRESH_TIMER = "data_refresh"
DATA_REFRESH_INTERVAL = 5 * 60  # seconds


class DashboardEngine:
    """One dashboard instance.

    Instances never share timers or storage: each gets its own ``Timers``
    and store unless they are passed in.
    """

    def __init__(
        self,
        config: DashboardConfig | None = None,
        store: KeyValueStore | None = None,
        gateway: SheetsGateway | None = None,
        provider: TokenProvider | None = None,
        timers=None,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
        rng: random.Random | None = None,
    ) -> None:
        if timers is None:
            from .timers import Timers

            timers = Timers()

        self.config = config or DashboardConfig()
        self._store = store or MemoryStore()
        self._timers = timers
        self._today = today
        self._custom_gateway = gateway is not None
        self._custom_provider = provider is not None
        self.gateway = gateway or GoogleSheetsGateway(
            self.config.spreadsheet_id, self.config.sheet_name
        )
        self.credentials = CredentialManager(
            provider=provider or self._build_provider(),
            store=self._store,
            timers=timers,
            clock=clock,
        )
        self.rotation = RotationScheduler(
            timers,
            session_active=lambda: self.credentials.signed_in,
            rotation_interval=self.config.rotation_interval,
            table_rows=self.config.table_rows,
            weights=self.config.weights.as_dict(),
            rng=rng,
        )
        self.credentials.subscribe(self._on_status)

    def _build_provider(self) -> TokenProvider:
        return GoogleTokenProvider(self.config.client_id, self.config.client_secret)

    @property
    def status(self) -> SessionStatus:
        return self.credentials.status

    @property
    def items(self) -> list[Item]:
        return self.rotation.items

    @property
    def state(self) -> RotationState:
        return self.rotation.state

    @property
    def current_item(self) -> Item | None:
        return self.rotation.state.current_item

    def expiry_status(self, item: Item) -> ExpiryStatus:
        return expiry_status(item.expiry_date, self._today())

    async def start(self) -> None:
        """Start timers and resume a saved session if there is one."""
        self._timers.start()
        if self.credentials.restore():
            await self.load_items()

    async def sign_in(self) -> None:
        """Interactive sign-in followed by the first data load.

        Raises:
            AuthError: If client configuration is missing or sign-in fails.
        """
        await self.credentials.sign_in(self.config.client_id, self.config.spreadsheet_id)
        if self.credentials.signed_in:
            await self.load_items()

    async def sign_out(self) -> None:
        await self.credentials.sign_out()

    async def load_items(self) -> list[Item]:
        """Fetch and parse the sheet, then hand the items to rotation.

        Raises:
            SessionExpiredError: The session was invalidated.
            NetworkError, DataFormatError: Recoverable; call again to retry.
        """
        credential = self.credentials.credential()
        try:
            rows = await self.gateway.fetch_rows(credential)
        except SessionExpiredError:
            self.credentials.expire()
            raise
        except NetworkError as e:
            logger.warning("Data fetch failed: %s", e.user_message)
            raise

        items = parse_rows(rows)
        if not self.credentials.signed_in:
            logger.info("Session ended during fetch, discarding %d items", len(items))
            return []
        logger.info("Loaded %d items", len(items))
        self.rotation.set_items(items)
        return items

    async def update_quantity(self, location: str, delta: int) -> Item:
        """Adjust a quantity of the current item and write it back.

        The local change is applied first and kept even if the write fails.

        Raises:
            SessionExpiredError: The session was invalidated.
            WriteError: The write failed.
        """
        current = self.rotation.state.current_item
        if current is None:
            raise ValueError("No item is currently displayed")
        credential = self.credentials.credential()

        today = self._today()
        updated = current.adjusted(location, delta, today)
        self.rotation.replace_item(updated)

        try:
            await self.gateway.write_range(
                credential, updated.row_index, write_values(updated, today)
            )
        except SessionExpiredError:
            self.credentials.expire()
            raise
        except NetworkError as e:
            logger.warning("Update of row %d failed: %s", updated.row_index, e.user_message)
            raise WriteError() from e

        logger.info(
            "Row %d updated: storage=%d kitchen=%d",
            updated.row_index,
            updated.quantity_storage,
            updated.quantity_kitchen,
        )
        return updated

    async def update_settings(self, config: DashboardConfig) -> None:
        """Persist new settings and apply them."""
        old = self.config
        self.config = config
        save_config(self._store, config)

        if (config.client_id, config.client_secret) != (old.client_id, old.client_secret):
            if not self._custom_provider:
                self.credentials.provider = self._build_provider()
        if isinstance(self.gateway, GoogleSheetsGateway) and not self._custom_gateway:
            self.gateway.spreadsheet_id = config.spreadsheet_id
            self.gateway.sheet_name = config.sheet_name

        self.rotation.weights = config.weights.as_dict()
        self.rotation.table_rows = config.table_rows
        self.rotation.set_interval(config.rotation_interval)

        if self.credentials.signed_in:
            await self.load_items()

    def shutdown(self) -> None:
        """Cancel every timer owned by this engine."""
        self.rotation.stop()
        self.credentials.close()
        self._timers.cancel(DATA_REFRESH_TIMER)
        self._timers.shutdown()

    def _on_status(self, status: SessionStatus) -> None:
        if status.signed_in:
            if not self._timers.active(DATA_REFRESH_TIMER):
                self._timers.every(
                    DATA_REFRESH_TIMER, DATA_REFRESH_INTERVAL, self._background_refresh
                )
            self.rotation.refresh()
            return

        self._timers.cancel(DATA_REFRESH_TIMER)
        if status in (SessionStatus.EXPIRED, SessionStatus.SIGNED_OUT):
            self.rotation.set_items([])
        else:
            self.rotation.refresh()

    async def _background_refresh(self) -> None:
        try:
            await self.load_items()
        except SessionExpiredError:
            logger.warning("Session expired during background refresh")
        except Exception:
            logger.exception("Background data refresh failed")
