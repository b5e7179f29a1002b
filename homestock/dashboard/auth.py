"""Access credential lifecycle: sign-in, persistence, silent refresh, invalidation."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone

from .errors import AuthError, SessionExpiredError
from .models import Session, SessionStatus, TokenGrant
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "accessToken"
EXPIRY_KEY = "tokenExpiry"

REFRESH_TIMER = "credential_refresh"
REFRESH_LEAD_MS = 5 * 60 * 1000


def refresh_delay(expires_in: float) -> float:
    """Seconds until a silent refresh should fire.

    Five minutes before expiry, or halfway through the lifetime when the
    lifetime is too short for that.
    """
    ms = max(expires_in * 1000 - REFRESH_LEAD_MS, expires_in * 500)
    return ms / 1000


class TokenProvider(ABC):
    """Issues access credentials."""

    @abstractmethod
    async def request_token(self, interactive: bool) -> TokenGrant:
        """Obtain a fresh credential.

        ``interactive=False`` must not involve the user.

        Raises:
            AuthError: If the request is denied or fails.
        """
        ...

    async def revoke(self, token: str) -> None:
        """Invalidate ``token`` with the issuer. Unsupported by default."""


class GoogleTokenProvider(TokenProvider):
    """OAuth 2.0 installed-app flow for the Sheets API scope.

    Interactive requests open a browser for consent. Silent requests reuse
    the refresh token from the last interactive grant held in memory.
    """

    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(self, client_id: str, client_secret: str = "") -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._creds = None

    def _client_config(self) -> dict:
        return {
            "installed": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": ["http://localhost"],
            }
        }

    def _authorize(self):
        try:
            from google_auth_oauthlib.flow import InstalledAppFlow
        except ImportError:
            raise ImportError(
                "Google sign-in requires google-auth-oauthlib:\n"
                "  pip install google-auth-oauthlib"
            )
        flow = InstalledAppFlow.from_client_config(self._client_config(), self.SCOPES)
        return flow.run_local_server(port=0, prompt="consent")

    def _refresh(self):
        from google.auth.transport.requests import Request

        if self._creds is None or not self._creds.refresh_token:
            raise AuthError.failed("no refresh token available")
        self._creds.refresh(Request())
        return self._creds

    async def request_token(self, interactive: bool) -> TokenGrant:
        try:
            if interactive:
                creds = await asyncio.to_thread(self._authorize)
            else:
                creds = await asyncio.to_thread(self._refresh)
        except (AuthError, ImportError):
            raise
        except Exception as e:
            raise AuthError.failed(str(e) or type(e).__name__) from e

        self._creds = creds
        return TokenGrant(access_token=creds.token, expires_in=_expires_in(creds.expiry))

    async def revoke(self, token: str) -> None:
        from google.auth.transport.requests import Request

        def post():
            Request()(
                url=self.REVOKE_URL,
                method="POST",
                body=f"token={token}",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        try:
            await asyncio.to_thread(post)
        except Exception:
            logger.warning("Token revocation failed", exc_info=True)
        self._creds = None


def _expires_in(expiry: datetime | None) -> int:
    # google-auth reports expiry as naive UTC
    if expiry is None:
        return 3600
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return max(0, int((expiry - datetime.now(timezone.utc)).total_seconds()))


class CredentialManager:
    """Owns the session and drives its state machine.

    SignedOut → Authorizing → Active ⇄ RefreshPending, with forced
    Expired → SignedOut on an unauthorized response. At most one refresh
    timer is pending at any time.
    """

    def __init__(
        self,
        provider: TokenProvider,
        store: KeyValueStore,
        timers,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self._store = store
        self._timers = timers
        self._clock = clock
        self._status = SessionStatus.SIGNED_OUT
        self._session: Session | None = None
        self._listeners: list[Callable[[SessionStatus], None]] = []
        # Bumped on every session change so late provider replies are dropped
        self._epoch = 0

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def signed_in(self) -> bool:
        return self._status.signed_in

    @property
    def session(self) -> Session | None:
        return self._session

    def subscribe(self, listener: Callable[[SessionStatus], None]) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SessionStatus) -> None:
        if status is self._status:
            return
        logger.info("Session %s -> %s", self._status.value, status.value)
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    def restore(self) -> bool:
        """Resume a persisted session without a new authorization round-trip.

        The refresh timer uses ``refresh_delay`` over the remaining lifetime,
        so it fires five minutes before the persisted expiry, not at it.

        Returns:
            True if a still-valid credential was restored.
        """
        token = self._store.get(TOKEN_KEY)
        expiry = self._store.get(EXPIRY_KEY)
        if not token or not expiry:
            logger.info("No saved session")
            return False
        try:
            expires_at = int(expiry) / 1000
        except ValueError:
            logger.info("Saved session expiry unreadable, clearing")
            self._clear_persisted()
            return False

        now = self._clock()
        if now >= expires_at:
            logger.info("Saved session expired, clearing")
            self._clear_persisted()
            return False

        self._epoch += 1
        self._session = Session(credential=token, issued_at=now, expires_at=expires_at)
        remaining = self._session.remaining(now)
        self._schedule_refresh(remaining)
        logger.info("Restored saved session, %d s remaining", remaining)
        self._set_status(SessionStatus.ACTIVE)
        return True

    async def sign_in(self, client_id: str, spreadsheet_id: str) -> None:
        """Run the interactive acquisition.

        Raises:
            AuthError: If client configuration is missing or issuance fails.
        """
        if not client_id:
            raise AuthError("Please configure Client ID in settings")
        if not spreadsheet_id:
            raise AuthError("Please configure Spreadsheet ID in settings")

        if self._session is not None:
            # a denied re-authorization must not leave the old session behind
            self._clear()
        self._epoch += 1
        epoch = self._epoch
        self._set_status(SessionStatus.AUTHORIZING)
        try:
            grant = await self.provider.request_token(interactive=True)
        except Exception:
            if epoch == self._epoch:
                self._set_status(SessionStatus.SIGNED_OUT)
            raise
        if epoch != self._epoch:
            logger.info("Discarding credential for an abandoned sign-in")
            return
        self._accept(grant)

    def _accept(self, grant: TokenGrant) -> None:
        now = self._clock()
        expires_in = grant.expires_in or 3600
        self._epoch += 1
        self._session = Session(
            credential=grant.access_token,
            issued_at=now,
            expires_at=now + expires_in,
        )
        self._store.set(TOKEN_KEY, grant.access_token)
        self._store.set(EXPIRY_KEY, str(int((now + expires_in) * 1000)))
        self._schedule_refresh(expires_in)
        self._set_status(SessionStatus.ACTIVE)

    def _schedule_refresh(self, lifetime: float) -> None:
        delay = refresh_delay(lifetime)
        self._timers.once(REFRESH_TIMER, delay, self._silent_refresh)
        logger.info("Silent refresh in %.0f s", delay)

    async def _silent_refresh(self) -> None:
        if self._status is not SessionStatus.ACTIVE:
            return
        epoch = self._epoch
        self._set_status(SessionStatus.REFRESH_PENDING)
        try:
            grant = await self.provider.request_token(interactive=False)
        except Exception:
            logger.exception("Silent refresh failed")
            if epoch == self._epoch and self._status is SessionStatus.REFRESH_PENDING:
                self._set_status(SessionStatus.ACTIVE)
            return
        if epoch != self._epoch or self._status is not SessionStatus.REFRESH_PENDING:
            logger.info("Discarding refreshed credential for an ended session")
            return
        self._accept(grant)

    def credential(self) -> str:
        """Return a usable credential.

        Raises:
            SessionExpiredError: If signed out or past the local expiry.
        """
        if not self.signed_in or self._session is None:
            raise SessionExpiredError()
        if self._clock() >= self._session.expires_at:
            self.expire()
            raise SessionExpiredError()
        return self._session.credential

    def expire(self) -> None:
        """Force Expired → SignedOut, e.g. after the backing store answered 401."""
        if self._status is SessionStatus.SIGNED_OUT:
            return
        logger.info("Session invalidated")
        self._set_status(SessionStatus.EXPIRED)
        self._clear()
        self._set_status(SessionStatus.SIGNED_OUT)

    async def sign_out(self) -> None:
        """End the session and revoke the credential where supported."""
        token = self._session.credential if self._session else None
        self._clear()
        self._set_status(SessionStatus.SIGNED_OUT)
        if token:
            await self.provider.revoke(token)
        logger.info("Signed out")

    def close(self) -> None:
        self._timers.cancel(REFRESH_TIMER)

    def _clear(self) -> None:
        self._epoch += 1
        self._timers.cancel(REFRESH_TIMER)
        self._session = None
        self._clear_persisted()

    def _clear_persisted(self) -> None:
        self._store.remove(TOKEN_KEY)
        self._store.remove(EXPIRY_KEY)
