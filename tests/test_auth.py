"""Tests for the credential lifecycle manager."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from conftest import START
from homestock.dashboard.auth import (
    EXPIRY_KEY,
    REFRESH_TIMER,
    TOKEN_KEY,
    CredentialManager,
    GoogleTokenProvider,
    refresh_delay,
)
from homestock.dashboard.errors import AuthError, SessionExpiredError
from homestock.dashboard.models import SessionStatus


@pytest.fixture
def manager(provider, store, timers, clock):
    return CredentialManager(provider=provider, store=store, timers=timers, clock=clock)


def _record(manager):
    seen = []
    manager.subscribe(seen.append)
    return seen


class TestRefreshDelay:
    def test_five_minutes_before_expiry(self):
        assert refresh_delay(3600) == 3300

    def test_halfway_for_short_lifetimes(self):
        assert refresh_delay(400) == 200
        assert refresh_delay(600) == 300


class TestSignIn:
    @pytest.mark.asyncio
    async def test_success_persists_and_schedules_refresh(self, manager, store, timers):
        seen = _record(manager)
        await manager.sign_in("client", "sheet")

        assert manager.status is SessionStatus.ACTIVE
        assert seen == [SessionStatus.AUTHORIZING, SessionStatus.ACTIVE]
        assert store.get(TOKEN_KEY) == "token-1"
        assert store.get(EXPIRY_KEY) == str(int((START + 3600) * 1000))
        assert timers.delay(REFRESH_TIMER) == 3300

    @pytest.mark.asyncio
    async def test_missing_client_id(self, manager, provider):
        with pytest.raises(AuthError, match="Client ID"):
            await manager.sign_in("", "sheet")
        assert manager.status is SessionStatus.SIGNED_OUT
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_spreadsheet_id(self, manager):
        with pytest.raises(AuthError, match="Spreadsheet ID"):
            await manager.sign_in("client", "")

    @pytest.mark.asyncio
    async def test_denied_returns_to_signed_out(self, manager, provider, store):
        provider.fail_interactive = True
        with pytest.raises(AuthError, match="Authentication failed"):
            await manager.sign_in("client", "sheet")
        assert manager.status is SessionStatus.SIGNED_OUT
        assert store.get(TOKEN_KEY) is None

    @pytest.mark.asyncio
    async def test_denied_reauthorization_drops_old_session(self, manager, provider, store, timers):
        await manager.sign_in("client", "sheet")
        provider.fail_interactive = True

        with pytest.raises(AuthError):
            await manager.sign_in("client", "sheet")

        assert manager.status is SessionStatus.SIGNED_OUT
        assert manager.session is None
        assert store.get(TOKEN_KEY) is None
        assert store.get(EXPIRY_KEY) is None
        assert not timers.active(REFRESH_TIMER)
        assert manager.restore() is False


class TestRestore:
    def test_future_expiry_restores_without_authorization(self, manager, store, timers, provider):
        store.set(TOKEN_KEY, "saved")
        store.set(EXPIRY_KEY, str(int((START + 1200) * 1000)))

        assert manager.restore() is True
        assert manager.status is SessionStatus.ACTIVE
        assert manager.credential() == "saved"
        assert provider.calls == []
        assert timers.delay(REFRESH_TIMER) == refresh_delay(1200)

    def test_past_expiry_clears_storage(self, manager, store, timers):
        store.set(TOKEN_KEY, "saved")
        store.set(EXPIRY_KEY, str(int((START - 1) * 1000)))

        assert manager.restore() is False
        assert manager.status is SessionStatus.SIGNED_OUT
        assert store.get(TOKEN_KEY) is None
        assert store.get(EXPIRY_KEY) is None
        assert not timers.active(REFRESH_TIMER)

    def test_missing_or_garbled_record(self, manager, store):
        assert manager.restore() is False
        store.set(TOKEN_KEY, "saved")
        store.set(EXPIRY_KEY, "soon")
        assert manager.restore() is False
        assert store.get(TOKEN_KEY) is None


class TestSilentRefresh:
    @pytest.mark.asyncio
    async def test_refresh_replaces_credential(self, manager, provider, store, timers):
        await manager.sign_in("client", "sheet")
        seen = _record(manager)

        await timers.advance(3300)

        assert provider.calls == [True, False]
        assert seen == [SessionStatus.REFRESH_PENDING, SessionStatus.ACTIVE]
        assert manager.credential() == "token-2"
        assert store.get(TOKEN_KEY) == "token-2"
        assert timers.delay(REFRESH_TIMER) == 3300

    @pytest.mark.asyncio
    async def test_failed_refresh_stays_active(self, manager, provider, timers):
        await manager.sign_in("client", "sheet")
        provider.fail_silent = True

        await timers.advance(3300)

        assert manager.status is SessionStatus.ACTIVE
        assert manager.credential() == "token-1"
        assert not timers.active(REFRESH_TIMER)

    @pytest.mark.asyncio
    async def test_natural_expiry_after_failed_refresh(self, manager, provider, timers, store):
        await manager.sign_in("client", "sheet")
        provider.fail_silent = True
        await timers.advance(3600)

        with pytest.raises(SessionExpiredError):
            manager.credential()
        assert manager.status is SessionStatus.SIGNED_OUT
        assert store.get(TOKEN_KEY) is None

    @pytest.mark.asyncio
    async def test_only_one_refresh_timer(self, manager, timers):
        await manager.sign_in("client", "sheet")
        await manager.sign_in("client", "sheet")
        assert timers.names().count(REFRESH_TIMER) == 1
        assert timers.delay(REFRESH_TIMER) == 3300


class TestInvalidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("pending", [False, True])
    async def test_expire_from_active_or_pending(self, manager, provider, store, timers, pending):
        await manager.sign_in("client", "sheet")
        if pending:
            # as if a silent refresh were in flight
            manager._set_status(SessionStatus.REFRESH_PENDING)
        seen = _record(manager)

        manager.expire()

        assert seen == [SessionStatus.EXPIRED, SessionStatus.SIGNED_OUT]
        assert manager.session is None
        assert store.get(TOKEN_KEY) is None
        assert not timers.active(REFRESH_TIMER)
        with pytest.raises(SessionExpiredError):
            manager.credential()

    @pytest.mark.asyncio
    async def test_sign_out_revokes(self, manager, provider, store, timers):
        await manager.sign_in("client", "sheet")
        await manager.sign_out()

        assert manager.status is SessionStatus.SIGNED_OUT
        assert provider.revoked == ["token-1"]
        assert store.get(EXPIRY_KEY) is None
        assert not timers.active(REFRESH_TIMER)

    @pytest.mark.asyncio
    async def test_late_refresh_after_sign_out_is_discarded(self, manager, provider, store, timers):
        await manager.sign_in("client", "sheet")
        refresh = timers.callback(REFRESH_TIMER)
        await manager.sign_out()

        await refresh()

        assert manager.status is SessionStatus.SIGNED_OUT
        assert store.get(TOKEN_KEY) is None
        assert provider.calls == [True]


class TestGoogleTokenProvider:
    @pytest.mark.asyncio
    async def test_silent_without_refresh_token(self):
        provider = GoogleTokenProvider("client-id")
        with pytest.raises(AuthError, match="refresh token"):
            await provider.request_token(interactive=False)

    @pytest.mark.asyncio
    async def test_interactive_grant(self):
        creds = MagicMock()
        creds.token = "ya29.abc"
        creds.expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=3599)

        provider = GoogleTokenProvider("client-id", "secret")
        with patch.object(provider, "_authorize", return_value=creds):
            grant = await provider.request_token(interactive=True)

        assert grant.access_token == "ya29.abc"
        assert 3590 <= grant.expires_in <= 3599

    @pytest.mark.asyncio
    async def test_flow_error_becomes_auth_error(self):
        provider = GoogleTokenProvider("client-id")
        with patch.object(provider, "_authorize", side_effect=RuntimeError("access_denied")):
            with pytest.raises(AuthError, match="Authentication failed: access_denied"):
                await provider.request_token(interactive=True)

    def test_client_config(self):
        provider = GoogleTokenProvider("client-id", "secret")
        installed = provider._client_config()["installed"]
        assert installed["client_id"] == "client-id"
        assert installed["client_secret"] == "secret"
