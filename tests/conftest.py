"""Shared fakes: manual-clock timers, scripted token provider, in-memory sheet."""

import inspect
from datetime import date

import pytest

from homestock.dashboard.auth import TokenProvider
from homestock.dashboard.errors import AuthError
from homestock.dashboard.models import TokenGrant
from homestock.dashboard.sheets import SheetsGateway
from homestock.dashboard.storage import MemoryStore

TODAY = date(2025, 6, 1)
START = 1_750_000_000.0


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeTimers:
    """Same interface as Timers, driven by ``advance`` on a fake clock.

    Times are kept in integer milliseconds so 100 ms ticks do not drift.
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._ms = 0
        self._jobs: dict[str, dict] = {}
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def shutdown(self):
        self._jobs.clear()
        self.stopped = True

    def every(self, name, seconds, func):
        period = round(seconds * 1000)
        self._jobs[name] = {"due": self._ms + period, "period": period, "func": func}

    def once(self, name, delay, func):
        self._jobs[name] = {"due": self._ms + round(delay * 1000), "period": None, "func": func}

    def cancel(self, name):
        self._jobs.pop(name, None)

    def active(self, name):
        return name in self._jobs

    def names(self):
        return list(self._jobs)

    def delay(self, name) -> float:
        """Seconds until ``name`` next fires."""
        return (self._jobs[name]["due"] - self._ms) / 1000

    def period(self, name) -> float:
        return self._jobs[name]["period"] / 1000

    def callback(self, name):
        return self._jobs[name]["func"]

    async def advance(self, seconds: float):
        target = self._ms + round(seconds * 1000)
        while True:
            due = [(job["due"], name) for name, job in self._jobs.items() if job["due"] <= target]
            if not due:
                break
            when, name = min(due)
            job = self._jobs[name]
            self._clock.now += (when - self._ms) / 1000
            self._ms = when
            if job["period"] is None:
                del self._jobs[name]
            else:
                job["due"] = when + job["period"]
            result = job["func"]()
            if inspect.isawaitable(result):
                await result
        self._clock.now += (target - self._ms) / 1000
        self._ms = target


class FakeTokenProvider(TokenProvider):
    """Hands out numbered tokens, or raises when told to."""

    def __init__(self, expires_in: int = 3600):
        self.expires_in = expires_in
        self.calls: list[bool] = []
        self.revoked: list[str] = []
        self.fail_interactive = False
        self.fail_silent = False

    async def request_token(self, interactive: bool) -> TokenGrant:
        self.calls.append(interactive)
        if interactive and self.fail_interactive:
            raise AuthError.failed("access_denied")
        if not interactive and self.fail_silent:
            raise AuthError.failed("interaction_required")
        return TokenGrant(access_token=f"token-{len(self.calls)}", expires_in=self.expires_in)

    async def revoke(self, token: str) -> None:
        self.revoked.append(token)


HEADER = ["Category", "Item", "Size", "Storage", "Kitchen", "Expiry", "Last Update"]


class FakeGateway(SheetsGateway):
    def __init__(self, rows=None):
        self.rows = rows if rows is not None else [HEADER]
        self.writes: list[tuple[str, int, list[str]]] = []
        self.fetch_error: Exception | None = None
        self.write_error: Exception | None = None

    async def fetch_rows(self, credential):
        if self.fetch_error is not None:
            raise self.fetch_error
        return [list(r) for r in self.rows]

    async def write_range(self, credential, row_index, values):
        self.writes.append((credential, row_index, values))
        if self.write_error is not None:
            raise self.write_error


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return FakeTimers(clock)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def provider():
    return FakeTokenProvider()
