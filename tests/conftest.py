"""
tests/conftest.py -- Shared test fixtures for passgate.

This module provides:
  - FakeClock / RecordingTransport / RecordingNotifier test doubles
  - store, hasher, tokens, service: unit-level fixtures on an isolated DB
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient against the real app with a recording mail transport

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import: DEBUG so
get_settings() auto-generates SECRET_KEY, ALLOWED_HOSTS so TrustedHost
accepts TestClient's "testserver" host, BCRYPT_ROUNDS so hashing is fast.
"""

from __future__ import annotations

import asyncio
import os
import threading
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MAIL_TRANSPORT", "console")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_auth_service
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from notify.dispatcher import NotificationDispatcher
from notify.transports import DeliveryError

# Rate limits are exercised explicitly in test_api_auth.py; everywhere else
# they would only make the suite order-dependent.
limiter.enabled = False

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
T0 = 1_700_000_000

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock for TokenService. Advance it by assigning .now."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingTransport:
    """Mail transport that records messages instead of sending them.

    fail_times: the first N send() calls raise DeliveryError.
    verify_error: raised from verify() when set.
    verify_delay: seconds verify() sleeps before returning (probe timeouts).
    """

    def __init__(self, fail_times: int = 0, verify_error: Exception | None = None, verify_delay: float = 0.0):
        self.sent: list = []
        self.attempts = 0
        self.fail_times = fail_times
        self.verify_error = verify_error
        self.verify_delay = verify_delay
        self._lock = threading.Lock()

    def send(self, message) -> None:
        with self._lock:
            self.attempts += 1
            if self.attempts <= self.fail_times:
                raise DeliveryError(f"simulated failure {self.attempts}")
            self.sent.append(message)

    def verify(self) -> None:
        if self.verify_delay:
            threading.Event().wait(self.verify_delay)
        if self.verify_error is not None:
            raise self.verify_error


class RecordingNotifier:
    """Stands in for NotificationDispatcher in unit tests."""

    def __init__(self, error: Exception | None = None) -> None:
        self.messages: list = []
        self.error = error

    def enqueue(self, message) -> None:
        if self.error is not None:
            raise self.error
        self.messages.append(message)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(prefix: str = "test_auth") -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(_memory_url())
    yield s
    s.close()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tokens(clock: FakeClock) -> TokenService:
    return TokenService(TEST_SECRET, lifetime_seconds=3600, clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store, hasher, tokens, notifier) -> AuthService:
    return AuthService(store=store, hasher=hasher, tokens=tokens, notifier=notifier)


# ---------------------------------------------------------------------------
# App-level fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, transport: RecordingTransport):
    """Return an async context manager that replaces the real lifespan.

    Uses the real dispatcher and AuthService wiring, with the recording
    transport in place of a mail server and zero retry backoff. The
    purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.notifier = NotificationDispatcher(transport, backoff_seconds=0, drain_timeout=2)
        app.state.notifier.start()
        app.state.auth_service = build_auth_service(settings, user_store, app.state.notifier)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        await app.state.notifier.stop()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, RecordingTransport], None, None]:
    """Yield (client, transport) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but an isolated in-memory store.
    """
    user_store = UserStore(_memory_url("test_api"))
    transport = RecordingTransport()
    app.router.lifespan_context = _patch_lifespan(user_store, transport)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, transport

    user_store.close()
