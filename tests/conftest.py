"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from telemetry_dashboard.analysis.catalog import ServiceCatalog
from telemetry_dashboard.analysis.domain_parser import DomainParser
from telemetry_dashboard.storage.kv_store import MemoryStore
from telemetry_dashboard.utils.errors import StoreError

# ── Clock ───────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ── Stores ──────────────────────────────────────────────────────


class FailingStore:
    """Store whose reads and/or writes always fail."""

    def __init__(self, *, fail_get: bool = False, fail_set: bool = True) -> None:
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.set_calls = 0

    async def get(self, key: str) -> object | None:
        if self.fail_get:
            raise StoreError(key, "read refused")
        return None

    async def set(self, key: str, value: object) -> None:
        self.set_calls += 1
        if self.fail_set:
            raise StoreError(key, "write refused")

    async def delete(self, key: str) -> None:
        return None


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def failing_writes() -> FailingStore:
    return FailingStore(fail_set=True)


@pytest.fixture()
def failing_reads() -> FailingStore:
    return FailingStore(fail_get=True, fail_set=False)


# ── Catalog / parser ────────────────────────────────────────────


@pytest.fixture()
def fixture_catalog() -> ServiceCatalog:
    """A tiny catalog independent of the built-in tables."""
    return ServiceCatalog(
        service_groups={"acme": ("acme.test", "acme-cdn.test")},
        multi_label_tlds=frozenset(["co.test"]),
    )


@pytest.fixture()
def parser() -> DomainParser:
    return DomainParser()


# ── Telemetry record factories ──────────────────────────────────


@pytest.fixture()
def reddit_records() -> list[dict[str, object]]:
    """One tab on reddit.com talking to its API and an event host."""
    return [
        {
            "url": "https://www.reddit.com/r/python",
            "status": 200,
            "responseTime": 120,
            "timestamp": 1_700_000_000_100,
            "tabId": 7,
            "tabUrl": "https://www.reddit.com/",
        },
        {
            "url": "https://api.reddit.com/api/v1/me",
            "status": 401,
            "responseTime": 80,
            "timestamp": 1_700_000_000_200,
            "tabId": 7,
            "tabUrl": "https://www.reddit.com/",
        },
        {
            "url": "https://oauth.reddit.com/api/v1/access_token",
            "tokenType": "bearer",
            "timestamp": 1_700_000_000_300,
            "tabId": 7,
            "tabUrl": "https://www.reddit.com/",
        },
        {
            "url": "https://shreddit.events/batch",
            "status": 204,
            "responseTime": 40,
            "timestamp": 1_700_000_000_400,
            "tabId": 7,
            "tabUrl": "https://www.reddit.com/",
        },
        {
            "url": "https://cdn.example.com/app.js",
            "status": 200,
            "responseTime": 0,
            "timestamp": 1_700_000_000_500,
            "tabId": 7,
            "tabUrl": "https://www.reddit.com/",
        },
    ]
