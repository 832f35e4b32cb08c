"""Shared fixtures for vowsite tests."""

from __future__ import annotations

import asyncio

import pytest

from vowsite.core.config import clear_config
from vowsite.domains import (
    DomainLifecycle,
    DomainProvisioningService,
    DomainStore,
    DomainVerifier,
    LookupResult,
    TokenGenerator,
)

SECRET = "test-secret-that-is-long-enough-0123456789"


class FakeResolver:
    """In-memory DNSResolver with per-name answers.

    Unknown names answer NOT_FOUND. ``delay`` makes lookups for a record
    type hang for that many seconds, ``error`` makes them raise.
    """

    def __init__(self):
        self.cname: dict[str, LookupResult] = {}
        self.txt: dict[str, LookupResult] = {}
        self.a: dict[str, LookupResult] = {}
        self.delay: dict[str, float] = {}
        self.error: Exception | None = None
        self.calls: list[tuple[str, str]] = []

    async def _answer(self, record_type: str, table: dict[str, LookupResult], host: str):
        self.calls.append((record_type, host))
        if self.error is not None:
            raise self.error
        if record_type in self.delay:
            await asyncio.sleep(self.delay[record_type])
        return table.get(host, LookupResult.not_found(record_type))

    async def resolve_cname(self, host):
        return await self._answer("CNAME", self.cname, host)

    async def resolve_txt(self, host):
        return await self._answer("TXT", self.txt, host)

    async def resolve_a(self, host):
        return await self._answer("A", self.a, host)

    def set_cname(self, host: str, *targets: str) -> None:
        self.cname[host] = LookupResult.found("CNAME", list(targets))

    def set_txt(self, host: str, *records) -> None:
        self.txt[host] = LookupResult.found("TXT", list(records))

    def set_a(self, host: str, *addresses: str) -> None:
        self.a[host] = LookupResult.found("A", list(addresses))


@pytest.fixture(autouse=True)
def _reset_config():
    clear_config()
    yield
    clear_config()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def verifier(resolver):
    return DomainVerifier(
        resolver,
        cname_targets=["platform-host.app"],
        load_balancer_ip="75.2.60.5",
        txt_prefix="_vowsite",
        budget=2.0,
    )


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def tokens(secret):
    return TokenGenerator(secret)


@pytest.fixture
def store():
    return DomainStore(storage_path=None)


@pytest.fixture
def service(store, verifier, tokens):
    return DomainProvisioningService(
        store=store,
        verifier=verifier,
        tokens=tokens,
        lifecycle=DomainLifecycle(max_failed_attempts=3),
        site_base_url="https://platform-host.app",
    )

