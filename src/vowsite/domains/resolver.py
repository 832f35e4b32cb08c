"""DNS lookups with typed outcomes.

Every lookup ends in exactly one of three outcomes:

    FOUND      the name has records of the requested type
    NOT_FOUND  the name or the record type does not exist (normal while DNS propagates)
    FAILED     the resolver could not answer (timeout, SERVFAIL, refused, ...)

Lookups never raise for DNS-level problems. Only failures below the DNS
answer (for example the resolver library failing to initialize) propagate.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import aiodns
import structlog

logger = structlog.get_logger()

# c-ares codes meaning "no such record" rather than "could not look it up".
_NOT_FOUND_CODES = frozenset(
    {
        aiodns.error.ARES_ENODATA,
        aiodns.error.ARES_ENOTFOUND,
        aiodns.error.ARES_ENONAME,
    }
)
_TIMEOUT_CODES = frozenset({aiodns.error.ARES_ETIMEOUT})
_FAILURE_REASONS = {
    aiodns.error.ARES_ESERVFAIL: "server_failure",
    aiodns.error.ARES_EREFUSED: "refused",
    aiodns.error.ARES_ECONNREFUSED: "connection_refused",
    aiodns.error.ARES_ECANCELLED: "cancelled",
}


class LookupOutcome(Enum):
    """Outcome of a single DNS lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class LookupResult:
    """Result of one DNS lookup.

    For TXT lookups each entry of ``values`` is one record, either a string or
    the sequence of character-strings it was split into on the wire.
    """

    record_type: str
    outcome: LookupOutcome
    values: tuple[Any, ...] = ()
    reason: str | None = None

    @classmethod
    def found(cls, record_type: str, values: Sequence[Any]) -> LookupResult:
        if not values:
            return cls.not_found(record_type)
        return cls(record_type, LookupOutcome.FOUND, tuple(values))

    @classmethod
    def not_found(cls, record_type: str) -> LookupResult:
        return cls(record_type, LookupOutcome.NOT_FOUND)

    @classmethod
    def failure(cls, record_type: str, reason: str) -> LookupResult:
        return cls(record_type, LookupOutcome.FAILED, reason=reason)

    @property
    def is_found(self) -> bool:
        return self.outcome is LookupOutcome.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.outcome is LookupOutcome.NOT_FOUND

    @property
    def is_failure(self) -> bool:
        return self.outcome is LookupOutcome.FAILED


class DNSResolver(ABC):
    """Interface for the three independent lookups the verifier needs."""

    @abstractmethod
    async def resolve_cname(self, host: str) -> LookupResult:
        """Resolve CNAME targets for host."""

    @abstractmethod
    async def resolve_txt(self, host: str) -> LookupResult:
        """Resolve TXT records for host."""

    @abstractmethod
    async def resolve_a(self, host: str) -> LookupResult:
        """Resolve IPv4 addresses for host."""


class AiodnsResolver(DNSResolver):
    """DNSResolver backed by aiodns (c-ares).

    Each lookup is bounded by ``timeout`` seconds; exceeding it yields
    ``LookupResult.failure(..., "timeout")``.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        nameservers: Sequence[str] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            timeout: Per-lookup timeout in seconds.
            nameservers: Nameservers to query; the system resolver when None.
        """
        self.timeout = timeout
        self.nameservers = list(nameservers) if nameservers else None
        self._resolver: aiodns.DNSResolver | None = None

    def _get_resolver(self) -> aiodns.DNSResolver:
        """Get or create the c-ares resolver on the running loop."""
        if self._resolver is None:
            self._resolver = aiodns.DNSResolver(
                nameservers=self.nameservers,
                timeout=self.timeout,
            )
        return self._resolver

    async def resolve_cname(self, host: str) -> LookupResult:
        return await self._lookup(host, "CNAME")

    async def resolve_txt(self, host: str) -> LookupResult:
        return await self._lookup(host, "TXT")

    async def resolve_a(self, host: str) -> LookupResult:
        return await self._lookup(host, "A")

    async def _lookup(self, host: str, record_type: str) -> LookupResult:
        resolver = self._get_resolver()
        try:
            answer = await asyncio.wait_for(
                resolver.query(host, record_type), timeout=self.timeout
            )
        except TimeoutError:
            result = LookupResult.failure(record_type, "timeout")
        except aiodns.error.DNSError as e:
            result = self._classify_error(record_type, e)
        else:
            result = LookupResult.found(record_type, _extract_values(record_type, answer))

        logger.debug(
            "DNS lookup finished",
            host=host,
            record_type=record_type,
            outcome=result.outcome.value,
            reason=result.reason,
        )
        return result

    @staticmethod
    def _classify_error(record_type: str, error: aiodns.error.DNSError) -> LookupResult:
        code = error.args[0] if error.args else None
        if code in _NOT_FOUND_CODES:
            return LookupResult.not_found(record_type)
        if code in _TIMEOUT_CODES:
            return LookupResult.failure(record_type, "timeout")
        return LookupResult.failure(record_type, _FAILURE_REASONS.get(code, "lookup_failed"))


def _extract_values(record_type: str, answer: Any) -> list[Any]:
    """Pull plain values out of c-ares query results."""
    if answer is None:
        return []
    if record_type == "CNAME":
        # A CNAME query yields a single result object.
        return [answer.cname]
    if record_type == "TXT":
        return [record.text for record in answer]
    return [record.host for record in answer]
