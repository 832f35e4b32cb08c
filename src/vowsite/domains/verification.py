"""DNS verification for custom domain ownership.

This module verifies a custom domain by checking DNS records:
1. CNAME record: Routes traffic to the hosting platform
2. TXT record: Proves ownership with the verification token
3. A record (fallback): Routes apex domains, which cannot carry a CNAME,
   to the platform's load balancer

Example DNS setup required by the admin:
    # CNAME record (routes traffic)
    wedding.example.com  CNAME  platform-host.app

    # TXT record (proves ownership)
    _vowsite.wedding.example.com  TXT  "3f1c9a0d8e7b6a5c4d3e2f1a0b9c8d7e"

Routing (CNAME, then A when no CNAME exists) and ownership (TXT) are checked
concurrently. DNS problems never raise; they are reported in the verdict.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from vowsite.domains.resolver import DNSResolver, LookupResult
from vowsite.observability.metrics import DNS_LOOKUPS, VERIFICATION_DURATION

logger = structlog.get_logger()


class VerificationError(Enum):
    """Why a record did not verify."""

    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    LOOKUP_FAILED = "lookup_failed"
    MISMATCH = "mismatch"


@dataclass
class VerificationVerdict:
    """Result of one verification attempt. Not persisted."""

    domain: str
    cname_verified: bool
    txt_verified: bool
    cname_observed: str | None = None
    txt_observed: str | None = None
    cname_error: VerificationError | None = None
    txt_error: VerificationError | None = None
    routed_by_a_record: bool = False

    @property
    def is_verified(self) -> bool:
        """Check if both routing and ownership are proven."""
        return self.cname_verified and self.txt_verified

    @property
    def has_lookup_failure(self) -> bool:
        """True when a resolver problem, not the admin's DNS, blocked a check."""
        transient = (VerificationError.TIMEOUT, VerificationError.LOOKUP_FAILED)
        return self.cname_error in transient or self.txt_error in transient


@dataclass(frozen=True)
class _Check:
    verified: bool
    observed: str | None = None
    error: VerificationError | None = None
    via_a_record: bool = False


_TIMED_OUT = _Check(verified=False, error=VerificationError.TIMEOUT)


def reassemble_txt(record: Any) -> str:
    """Join the character-strings of one TXT record.

    TXT data is split into strings of at most 255 bytes on the wire; a record
    published as one long value comes back as several segments.

    Examples:
        >>> reassemble_txt(("abc", "def"))
        'abcdef'
        >>> reassemble_txt('"abcdef"')
        'abcdef'
    """
    if isinstance(record, (str, bytes)):
        segments: Sequence[Any] = (record,)
    else:
        segments = record
    text = "".join(
        s.decode("utf-8", errors="replace") if isinstance(s, bytes) else str(s)
        for s in segments
    )
    return text.strip().strip('"').strip("'")


def _error_for(result: LookupResult) -> VerificationError:
    if result.is_not_found:
        return VerificationError.NOT_FOUND
    if result.reason == "timeout":
        return VerificationError.TIMEOUT
    return VerificationError.LOOKUP_FAILED


def _record_lookup(result: LookupResult) -> None:
    DNS_LOOKUPS.labels(record_type=result.record_type, outcome=result.outcome.value).inc()


class DomainVerifier:
    """Verifies custom domains against the hosting platform's targets.

    Verification requires two proofs:
    1. Routing: CNAME domain -> cname target (or, for apex domains without a
       CNAME, an A record pointing at the load balancer)
    2. Ownership: TXT <txt_prefix>.domain -> verification token
    """

    def __init__(
        self,
        resolver: DNSResolver,
        cname_targets: Sequence[str] = ("platform-host.app",),
        load_balancer_ip: str | None = "75.2.60.5",
        txt_prefix: str = "_vowsite",
        budget: float = 10.0,
    ) -> None:
        """Initialize the verifier.

        Args:
            resolver: DNS resolver adapter.
            cname_targets: Accepted CNAME targets; the first is the canonical one.
            load_balancer_ip: Address accepted by the A-record fallback, None to disable it.
            txt_prefix: Label of the ownership TXT record.
            budget: Wall-clock budget for a whole verification attempt in seconds.
        """
        if not cname_targets:
            raise ValueError("At least one CNAME target is required")
        self.resolver = resolver
        self.cname_targets = [t.lower().rstrip(".") for t in cname_targets]
        self.load_balancer_ip = load_balancer_ip
        self.txt_prefix = txt_prefix
        self.budget = budget

    @property
    def cname_target(self) -> str:
        return self.cname_targets[0]

    def txt_record_name(self, domain: str) -> str:
        """Name of the ownership TXT record for domain."""
        return f"{self.txt_prefix}.{domain}"

    def matches_cname_target(self, target: str) -> bool:
        """Loose match of an observed CNAME target.

        DNS providers append trailing dots, change case, or delegate through
        a subdomain of the platform host, so containment is enough.
        """
        target = target.lower().rstrip(".")
        return any(expected in target for expected in self.cname_targets)

    async def check_routing(self, domain: str) -> _Check:
        """Check CNAME, falling back to A only when no CNAME exists."""
        cname = await self.resolver.resolve_cname(domain)
        _record_lookup(cname)

        if cname.is_found:
            targets = [str(v).lower().rstrip(".") for v in cname.values]
            if any(self.matches_cname_target(t) for t in targets):
                return _Check(verified=True, observed=targets[0])
            return _Check(verified=False, observed=targets[0], error=VerificationError.MISMATCH)

        if cname.is_failure or self.load_balancer_ip is None:
            return _Check(verified=False, error=_error_for(cname))

        a_records = await self.resolver.resolve_a(domain)
        _record_lookup(a_records)
        if a_records.is_found:
            addresses = [str(v) for v in a_records.values]
            if self.load_balancer_ip in addresses:
                return _Check(verified=True, observed=self.load_balancer_ip, via_a_record=True)
            return _Check(
                verified=False,
                observed=", ".join(addresses),
                error=VerificationError.MISMATCH,
            )
        # Report the missing CNAME; a missing A record adds nothing actionable.
        return _Check(verified=False, error=_error_for(cname))

    async def check_ownership(self, domain: str, expected_token: str) -> _Check:
        """Check the ownership TXT record."""
        txt = await self.resolver.resolve_txt(self.txt_record_name(domain))
        _record_lookup(txt)

        if not txt.is_found:
            return _Check(verified=False, error=_error_for(txt))

        records = [reassemble_txt(record) for record in txt.values]
        observed = ", ".join(records)
        if any(expected_token in record for record in records):
            return _Check(verified=True, observed=observed)
        return _Check(verified=False, observed=observed, error=VerificationError.MISMATCH)

    async def verify(self, domain: str, expected_token: str) -> VerificationVerdict:
        """Perform full domain verification (routing + ownership).

        Args:
            domain: The normalized custom domain.
            expected_token: The expected TXT verification token.

        Returns:
            VerificationVerdict with both proofs and their diagnostics.
        """
        started = time.monotonic()
        routing_task = asyncio.create_task(self.check_routing(domain))
        ownership_task = asyncio.create_task(self.check_ownership(domain, expected_token))
        tasks = (routing_task, ownership_task)

        try:
            done, pending = await asyncio.wait(tasks, timeout=self.budget)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(
                "Verification budget exhausted",
                domain=domain,
                budget=self.budget,
                pending=len(pending),
            )

        errors = [task.exception() for task in done if task.exception() is not None]
        if errors:
            raise errors[0]

        routing = _TIMED_OUT if routing_task in pending else routing_task.result()
        ownership = _TIMED_OUT if ownership_task in pending else ownership_task.result()

        verdict = VerificationVerdict(
            domain=domain,
            cname_verified=routing.verified,
            txt_verified=ownership.verified,
            cname_observed=routing.observed,
            txt_observed=ownership.observed,
            cname_error=routing.error,
            txt_error=ownership.error,
            routed_by_a_record=routing.via_a_record,
        )
        VERIFICATION_DURATION.observe(time.monotonic() - started)
        logger.info(
            "Domain verification finished",
            domain=domain,
            cname_verified=verdict.cname_verified,
            txt_verified=verdict.txt_verified,
            cname_error=verdict.cname_error.value if verdict.cname_error else None,
            txt_error=verdict.txt_error.value if verdict.txt_error else None,
            routed_by_a_record=verdict.routed_by_a_record,
        )
        return verdict
