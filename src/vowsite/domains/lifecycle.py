"""Custom domain lifecycle.

    pending ──verify──> verifying ──both proofs──> ssl_pending ──certificate──> active
       ^                 │    │
       └──── partial ────┘    └── threshold reached ──> failed ──verify──> verifying

Removal deletes the config from any state and is not a transition.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog

from vowsite.core.exceptions import InvalidTransitionError
from vowsite.domains.models import CustomDomainConfig, DomainStatus, RecordType
from vowsite.domains.verification import VerificationVerdict

logger = structlog.get_logger()

ALLOWED_TRANSITIONS: dict[DomainStatus, frozenset[DomainStatus]] = {
    DomainStatus.PENDING: frozenset({DomainStatus.VERIFYING}),
    # verifying -> verifying restarts a check that was interrupted
    DomainStatus.VERIFYING: frozenset(
        {
            DomainStatus.VERIFYING,
            DomainStatus.PENDING,
            DomainStatus.SSL_PENDING,
            DomainStatus.FAILED,
        }
    ),
    DomainStatus.FAILED: frozenset({DomainStatus.VERIFYING}),
    DomainStatus.SSL_PENDING: frozenset({DomainStatus.ACTIVE}),
    DomainStatus.ACTIVE: frozenset(),
}

VERIFIABLE_STATUSES = frozenset(
    {DomainStatus.PENDING, DomainStatus.VERIFYING, DomainStatus.FAILED}
)


def can_transition(current: DomainStatus, target: DomainStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class DomainLifecycle:
    """Applies lifecycle transitions to a CustomDomainConfig in place."""

    def __init__(self, max_failed_attempts: int = 10) -> None:
        """Initialize the lifecycle.

        Args:
            max_failed_attempts: Consecutive unsuccessful attempts after which a
                domain is marked failed. 0 disables the threshold.
        """
        if max_failed_attempts < 0:
            raise ValueError("max_failed_attempts must be >= 0")
        self.max_failed_attempts = max_failed_attempts

    def transition(self, config: CustomDomainConfig, target: DomainStatus) -> None:
        """Move config to target.

        Raises:
            InvalidTransitionError: If the state machine has no such edge.
        """
        current = config.status
        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)
        config.status = target
        if current is not target:
            logger.info(
                "Domain status changed",
                tenant_id=config.tenant_id,
                domain=config.domain,
                from_status=current.value,
                to_status=target.value,
            )

    def begin_verification(self, config: CustomDomainConfig) -> DomainStatus:
        """Enter verifying and return the status the attempt started from."""
        previous = config.status
        self.transition(config, DomainStatus.VERIFYING)
        return previous

    def apply_verdict(
        self,
        config: CustomDomainConfig,
        verdict: VerificationVerdict,
        previous: DomainStatus | None = None,
        now: datetime | None = None,
    ) -> None:
        """Record a verification attempt and leave verifying.

        Args:
            config: Config in the verifying state.
            verdict: Outcome of the attempt.
            previous: Status before begin_verification(); a failed domain stays
                failed on another unsuccessful attempt.
            now: Timestamp of the attempt, defaults to the current time.
        """
        now = now or datetime.now(UTC)
        config.last_checked_at = now
        self._refresh_records(config, verdict)

        if verdict.is_verified:
            self.transition(config, DomainStatus.SSL_PENDING)
            config.verified_at = now
            config.failed_attempts = 0
            return

        # Resolver trouble says nothing about the admin's DNS setup.
        if not verdict.has_lookup_failure:
            config.failed_attempts += 1

        threshold_reached = (
            self.max_failed_attempts > 0 and config.failed_attempts >= self.max_failed_attempts
        )
        if previous is DomainStatus.FAILED or threshold_reached:
            self.transition(config, DomainStatus.FAILED)
        else:
            self.transition(config, DomainStatus.PENDING)

    def rollback(self, config: CustomDomainConfig, previous: DomainStatus) -> None:
        """Undo begin_verification() after an attempt that errored."""
        if config.status is DomainStatus.VERIFYING:
            config.status = previous

    def confirm_certificate(
        self, config: CustomDomainConfig, now: datetime | None = None
    ) -> None:
        """ssl_pending -> active once the certificate has been issued."""
        self.transition(config, DomainStatus.ACTIVE)
        config.activated_at = now or datetime.now(UTC)

    @staticmethod
    def _refresh_records(config: CustomDomainConfig, verdict: VerificationVerdict) -> None:
        cname = config.record(RecordType.CNAME)
        if cname is not None:
            cname.verified = verdict.cname_verified
            cname.observed = verdict.cname_observed
        txt = config.record(RecordType.TXT)
        if txt is not None:
            txt.verified = verdict.txt_verified
            txt.observed = verdict.txt_observed
