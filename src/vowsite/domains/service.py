"""Domain provisioning service.

This module provides the main interface for attaching custom domains to
wedding sites:
- Attachment with a deterministic ownership token
- DNS verification (CNAME or apex A record + TXT)
- Lifecycle tracking through ssl_pending to active
- Host lookup for edge routing

Usage:
    service = DomainProvisioningService.from_config(get_config())

    # Attach a domain
    config, instructions = await service.add_domain("wedding-123", "Wedding.Example.com")

    # Verify DNS records
    config, message = await service.verify_domain("wedding-123")

    # Certificate issuer reports the certificate is live
    config = await service.confirm_certificate("wedding-123")
"""

from __future__ import annotations

import asyncio
import copy
import weakref
from dataclasses import dataclass

import structlog

from vowsite.core.config import VowsiteConfig
from vowsite.core.exceptions import (
    DomainNotFoundError,
    StorageError,
    VerificationUnavailableError,
    VowsiteError,
)
from vowsite.domains.lifecycle import VERIFIABLE_STATUSES, DomainLifecycle
from vowsite.domains.models import CustomDomainConfig, DomainStatus
from vowsite.domains.normalize import normalize_domain, parse_domain, validate_domain
from vowsite.domains.resolver import AiodnsResolver
from vowsite.domains.storage import DomainStore
from vowsite.domains.tokens import TokenGenerator
from vowsite.domains.verification import DomainVerifier, VerificationVerdict
from vowsite.observability.metrics import DOMAIN_OPERATIONS, VERIFICATION_ATTEMPTS

logger = structlog.get_logger()

MESSAGE_SSL_PENDING = (
    "Domain verified. An SSL certificate is being provisioned; "
    "this usually takes a few minutes."
)
MESSAGE_ACTIVE = "Domain verified and active."
MESSAGE_WAITING_TXT = "CNAME verified, waiting on TXT record."
MESSAGE_WAITING_CNAME = "TXT verified, waiting on CNAME record."
MESSAGE_NOT_FOUND = (
    "DNS records not found yet. DNS changes can take up to 48 hours to propagate; "
    "check your DNS settings and try again."
)
MESSAGE_LOOKUP_FAILED = "We could not reach DNS to check your records. Please try again."
MESSAGE_REMOVED = "Custom domain removed."


@dataclass
class DomainOverview:
    """What the admin UI shows for a tenant's domain settings."""

    tenant_id: str
    config: CustomDomainConfig | None
    default_url: str

    @property
    def custom_url(self) -> str | None:
        if self.config is not None and self.config.status is DomainStatus.ACTIVE:
            return f"https://{self.config.domain}"
        return None


class DomainProvisioningService:
    """Attaches, verifies and removes tenants' custom domains.

    Operations on one tenant are serialized by a per-tenant lock; the store
    makes domain claims atomic across tenants.
    """

    def __init__(
        self,
        store: DomainStore,
        verifier: DomainVerifier,
        tokens: TokenGenerator,
        lifecycle: DomainLifecycle | None = None,
        site_base_url: str = "https://platform-host.app",
    ) -> None:
        """Initialize the service.

        Args:
            store: Storage backend for domain configs.
            verifier: DNS verifier.
            tokens: Ownership token generator.
            lifecycle: State machine, default threshold when None.
            site_base_url: Base URL of the default hosted sites.
        """
        self.store = store
        self.verifier = verifier
        self.tokens = tokens
        self.lifecycle = lifecycle or DomainLifecycle()
        self.site_base_url = site_base_url.rstrip("/")
        self._tenant_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    def from_config(
        cls, config: VowsiteConfig, store: DomainStore | None = None
    ) -> DomainProvisioningService:
        """Wire the service from deployment configuration.

        Raises:
            ConfigurationError: If no verification secret is available.
        """
        resolver = AiodnsResolver(
            timeout=config.dns_lookup_timeout,
            nameservers=config.dns_nameservers or None,
        )
        verifier = DomainVerifier(
            resolver,
            cname_targets=config.accepted_cname_targets,
            load_balancer_ip=config.dns_load_balancer_ip,
            txt_prefix=config.dns_txt_prefix,
            budget=config.verification_budget,
        )
        return cls(
            store=store or DomainStore(config.storage_path),
            verifier=verifier,
            tokens=TokenGenerator.from_config(config),
            lifecycle=DomainLifecycle(config.verification_max_failed_attempts),
            site_base_url=config.site_base_url,
        )

    def default_url(self, tenant_id: str) -> str:
        return f"{self.site_base_url}/w/{tenant_id}"

    def _tenant_lock(self, tenant_id: str) -> asyncio.Lock:
        # Entries vanish once no coroutine holds or waits on the lock.
        lock = self._tenant_locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._tenant_locks[tenant_id] = lock
        return lock

    async def _restore(self, original: CustomDomainConfig) -> None:
        """Best-effort write of a config as it was before an attempt."""
        try:
            await self.store.save(original)
        except StorageError:
            logger.error(
                "Could not restore domain status",
                tenant_id=original.tenant_id,
                domain=original.domain,
                status=original.status.value,
            )

    async def _get_required(self, tenant_id: str) -> CustomDomainConfig:
        config = await self.store.get(tenant_id)
        if config is None:
            raise DomainNotFoundError(tenant_id)
        return config

    async def add_domain(
        self, tenant_id: str, raw_domain: str
    ) -> tuple[CustomDomainConfig, str]:
        """Attach a custom domain to a tenant.

        Adding the domain the tenant already has returns the existing config
        unchanged. Adding a different domain replaces the tenant's previous one.

        Args:
            tenant_id: The tenant (wedding site).
            raw_domain: Domain as typed by the admin.

        Returns:
            The pending config and DNS setup instructions.

        Raises:
            InvalidDomainError: If the input is not a valid hostname.
            DomainAlreadyClaimedError: If another tenant holds the domain.
            StorageError: If the config cannot be persisted.
        """
        try:
            domain = parse_domain(raw_domain)
        except VowsiteError:
            DOMAIN_OPERATIONS.labels(operation="add", result="invalid").inc()
            raise

        async with self._tenant_lock(tenant_id):
            existing = await self.store.get(tenant_id)
            if existing is not None and existing.domain == domain:
                DOMAIN_OPERATIONS.labels(operation="add", result="existing").inc()
                return existing, self.render_instructions(existing)

            config = CustomDomainConfig.create(
                tenant_id=tenant_id,
                domain=domain,
                verification_token=self.tokens.generate(tenant_id, domain),
                cname_target=self.verifier.cname_target,
                txt_record_name=self.verifier.txt_record_name(domain),
            )
            try:
                await self.store.save(config)
            except VowsiteError as e:
                DOMAIN_OPERATIONS.labels(operation="add", result=e.code.lower()).inc()
                raise

        DOMAIN_OPERATIONS.labels(operation="add", result="ok").inc()
        logger.info(
            "Custom domain attached",
            tenant_id=tenant_id,
            domain=domain,
            replaced=existing.domain if existing else None,
        )
        return config, self.render_instructions(config)

    async def verify_domain(self, tenant_id: str) -> tuple[CustomDomainConfig, str]:
        """Run one verification attempt for a tenant's domain.

        Domains already in ssl_pending or active are returned unchanged with
        their status message and no DNS work is done.

        Returns:
            The updated config and a message for the admin.

        Raises:
            DomainNotFoundError: If the tenant has no domain attached.
            VerificationUnavailableError: If the verifier failed below the DNS level.
            StorageError: If the result cannot be persisted.
        """
        async with self._tenant_lock(tenant_id):
            config = await self._get_required(tenant_id)
            if config.status not in VERIFIABLE_STATUSES:
                DOMAIN_OPERATIONS.labels(operation="verify", result="skipped").inc()
                return config, self.status_message(config)

            original = copy.deepcopy(config)
            previous = self.lifecycle.begin_verification(config)
            await self.store.save(config)

            try:
                verdict = await self.verifier.verify(config.domain, config.verification_token)
            except asyncio.CancelledError:
                self.lifecycle.rollback(config, previous)
                await asyncio.shield(self.store.save(config))
                raise
            except Exception as e:
                logger.exception(
                    "Domain verification errored",
                    tenant_id=tenant_id,
                    domain=config.domain,
                )
                self.lifecycle.rollback(config, previous)
                await self.store.save(config)
                DOMAIN_OPERATIONS.labels(operation="verify", result="unavailable").inc()
                raise VerificationUnavailableError() from e

            self.lifecycle.apply_verdict(config, verdict, previous=previous)
            try:
                await self.store.save(config)
            except StorageError:
                logger.warning(
                    "Verification result not persisted",
                    tenant_id=tenant_id,
                    domain=config.domain,
                    status=config.status.value,
                    cname_verified=verdict.cname_verified,
                    txt_verified=verdict.txt_verified,
                )
                await self._restore(original)
                DOMAIN_OPERATIONS.labels(operation="verify", result="storage_unavailable").inc()
                raise

        VERIFICATION_ATTEMPTS.labels(status=config.status.value).inc()
        DOMAIN_OPERATIONS.labels(operation="verify", result="ok").inc()
        return config, self.verdict_message(config, verdict)

    async def remove_domain(self, tenant_id: str) -> bool:
        """Detach a tenant's custom domain. Idempotent.

        Returns:
            True if a config was deleted, False if there was none.
        """
        async with self._tenant_lock(tenant_id):
            removed = await self.store.delete(tenant_id)
        DOMAIN_OPERATIONS.labels(operation="remove", result="ok" if removed else "absent").inc()
        if removed:
            logger.info("Custom domain removed", tenant_id=tenant_id)
        return removed

    async def get_domain(self, tenant_id: str) -> DomainOverview:
        config = await self.store.get(tenant_id)
        return DomainOverview(
            tenant_id=tenant_id,
            config=config,
            default_url=self.default_url(tenant_id),
        )

    async def confirm_certificate(self, tenant_id: str) -> CustomDomainConfig:
        """Mark the certificate for a verified domain as issued.

        Raises:
            DomainNotFoundError: If the tenant has no domain attached.
            InvalidTransitionError: If the domain is not in ssl_pending.
        """
        async with self._tenant_lock(tenant_id):
            config = await self._get_required(tenant_id)
            self.lifecycle.confirm_certificate(config)
            await self.store.save(config)
        DOMAIN_OPERATIONS.labels(operation="confirm", result="ok").inc()
        return config

    async def lookup_tenant(self, host: str) -> str | None:
        """Find the tenant serving an incoming host.

        Only active domains route traffic.

        Args:
            host: Host header or hostname of the request.

        Returns:
            Tenant ID if the host is an active custom domain, None otherwise.
        """
        domain = normalize_domain(host)
        valid, _ = validate_domain(domain)
        if not valid:
            return None
        config = await self.store.get_by_domain(domain)
        if config is None or config.status is not DomainStatus.ACTIVE:
            return None
        return config.tenant_id

    def status_message(self, config: CustomDomainConfig) -> str:
        if config.status is DomainStatus.ACTIVE:
            return MESSAGE_ACTIVE
        if config.status is DomainStatus.SSL_PENDING:
            return MESSAGE_SSL_PENDING
        if config.status is DomainStatus.FAILED:
            return (
                f"Verification gave up after {config.failed_attempts} attempts. "
                "Check your DNS records and verify again."
            )
        return MESSAGE_NOT_FOUND

    def verdict_message(self, config: CustomDomainConfig, verdict: VerificationVerdict) -> str:
        """Message for the admin after a verification attempt."""
        if config.status is not DomainStatus.PENDING:
            return self.status_message(config)
        if verdict.cname_verified:
            return MESSAGE_WAITING_TXT
        if verdict.txt_verified:
            return MESSAGE_WAITING_CNAME
        if verdict.has_lookup_failure:
            return MESSAGE_LOOKUP_FAILED
        return MESSAGE_NOT_FOUND

    def render_instructions(self, config: CustomDomainConfig) -> str:
        """Generate DNS setup instructions for the admin."""
        load_balancer = self.verifier.load_balancer_ip
        apex_note = ""
        if load_balancer:
            apex_note = f"""
   If your provider does not allow a CNAME on {config.domain}
   (for example a root domain), add an A record with value {load_balancer} instead.
"""
        return f"""Add the following DNS records:

1. CNAME Record (routes traffic to your wedding site):
   Name: {config.domain}
   Type: CNAME
   Value: {self.verifier.cname_target}
{apex_note}
2. TXT Record (verifies ownership):
   Name: {self.verifier.txt_record_name(config.domain)}
   Type: TXT
   Value: {config.verification_token}

After adding these records, click "Verify" or run: vowsite domain verify {config.tenant_id}
DNS changes can take up to 48 hours to propagate."""
