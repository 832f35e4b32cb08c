"""Deterministic ownership tokens for the DNS TXT challenge.

The token an admin publishes at ``<txt_prefix>.<domain>`` is derived from the
tenant, the domain and a server-held secret, so it can be recomputed at any
time and differs for every (tenant, domain) pair:

    sha256("<tenant_id>:<domain>:<secret>")[:16 bytes] -> 32 hex characters
"""

from __future__ import annotations

import hashlib

import structlog

from vowsite.core.config import DEV_VERIFICATION_SECRET, VowsiteConfig
from vowsite.core.exceptions import ConfigurationError

logger = structlog.get_logger()

TOKEN_LENGTH = 32


def generate_verification_token(tenant_id: str, domain: str, secret: str) -> str:
    """Derive the ownership token for a tenant's domain.

    Args:
        tenant_id: Tenant (wedding site) identifier.
        domain: Normalized domain.
        secret: Server-held secret.

    Returns:
        32 lowercase hexadecimal characters.
    """
    data = f"{tenant_id}:{domain}:{secret}".encode()
    return hashlib.sha256(data).hexdigest()[:TOKEN_LENGTH]


class TokenGenerator:
    """Generates ownership tokens with a secret bound from configuration."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ConfigurationError("Verification secret must not be empty")
        self._secret = secret

    @classmethod
    def from_config(cls, config: VowsiteConfig) -> TokenGenerator:
        """Build a generator from deployment configuration.

        The development secret is only used when insecure_dev_mode is set
        explicitly; a missing secret is an error otherwise.

        Raises:
            ConfigurationError: If no secret is configured and dev mode is off.
        """
        if config.verification_secret:
            return cls(config.verification_secret)

        if not config.insecure_dev_mode:
            raise ConfigurationError(
                "VOWSITE_VERIFICATION_SECRET is not set. Set it, or set "
                "VOWSITE_INSECURE_DEV_MODE=true for local development."
            )

        logger.warning(
            "Using built-in development verification secret",
            environment=config.environment,
        )
        return cls(DEV_VERIFICATION_SECRET)

    def generate(self, tenant_id: str, domain: str) -> str:
        return generate_verification_token(tenant_id, domain, self._secret)
