"""Custom domain attachment for hosted wedding sites.

This package provides:
- Hostname normalization and validation
- Deterministic ownership tokens
- DNS verification (CNAME or apex A record + TXT)
- The domain lifecycle (pending -> verifying -> ssl_pending -> active | failed)
- JSON file storage with one domain per tenant and one tenant per domain
"""

from vowsite.domains.lifecycle import DomainLifecycle
from vowsite.domains.models import (
    CustomDomainConfig,
    DnsRecordRequirement,
    DomainStatus,
    RecordType,
)
from vowsite.domains.normalize import normalize_domain, parse_domain, validate_domain
from vowsite.domains.resolver import AiodnsResolver, DNSResolver, LookupOutcome, LookupResult
from vowsite.domains.service import DomainOverview, DomainProvisioningService
from vowsite.domains.storage import DomainStore
from vowsite.domains.tokens import TokenGenerator, generate_verification_token
from vowsite.domains.verification import DomainVerifier, VerificationError, VerificationVerdict

__all__ = [
    # Models
    "CustomDomainConfig",
    "DnsRecordRequirement",
    "DomainStatus",
    "RecordType",
    # Normalization
    "normalize_domain",
    "parse_domain",
    "validate_domain",
    # Tokens
    "TokenGenerator",
    "generate_verification_token",
    # DNS
    "AiodnsResolver",
    "DNSResolver",
    "LookupOutcome",
    "LookupResult",
    "DomainVerifier",
    "VerificationError",
    "VerificationVerdict",
    # Lifecycle, storage, service
    "DomainLifecycle",
    "DomainStore",
    "DomainOverview",
    "DomainProvisioningService",
]
