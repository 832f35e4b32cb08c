"""Prometheus metrics for domain provisioning."""

from vowsite.observability.metrics import (
    DNS_LOOKUPS,
    DOMAIN_OPERATIONS,
    VERIFICATION_ATTEMPTS,
    VERIFICATION_DURATION,
    generate_metrics,
    get_content_type,
)

__all__ = [
    "DNS_LOOKUPS",
    "DOMAIN_OPERATIONS",
    "VERIFICATION_ATTEMPTS",
    "VERIFICATION_DURATION",
    "generate_metrics",
    "get_content_type",
]
