from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

DOMAIN_OPERATIONS = Counter(
    "vowsite_domain_operations_total",
    "Custom domain operations",
    ["operation", "result"],  # operation: add/verify/remove/confirm
)

VERIFICATION_ATTEMPTS = Counter(
    "vowsite_verification_attempts_total",
    "Verification attempts by resulting status",
    ["status"],
)

DNS_LOOKUPS = Counter(
    "vowsite_dns_lookups_total",
    "DNS lookups by record type and outcome",
    ["record_type", "outcome"],  # outcome: found/not_found/failed
)

VERIFICATION_DURATION = Histogram(
    "vowsite_verification_duration_seconds",
    "Wall-clock time of one verification attempt",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
