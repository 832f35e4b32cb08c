"""Hostname normalization and validation for custom domains.

Admins paste domains in many shapes (``https://Example.com/``,
``www.example.com.``, ``example.com:443``). Everything is reduced to a bare,
lowercase hostname before it is stored, tokenized or compared:

    - https://Example.com/rsvp  -> example.com
    - WWW.Example.COM.          -> www.example.com
    - example.com:8443          -> example.com
"""

from __future__ import annotations

import ipaddress
import re
from functools import lru_cache

from vowsite.core.exceptions import InvalidDomainError

MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")


def normalize_domain(raw: str) -> str:
    """Reduce user input to a bare lowercase hostname.

    Strips surrounding whitespace, any URL scheme, credentials, path, query,
    fragment, port and trailing dots. Does not validate the result.

    Examples:
        >>> normalize_domain("  https://Example.com/rsvp?x=1 ")
        'example.com'
        >>> normalize_domain("WWW.Example.COM.")
        'www.example.com'
    """
    domain = raw.strip().lower()
    domain = _SCHEME_RE.sub("", domain)
    domain = re.split(r"[/?#]", domain, maxsplit=1)[0]
    domain = domain.rsplit("@", 1)[-1]
    if domain.count(":") == 1:
        domain = domain.split(":", 1)[0]
    return domain.rstrip(".")


@lru_cache(maxsize=1000)
def validate_domain(domain: str) -> tuple[bool, str | None]:
    """Validate a normalized hostname.

    Args:
        domain: Hostname as returned by normalize_domain().

    Returns:
        Tuple of (is_valid, error_message).
        If valid, error_message is None.

    Examples:
        >>> validate_domain("wedding.example.com")
        (True, None)
        >>> validate_domain("localhost")
        (False, 'Domain must have at least two labels')
        >>> validate_domain("*.example.com")
        (False, 'Wildcard domains are not supported')
    """
    if not domain:
        return False, "Domain is empty"

    if "*" in domain:
        return False, "Wildcard domains are not supported"

    if len(domain) > MAX_DOMAIN_LENGTH:
        return False, f"Domain exceeds {MAX_DOMAIN_LENGTH} characters"

    try:
        ipaddress.ip_address(domain)
    except ValueError:
        pass
    else:
        return False, "IP addresses cannot be used as custom domains"

    labels = domain.split(".")
    if len(labels) < 2:
        return False, "Domain must have at least two labels"

    for label in labels:
        if not label:
            return False, "Domain contains an empty label"
        if len(label) > MAX_LABEL_LENGTH:
            return False, f"Label {label!r} exceeds {MAX_LABEL_LENGTH} characters"
        if not _LABEL_RE.match(label):
            return False, f"Label {label!r} contains invalid characters"

    if labels[-1].isdigit():
        return False, "Top-level domain cannot be numeric"

    return True, None


def parse_domain(raw: str) -> str:
    """Normalize and validate in one step.

    Raises:
        InvalidDomainError: If the normalized hostname is not a valid domain.
    """
    domain = normalize_domain(raw)
    valid, error = validate_domain(domain)
    if not valid:
        raise InvalidDomainError(raw, error or "invalid domain")
    return domain
