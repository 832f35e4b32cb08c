"""Error taxonomy shared by the domain service, the HTTP API and the CLI.

Every error carries a stable ``code`` that is returned to API callers
in-band, an HTTP status for the admin API, and whether the caller may
simply retry the same request.
"""

from __future__ import annotations


class VowsiteError(Exception):
    """Base class for errors surfaced to callers."""

    code = "INTERNAL_ERROR"
    http_status = 500
    retryable = False
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class ConfigurationError(VowsiteError):
    """Deployment configuration is missing or unsafe."""

    code = "CONFIGURATION_ERROR"


class InvalidDomainError(VowsiteError):
    """The submitted hostname is not a valid domain."""

    code = "INVALID_DOMAIN_FORMAT"
    http_status = 400
    user_message = "Please enter a valid domain (e.g., wedding.example.com)."

    def __init__(self, domain: str, reason: str) -> None:
        super().__init__(f"Invalid domain {domain!r}: {reason}")
        self.domain = domain
        self.reason = reason


class DomainAlreadyClaimedError(VowsiteError):
    """The normalized domain is attached to another tenant."""

    code = "CUSTOM_DOMAIN_ALREADY_EXISTS"
    http_status = 409
    user_message = "This domain is already connected to another wedding."

    def __init__(self, domain: str) -> None:
        super().__init__(f"Domain {domain} is already claimed")
        self.domain = domain


class DomainNotFoundError(VowsiteError):
    """The tenant has no custom domain attached."""

    code = "CUSTOM_DOMAIN_NOT_FOUND"
    http_status = 404
    user_message = "No custom domain is connected to this wedding."

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"No custom domain attached for tenant {tenant_id}")
        self.tenant_id = tenant_id


class InvalidTransitionError(VowsiteError):
    """A lifecycle transition was requested from a state that does not allow it."""

    code = "INVALID_STATE"
    http_status = 409
    user_message = "This action is not available for the domain's current status."

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move custom domain from {current} to {target}")
        self.current = current
        self.target = target


class StorageError(VowsiteError):
    """The config store could not be read or written."""

    code = "STORAGE_UNAVAILABLE"
    http_status = 503
    retryable = True
    user_message = "We could not save your changes. Please try again."


class VerificationUnavailableError(VowsiteError):
    """DNS verification failed below the level of a DNS answer."""

    code = "VERIFICATION_UNAVAILABLE"
    http_status = 503
    retryable = True
    user_message = "Domain verification is temporarily unavailable. Please try again."
