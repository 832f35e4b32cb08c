"""Core."""

from .config import VowsiteConfig, clear_config, get_config, load_config_from_file
from .exceptions import (
    ConfigurationError,
    DomainAlreadyClaimedError,
    DomainNotFoundError,
    InvalidDomainError,
    InvalidTransitionError,
    StorageError,
    VerificationUnavailableError,
    VowsiteError,
)

__all__ = [
    # Config
    "VowsiteConfig",
    "get_config",
    "clear_config",
    "load_config_from_file",
    # Errors
    "VowsiteError",
    "ConfigurationError",
    "InvalidDomainError",
    "DomainAlreadyClaimedError",
    "DomainNotFoundError",
    "InvalidTransitionError",
    "StorageError",
    "VerificationUnavailableError",
]
