"""Configuration types with environment variable support.

All settings can be configured via environment variables with the VOWSITE_ prefix.
Example: VOWSITE_DNS_CNAME_TARGET=sites.example-host.app sets the CNAME target.

Settings can also come from a YAML or TOML file whose sections flatten onto
the field names (``dns: {lookup_timeout: 3}`` sets ``dns_lookup_timeout``).
Values passed explicitly (including file values) take precedence over the
environment.
"""

from __future__ import annotations

import ipaddress
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Only usable together with insecure_dev_mode; never valid in production.
DEV_VERIFICATION_SECRET = "vowsite-dev-verification-secret"

_PROTECTED_ENVIRONMENTS = ("production", "staging")


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class VowsiteConfig(BaseSettings):
    """Service configuration.

    Use get_config() to get a cached instance.

    Example:
        config = get_config()
        print(config.dns_cname_target)
        print(config.verification_budget)
    """

    model_config = SettingsConfigDict(
        env_prefix="VOWSITE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment: development, test, staging or production.",
    )
    insecure_dev_mode: bool = Field(
        default=False,
        description="Allow the built-in development verification secret. Never enable in production.",
    )

    # Ownership tokens
    verification_secret: str | None = Field(
        default=None,
        repr=False,
        description="Server-held secret mixed into DNS ownership tokens.",
    )
    verification_budget: float = Field(
        default=10.0,
        gt=0,
        description="Wall-clock budget for one verification attempt (seconds).",
    )
    verification_max_failed_attempts: int = Field(
        default=10,
        ge=0,
        description="Consecutive unsuccessful checks before a domain is marked failed. 0 disables.",
    )

    # Hosting platform targets
    dns_cname_target: str = Field(
        default="platform-host.app",
        description="Canonical hostname custom domains must CNAME to.",
    )
    dns_cname_aliases: list[str] = Field(
        default_factory=list,
        description="Additional accepted CNAME targets (e.g. a provider's shared suffix).",
    )
    dns_load_balancer_ip: str = Field(
        default="75.2.60.5",
        description="Load balancer address accepted for apex domains that use an A record.",
    )
    dns_txt_prefix: str = Field(
        default="_vowsite",
        description="Label prepended to the domain for the ownership TXT record.",
    )
    dns_lookup_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single DNS lookup (seconds).",
    )
    dns_nameservers: list[str] = Field(
        default_factory=list,
        description="Nameservers to query instead of the system resolver.",
    )

    # Persistence
    storage_path: str = Field(
        default="domains.json",
        description="Path to the JSON file storing custom domain configs.",
    )

    # Admin API
    server_host: str = Field(default="0.0.0.0", description="HTTP bind host.")
    server_port: int = Field(default=8080, description="HTTP bind port.")
    server_admin_token: str | None = Field(
        default=None,
        repr=False,
        description="Bearer token required on admin routes. Unset disables the check.",
    )
    site_base_url: str = Field(
        default="https://platform-host.app",
        description="Base URL of the always-available default site.",
    )

    # Logging
    log_level: str = Field(default="info", description="debug, info, warning or error.")
    log_json: bool = Field(default=False, description="Render logs as JSON lines.")

    @field_validator("dns_load_balancer_ip")
    @classmethod
    def _check_ip(cls, value: str) -> str:
        ipaddress.ip_address(value)
        return value

    @field_validator("dns_cname_target", "dns_txt_prefix")
    @classmethod
    def _strip_dots(cls, value: str) -> str:
        value = value.strip().lower().strip(".")
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("dns_cname_aliases")
    @classmethod
    def _normalize_aliases(cls, value: list[str]) -> list[str]:
        return [alias.strip().lower().strip(".") for alias in value if alias.strip(". ")]

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in ("debug", "info", "warning", "error"):
            raise ValueError(f"unknown log level: {value}")
        return value

    @model_validator(mode="after")
    def _validate_protected_environment(self) -> VowsiteConfig:
        """Refuse unsafe secrets outside development."""
        if self.environment in _PROTECTED_ENVIRONMENTS:
            if self.insecure_dev_mode:
                raise ValueError(f"insecure_dev_mode cannot be enabled in {self.environment}")
            secret = self.verification_secret
            if secret is not None and (secret == DEV_VERIFICATION_SECRET or len(secret) < 32):
                raise ValueError(
                    "VOWSITE_VERIFICATION_SECRET is insecure. "
                    "Set a random value of at least 32 characters."
                )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def accepted_cname_targets(self) -> list[str]:
        """The canonical target followed by any aliases."""
        return [self.dns_cname_target, *self.dns_cname_aliases]

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration as a nested dictionary for display."""
        return {
            "general": {
                "environment": self.environment,
                "insecure_dev_mode": self.insecure_dev_mode,
                "storage_path": self.storage_path,
            },
            "verification": {
                "secret": "set" if self.verification_secret else None,
                "budget": self.verification_budget,
                "max_failed_attempts": self.verification_max_failed_attempts,
            },
            "dns": {
                "cname_target": self.dns_cname_target,
                "cname_aliases": ", ".join(self.dns_cname_aliases) or None,
                "load_balancer_ip": self.dns_load_balancer_ip,
                "txt_prefix": self.dns_txt_prefix,
                "lookup_timeout": self.dns_lookup_timeout,
                "nameservers": ", ".join(self.dns_nameservers) or None,
            },
            "server": {
                "host": self.server_host,
                "port": self.server_port,
                "admin_token": "set" if self.server_admin_token else None,
                "site_base_url": self.site_base_url,
            },
            "log": {
                "level": self.log_level,
                "json": self.log_json,
            },
        }


_config: VowsiteConfig | None = None


def get_config(config_file: str | Path | None = None) -> VowsiteConfig:
    """Get the global configuration instance.

    Returns a cached instance of VowsiteConfig that reads from environment variables
    and, on first use, from ``config_file`` if one is given.

    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        overrides = flatten_config(load_config_from_file(config_file)) if config_file else {}
        _config = VowsiteConfig(**overrides)
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
