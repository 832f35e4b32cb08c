"""Tests for configuration loading from environment variables and files."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from vowsite.core.config import (
    DEV_VERIFICATION_SECRET,
    VowsiteConfig,
    clear_config,
    flatten_config,
    get_config,
    load_config_from_file,
)

STRONG_SECRET = "x" * 40


class TestVowsiteConfig:
    """Test VowsiteConfig settings."""

    def test_default_values(self) -> None:
        """Test default values."""
        config = VowsiteConfig()
        assert config.environment == "development"
        assert config.insecure_dev_mode is False
        assert config.dns_cname_target == "platform-host.app"
        assert config.dns_load_balancer_ip == "75.2.60.5"
        assert config.dns_txt_prefix == "_vowsite"
        assert config.dns_lookup_timeout == 5.0
        assert config.verification_budget == 10.0
        assert config.verification_max_failed_attempts == 10

    def test_env_override_cname_target(self) -> None:
        """Test VOWSITE_DNS_CNAME_TARGET env var."""
        with patch.dict(os.environ, {"VOWSITE_DNS_CNAME_TARGET": "Sites.Example-Host.APP."}):
            config = VowsiteConfig()
            assert config.dns_cname_target == "sites.example-host.app"

    def test_env_override_aliases(self) -> None:
        """Test VOWSITE_DNS_CNAME_ALIASES env var (JSON list)."""
        with patch.dict(os.environ, {"VOWSITE_DNS_CNAME_ALIASES": '["edge.cdn.net."]'}):
            config = VowsiteConfig()
            assert config.accepted_cname_targets == ["platform-host.app", "edge.cdn.net"]

    def test_env_override_max_failed_attempts(self) -> None:
        """Test VOWSITE_VERIFICATION_MAX_FAILED_ATTEMPTS env var."""
        with patch.dict(os.environ, {"VOWSITE_VERIFICATION_MAX_FAILED_ATTEMPTS": "0"}):
            config = VowsiteConfig()
            assert config.verification_max_failed_attempts == 0

    def test_invalid_load_balancer_ip(self) -> None:
        with pytest.raises(ValidationError):
            VowsiteConfig(dns_load_balancer_ip="not-an-ip")

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            VowsiteConfig(log_level="loud")

    def test_secret_hidden_from_repr(self) -> None:
        config = VowsiteConfig(verification_secret=STRONG_SECRET)
        assert STRONG_SECRET not in repr(config)
        assert config.to_display_dict()["verification"]["secret"] == "set"


class TestProtectedEnvironments:
    @pytest.mark.parametrize("environment", ["production", "staging"])
    def test_dev_mode_rejected(self, environment) -> None:
        with pytest.raises(ValidationError):
            VowsiteConfig(
                environment=environment,
                insecure_dev_mode=True,
                verification_secret=STRONG_SECRET,
            )

    def test_dev_secret_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VowsiteConfig(environment="production", verification_secret=DEV_VERIFICATION_SECRET)

    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VowsiteConfig(environment="production", verification_secret="short")

    def test_strong_secret_accepted(self) -> None:
        config = VowsiteConfig(environment="production", verification_secret=STRONG_SECRET)
        assert config.is_production

    def test_short_secret_allowed_in_development(self) -> None:
        config = VowsiteConfig(verification_secret="short")
        assert config.verification_secret == "short"


class TestConfigFiles:
    def test_flatten_config(self) -> None:
        flat = flatten_config({"dns": {"lookup_timeout": 3}, "log_level": "debug"})
        assert flat == {"dns_lookup_timeout": 3, "log_level": "debug"}

    def test_load_yaml(self, tmp_path) -> None:
        path = tmp_path / "vowsite.yaml"
        path.write_text("dns:\n  cname_target: sites.example.app\nverification:\n  budget: 4\n")

        data = load_config_from_file(path)

        assert data == {"dns": {"cname_target": "sites.example.app"}, "verification": {"budget": 4}}

    def test_load_toml(self, tmp_path) -> None:
        path = tmp_path / "vowsite.toml"
        path.write_text('[dns]\ntxt_prefix = "_verify"\n')

        assert load_config_from_file(path) == {"dns": {"txt_prefix": "_verify"}}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "vowsite.ini"
        path.write_text("[dns]\n")
        with pytest.raises(ValueError):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "vowsite.yaml"
        path.write_text("dns: [unclosed\n")
        with pytest.raises(ValueError):
            load_config_from_file(path)


class TestGetConfig:
    def test_cached(self) -> None:
        assert get_config() is get_config()

    def test_clear_config_reloads_env(self) -> None:
        get_config()
        with patch.dict(os.environ, {"VOWSITE_SERVER_PORT": "9090"}):
            clear_config()
            assert get_config().server_port == 9090

    def test_file_overrides(self, tmp_path) -> None:
        path = tmp_path / "vowsite.yaml"
        path.write_text("dns:\n  lookup_timeout: 2.5\nstorage_path: /tmp/d.json\n")

        config = get_config(path)

        assert config.dns_lookup_timeout == 2.5
        assert config.storage_path == "/tmp/d.json"
