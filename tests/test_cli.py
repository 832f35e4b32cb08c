"""Tests for vowsite CLI."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from vowsite import __version__
from vowsite.cli import main
from vowsite.domains import generate_verification_token

SECRET = "cli-secret-that-is-long-enough-0123456789"


@pytest.fixture
def env(tmp_path):
    return {
        "VOWSITE_VERIFICATION_SECRET": SECRET,
        "VOWSITE_STORAGE_PATH": str(tmp_path / "domains.json"),
    }


class TestCLIBasics:
    """Basic CLI tests."""

    def test_main_with_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "custom domains for hosted wedding sites" in result.output
        assert "domain" in result.output
        assert "serve" in result.output

    def test_version_option(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_serve_runs_server(self, env):
        runner = CliRunner()
        with patch("vowsite.server.run_server", new_callable=MagicMock) as mock_run:
            with patch("vowsite.cli.asyncio.run") as mock_asyncio_run:
                result = runner.invoke(main, ["serve", "--port", "9999"], env=env)

        assert result.exit_code == 0
        mock_asyncio_run.assert_called_once()
        cfg = mock_run.call_args.args[0]
        assert cfg.server_port == 9999


class TestDomainCommands:
    def test_add_status_remove(self, env):
        runner = CliRunner()

        result = runner.invoke(main, ["domain", "add", "wedding-1", "Example.com"], env=env)
        assert result.exit_code == 0, result.output
        assert "example.com" in result.output

        result = runner.invoke(main, ["domain", "status", "wedding-1", "--json"], env=env)
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["customDomain"]["domain"] == "example.com"
        assert data["customDomain"]["status"] == "pending"
        assert data["customDomain"]["verificationToken"] == generate_verification_token(
            "wedding-1", "example.com", SECRET
        )
        assert data["customDomainUrl"] is None

        result = runner.invoke(main, ["domain", "remove", "wedding-1", "--yes"], env=env)
        assert result.exit_code == 0
        assert "removed" in result.output

        result = runner.invoke(main, ["domain", "remove", "wedding-1", "--yes"], env=env)
        assert result.exit_code == 0
        assert "No custom domain" in result.output

    def test_add_invalid_domain(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["domain", "add", "wedding-1", "localhost"], env=env)

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_add_claimed_domain(self, env):
        runner = CliRunner()
        runner.invoke(main, ["domain", "add", "wedding-1", "example.com"], env=env)

        result = runner.invoke(main, ["domain", "add", "wedding-2", "example.com"], env=env)

        assert result.exit_code == 1
        assert "already claimed" in result.output

    def test_missing_secret(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["domain", "add", "wedding-1", "example.com"],
            env={"VOWSITE_STORAGE_PATH": str(tmp_path / "d.json"), "VOWSITE_VERIFICATION_SECRET": ""},
        )

        assert result.exit_code == 1
        assert "VOWSITE_VERIFICATION_SECRET" in result.output

    def test_verify_to_active(self, env, service, resolver):
        config, _ = asyncio.run(service.add_domain("wedding-1", "example.com"))
        resolver.set_cname("example.com", "platform-host.app")
        resolver.set_txt("_vowsite.example.com", config.verification_token)
        runner = CliRunner()

        with patch("vowsite.cli._build_service", return_value=service):
            result = runner.invoke(main, ["domain", "verify", "wedding-1"], env=env)
            assert result.exit_code == 0, result.output
            assert "ssl_pending" in result.output

            result = runner.invoke(main, ["domain", "confirm-ssl", "wedding-1"], env=env)
            assert result.exit_code == 0
            assert "https://example.com" in result.output

            result = runner.invoke(main, ["domain", "lookup", "example.com"], env=env)
            assert result.exit_code == 0
            assert "wedding-1" in result.output

    def test_verify_incomplete_exits_nonzero(self, env, service):
        asyncio.run(service.add_domain("wedding-1", "example.com"))
        runner = CliRunner()

        with patch("vowsite.cli._build_service", return_value=service):
            result = runner.invoke(main, ["domain", "verify", "wedding-1"], env=env)

        assert result.exit_code == 1
        assert "pending" in result.output

    def test_verify_not_attached(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["domain", "verify", "wedding-1"], env=env)

        assert result.exit_code == 1
        assert "No custom domain attached" in result.output

    def test_lookup_unknown(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["domain", "lookup", "nobody.com"], env=env)

        assert result.exit_code == 1

    def test_token(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["domain", "token", "wedding-1", "https://Example.com/"], env=env)

        assert result.exit_code == 0
        assert result.output.strip() == generate_verification_token(
            "wedding-1", "example.com", SECRET
        )


class TestConfigCommands:
    def test_show_json(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "show", "--json"], env=env)

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["dns"]["cname_target"] == "platform-host.app"
        assert data["verification"]["secret"] == "set"
        assert SECRET not in result.output

    def test_show_section(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "show", "--section", "dns", "--json"], env=env)

        assert result.exit_code == 0
        assert list(json.loads(result.output)) == ["dns"]

    def test_show_unknown_section(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "show", "--section", "nope"], env=env)

        assert result.exit_code == 1

    def test_validate_with_warnings(self, env):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "validate"], env=env)

        assert result.exit_code == 0
        assert "valid" in result.output

    def test_validate_without_secret(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "validate"], env={"VOWSITE_VERIFICATION_SECRET": ""})

        assert result.exit_code == 1
        assert "ERROR" in result.output

    def test_config_file(self, env, tmp_path):
        path = tmp_path / "vowsite.yaml"
        path.write_text("dns:\n  txt_prefix: _verify\n")
        runner = CliRunner()

        result = runner.invoke(main, ["--config", str(path), "config", "show", "--json"], env=env)

        assert result.exit_code == 0
        assert json.loads(result.output)["dns"]["txt_prefix"] == "_verify"
