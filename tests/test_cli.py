"""Tests for CLI interface"""

from __future__ import annotations

import json
import logging

import click
import httpx
import pytest
from click.testing import CliRunner

from farmconsole import cli as cli_module
from farmconsole.cli import _die, _parse_params, cli, setup_logging
from farmconsole.domain.config.client import ClientConfig
from farmconsole.infrastructure.config.config_manager import ConfigManager
from farmconsole.infrastructure.http_client import ApiClient
from farmconsole.infrastructure.token_store import InMemoryTokenStore


class TestSetupLogging:
    """Tests for setup_logging function"""

    def test_setup_logging_info_level(self):
        setup_logging(verbose=False)
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG


class TestDie:
    """Tests for _die function"""

    def test_die_without_exception(self):
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=False)

    def test_die_with_exception_verbose(self):
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=True, exc=ValueError("boom"))


class TestParseParams:
    def test_key_value_pairs(self):
        assert _parse_params(("page=2", "search=ada=lovelace")) == {"page": "2", "search": "ada=lovelace"}

    def test_missing_separator(self):
        with pytest.raises(click.BadParameter):
            _parse_params(("page",))


@pytest.fixture
def fake_backend(tmp_path, monkeypatch):
    """Point the CLI at an in-memory token store and a scripted backend"""
    monkeypatch.chdir(tmp_path)
    for name in ConfigManager.ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)

    state = {"store": InMemoryTokenStore(), "requests": [], "responses": {}}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        status, body = state["responses"].get((request.method, request.url.path), (404, {"message": "Not found"}))
        return httpx.Response(status, json=body)

    def fake_create_client(config_manager):
        config = ClientConfig(base_url="http://api.test", max_retries=0)
        client = ApiClient(config, state["store"], transport=httpx.MockTransport(handler))
        return client, state["store"]

    monkeypatch.setattr(cli_module, "_create_client", fake_create_client)
    return state


class TestRequestCommand:
    """Tests for request command"""

    def test_get_prints_json(self, fake_backend):
        fake_backend["responses"][("GET", "/admins/farmers")] = (200, {"farmers": [{"id": "f-1"}]})

        result = CliRunner().invoke(cli, ["request", "get", "/admins/farmers", "--param", "page=1"], obj={})

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"farmers": [{"id": "f-1"}]}
        assert fake_backend["requests"][0].url.params["page"] == "1"

    def test_post_sends_json_body(self, fake_backend):
        fake_backend["responses"][("POST", "/admins/loans")] = (201, {"id": "l-1"})

        result = CliRunner().invoke(
            cli, ["request", "POST", "admins/loans", "--data", '{"amount": 5000}'], obj={}
        )

        assert result.exit_code == 0, result.output
        assert json.loads(fake_backend["requests"][0].content) == {"amount": 5000}

    def test_api_error_exits_with_message(self, fake_backend):
        fake_backend["responses"][("GET", "/admins/farmers/9")] = (404, {"message": "Farmer not found"})

        result = CliRunner().invoke(cli, ["request", "GET", "/admins/farmers/9"], obj={})

        assert result.exit_code == 1
        assert "Farmer not found" in result.output

    def test_invalid_json_body(self, fake_backend):
        result = CliRunner().invoke(cli, ["request", "POST", "/admins/loans", "--data", "{oops"], obj={})

        assert result.exit_code == 2
        assert "Invalid JSON" in result.output
        assert fake_backend["requests"] == []


class TestSessionCommands:
    """Tests for login, logout and whoami"""

    def test_admin_login_stores_token(self, fake_backend):
        fake_backend["responses"][("POST", "/admins/login")] = (200, {"accessToken": "jwt-1"})

        result = CliRunner().invoke(
            cli, ["login", "--email", "ops@farm.test", "--password", "secret"], obj={}
        )

        assert result.exit_code == 0, result.output
        assert "Logged in." in result.output
        assert fake_backend["store"].get_value() == "jwt-1"

    def test_staff_login_prompts_for_pin(self, fake_backend):
        fake_backend["responses"][("POST", "/staff/login")] = (
            200,
            {"success": True, "data": {"accessToken": "staff-jwt", "staff": {"id": "s-1"}}},
        )

        result = CliRunner().invoke(
            cli, ["--portal", "staff", "login", "--phone", "0801"], input="1234\n", obj={}
        )

        assert result.exit_code == 0, result.output
        assert fake_backend["store"].get_value() == "staff-jwt"
        assert json.loads(fake_backend["requests"][0].content) == {"phone": "0801", "pin": "1234"}

    def test_logout_clears_token(self, fake_backend):
        fake_backend["store"].set("jwt-1")

        result = CliRunner().invoke(cli, ["logout"], obj={})

        assert result.exit_code == 0
        assert fake_backend["store"].get() is None

    def test_whoami_requires_login(self, fake_backend):
        result = CliRunner().invoke(cli, ["whoami"], obj={})

        assert result.exit_code == 1
        assert "Not logged in" in result.output

    def test_whoami_with_expired_session(self, fake_backend):
        fake_backend["store"].set("stale")
        fake_backend["responses"][("POST", "/admins/introspect")] = (401, {})

        result = CliRunner().invoke(cli, ["whoami"], obj={})

        assert result.exit_code == 1
        assert "Invalid or expired token" in result.output
        assert fake_backend["store"].get() is None


class TestUploadCommand:
    def test_upload_file(self, fake_backend, tmp_path):
        fake_backend["responses"][("POST", "/staff/upload/nin")] = (200, {"url": "https://cdn.test/nin.jpg"})
        document = tmp_path / "nin.jpg"
        document.write_bytes(b"\xff\xd8\xff")

        result = CliRunner().invoke(cli, ["upload", "/staff/upload/nin", str(document)], obj={})

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"url": "https://cdn.test/nin.jpg"}
        assert b"nin.jpg" in fake_backend["requests"][0].content


class TestConfigErrors:
    def test_invalid_config_file(self, fake_backend, tmp_path):
        config_file = tmp_path / "bad.yml"
        config_file.write_text("client:\n  max_retries: -1\n", encoding="utf-8")

        result = CliRunner().invoke(cli, ["--config", str(config_file), "logout"], obj={})

        assert result.exit_code == 1
        assert "max_retries" in result.output
