from __future__ import annotations

import json
import re
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from degiro_proxy.cli import _common as cli_common
from degiro_proxy.cli import main as cli_main
from degiro_proxy.cli.main import app
from degiro_proxy.config import AppConfig
from support import CLIENT_PAYLOAD, INT_ACCOUNT, SESSION_ID, Handler, make_client, portfolio_payload

_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")

SESSION_ENV = {"DEGIRO_SESSION_ID": SESSION_ID, "DEGIRO_INT_ACCOUNT": str(INT_ACCOUNT)}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch, app_config: AppConfig) -> dict[str, Any]:
    """Route CLI traffic through a swappable MockTransport handler."""

    state: dict[str, Any] = {"handler": None, "requests": []}

    def _handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        handler: Handler = state["handler"]
        return handler(request)

    monkeypatch.setattr(cli_main, "load_config", lambda: app_config)
    monkeypatch.setattr(cli_common, "make_client", lambda _cfg: make_client(_handler))
    return state


def _json(output: str) -> Any:
    return json.loads(output.strip().splitlines()[-1])


def test_help_lists_commands(runner: CliRunner, upstream: dict[str, Any]) -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    text = _ANSI_ESCAPE_RE.sub("", result.output)
    for command in ("serve", "health", "login", "totp", "profile", "portfolio", "products", "dividends", "transactions", "sync"):
        assert command in text


def test_login_prints_session(runner: CliRunner, upstream: dict[str, Any]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/secure/login":
            return httpx.Response(200, json={"status": 0, "sessionId": SESSION_ID})
        return httpx.Response(200, json=CLIENT_PAYLOAD)

    upstream["handler"] = handler
    result = runner.invoke(app, ["login", "alice", "--password", "s3cret"])

    assert result.exit_code == 0, result.output
    payload = _json(result.stdout)
    assert payload["sessionId"] == SESSION_ID
    assert payload["intAccount"] == INT_ACCOUNT


def test_login_reports_totp_demand(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(200, json={"status": 6, "statusText": "totpNeeded"})

    result = runner.invoke(app, ["login", "alice", "--password", "s3cret"])

    assert result.exit_code == 0
    assert _json(result.stdout) == {"requiresTOTP": True}


def test_login_rejection_exit_code(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(400, json={"status": 9, "statusText": "badCredentials"})

    result = runner.invoke(app, ["login", "alice", "--password", "wrong"])

    assert result.exit_code == 3
    payload = _json(result.stdout)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "AUTH_REJECTED"
    assert payload["error"]["message"] == "Invalid username or password"


def test_totp_success(runner: CliRunner, upstream: dict[str, Any]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/secure/login/totp":
            return httpx.Response(200, json={"status": 0, "sessionId": SESSION_ID})
        return httpx.Response(200, json=CLIENT_PAYLOAD)

    upstream["handler"] = handler
    result = runner.invoke(app, ["totp", "alice", "123456"], env={"DEGIRO_PASSWORD": "s3cret"})

    assert result.exit_code == 0, result.output
    assert _json(result.stdout)["sessionId"] == SESSION_ID


def test_profile_uses_session_env(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(200, json=CLIENT_PAYLOAD)

    result = runner.invoke(app, ["profile"], env=SESSION_ENV)

    assert result.exit_code == 0, result.output
    assert _json(result.stdout)["int_account"] == INT_ACCOUNT
    assert upstream["requests"][0].url.params["sessionId"] == SESSION_ID


def test_portfolio_requires_session_options(runner: CliRunner, upstream: dict[str, Any]) -> None:
    result = runner.invoke(app, ["portfolio"])

    assert result.exit_code == 2
    assert upstream["requests"] == []


def test_portfolio_prints_sections(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(200, json=portfolio_payload([]))

    result = runner.invoke(app, ["portfolio"], env=SESSION_ENV)

    assert result.exit_code == 0, result.output
    assert _json(result.stdout) == {"portfolio": [], "cashFunds": []}


def test_products_split_csv_ids(runner: CliRunner, upstream: dict[str, Any]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        ids = json.loads(request.content)
        return httpx.Response(200, json={"data": {value: {"id": value} for value in ids}})

    upstream["handler"] = handler
    result = runner.invoke(app, ["products", "1001, 1002"], env=SESSION_ENV)

    assert result.exit_code == 0, result.output
    assert _json(result.stdout) == {"1001": {"id": "1001"}, "1002": {"id": "1002"}}


def test_dividends_session_expired_exit_code(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(401, text="Unauthorized")

    result = runner.invoke(app, ["dividends", "--session-id", SESSION_ID, "--int-account", str(INT_ACCOUNT)])

    assert result.exit_code == 4
    assert _json(result.stdout)["error"]["code"] == "SESSION_EXPIRED"


def test_transactions_forward_date_options(runner: CliRunner, upstream: dict[str, Any]) -> None:
    upstream["handler"] = lambda request: httpx.Response(200, json={"data": [{"id": 1}]})

    result = runner.invoke(app, ["transactions", "--from", "01/01/2024", "--to", "31/01/2024"], env=SESSION_ENV)

    assert result.exit_code == 0, result.output
    assert _json(result.stdout) == [{"id": 1}]
    params = upstream["requests"][0].url.params
    assert params["fromDate"] == "01/01/2024"
    assert params["toDate"] == "31/01/2024"


def test_health_failure_exit_code(runner: CliRunner, upstream: dict[str, Any]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    upstream["handler"] = handler
    result = runner.invoke(app, ["health"])

    assert result.exit_code == 5
    assert _json(result.stdout)["allOk"] is False


def test_serve_passes_overrides(runner: CliRunner, upstream: dict[str, Any], monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    def fake_run_server(cfg: AppConfig, *, host: str | None = None, port: int | None = None) -> None:
        calls.append({"cfg": cfg, "host": host, "port": port})

    monkeypatch.setattr(cli_main, "run_server", fake_run_server)
    result = runner.invoke(app, ["serve", "--port", "4010"])

    assert result.exit_code == 0, result.output
    assert calls[0]["port"] == 4010
    assert calls[0]["host"] is None
