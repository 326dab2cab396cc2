"""Login, TOTP and account commands."""

from __future__ import annotations

from typing import Any

import typer

from degiro_proxy.cli._common import build_typer, get_state, handle_error, print_output, run_with_client
from degiro_proxy.degiro import DegiroClient, rejection_error
from degiro_proxy.exceptions import DegiroError, ErrorCode
from degiro_proxy.models import LoginRejected, LoginRequiresTOTP, LoginResult

app = build_typer("Session and account commands.")


async def _open_session(client: DegiroClient, result: LoginResult, *, username: str, totp: bool) -> dict[str, Any]:
    if isinstance(result, LoginRejected):
        raise rejection_error(result, totp=totp)
    if isinstance(result, LoginRequiresTOTP):
        if totp:
            raise DegiroError(ErrorCode.AUTH_REJECTED, "Invalid TOTP code or credentials")
        return {"requiresTOTP": True}
    session = await client.open_session(result, username=username)
    return session.model_dump(by_alias=True)


@app.command("login", help="Log in with username/password; prints the session or a TOTP demand.")
def login(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="DeGiro username."),
    password: str = typer.Option(
        ...,
        "--password",
        envvar="DEGIRO_PASSWORD",
        prompt=True,
        hide_input=True,
        help="DeGiro password (prompted when omitted).",
    ),
) -> None:
    state = get_state(ctx)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        result = await client.login(username, password)
        return await _open_session(client, result, username=username, totp=False)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="session")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("totp", help="Complete a login that requires a one-time password.")
def totp(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="DeGiro username."),
    code: str = typer.Argument(..., help="Current one-time password from the authenticator app."),
    password: str = typer.Option(
        ...,
        "--password",
        envvar="DEGIRO_PASSWORD",
        prompt=True,
        hide_input=True,
        help="DeGiro password (prompted when omitted).",
    ),
) -> None:
    state = get_state(ctx)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        result = await client.verify_totp(username, password, code)
        return await _open_session(client, result, username=username, totp=True)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="session")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("profile", help="Show the client profile linked to a session.")
def profile(
    ctx: typer.Context,
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
) -> None:
    state = get_state(ctx)
    if not session_id:
        raise typer.BadParameter("--session-id is required (or DEGIRO_SESSION_ID)")

    async def _call(client: DegiroClient) -> dict[str, Any]:
        result = await client.get_client_profile(session_id)
        return result.model_dump()

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="profile")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)
