"""Shared CLI state, DeGiro client wiring and output rendering."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from difflib import get_close_matches
import json
from typing import Any, Awaitable, Callable, TypeVar

import click
from rich.console import Console
from rich.table import Table
import typer
from typer.core import TyperGroup

from degiro_proxy.config import AppConfig
from degiro_proxy.degiro import DegiroClient
from degiro_proxy.exceptions import DegiroError, ErrorCode

T = TypeVar("T")

SESSION_HINT = "--session-id and --int-account are required (or DEGIRO_SESSION_ID / DEGIRO_INT_ACCOUNT)"

ERROR_HINTS: dict[ErrorCode, str] = {
    ErrorCode.INVALID_ARGS: "Run `degiro-proxy <command> --help` for valid usage.",
    ErrorCode.AUTH_REJECTED: "Check the username, password and one-time code.",
    ErrorCode.SESSION_EXPIRED: "Run `degiro-proxy login` again and export the new DEGIRO_SESSION_ID.",
    ErrorCode.UPSTREAM_UNREACHABLE: "Check connectivity, or run `degiro-proxy health`.",
    ErrorCode.TIMEOUT: "Retry, or raise degiro.request_timeout_seconds in config.json.",
}


@dataclass
class CLIState:
    config: AppConfig
    json_output: bool


class SuggestionGroup(TyperGroup):
    """Typer group that proposes close command names on a typo."""

    def resolve_command(
        self,
        ctx: click.Context,
        args: list[str],
    ) -> tuple[str | None, click.Command | None, list[str]]:
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as exc:
            known = list(self.list_commands(ctx))
            close = get_close_matches(args[0], known, n=3, cutoff=0.45) if args else []
            if close:
                exc.message = f"{exc.message}\n\nDid you mean: {', '.join(close)}"
            raise


def build_typer(help_text: str) -> typer.Typer:
    return typer.Typer(
        help=help_text,
        cls=SuggestionGroup,
        no_args_is_help=True,
        rich_markup_mode="markdown",
        context_settings={"help_option_names": ["-h", "--help"], "max_content_width": 110},
    )


def get_state(ctx: typer.Context) -> CLIState:
    if not isinstance(ctx.obj, CLIState):
        raise RuntimeError("CLI context not initialized")
    return ctx.obj


def make_client(cfg: AppConfig) -> DegiroClient:
    return DegiroClient(cfg.degiro)


def run_with_client(state: CLIState, call: Callable[[DegiroClient], Awaitable[T]]) -> T:
    """Open a client for one command, run ``call`` on it and close it again."""

    async def _run() -> T:
        async with make_client(state.config) as client:
            return await call(client)

    return asyncio.run(_run())


def session_options(session_id: str | None, int_account: int | None) -> tuple[str, int]:
    if not session_id or int_account is None:
        raise typer.BadParameter(SESSION_HINT)
    return session_id, int_account


def parse_csv_items(raw: str, *, field_name: str) -> list[str]:
    items = [part.strip() for part in raw.split(",")]
    items = [item for item in items if item]
    if not items:
        raise typer.BadParameter(f"{field_name} must contain at least one value")
    return items


def print_output(data: Any, *, json_output: bool, title: str | None = None) -> None:
    if json_output:
        print(json.dumps(data, default=str, separators=(",", ":")))
        return

    console = Console()
    if isinstance(data, list) and not data:
        console.print("(empty)")
    elif isinstance(data, list) and all(isinstance(row, dict) for row in data):
        console.print(_rows_table(data, title))
    elif isinstance(data, dict) and not any(isinstance(value, (dict, list)) for value in data.values()):
        console.print(_rows_table([{"field": key, "value": value} for key, value in data.items()], title))
    else:
        console.print_json(json.dumps(data, default=str, indent=2))


def _rows_table(rows: list[dict[str, Any]], title: str | None) -> Table:
    columns = list(dict.fromkeys(key for row in rows for key in row))
    table = Table(title=title)
    for column in columns:
        table.add_column(str(column))
    for row in rows:
        table.add_row(*(str(row.get(column, "")) for column in columns))
    return table


def handle_error(exc: DegiroError, *, json_output: bool) -> None:
    """Report ``exc`` on the terminal and exit with its mapped code."""

    hint = exc.suggestion or ERROR_HINTS.get(exc.code)
    if json_output:
        error = exc.to_error_payload()
        if hint:
            error.setdefault("suggestion", hint)
        print(json.dumps({"ok": False, "error": error}, default=str, separators=(",", ":")))
    else:
        stderr = Console(stderr=True)
        stderr.print(f"[red]{exc.code.value}[/red] {exc.message}")
        if hint:
            stderr.print(f"hint: {hint}")
    raise typer.Exit(code=exc.exit_code)
