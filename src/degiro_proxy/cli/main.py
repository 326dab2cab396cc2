"""degiro-proxy entry point: serve, health and the DeGiro command groups."""

from __future__ import annotations

from typing import Any

import typer

from degiro_proxy.cli import portfolio, session
from degiro_proxy.cli._common import CLIState, build_typer, get_state, handle_error, print_output, run_with_client
from degiro_proxy.config import load_config
from degiro_proxy.degiro import DegiroClient
from degiro_proxy.exceptions import DegiroError
from degiro_proxy.server import run_server

app = build_typer(
    """DeGiro proxy: serve the dashboard API or query DeGiro from the terminal.

    Examples:
      degiro-proxy serve --port 3001
      degiro-proxy login alice
      degiro-proxy products 331868,1157690 --session-id ABC --int-account 123
    """
)

app.add_typer(session.app)
app.add_typer(portfolio.app)


@app.command("serve", help="Run the HTTP proxy for the dashboard frontend.")
def serve(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from config)."),
) -> None:
    state = get_state(ctx)
    run_server(state.config, host=host, port=port)


@app.command("health", help="Check whether DeGiro is reachable from this machine.")
def health(ctx: typer.Context) -> None:
    state = get_state(ctx)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        report = await client.health()
        return report.model_dump(mode="json", by_alias=True, exclude_none=True)

    try:
        report = run_with_client(state, _call)
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)
        return
    print_output(report, json_output=state.json_output, title="health")
    if not report.get("allOk"):
        raise typer.Exit(code=5)


@app.callback()
def root(
    ctx: typer.Context,
    table: bool = typer.Option(False, "--table", help="Render human-readable tables instead of JSON."),
) -> None:
    cfg = load_config()
    ctx.obj = CLIState(config=cfg, json_output=not table)


def run() -> None:
    app()
