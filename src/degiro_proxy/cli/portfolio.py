"""Portfolio, product, dividend and transaction commands."""

from __future__ import annotations

from typing import Any

import typer

from degiro_proxy.cli._common import (
    build_typer,
    get_state,
    handle_error,
    parse_csv_items,
    print_output,
    run_with_client,
    session_options,
)
from degiro_proxy.degiro import DegiroClient
from degiro_proxy.exceptions import DegiroError

app = build_typer("Portfolio and account data commands.")


@app.command("portfolio", help="Show raw positions and cash funds.")
def portfolio(
    ctx: typer.Context,
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
    int_account: int | None = typer.Option(None, "--int-account", envvar="DEGIRO_INT_ACCOUNT", help="DeGiro intAccount."),
) -> None:
    state = get_state(ctx)
    sid, account = session_options(session_id, int_account)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        snapshot = await client.get_portfolio(sid, account)
        return snapshot.model_dump(by_alias=True)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="portfolio")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("products", help="Show product metadata for comma-separated product ids (batched by 50).")
def products(
    ctx: typer.Context,
    ids: str = typer.Argument(..., help="Comma-separated product ids, e.g. 331868,1157690."),
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
    int_account: int | None = typer.Option(None, "--int-account", envvar="DEGIRO_INT_ACCOUNT", help="DeGiro intAccount."),
) -> None:
    state = get_state(ctx)
    sid, account = session_options(session_id, int_account)
    product_ids = parse_csv_items(ids, field_name="ids")

    async def _call(client: DegiroClient) -> dict[str, Any]:
        return await client.get_products(sid, account, product_ids)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="products")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("dividends", help="Show dividend history; empty with a warning during maintenance.")
def dividends(
    ctx: typer.Context,
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
    int_account: int | None = typer.Option(None, "--int-account", envvar="DEGIRO_INT_ACCOUNT", help="DeGiro intAccount."),
) -> None:
    state = get_state(ctx)
    sid, account = session_options(session_id, int_account)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        result = await client.get_dividends(sid, account)
        return result.model_dump(by_alias=True, exclude_none=True)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="dividends")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("transactions", help="Show transactions between two DD/MM/YYYY dates (default: last year).")
def transactions(
    ctx: typer.Context,
    from_date: str | None = typer.Option(None, "--from", help="Start date, DD/MM/YYYY."),
    to_date: str | None = typer.Option(None, "--to", help="End date, DD/MM/YYYY."),
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
    int_account: int | None = typer.Option(None, "--int-account", envvar="DEGIRO_INT_ACCOUNT", help="DeGiro intAccount."),
) -> None:
    state = get_state(ctx)
    sid, account = session_options(session_id, int_account)

    async def _call(client: DegiroClient) -> list[dict[str, Any]]:
        return await client.get_transactions(sid, account, from_date, to_date)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="transactions")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("sync", help="Fetch portfolio, product details and dividends as mapped holdings.")
def sync(
    ctx: typer.Context,
    session_id: str | None = typer.Option(None, "--session-id", envvar="DEGIRO_SESSION_ID", help="DeGiro session id."),
    int_account: int | None = typer.Option(None, "--int-account", envvar="DEGIRO_INT_ACCOUNT", help="DeGiro intAccount."),
) -> None:
    state = get_state(ctx)
    sid, account = session_options(session_id, int_account)

    async def _call(client: DegiroClient) -> dict[str, Any]:
        result = await client.sync_portfolio(sid, account)
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    try:
        print_output(run_with_client(state, _call), json_output=state.json_output, title="sync")
    except DegiroError as exc:
        handle_error(exc, json_output=state.json_output)
