"""REST routes mirroring the dashboard's /api/degiro/* contract."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from degiro_proxy.config import AppConfig
from degiro_proxy.degiro import DegiroClient, rejection_error
from degiro_proxy.exceptions import DegiroError, ErrorCode
from degiro_proxy.models import LoginRejected, LoginRequiresTOTP
from degiro_proxy.server.dependencies import get_client, get_config

router = APIRouter(prefix="/api/degiro")
health_router = APIRouter()


@health_router.get("/api/health")
async def proxy_health(cfg: AppConfig = Depends(get_config)) -> dict[str, Any]:
    """Liveness of the proxy itself; does not touch DeGiro."""
    return {"status": "ok", "server": "degiro-proxy", "port": cfg.server.port}


@router.post("/login")
async def login(request: Request, client: DegiroClient = Depends(get_client)) -> dict[str, Any]:
    body = await _json_body(request)
    username = _text(body.get("username"))
    password = _text(body.get("password"))
    if not username or not password:
        raise DegiroError(ErrorCode.INVALID_ARGS, "username and password are required")

    result = await client.login(username, password)
    if isinstance(result, LoginRequiresTOTP):
        return {"requiresTOTP": True}
    if isinstance(result, LoginRejected):
        raise rejection_error(result)

    session = await client.open_session(result, username=username)
    return session.model_dump(by_alias=True)


@router.post("/totp")
async def totp(request: Request, client: DegiroClient = Depends(get_client)) -> dict[str, Any]:
    body = await _json_body(request)
    username = _text(body.get("username"))
    password = _text(body.get("password"))
    one_time_password = _text(body.get("oneTimePassword"))
    if not username or not password or not one_time_password:
        raise DegiroError(ErrorCode.INVALID_ARGS, "username, password, and oneTimePassword are required")

    result = await client.verify_totp(username, password, one_time_password)
    if isinstance(result, LoginRejected):
        raise rejection_error(result, totp=True)
    if isinstance(result, LoginRequiresTOTP):
        raise DegiroError(ErrorCode.AUTH_REJECTED, "Invalid TOTP code or credentials")

    session = await client.open_session(result, username=username)
    return session.model_dump(by_alias=True)


@router.get("/portfolio")
async def portfolio(
    session_id: str | None = Query(default=None, alias="sessionId"),
    int_account: str | None = Query(default=None, alias="intAccount"),
    client: DegiroClient = Depends(get_client),
) -> dict[str, Any]:
    sid, account = _session_params(session_id, int_account)
    snapshot = await client.get_portfolio(sid, account)
    return snapshot.model_dump(by_alias=True)


@router.post("/products")
async def products(
    request: Request,
    session_id: str | None = Query(default=None, alias="sessionId"),
    int_account: str | None = Query(default=None, alias="intAccount"),
    client: DegiroClient = Depends(get_client),
) -> dict[str, Any]:
    sid, account = _session_params(session_id, int_account)
    body = await _json_body(request)
    product_ids = body.get("productIds")
    if not isinstance(product_ids, list) or not product_ids:
        raise DegiroError(ErrorCode.INVALID_ARGS, "productIds array is required")
    if any(isinstance(value, (bool, dict, list)) or value is None for value in product_ids):
        raise DegiroError(ErrorCode.INVALID_ARGS, "productIds must contain only strings or integers")
    return await client.get_products(sid, account, product_ids)


@router.get("/dividends")
async def dividends(
    session_id: str | None = Query(default=None, alias="sessionId"),
    int_account: str | None = Query(default=None, alias="intAccount"),
    client: DegiroClient = Depends(get_client),
) -> dict[str, Any]:
    sid, account = _session_params(session_id, int_account)
    result = await client.get_dividends(sid, account)
    return result.model_dump(by_alias=True, exclude_none=True)


@router.get("/transactions")
async def transactions(
    session_id: str | None = Query(default=None, alias="sessionId"),
    int_account: str | None = Query(default=None, alias="intAccount"),
    from_date: str | None = Query(default=None, alias="fromDate"),
    to_date: str | None = Query(default=None, alias="toDate"),
    client: DegiroClient = Depends(get_client),
) -> dict[str, Any]:
    sid, account = _session_params(session_id, int_account)
    data = await client.get_transactions(sid, account, from_date, to_date)
    return {"data": data}


@router.get("/sync")
async def sync(
    session_id: str | None = Query(default=None, alias="sessionId"),
    int_account: str | None = Query(default=None, alias="intAccount"),
    client: DegiroClient = Depends(get_client),
) -> dict[str, Any]:
    sid, account = _session_params(session_id, int_account)
    result = await client.sync_portfolio(sid, account)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/health")
async def degiro_health(client: DegiroClient = Depends(get_client)) -> Any:
    report = await client.health()
    return JSONResponse(
        report.model_dump(mode="json", by_alias=True, exclude_none=True),
        status_code=200 if report.all_ok else 502,
    )


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise DegiroError(ErrorCode.INVALID_ARGS, "Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise DegiroError(ErrorCode.INVALID_ARGS, "Invalid JSON body")
    return body


def _text(value: Any) -> str:
    return value if isinstance(value, str) and value.strip() else ""


def _session_params(session_id: str | None, int_account: str | None) -> tuple[str, int]:
    sid = _text(session_id).strip()
    raw_account = _text(int_account).strip()
    if not sid or not raw_account:
        raise DegiroError(ErrorCode.INVALID_ARGS, "sessionId and intAccount are required")
    try:
        account = int(raw_account)
    except ValueError as exc:
        raise DegiroError(
            ErrorCode.INVALID_ARGS,
            "intAccount must be an integer",
            details={"intAccount": raw_account},
        ) from exc
    return sid, account
