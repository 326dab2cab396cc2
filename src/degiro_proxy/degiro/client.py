"""DeGiro REST client: login handshake, account lookup and session-scoped reads."""

from __future__ import annotations

import asyncio
from contextlib import suppress
import logging
import platform
import re
import time
from typing import Any, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from degiro_proxy import __version__
from degiro_proxy.config import DegiroConfig
from degiro_proxy.degiro.batching import PRODUCT_BATCH_SIZE, batch_fetch, gather_or_cancel
from degiro_proxy.degiro.dates import resolve_transaction_range
from degiro_proxy.degiro.mapper import map_dividend, map_position, product_ids, product_positions
from degiro_proxy.exceptions import DegiroError, ErrorCode
from degiro_proxy.models import (
    ClientProfile,
    DividendsResult,
    HealthCheck,
    HealthReport,
    LoginRejected,
    LoginRequiresTOTP,
    LoginResult,
    LoginStatus,
    LoginSuccess,
    PortfolioSnapshot,
    PortfolioSync,
    Session,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login/secure/login"
TOTP_PATH = "/login/secure/login/totp"
CLIENT_PATH = "/pa/secure/client"
PORTFOLIO_PATH = "/trading/secure/v5/update/{int_account};jsessionid={session_id}"
PRODUCTS_PATH = "/product_search/secure/v5/products/info"
DIVIDENDS_PATH = "/reporting/secure/v3/ca/"
TRANSACTIONS_PATH = "/reporting/secure/v4/transactions"

RELOGIN_SUGGESTION = "Log in to DeGiro again to obtain a fresh session."
NETWORK_SUGGESTION = "Check network connectivity and DeGiro availability."
DIVIDENDS_UNAVAILABLE_WARNING = "DeGiro dividend endpoint temporarily unavailable"
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
INVALID_TOTP_MESSAGE = "Invalid TOTP code or credentials"

_JSESSIONID_RE = re.compile(r";jsessionid=[^/?]*")


class DegiroClient:
    """Stateless DeGiro API client.

    Sessions are plain tokens passed on every call; the instance only owns the
    pooled HTTP client and the request pacing slot, so one client can serve
    many users concurrently.
    """

    def __init__(self, cfg: DegiroConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._cfg = cfg
        self._client = httpx.AsyncClient(
            base_url=cfg.base_url,
            timeout=cfg.request_timeout_seconds,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": cfg.user_agent,
            },
            transport=transport,
        )
        self._next_request_at = 0.0

    async def __aenter__(self) -> "DegiroClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Session client

    async def login(self, username: str, password: str) -> LoginResult:
        _require_text("username", username)
        _require_text("password", password)

        payload = await self._post_login(
            LOGIN_PATH,
            {
                "username": username,
                "password": password,
                "isPassCodeReset": False,
                "isRedirectToMobile": False,
                "queryParams": {},
            },
            operation="login",
        )
        status = _as_int(payload.get("status"))
        status_text = str(payload.get("statusText") or "")
        if status == LoginStatus.TOTP_NEEDED or "totp" in status_text.lower():
            logger.info("login outcome=requires_totp")
            return LoginRequiresTOTP()

        result = _login_outcome(payload, operation="login")
        logger.info("login outcome=%s status=%s", result.outcome, status)
        return result

    async def verify_totp(self, username: str, password: str, one_time_password: str) -> LoginResult:
        _require_text("username", username)
        _require_text("password", password)
        _require_text("oneTimePassword", one_time_password)

        payload = await self._post_login(
            TOTP_PATH,
            {
                "username": username,
                "password": password,
                "isPassCodeReset": False,
                "isRedirectToMobile": False,
                "oneTimePassword": one_time_password,
                "queryParams": {},
            },
            operation="totp",
        )
        status = _as_int(payload.get("status"))
        session_id = str(payload.get("sessionId") or "").strip()
        if status == LoginStatus.SUCCESS and session_id:
            logger.info("totp outcome=success")
            return LoginSuccess(session_id=session_id)

        logger.info("totp outcome=rejected status=%s", status)
        return LoginRejected(
            status=status if status is not None else LoginStatus.AUTH_FAILED,
            status_text=str(payload.get("statusText") or ("missing sessionId" if status == LoginStatus.SUCCESS else "")),
        )

    async def open_session(self, result: LoginSuccess, *, username: str) -> Session:
        """Resolve the account behind a fresh login.

        A session refused at this step means the login itself did not hold, so it
        is reported as a credential rejection rather than an expired session.
        """

        try:
            profile = await self.get_client_profile(result.session_id)
        except DegiroError as exc:
            if exc.code is not ErrorCode.SESSION_EXPIRED:
                raise
            raise DegiroError(
                ErrorCode.AUTH_REJECTED,
                INVALID_CREDENTIALS_MESSAGE,
                details={"operation": "client", "status_code": exc.upstream_status},
                suggestion="Re-enter your DeGiro credentials.",
            ) from exc
        return Session(
            session_id=result.session_id,
            int_account=profile.int_account,
            user_id=profile.user_id,
            username=profile.username or username,
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=profile.email,
        )

    # Account resolver

    async def get_client_profile(self, session_id: str) -> ClientProfile:
        _require_text("sessionId", session_id)
        payload = await self._request_json(
            "GET",
            CLIENT_PATH,
            params={"sessionId": session_id},
            operation="client",
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise DegiroError(
                ErrorCode.UPSTREAM_UNAVAILABLE,
                "Unexpected client response from DeGiro",
                details={"operation": "client"},
            )
        try:
            return ClientProfile.from_payload(data)
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
            raise DegiroError(
                ErrorCode.UPSTREAM_UNAVAILABLE,
                f"Unexpected client response from DeGiro: invalid {', '.join(fields)}",
                details={"operation": "client", "fields": fields},
            ) from exc

    # Data fetchers

    async def get_portfolio(self, session_id: str, int_account: int) -> PortfolioSnapshot:
        _require_session(session_id, int_account)
        path = PORTFOLIO_PATH.format(int_account=int_account, session_id=quote(session_id, safe=""))
        payload = await self._request_json(
            "GET",
            path,
            params={"portfolio": 0, "cashFunds": 0},
            operation="portfolio",
        )
        if not isinstance(payload, dict):
            payload = {}
        return PortfolioSnapshot(
            portfolio=_section_rows(payload, "portfolio"),
            cash_funds=_section_rows(payload, "cashFunds"),
        )

    async def get_products(
        self,
        session_id: str,
        int_account: int,
        ids: Sequence[str | int],
    ) -> dict[str, Any]:
        _require_session(session_id, int_account)
        wanted = [str(value).strip() for value in ids]
        if not wanted:
            raise DegiroError(ErrorCode.INVALID_ARGS, "productIds array is required")
        if any(not value for value in wanted):
            raise DegiroError(ErrorCode.INVALID_ARGS, "productIds must not contain empty ids")

        params = {"sessionId": session_id, "intAccount": str(int_account)}

        async def _fetch_batch(batch: list[str]) -> dict[str, Any]:
            payload = await self._request_json(
                "POST",
                PRODUCTS_PATH,
                params=params,
                json_body=batch,
                operation="products",
            )
            data = payload.get("data") if isinstance(payload, dict) else None
            return data if isinstance(data, dict) else {}

        return await batch_fetch(wanted, _fetch_batch, batch_size=PRODUCT_BATCH_SIZE)

    async def get_dividends(self, session_id: str, int_account: int) -> DividendsResult:
        _require_session(session_id, int_account)
        try:
            payload = await self._request_json(
                "GET",
                DIVIDENDS_PATH,
                params={"intAccount": str(int_account), "sessionId": session_id},
                operation="dividends",
            )
        except DegiroError as exc:
            if exc.code is not ErrorCode.SUPPLEMENTARY_UNAVAILABLE:
                raise
            logger.warning("dividends unavailable, returning empty result: %s", exc.message)
            return DividendsResult(data=[], warning=DIVIDENDS_UNAVAILABLE_WARNING)

        data = payload.get("data") if isinstance(payload, dict) else None
        return DividendsResult(data=[row for row in _as_list(data) if isinstance(row, dict)])

    async def get_transactions(
        self,
        session_id: str,
        int_account: int,
        from_date: str | None = None,
        to_date: str | None = None,
    ) -> list[dict[str, Any]]:
        _require_session(session_id, int_account)
        window = resolve_transaction_range(from_date, to_date)
        payload = await self._request_json(
            "GET",
            TRANSACTIONS_PATH,
            params={
                "fromDate": window.from_date,
                "toDate": window.to_date,
                "groupTransactionsByOrder": "false",
                "intAccount": str(int_account),
                "sessionId": session_id,
            },
            operation="transactions",
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        return [row for row in _as_list(data) if isinstance(row, dict)]

    async def sync_portfolio(self, session_id: str, int_account: int) -> PortfolioSync:
        snapshot, dividends = await gather_or_cancel(
            self.get_portfolio(session_id, int_account),
            self._dividends_for_sync(session_id, int_account),
        )

        products: dict[str, Any] = {}
        ids = product_ids(snapshot.portfolio)
        if ids:
            products = await self.get_products(session_id, int_account, ids)

        holdings = [map_position(row, products) for row in product_positions(snapshot.portfolio)]
        return PortfolioSync(
            holdings=holdings,
            dividends=[map_dividend(row) for row in dividends.data],
            cash_funds=snapshot.cash_funds,
            position_count=len(holdings),
            warning=dividends.warning,
        )

    async def health(self) -> HealthReport:
        started = time.monotonic()
        try:
            response = await self._client.request("HEAD", "/", timeout=self._cfg.health_timeout_seconds)
        except httpx.HTTPError as exc:
            homepage = HealthCheck(ok=False, error=str(exc) or type(exc).__name__)
        else:
            homepage = HealthCheck(
                ok=True,
                status=response.status_code,
                latency_ms=int((time.monotonic() - started) * 1000),
            )
        checks = {"homepage": homepage}
        return HealthReport(
            all_ok=all(check.ok for check in checks.values()),
            checks=checks,
            runtime={"python": platform.python_version(), "version": __version__, "baseUrl": self._cfg.base_url},
        )

    # Transport

    async def _dividends_for_sync(self, session_id: str, int_account: int) -> DividendsResult:
        try:
            return await self.get_dividends(session_id, int_account)
        except DegiroError as exc:
            logger.warning("dividends skipped during sync: %s", exc.message)
            return DividendsResult(data=[], warning=exc.message)

    async def _post_login(self, path: str, body: dict[str, Any], *, operation: str) -> dict[str, Any]:
        response = await self._send("POST", path, json_body=body, operation=operation)
        payload: dict[str, Any] = {}
        with suppress(ValueError):
            parsed = response.json()
            if isinstance(parsed, dict):
                payload = parsed

        if "status" in payload and response.status_code < 500:
            return payload
        if response.status_code in {401, 403}:
            return {"status": LoginStatus.AUTH_FAILED, "statusText": f"HTTP {response.status_code}"}
        if response.status_code >= 400:
            self._raise_http_error(response, operation=operation, path=path)
        if not payload:
            raise DegiroError(
                ErrorCode.UPSTREAM_UNAVAILABLE,
                f"{operation} failed: expected JSON response",
                details={"operation": operation, "status_code": response.status_code},
            )
        return payload

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        operation: str,
    ) -> httpx.Response:
        await self._throttle()
        try:
            return await self._client.request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as exc:
            logger.warning("%s timed out", operation)
            raise DegiroError(
                ErrorCode.TIMEOUT,
                f"{operation} timed out",
                details={"operation": operation, "error": str(exc)},
                suggestion="Retry and consider increasing degiro.request_timeout_seconds if needed.",
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("%s network error: %s", operation, type(exc).__name__)
            raise DegiroError(
                ErrorCode.UPSTREAM_UNREACHABLE,
                f"{operation} failed: {exc}",
                details={"operation": operation, "error_type": type(exc).__name__},
                suggestion=NETWORK_SUGGESTION,
            ) from exc

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        operation: str,
    ) -> Any:
        response = await self._send(method, path, params=params, json_body=json_body, operation=operation)
        if response.status_code >= 400:
            self._raise_http_error(response, operation=operation, path=path)
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise DegiroError(
                ErrorCode.UPSTREAM_UNAVAILABLE,
                f"{operation} failed: expected JSON response",
                details={"operation": operation, "status_code": response.status_code},
            ) from exc
        if isinstance(payload, dict) and "data" not in payload and _as_int(payload.get("status")) == LoginStatus.SESSION_EXPIRED:
            raise DegiroError(
                ErrorCode.SESSION_EXPIRED,
                f"{operation} failed: DeGiro session expired",
                details={"operation": operation, "status_code": response.status_code, "path": _redact(path)},
                suggestion=RELOGIN_SUGGESTION,
            )
        return payload

    def _raise_http_error(self, response: httpx.Response, *, operation: str, path: str) -> None:
        status_code = response.status_code
        raw = response.text.strip()
        body_status: int | None = None
        if response.content:
            with suppress(ValueError):
                parsed = response.json()
                if isinstance(parsed, dict):
                    raw = _extract_error_message(parsed) or raw
                    body_status = _as_int(parsed.get("status"))

        details: dict[str, Any] = {
            "operation": operation,
            "status_code": status_code,
            "path": _redact(path),
        }
        code = ErrorCode.UPSTREAM_UNAVAILABLE
        suggestion: str | None = None
        maintenance = status_code == 503 or "maintenance" in raw.lower()
        if status_code in {401, 403} or body_status == LoginStatus.SESSION_EXPIRED:
            code = ErrorCode.SESSION_EXPIRED
            suggestion = RELOGIN_SUGGESTION
        elif maintenance:
            details["maintenance"] = True
            if operation == "dividends":
                code = ErrorCode.SUPPLEMENTARY_UNAVAILABLE

        logger.warning("%s failed with HTTP %s", operation, status_code)
        raise DegiroError(
            code,
            f"{operation} failed: HTTP {status_code}: {raw or response.reason_phrase}",
            details=details,
            suggestion=suggestion,
        )

    async def _throttle(self) -> None:
        gap = self._cfg.min_request_gap_seconds
        if gap <= 0:
            return
        # Reserve the next send slot before awaiting so concurrent callers queue up without a lock.
        now = time.monotonic()
        start = max(now, self._next_request_at)
        self._next_request_at = start + gap
        if start > now:
            await asyncio.sleep(start - now)


def rejection_error(result: LoginRejected, *, totp: bool = False) -> DegiroError:
    if totp:
        message = INVALID_TOTP_MESSAGE
    elif result.auth_failed:
        message = INVALID_CREDENTIALS_MESSAGE
    else:
        message = f"DeGiro rejected login (status {result.status}: {result.status_text})"
    return DegiroError(
        ErrorCode.AUTH_REJECTED,
        message,
        details={"code": result.status, "status_text": result.status_text},
        suggestion="Re-enter your DeGiro credentials.",
    )


def _login_outcome(payload: dict[str, Any], *, operation: str) -> LoginResult:
    status = _as_int(payload.get("status"))
    if status is None:
        raise DegiroError(
            ErrorCode.UPSTREAM_UNAVAILABLE,
            f"{operation} failed: response carried no status",
            details={"operation": operation},
        )
    if status != LoginStatus.SUCCESS:
        return LoginRejected(status=status, status_text=str(payload.get("statusText") or ""))
    session_id = str(payload.get("sessionId") or "").strip()
    if not session_id:
        raise DegiroError(
            ErrorCode.UPSTREAM_UNAVAILABLE,
            f"{operation} failed: missing sessionId in successful response",
            details={"operation": operation},
        )
    return LoginSuccess(session_id=session_id)


def _require_text(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise DegiroError(ErrorCode.INVALID_ARGS, f"{name} is required")


def _require_session(session_id: str, int_account: int) -> None:
    _require_text("sessionId", session_id)
    if isinstance(int_account, bool) or not isinstance(int_account, int):
        raise DegiroError(ErrorCode.INVALID_ARGS, "intAccount must be an integer")


def _section_rows(payload: dict[str, Any], name: str) -> list[dict[str, Any]]:
    section = payload.get(name)
    if not isinstance(section, dict):
        return []
    return [row for row in _as_list(section.get("value")) if isinstance(row, dict)]


def _redact(path: str) -> str:
    return _JSESSIONID_RE.sub("", path)


def _extract_error_message(payload: dict[str, Any]) -> str | None:
    for key in ("message", "statusText", "error", "errors"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, list) and value:
            first = value[0]
            if isinstance(first, dict):
                text = first.get("text") or first.get("message")
                if isinstance(text, str) and text.strip():
                    return text.strip()
            elif isinstance(first, str) and first.strip():
                return first.strip()
    return None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]
