"""FastAPI application wiring: error mapping, CORS and lifecycle."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from degiro_proxy import __version__
from degiro_proxy.config import AppConfig, configure_logging, load_config
from degiro_proxy.degiro import DegiroClient
from degiro_proxy.exceptions import DegiroError, ErrorCode
from degiro_proxy.server.routes import health_router, router

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please reconnect."

HTTP_ERROR_MESSAGES: dict[int, str] = {404: "Not found", 405: "Method not allowed"}

OPERATION_SUMMARIES: dict[str, str] = {
    "login": "DeGiro login failed",
    "totp": "TOTP verification failed",
    "client": "Failed to fetch account details from DeGiro",
    "portfolio": "Failed to fetch portfolio from DeGiro",
    "products": "Failed to fetch product details from DeGiro",
    "dividends": "Failed to fetch dividend history from DeGiro",
    "transactions": "Failed to fetch transactions from DeGiro",
}


def create_app(cfg: AppConfig | None = None, *, client: DegiroClient | None = None) -> FastAPI:
    cfg = cfg or load_config()
    owns_client = client is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("degiro-proxy starting, upstream=%s", cfg.degiro.base_url)
        try:
            yield
        finally:
            if owns_client:
                await app.state.degiro_client.aclose()
            logger.info("degiro-proxy stopped")

    app = FastAPI(title="degiro-proxy", version=__version__, lifespan=lifespan)
    app.state.config = cfg
    app.state.degiro_client = client or DegiroClient(cfg.degiro)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(health_router)
    app.include_router(router)

    @app.middleware("http")
    async def bare_options(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # CORS preflights carry Access-Control-Request-Method and are answered by CORSMiddleware.
        if request.method == "OPTIONS" and "access-control-request-method" not in request.headers:
            return Response(status_code=200)
        return await call_next(request)

    app.add_exception_handler(DegiroError, _degiro_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    return app


def error_body(exc: DegiroError) -> dict[str, Any]:
    """Frontend-facing body for a classified error."""

    if exc.code is ErrorCode.INVALID_ARGS:
        return {"error": exc.message}
    if exc.code is ErrorCode.AUTH_REJECTED:
        body: dict[str, Any] = {"error": exc.message}
        if "code" in exc.details:
            body["code"] = exc.details["code"]
        return body
    if exc.code is ErrorCode.SESSION_EXPIRED:
        return {"error": SESSION_EXPIRED_MESSAGE}
    if exc.is_transport_error:
        return {"error": f"Cannot reach DeGiro: {exc.message}", "message": exc.message}
    operation = str(exc.details.get("operation") or "")
    return {
        "error": OPERATION_SUMMARIES.get(operation, "DeGiro request failed"),
        "message": exc.message,
    }


async def _degiro_error_handler(request: Request, exc: DegiroError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.code.value, exc.message)
    return JSONResponse(error_body(exc), status_code=exc.http_status)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = HTTP_ERROR_MESSAGES.get(exc.status_code, str(exc.detail))
    return JSONResponse({"error": message}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled proxy error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def run_server(cfg: AppConfig | None = None, *, host: str | None = None, port: int | None = None) -> None:
    cfg = cfg or load_config()
    configure_logging(cfg)
    uvicorn.run(
        create_app(cfg),
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        log_level=cfg.logging.level.lower(),
    )
