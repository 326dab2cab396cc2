"""Shared fakes for exercising DegiroClient against httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx

from degiro_proxy.config import DegiroConfig
from degiro_proxy.degiro import DegiroClient

Handler = Callable[[httpx.Request], httpx.Response]

SESSION_ID = "SESSION-1"
INT_ACCOUNT = 1234567

CLIENT_PAYLOAD: dict[str, Any] = {
    "data": {
        "id": 42,
        "intAccount": INT_ACCOUNT,
        "username": "alice",
        "email": "alice@example.com",
        "firstContact": {"firstName": "Alice", "lastName": "Jansen"},
    }
}


def make_client(handler: Handler, **overrides: Any) -> DegiroClient:
    cfg = DegiroConfig.model_validate({"min_request_gap_seconds": 0, **overrides})
    return DegiroClient(cfg, transport=httpx.MockTransport(handler))


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8"))


def portfolio_row(product_id: str, *, position_type: str = "PRODUCT", **fields: Any) -> dict[str, Any]:
    values = {"id": product_id, "positionType": position_type, **fields}
    return {
        "id": product_id,
        "positionType": position_type,
        "value": [{"name": name, "value": value} for name, value in values.items()],
    }


def portfolio_payload(rows: list[dict[str, Any]], cash: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {"portfolio": {"value": rows}, "cashFunds": {"value": cash or []}}
