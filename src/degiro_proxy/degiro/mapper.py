"""Map raw DeGiro rows onto the dashboard's holding and income records."""

from __future__ import annotations

from datetime import date
from typing import Any

from degiro_proxy.models import Holding, IncomeEvent

PRODUCT_TYPES: dict[int, str] = {
    1: "Stock",
    2: "Fund",
    3: "Bond",
    13: "Warrant",
    131: "ETF",
    535: "ETF",
}


def position_field(row: dict[str, Any], name: str) -> Any:
    """Read ``name`` from DeGiro's ``{"value": [{"name": ..., "value": ...}]}`` rows."""

    for item in _as_list(row.get("value")):
        if isinstance(item, dict) and item.get("name") == name:
            return item.get("value")
    return None


def product_positions(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [row for row in rows if position_field(row, "positionType") == "PRODUCT"]


def product_ids(rows: list[dict[str, Any]]) -> list[str]:
    out: list[str] = []
    for row in product_positions(rows):
        product_id = position_field(row, "id")
        if product_id not in (None, ""):
            out.append(str(product_id))
    return out


def product_type(product_type_id: Any) -> str:
    type_id = _as_int(product_type_id)
    if type_id is None:
        return "Stock"
    return PRODUCT_TYPES.get(type_id, "Stock")


def map_position(row: dict[str, Any], product_info: dict[str, Any] | None = None) -> Holding:
    raw_id = position_field(row, "id")
    product_id = str(raw_id) if raw_id not in (None, "") else None
    size = _as_float(position_field(row, "size")) or 0.0
    price = _as_float(position_field(row, "price")) or 0.0
    value = _as_float(position_field(row, "value"))
    if value is None:
        value = size * price
    break_even = _as_float(position_field(row, "breakEvenPrice"))
    if break_even is None:
        break_even = price

    info: dict[str, Any] = {}
    if product_id and product_info:
        candidate = product_info.get(product_id)
        if isinstance(candidate, dict):
            info = candidate

    current_price = _as_float(info.get("closePrice"))
    if current_price is None:
        current_price = price
    yield_percent = _as_float(info.get("dividendYield")) or 0.0
    annual_income = current_price * size * yield_percent / 100 if yield_percent > 0 else 0.0
    cost_basis = size * break_even
    pnl_pct = (current_price - break_even) / break_even * 100 if break_even > 0 else 0.0

    return Holding(
        id=product_id,
        ticker=str(info.get("symbol") or f"#{product_id}"),
        name=str(info.get("name") or "Unknown Product"),
        isin=str(info.get("isin") or ""),
        type=product_type(info.get("productTypeId")),
        quantity=size,
        price=current_price,
        value=value,
        currency=str(info.get("currency") or "EUR"),
        annual_income=annual_income,
        yield_percent=yield_percent,
        break_even_price=break_even,
        cost_basis=cost_basis,
        unrealized_pnl=value - cost_basis,
        unrealized_pnl_pct=pnl_pct,
    )


def map_dividend(row: dict[str, Any]) -> IncomeEvent:
    product = row.get("product") if isinstance(row.get("product"), dict) else {}
    amount = _as_float(row.get("netAmount"))
    if amount is None:
        amount = _as_float(row.get("grossAmount")) or 0.0
    ticker = product.get("symbol") or str(row.get("productId") or "UNKNOWN")
    return IncomeEvent(
        date=str(row.get("exDate") or row.get("paymentDate") or date.today().isoformat()),
        ticker=str(ticker),
        name=str(product.get("name") or "DeGiro Dividend"),
        amount=amount,
        currency=str(row.get("currency") or "EUR"),
    )


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
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
