"""Portfolio, income and sync models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PortfolioSnapshot(CamelModel):
    portfolio: list[dict[str, Any]] = Field(default_factory=list)
    cash_funds: list[dict[str, Any]] = Field(default_factory=list)


class DividendsResult(CamelModel):
    data: list[dict[str, Any]] = Field(default_factory=list)
    warning: str | None = None


class DateRange(CamelModel):
    from_date: str
    to_date: str


class Holding(CamelModel):
    id: str | None = None
    source: str = "degiro"
    broker: str = "DeGiro"
    ticker: str
    name: str
    isin: str = ""
    type: str = "Stock"
    quantity: float = 0.0
    price: float = 0.0
    value: float = 0.0
    currency: str = "EUR"
    annual_income: float = 0.0
    yield_percent: float = 0.0
    break_even_price: float = 0.0
    cost_basis: float = 0.0
    unrealized_pnl: float = Field(default=0.0, alias="unrealizedPnL")
    unrealized_pnl_pct: float = Field(default=0.0, alias="unrealizedPnLPct")


class IncomeEvent(CamelModel):
    date: str
    ticker: str
    name: str
    amount: float = 0.0
    currency: str = "EUR"
    type: str = "Dividend"
    source: str = "degiro"


class PortfolioSync(CamelModel):
    holdings: list[Holding] = Field(default_factory=list)
    dividends: list[IncomeEvent] = Field(default_factory=list)
    cash_funds: list[dict[str, Any]] = Field(default_factory=list)
    position_count: int = 0
    synced_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    warning: str | None = None


class HealthCheck(CamelModel):
    ok: bool
    status: int | None = None
    latency_ms: int | None = None
    error: str | None = None


class HealthReport(CamelModel):
    all_ok: bool
    checks: dict[str, HealthCheck] = Field(default_factory=dict)
    runtime: dict[str, Any] = Field(default_factory=dict)
    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
