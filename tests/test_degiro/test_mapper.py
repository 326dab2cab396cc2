from __future__ import annotations

from degiro_proxy.degiro.mapper import (
    map_dividend,
    map_position,
    position_field,
    product_ids,
    product_type,
)
from support import portfolio_row


def test_position_field_reads_name_value_pairs() -> None:
    row = portfolio_row("1001", size=3)

    assert position_field(row, "size") == 3
    assert position_field(row, "missing") is None
    assert position_field({"value": "garbage"}, "size") is None


def test_product_ids_skip_cash_and_blank_ids() -> None:
    rows = [
        portfolio_row("1001"),
        portfolio_row("FLATEX_EUR", position_type="CASH"),
        portfolio_row(""),
        portfolio_row("2002"),
    ]

    assert product_ids(rows) == ["1001", "2002"]


def test_product_type_lookup() -> None:
    assert product_type(131) == "ETF"
    assert product_type("2") == "Fund"
    assert product_type(999) == "Stock"
    assert product_type(None) == "Stock"


def test_map_position_without_product_info_uses_position_values() -> None:
    holding = map_position(portfolio_row("1001", size=4, price=10))

    assert holding.ticker == "#1001"
    assert holding.name == "Unknown Product"
    assert holding.price == 10
    assert holding.value == 40
    assert holding.break_even_price == 10
    assert holding.annual_income == 0
    assert holding.unrealized_pnl == 0
    assert holding.unrealized_pnl_pct == 0


def test_map_position_serializes_dashboard_field_names() -> None:
    holding = map_position(
        portfolio_row("1001", size=2, price=100, value=200, breakEvenPrice=80),
        {"1001": {"symbol": "XYZ", "name": "Xyz", "productTypeId": 131, "currency": "USD"}},
    )

    dumped = holding.model_dump(by_alias=True)
    assert dumped["ticker"] == "XYZ"
    assert dumped["type"] == "ETF"
    assert dumped["currency"] == "USD"
    assert dumped["breakEvenPrice"] == 80
    assert dumped["costBasis"] == 160
    assert dumped["unrealizedPnL"] == 40
    assert dumped["unrealizedPnLPct"] == 25
    assert dumped["source"] == "degiro"


def test_map_dividend_prefers_net_amount_and_product_symbol() -> None:
    event = map_dividend(
        {
            "product": {"symbol": "ABC", "name": "Abc Corp"},
            "netAmount": 4.5,
            "grossAmount": 5.0,
            "currency": "USD",
            "exDate": "2024-04-02",
        }
    )

    assert event.ticker == "ABC"
    assert event.name == "Abc Corp"
    assert event.amount == 4.5
    assert event.currency == "USD"
    assert event.date == "2024-04-02"


def test_map_dividend_falls_back_to_gross_amount() -> None:
    event = map_dividend({"productId": 7, "grossAmount": 2.0, "paymentDate": "2024-05-01"})

    assert event.ticker == "7"
    assert event.amount == 2.0
    assert event.date == "2024-05-01"
