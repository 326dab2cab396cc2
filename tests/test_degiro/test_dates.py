from __future__ import annotations

from datetime import date

from degiro_proxy.degiro import default_transaction_range, resolve_transaction_range
from degiro_proxy.degiro.dates import format_degiro_date, one_year_before


def test_format_uses_day_month_year() -> None:
    assert format_degiro_date(date(2024, 3, 5)) == "05/03/2024"


def test_default_range_spans_one_year() -> None:
    window = default_transaction_range(date(2024, 6, 15))

    assert window.from_date == "15/06/2023"
    assert window.to_date == "15/06/2024"


def test_leap_day_rolls_forward() -> None:
    assert one_year_before(date(2024, 2, 29)) == date(2023, 3, 1)


def test_resolve_fills_only_missing_bounds() -> None:
    today = date(2024, 6, 15)

    assert resolve_transaction_range("01/01/2024", None, today=today).model_dump() == {
        "from_date": "01/01/2024",
        "to_date": "15/06/2024",
    }
    assert resolve_transaction_range(" ", "31/05/2024", today=today).from_date == "15/06/2023"
