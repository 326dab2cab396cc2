"""Date helpers for the reporting endpoints (DD/MM/YYYY text)."""

from __future__ import annotations

from datetime import date

from degiro_proxy.models import DateRange

DATE_FORMAT = "%d/%m/%Y"


def format_degiro_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def one_year_before(value: date) -> date:
    try:
        return value.replace(year=value.year - 1)
    except ValueError:
        # 29 February rolls forward to 1 March.
        return date(value.year - 1, 3, 1)


def default_transaction_range(today: date | None = None) -> DateRange:
    current = today or date.today()
    return DateRange(
        from_date=format_degiro_date(one_year_before(current)),
        to_date=format_degiro_date(current),
    )


def resolve_transaction_range(
    from_date: str | None,
    to_date: str | None,
    *,
    today: date | None = None,
) -> DateRange:
    defaults = default_transaction_range(today)
    return DateRange(
        from_date=(from_date or "").strip() or defaults.from_date,
        to_date=(to_date or "").strip() or defaults.to_date,
    )
