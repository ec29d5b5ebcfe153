"""Synthetic daily transaction series for the dashboard chart."""

import random
from datetime import UTC, date, datetime, timedelta

from src.explorer.models import DailyTransactionCount
from src.helpers.constants import DAILY_TRX_DAYS, DAILY_TRX_MAX, DAILY_TRX_MIN


def daily_transaction_count(day: date) -> int:
    """Synthetic transaction count of a day, stable for a given date."""
    rng = random.Random(day.toordinal())  # noqa: S311
    return rng.randint(DAILY_TRX_MIN, DAILY_TRX_MAX)


def build_daily_series(
    days: int = DAILY_TRX_DAYS, today: date | None = None
) -> list[DailyTransactionCount]:
    """One entry per day, oldest first, ending with ``today`` (UTC).

    Example:
        >>> series = build_daily_series(3, date(2024, 1, 3))
        >>> [entry.date for entry in series]
        ['2024-01-01', '2024-01-02', '2024-01-03']
    """
    if today is None:
        today = datetime.now(UTC).date()
    first = today - timedelta(days=days - 1)
    return [
        DailyTransactionCount(
            date=(first + timedelta(days=offset)).isoformat(),
            transactions_count=daily_transaction_count(first + timedelta(days=offset)),
        )
        for offset in range(days)
    ]


__all__ = ["build_daily_series", "daily_transaction_count"]
