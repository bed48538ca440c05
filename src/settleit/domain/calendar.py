"""Payout calendar rules."""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from settleit.domain.entities import PayoutFrequency


def is_payout_day(day: date, frequency: PayoutFrequency, payout_day: int) -> bool:
    """Check whether ``day`` is a payout day.

    ``payout_day`` is a weekday (0 = Monday) for weekly payouts and a day of
    month for monthly payouts; months shorter than ``payout_day`` pay out on
    their last day.
    """
    if frequency == PayoutFrequency.DAILY:
        return True
    if frequency == PayoutFrequency.WEEKLY:
        return day.weekday() == payout_day
    last_day = ((day.replace(day=1) + relativedelta(months=1)) - timedelta(days=1)).day
    return day.day == min(payout_day, last_day)


def next_payout_date(after: date, frequency: PayoutFrequency, payout_day: int) -> date:
    """Return the first payout day on or after ``after``."""
    candidate = after
    # A monthly cycle is at most 31 days long
    for _ in range(32):
        if is_payout_day(candidate, frequency, payout_day):
            return candidate
        candidate += timedelta(days=1)
    raise ValueError(f"No payout day found for {frequency.value} / {payout_day}")
