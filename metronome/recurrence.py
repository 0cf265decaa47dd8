"""
Recurrence expansion — turns key-date templates into calendar occurrences.

Recurring instances are computed on the client for the visible window and
never stored. ``expand`` is pure: the same key dates and window always give
the same occurrence list, so it runs again on every month navigation.

Rules:
- One-off key dates pass through when their date is inside the window.
- Weekly / biweekly: anchor + k * step, k >= 0.
- Monthly: anchor + k months, counted from the anchor each time. A day that
  does not exist in the target month falls back to that month's last day
  (Jan 31 -> Feb 28 -> Mar 31).
- No occurrence precedes the anchor or follows ``until``.
- Window bounds are inclusive.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from metronome.models import Frequency, KeyDate, RecurrenceRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 500

_STEP_DAYS = {
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}


@dataclass(frozen=True)
class Occurrence:
    """A single calendar instance of a key date."""

    key_date: KeyDate
    date: date
    is_virtual: bool  # generated from a recurrence, not the template's own date
    parent_id: str | None  # template id for recurring key dates

    @property
    def id(self) -> str:
        if self.parent_id is None:
            return self.key_date.id
        return f"{self.parent_id}:{self.date.isoformat()}"

    @property
    def title(self) -> str:
        return self.key_date.title


def month_window(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _fixed_step_dates(rule: RecurrenceRule, start: date, end: date, limit: int):
    step = _STEP_DAYS[rule.frequency]
    gap = (start - rule.anchor).days
    # first k with anchor + k*step >= start (ceil division), never negative
    k = max(0, -(-gap // step))
    current = rule.anchor + timedelta(days=step * k)
    produced = 0
    while current <= end and produced < limit:
        yield current
        produced += 1
        current += timedelta(days=step)


def _monthly_dates(rule: RecurrenceRule, start: date, end: date, limit: int):
    anchor = rule.anchor
    months_to_start = (start.year - anchor.year) * 12 + (start.month - anchor.month)
    k = max(0, months_to_start)
    produced = 0
    while produced < limit:
        current = anchor + relativedelta(months=k)  # clamps to the month's last day
        if current > end:
            break
        if current >= start:
            yield current
            produced += 1
        k += 1


def occurrence_dates(
    rule: RecurrenceRule,
    window_start: date,
    window_end: date,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[date]:
    """Dates on which ``rule`` fires inside ``[window_start, window_end]``."""
    end = window_end
    if rule.until is not None and rule.until < end:
        end = rule.until
    start = max(window_start, rule.anchor)
    if start > end:
        return []

    if rule.frequency is Frequency.NONE:
        return [rule.anchor] if window_start <= rule.anchor <= window_end else []
    if rule.frequency is Frequency.MONTHLY:
        return list(_monthly_dates(rule, start, end, max_occurrences))
    return list(_fixed_step_dates(rule, start, end, max_occurrences))


def expand(
    key_dates: list[KeyDate],
    window_start: date,
    window_end: date,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[Occurrence]:
    """
    Expand key dates into the occurrences visible in the window.

    Sorted by date; same-day occurrences keep the order of ``key_dates``.
    """
    if window_end < window_start:
        return []

    results: list[Occurrence] = []
    for kd in key_dates:
        if not kd.is_recurring:
            if window_start <= kd.anchor <= window_end:
                results.append(Occurrence(kd, kd.anchor, is_virtual=False, parent_id=None))
            continue

        # one past the cap tells a truncated series from one that fits exactly
        dates = occurrence_dates(kd.rule, window_start, window_end, max_occurrences + 1)
        if len(dates) > max_occurrences:
            logger.warning(
                "Key date %s hit the occurrence cap (%d) for %s..%s",
                kd.id,
                max_occurrences,
                window_start,
                window_end,
            )
            dates = dates[:max_occurrences]
        for d in dates:
            results.append(Occurrence(kd, d, is_virtual=d != kd.anchor, parent_id=kd.id))

    results.sort(key=lambda o: o.date)
    return results


def expand_month(
    key_dates: list[KeyDate],
    year: int,
    month: int,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[Occurrence]:
    """Occurrences for one calendar month."""
    start, end = month_window(year, month)
    return expand(key_dates, start, end, max_occurrences)
