"""
Derived views over the entity store.

Everything here is a pure function of its arguments and is recomputed on each
read; nothing is cached. ``today`` is always passed in so callers control the
clock.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from metronome.models import ActionItem, Decision, Initiative, KeyDate, Priority

UNKNOWN_INITIATIVE = "Unknown"


def group_action_items(items: Iterable[ActionItem]) -> dict[str, list[ActionItem]]:
    """Partition a flat action-item list by ``initiative_id``, keeping input order."""
    grouped: dict[str, list[ActionItem]] = {}
    for item in items:
        grouped.setdefault(item.initiative_id, []).append(item)
    return grouped


def split_resolved(initiatives: Iterable[Initiative]) -> tuple[list[Initiative], list[Initiative]]:
    """(active, resolved). Resolved means ``priority == resolved`` OR archived."""
    active: list[Initiative] = []
    resolved: list[Initiative] = []
    for initiative in initiatives:
        (resolved if initiative.is_resolved else active).append(initiative)
    return active, resolved


def completion_divergence(initiatives: Iterable[Initiative]) -> list[Initiative]:
    """Initiatives whose resolved priority and archived flag disagree."""
    return [i for i in initiatives if i.completion_signals_diverge]


def has_overdue_work(items: Iterable[ActionItem], today: date) -> bool:
    return any(item.is_overdue(today) for item in items)


def split_attention(
    active: Iterable[Initiative],
    action_items: dict[str, list[ActionItem]],
    today: date,
) -> tuple[list[Initiative], list[Initiative]]:
    """
    (needs_attention, in_progress) for active initiatives.

    Needs attention: priority is critical, or the initiative owns an undone
    action item whose deadline is before today.
    """
    needs_attention: list[Initiative] = []
    in_progress: list[Initiative] = []
    for initiative in active:
        critical = initiative.priority is Priority.CRITICAL
        if critical or has_overdue_work(action_items.get(initiative.id, []), today):
            needs_attention.append(initiative)
        else:
            in_progress.append(initiative)
    return needs_attention, in_progress


def week_bounds(today: date) -> tuple[date, date]:
    """
    (end_of_this_week, end_of_next_week).

    Weeks end on Sunday. Counting Sunday as day 0, this week ends
    ``7 - day`` days after today, so on a Sunday it ends the following Sunday.
    """
    sunday_based = (today.weekday() + 1) % 7
    end_of_this_week = today + timedelta(days=7 - sunday_based)
    return end_of_this_week, end_of_this_week + timedelta(days=7)


@dataclass(frozen=True)
class BucketEntry:
    """An action item in a deadline bucket, with its initiative's title."""

    item: ActionItem
    initiative_title: str

    @property
    def deadline(self) -> date:
        return self.item.deadline


@dataclass
class DeadlineBuckets:
    overdue: list[BucketEntry] = field(default_factory=list)
    this_week: list[BucketEntry] = field(default_factory=list)
    next_week: list[BucketEntry] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "overdue": len(self.overdue),
            "this_week": len(self.this_week),
            "next_week": len(self.next_week),
        }


def deadline_buckets(
    action_items: dict[str, list[ActionItem]],
    initiatives: Iterable[Initiative],
    today: date,
) -> DeadlineBuckets:
    """
    Classify undone action items with a deadline.

    overdue:   deadline < today
    this week: today <= deadline <= end_of_this_week
    next week: end_of_this_week < deadline <= end_of_next_week
    Later deadlines land in no bucket. Each bucket is sorted by deadline.
    """
    end_of_this_week, end_of_next_week = week_bounds(today)
    titles = {i.id: i.title for i in initiatives}
    buckets = DeadlineBuckets()

    for initiative_id, items in action_items.items():
        title = titles.get(initiative_id, UNKNOWN_INITIATIVE)
        for item in items:
            if item.deadline is None or item.is_done:
                continue
            entry = BucketEntry(item, title)
            if item.deadline < today:
                buckets.overdue.append(entry)
            elif item.deadline <= end_of_this_week:
                buckets.this_week.append(entry)
            elif item.deadline <= end_of_next_week:
                buckets.next_week.append(entry)

    for bucket in (buckets.overdue, buckets.this_week, buckets.next_week):
        bucket.sort(key=lambda e: e.deadline)
    return buckets


def open_decisions(decisions: Iterable[Decision]) -> list[Decision]:
    return [d for d in decisions if d.is_open]


def upcoming_key_dates(key_dates: Iterable[KeyDate], today: date, limit: int = 5) -> list[KeyDate]:
    """The next few key dates on or after today, in store order."""
    return [kd for kd in key_dates if kd.anchor >= today][:limit]


def tab_counts(
    active: list[Initiative],
    decisions: Iterable[Decision],
) -> dict[str, int]:
    """Badge counts for the dashboard tabs."""
    return {"decide_track": len(active) + len(open_decisions(decisions))}
