"""
Entity models: plain dataclasses for the Metronome tracker.

Rows arrive from the collaborator as JSON objects and are parsed with
``from_dict``; ``to_dict`` gives back the wire shape. Dates are ``date``
objects in memory and ISO strings on the wire.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from metronome.errors import RecurrenceRuleError


class Priority(Enum):
    """Initiative priority. ``RESOLVED`` doubles as a completion marker."""

    CRITICAL = "critical"
    HIGH = "high"
    STRATEGIC = "strategic"
    NORMAL = "normal"
    RESOLVED = "resolved"


class ActionStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class DecisionStatus(Enum):
    OPEN = "open"
    DECIDED = "decided"
    DEFERRED = "deferred"


class Frequency(Enum):
    """Recurrence frequency of a key date."""

    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


def parse_date(value: Any) -> date | None:
    """Parse a wire date ("2025-03-12" or a full ISO timestamp) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Initiative:
    """A tracked strategic effort."""

    id: str
    title: str
    priority: Priority = Priority.NORMAL
    description: str | None = None
    function_tag: str | None = None
    owner_label: str | None = None
    status_label: str | None = None
    deadline: date | None = None
    deadline_label: str | None = None
    is_archived: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_resolved(self) -> bool:
        """Either completion signal marks the initiative as resolved."""
        return self.priority is Priority.RESOLVED or self.is_archived

    @property
    def is_active(self) -> bool:
        return not self.is_resolved

    @property
    def completion_signals_diverge(self) -> bool:
        """True when ``priority == resolved`` and ``is_archived`` disagree."""
        return (self.priority is Priority.RESOLVED) != self.is_archived

    @classmethod
    def from_dict(cls, row: dict) -> "Initiative":
        return cls(
            id=row["id"],
            title=row.get("title", ""),
            priority=Priority(row.get("priority") or Priority.NORMAL.value),
            description=row.get("description"),
            function_tag=row.get("function_tag"),
            owner_label=row.get("owner_label"),
            status_label=row.get("status_label"),
            deadline=parse_date(row.get("deadline")),
            deadline_label=row.get("deadline_label"),
            is_archived=bool(row.get("is_archived", False)),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "priority": self.priority.value,
            "description": self.description,
            "function_tag": self.function_tag,
            "owner_label": self.owner_label,
            "status_label": self.status_label,
            "deadline": _iso(self.deadline),
            "deadline_label": self.deadline_label,
            "is_archived": self.is_archived,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ActionItem:
    """A task owned by exactly one initiative.

    ``completed_at`` is set iff ``status`` is DONE.
    """

    id: str
    initiative_id: str
    title: str
    status: ActionStatus = ActionStatus.PENDING
    deadline: date | None = None
    completed_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_done(self) -> bool:
        return self.status is ActionStatus.DONE

    def is_overdue(self, today: date) -> bool:
        """Undone with a deadline strictly before ``today``."""
        return self.deadline is not None and not self.is_done and self.deadline < today

    @classmethod
    def from_dict(cls, row: dict) -> "ActionItem":
        return cls(
            id=row["id"],
            initiative_id=row["initiative_id"],
            title=row.get("title", ""),
            status=ActionStatus(row.get("status") or ActionStatus.PENDING.value),
            deadline=parse_date(row.get("deadline")),
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "initiative_id": self.initiative_id,
            "title": self.title,
            "status": self.status.value,
            "deadline": _iso(self.deadline),
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Decision:
    """An open question awaiting a recorded answer."""

    id: str
    title: str
    status: DecisionStatus = DecisionStatus.OPEN
    context: str | None = None
    decision_text: str | None = None  # only once decided
    initiative_id: str | None = None
    created_at: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status is DecisionStatus.OPEN

    @classmethod
    def from_dict(cls, row: dict) -> "Decision":
        return cls(
            id=row["id"],
            title=row.get("title", ""),
            status=DecisionStatus(row.get("status") or DecisionStatus.OPEN.value),
            context=row.get("context"),
            decision_text=row.get("decision_text"),
            initiative_id=row.get("initiative_id"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "context": self.context,
            "decision_text": self.decision_text,
            "initiative_id": self.initiative_id,
            "created_at": self.created_at,
        }


_RECURRENCE_LABELS = {
    Frequency.NONE: "Does not repeat",
    Frequency.WEEKLY: "Repeats weekly",
    Frequency.BIWEEKLY: "Repeats every 2 weeks",
    Frequency.MONTHLY: "Repeats monthly",
}


@dataclass(frozen=True)
class RecurrenceRule:
    """How a key date repeats: frequency, anchor date and optional end."""

    frequency: Frequency
    anchor: date
    until: date | None = None  # inclusive

    @property
    def is_recurring(self) -> bool:
        return self.frequency is not Frequency.NONE

    def label(self) -> str:
        return _RECURRENCE_LABELS[self.frequency]

    @classmethod
    def from_key_date_row(cls, row: dict) -> "RecurrenceRule":
        """Build the rule from the wire fields ``date``, ``recurrence_rule``, ``recurrence_end``."""
        anchor = parse_date(row.get("date"))
        if anchor is None:
            raise RecurrenceRuleError(f"key date {row.get('id')!r} has no date")
        raw = row.get("recurrence_rule") or Frequency.NONE.value
        try:
            frequency = Frequency(raw)
        except ValueError:
            raise RecurrenceRuleError(
                f"key date {row.get('id')!r} has unknown recurrence rule {raw!r}"
            ) from None
        until = parse_date(row.get("recurrence_end")) if frequency is not Frequency.NONE else None
        return cls(frequency, anchor, until)


@dataclass
class KeyDate:
    """A calendar-significant date. With a recurring rule it is a template."""

    id: str
    title: str
    rule: RecurrenceRule
    emoji: str | None = None
    description: str | None = None
    category: str | None = None
    is_highlighted: bool = False
    is_critical: bool = False

    @property
    def anchor(self) -> date:
        return self.rule.anchor

    @property
    def is_recurring(self) -> bool:
        return self.rule.is_recurring

    @classmethod
    def from_dict(cls, row: dict) -> "KeyDate":
        return cls(
            id=row["id"],
            title=row.get("title", ""),
            rule=RecurrenceRule.from_key_date_row(row),
            emoji=row.get("emoji"),
            description=row.get("description"),
            category=row.get("category"),
            is_highlighted=bool(row.get("is_highlighted", False)),
            is_critical=bool(row.get("is_critical", False)),
        )

    def to_dict(self) -> dict:
        recurring = self.rule.is_recurring
        return {
            "id": self.id,
            "title": self.title,
            "date": self.rule.anchor.isoformat(),
            "recurrence_rule": self.rule.frequency.value if recurring else None,
            "recurrence_end": _iso(self.rule.until),
            "emoji": self.emoji,
            "description": self.description,
            "category": self.category,
            "is_highlighted": self.is_highlighted,
            "is_critical": self.is_critical,
        }


@dataclass
class Summary:
    """Server-computed counters shown in the pulse bar."""

    total_active: int = 0
    on_track_percentage: int = 0
    next_sync_date: date | None = None
    next_sync_focus: str | None = None
    days_until_next_sync: int | None = None

    @classmethod
    def from_dict(cls, row: dict) -> "Summary":
        # The summary endpoint answers camelCase; accept snake_case as well.
        next_sync = row.get("nextSync") or {}
        return cls(
            total_active=row.get("totalActive", row.get("total_active", 0)) or 0,
            on_track_percentage=row.get("onTrackPercentage", row.get("on_track_percentage", 0))
            or 0,
            next_sync_date=parse_date(next_sync.get("date", row.get("next_sync_date"))),
            next_sync_focus=next_sync.get("focus", row.get("next_sync_focus")),
            days_until_next_sync=next_sync.get("daysUntil", row.get("days_until_next_sync")),
        )

    def to_dict(self) -> dict:
        return {
            "totalActive": self.total_active,
            "onTrackPercentage": self.on_track_percentage,
            "nextSync": {
                "date": _iso(self.next_sync_date),
                "focus": self.next_sync_focus,
                "daysUntil": self.days_until_next_sync,
            },
        }


@dataclass
class SyncSession:
    """A recorded leadership sync meeting."""

    id: str
    sync_date: date | None = None
    title: str | None = None
    notes: str | None = None
    duration_seconds: int | None = None
    next_sync_date: date | None = None
    next_sync_focus: str | None = None
    items_discussed: int = 0
    decisions_made: int = 0
    action_items_completed: int = 0

    @classmethod
    def from_dict(cls, row: dict) -> "SyncSession":
        return cls(
            id=row["id"],
            sync_date=parse_date(row.get("sync_date")),
            title=row.get("title"),
            notes=row.get("notes"),
            duration_seconds=row.get("duration_seconds"),
            next_sync_date=parse_date(row.get("next_sync_date")),
            next_sync_focus=row.get("next_sync_focus"),
            items_discussed=row.get("items_discussed") or 0,
            decisions_made=row.get("decisions_made") or 0,
            action_items_completed=row.get("action_items_completed") or 0,
        )


@dataclass
class MeetingReport:
    """What the meeting runner hands over when a sync ends."""

    duration_seconds: int
    notes: str = ""
    next_sync_date: date | None = None
    next_sync_focus: str = ""
    items_discussed: int = 0
    decisions_made: int = 0
    action_items_done: int = 0
    focus_areas: list[str] = field(default_factory=list)
