# METRONOME - Optimistic dashboard engine
"""
Exports for the CLI and other consumers.
"""

from .client import CollaboratorResult, MetronomeClient
from .config import Settings, load_settings
from .dashboard import MetronomeDashboard
from .errors import (
    EntityNotFoundError,
    InvalidMutationError,
    MetronomeError,
    RecurrenceRuleError,
)
from .models import (
    ActionItem,
    ActionStatus,
    Decision,
    DecisionStatus,
    Frequency,
    Initiative,
    KeyDate,
    MeetingReport,
    Priority,
    RecurrenceRule,
    Summary,
)
from .mutations import MutationCoordinator, MutationOutcome
from .recurrence import Occurrence, expand, expand_month
from .refresh import RefreshController, RefreshReport
from .store import EntityStore

__all__ = [
    "MetronomeDashboard",
    "MetronomeClient",
    "CollaboratorResult",
    "Settings",
    "load_settings",
    "EntityStore",
    "RefreshController",
    "RefreshReport",
    "MutationCoordinator",
    "MutationOutcome",
    "Occurrence",
    "expand",
    "expand_month",
    "ActionItem",
    "ActionStatus",
    "Decision",
    "DecisionStatus",
    "Frequency",
    "Initiative",
    "KeyDate",
    "MeetingReport",
    "Priority",
    "RecurrenceRule",
    "Summary",
    "MetronomeError",
    "EntityNotFoundError",
    "InvalidMutationError",
    "RecurrenceRuleError",
]
