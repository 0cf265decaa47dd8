"""
Metronome Dashboard — the engine behind the initiative tracker page.

Wires the store, the refresh controller and the mutation coordinator
together, remembers which calendar month is visible, and exposes the derived
views the page renders. Views are recomputed from the store on every access.

Usage:
    async with MetronomeClient.from_settings(settings) as client:
        dashboard = MetronomeDashboard(client, settings)
        await dashboard.load()
        for initiative in dashboard.needs_attention:
            ...
        await dashboard.mutations.toggle_action_item("a-1")
"""

import logging
import time
from collections.abc import Callable
from datetime import date, datetime

from metronome import views
from metronome.client import MetronomeClient
from metronome.config import Settings
from metronome.models import Decision, Initiative, KeyDate, Summary
from metronome.mutations import MutationCoordinator, local_now
from metronome.notices import NoticeBoard
from metronome.recurrence import Occurrence, expand, month_window
from metronome.refresh import RefreshController, RefreshReport
from metronome.store import EntityStore

logger = logging.getLogger(__name__)


class MetronomeDashboard:
    """State engine for one dashboard session."""

    def __init__(
        self,
        client: MetronomeClient,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
        year: int | None = None,
        month: int | None = None,
    ):
        self.settings = settings or Settings()
        self._clock = clock

        self.store = EntityStore(log_limit=self.settings.mutation_log_limit)
        self.notices = NoticeBoard(clock=monotonic)
        self.refresher = RefreshController(client, self.store, self.notices, self.settings)
        self.mutations = MutationCoordinator(
            client,
            self.store,
            self.notices,
            self.settings,
            refresh=self.reload,
            clock=clock,
        )

        today = self.today
        self.year = year or today.year
        self.month = month or today.month

    @property
    def today(self) -> date:
        return self._clock().date()

    # ==================== Loading & navigation ====================

    async def load(self) -> RefreshReport:
        """Refresh the store for the visible month."""
        return await self.refresher.refresh(self.year, self.month)

    async def reload(self) -> RefreshReport:
        return await self.load()

    async def show_month(self, year: int, month: int) -> RefreshReport:
        if not 1 <= month <= 12:
            raise ValueError(f"month out of range: {month}")
        self.year, self.month = year, month
        logger.debug("Showing %04d-%02d", year, month)
        return await self.load()

    async def next_month(self) -> RefreshReport:
        if self.month == 12:
            return await self.show_month(self.year + 1, 1)
        return await self.show_month(self.year, self.month + 1)

    async def previous_month(self) -> RefreshReport:
        if self.month == 1:
            return await self.show_month(self.year - 1, 12)
        return await self.show_month(self.year, self.month - 1)

    # ==================== Derived views ====================

    @property
    def summary(self) -> Summary | None:
        return self.store.summary

    @property
    def notice(self) -> str | None:
        return self.notices.message

    @property
    def active_initiatives(self) -> list[Initiative]:
        return views.split_resolved(self.store.initiatives)[0]

    @property
    def resolved_initiatives(self) -> list[Initiative]:
        return views.split_resolved(self.store.initiatives)[1]

    def attention_split(self) -> tuple[list[Initiative], list[Initiative]]:
        return views.split_attention(
            self.active_initiatives, self.store.action_items, self.today
        )

    @property
    def needs_attention(self) -> list[Initiative]:
        return self.attention_split()[0]

    @property
    def in_progress(self) -> list[Initiative]:
        return self.attention_split()[1]

    @property
    def deadline_buckets(self) -> views.DeadlineBuckets:
        return views.deadline_buckets(self.store.action_items, self.store.initiatives, self.today)

    @property
    def calendar_occurrences(self) -> list[Occurrence]:
        start, end = month_window(self.year, self.month)
        return expand(self.store.key_dates, start, end, self.settings.max_occurrences)

    @property
    def open_decisions(self) -> list[Decision]:
        return views.open_decisions(self.store.decisions)

    @property
    def upcoming_key_dates(self) -> list[KeyDate]:
        return views.upcoming_key_dates(self.store.key_dates, self.today)

    @property
    def diverging_initiatives(self) -> list[Initiative]:
        return views.completion_divergence(self.store.initiatives)

    @property
    def tab_counts(self) -> dict[str, int]:
        return views.tab_counts(self.active_initiatives, self.store.decisions)

    def to_dict(self) -> dict:
        """Plain-data rendering of every view, for the CLI and debugging."""
        needs_attention, in_progress = self.attention_split()
        buckets = self.deadline_buckets

        def bucket(entries):
            return [
                {**e.item.to_dict(), "initiative_title": e.initiative_title} for e in entries
            ]

        return {
            "month": f"{self.year:04d}-{self.month:02d}",
            "today": self.today.isoformat(),
            "summary": self.summary.to_dict() if self.summary else None,
            "needs_attention": [i.to_dict() for i in needs_attention],
            "in_progress": [i.to_dict() for i in in_progress],
            "resolved": [i.to_dict() for i in self.resolved_initiatives],
            "open_decisions": [d.to_dict() for d in self.open_decisions],
            "deadlines": {
                "overdue": bucket(buckets.overdue),
                "this_week": bucket(buckets.this_week),
                "next_week": bucket(buckets.next_week),
            },
            "calendar": [
                {
                    "id": o.id,
                    "date": o.date.isoformat(),
                    "title": o.title,
                    "emoji": o.key_date.emoji,
                    "is_virtual": o.is_virtual,
                }
                for o in self.calendar_occurrences
            ],
            "tab_counts": self.tab_counts,
            "notice": self.notice,
        }
