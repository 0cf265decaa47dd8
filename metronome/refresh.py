"""
Refresh Controller — repopulates the entity store for a visible month.

One refresh issues six reads at once: summary, initiatives, open decisions,
key dates bounded to the month, every action item in a single call, and the
latest sync. Action items are grouped by initiative on the client so there
is never one request per initiative.

A failed read leaves its slice as it was. The user sees one notice per
refresh, not one per failed call.

Each refresh takes a sequence number. When a refresh resolves after a newer
one was issued, its results are dropped so an old month cannot overwrite a
newer selection.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from metronome.client import CollaboratorResult, MetronomeClient
from metronome.config import Settings
from metronome.errors import MetronomeError
from metronome.models import ActionItem, Decision, Initiative, KeyDate, Summary, SyncSession
from metronome.notices import NoticeBoard
from metronome.observability import OperationContext
from metronome.recurrence import month_window
from metronome.store import EntityStore
from metronome.views import completion_divergence, group_action_items

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load data"

SLICES = (
    "summary",
    "initiatives",
    "decisions",
    "key_dates",
    "action_items",
    "latest_sync",
)


@dataclass
class RefreshReport:
    """What a refresh did to the store."""

    sequence: int
    year: int
    month: int
    applied: bool  # False when a newer refresh superseded this one
    failed_slices: list[str] = field(default_factory=list)

    @property
    def stale(self) -> bool:
        return not self.applied

    @property
    def ok(self) -> bool:
        return self.applied and not self.failed_slices

    @property
    def total_failure(self) -> bool:
        return len(self.failed_slices) == len(SLICES)


def _parse_slice(name: str, data):
    """Turn one endpoint's data into the value ``EntityStore.replace`` takes."""
    if name == "summary":
        return Summary.from_dict(data) if data else None
    if name == "initiatives":
        return [Initiative.from_dict(row) for row in data or []]
    if name == "decisions":
        return [Decision.from_dict(row) for row in data or []]
    if name == "key_dates":
        return [KeyDate.from_dict(row) for row in data or []]
    if name == "action_items":
        return group_action_items(ActionItem.from_dict(row) for row in data or [])
    if name == "latest_sync":
        return SyncSession.from_dict(data[0]).id if data else None
    raise ValueError(f"unknown slice {name!r}")


class RefreshController:
    """Loads a month's worth of dashboard data into the store."""

    def __init__(
        self,
        client: MetronomeClient,
        store: EntityStore,
        notices: NoticeBoard,
        settings: Settings | None = None,
    ):
        self.client = client
        self.store = store
        self.notices = notices
        self.settings = settings or Settings()
        self._issued = 0

    @property
    def latest_sequence(self) -> int:
        return self._issued

    async def refresh(self, year: int, month: int) -> RefreshReport:
        self._issued += 1
        sequence = self._issued

        with OperationContext(prefix="ref"):
            start, end = month_window(year, month)
            logger.info("Refresh #%d for %04d-%02d started", sequence, year, month)

            results: tuple[CollaboratorResult, ...] = await asyncio.gather(
                self.client.get_summary(),
                self.client.list_initiatives(),
                self.client.list_decisions(status="open"),
                self.client.list_key_dates(start, end),
                self.client.list_action_items(),
                self.client.list_syncs(limit=1),
            )

            if sequence != self._issued:
                logger.info(
                    "Discarding refresh #%d for %04d-%02d, #%d was issued since",
                    sequence,
                    year,
                    month,
                    self._issued,
                )
                return RefreshReport(sequence, year, month, applied=False)

            updates: dict = {}
            failed: list[str] = []
            for name, result in zip(SLICES, results):
                if not result.success:
                    logger.warning("Slice %s not refreshed: %s", name, result.error)
                    failed.append(name)
                    continue
                try:
                    value = _parse_slice(name, result.data)
                except (KeyError, TypeError, ValueError, MetronomeError) as e:
                    logger.warning("Slice %s has unreadable rows: %s", name, e)
                    failed.append(name)
                    continue
                if name == "latest_sync":
                    # an empty sync list keeps the id we already know
                    if value is not None:
                        updates["latest_sync_id"] = value
                elif value is not None:
                    updates[name] = value

            self.store.replace(**updates)

            diverging = completion_divergence(updates.get("initiatives", []))
            if diverging:
                logger.warning(
                    "%d initiatives disagree on resolved priority vs archived flag: %s",
                    len(diverging),
                    [i.id for i in diverging],
                )

            if failed:
                self.notices.post(LOAD_FAILED_MESSAGE, self.settings.notice_seconds)

            logger.info(
                "Refresh #%d for %04d-%02d applied (%d/%d slices)",
                sequence,
                year,
                month,
                len(SLICES) - len(failed),
                len(SLICES),
            )
            return RefreshReport(sequence, year, month, applied=True, failed_slices=failed)
