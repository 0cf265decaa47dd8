"""
Mutation Coordinator — optimistic writes with rollback.

Every user change follows the same protocol:

1. Validate the request (errors raise before anything changes).
2. Snapshot the entities it touches.
3. Apply the change to the store synchronously, so views show it at once.
4. Send the write.
5. Success: keep the optimistic state. Creations refresh to learn ids.
   Failure: restore the snapshot and post a short-lived notice.

Failures never propagate to the caller; each method returns a
MutationOutcome. A rollback that finds an entity changed by a later write
leaves that entity alone and reports a conflict, then refreshes so the
server copy replaces whatever the other write left behind.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from metronome.client import CollaboratorResult, MetronomeClient
from metronome.config import Settings
from metronome.contracts import (
    CreateActionItemRequest,
    CreateInitiativeRequest,
    CreateSyncRequest,
    DecideRequest,
    DeferRequest,
    DeleteActionItemRequest,
    ToggleActionItemRequest,
    UpdateActionItemRequest,
    UpdateInitiativeRequest,
    UpdateNextSyncRequest,
)
from metronome.errors import EntityNotFoundError, InvalidMutationError
from metronome.models import (
    ActionItem,
    ActionStatus,
    Decision,
    DecisionStatus,
    Initiative,
    MeetingReport,
    Priority,
)
from metronome.notices import NoticeBoard
from metronome.observability import OperationContext
from metronome.store import (
    SUMMARY_KEY,
    EntityKey,
    EntityStore,
    action_item_key,
    decision_key,
    initiative_key,
)

logger = logging.getLogger(__name__)

# action -> (message on HTTP failure, message on network failure)
FAILURE_MESSAGES: dict[str, tuple[str, str]] = {
    "toggle_action_item": ("Failed to toggle action item", "Network error — changes reverted"),
    "decide": ("Failed to save decision", "Network error — decision reverted"),
    "defer": ("Failed to defer decision", "Network error — decision reverted"),
    "create_action_item": ("Failed to add task", "Network error — task not added"),
    "update_action_item": ("Failed to update task", "Network error — task update reverted"),
    "delete_action_item": ("Failed to delete task", "Network error — deletion reverted"),
    "resolve_initiative": ("Failed to resolve initiative", "Network error — changes reverted"),
    "restore_initiative": ("Failed to restore initiative", "Network error — changes reverted"),
    "update_next_sync": ("Failed to update next sync", "Network error — changes reverted"),
    "end_meeting": (
        "Failed to save meeting record — please try again",
        "Network error — meeting record not saved",
    ),
    "create_initiative": ("Failed to create initiative", "Network error — initiative not created"),
}

# failures of these use long_notice_seconds
LONG_NOTICE_ACTIONS = frozenset({"end_meeting", "create_initiative"})


@dataclass
class MutationOutcome:
    """Result of one coordinator call."""

    action: str
    ok: bool
    message: str | None = None
    rolled_back: bool = False
    conflict: bool = False  # rollback skipped entities a later write changed
    skipped: bool = False  # nothing was sent
    data: Any = None


def local_now() -> datetime:
    return datetime.now().astimezone()


def _validated(model, **fields):
    try:
        return model(**fields)
    except ValidationError as e:
        raise InvalidMutationError(str(e)) from e


class MutationCoordinator:
    """Runs user changes through optimistic apply, write and rollback."""

    def __init__(
        self,
        client: MetronomeClient,
        store: EntityStore,
        notices: NoticeBoard,
        settings: Settings | None = None,
        refresh: Callable[[], Awaitable[Any]] | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.client = client
        self.store = store
        self.notices = notices
        self.settings = settings or Settings()
        self._refresh = refresh
        self._clock = clock
        # status an item had before it was toggled to done locally
        self._reopen_status: dict[str, ActionStatus] = {}

    # ==================== Action items ====================

    async def toggle_action_item(self, item_id: str) -> MutationOutcome:
        """Flip done <-> not done, keeping ``completed_at`` in step."""
        item = self._require_action_item(item_id)
        self._forget_reopen_statuses()
        request = ToggleActionItemRequest(id=item_id)

        if item.is_done:
            remembered = self._reopen_status.pop(item_id, None)
            updated = replace(item, status=remembered or ActionStatus.PENDING, completed_at=None)

            def undo_memory():
                if remembered is not None:
                    self._reopen_status[item_id] = remembered
        else:
            self._reopen_status[item_id] = item.status
            updated = replace(item, status=ActionStatus.DONE, completed_at=self._clock().isoformat())

            def undo_memory():
                self._reopen_status.pop(item_id, None)

        return await self._optimistic(
            "toggle_action_item",
            {action_item_key(item_id): updated},
            lambda: self.client.patch_action_item(request.payload()),
            on_revert=undo_memory,
        )

    async def create_action_item(
        self,
        initiative_id: str,
        title: str,
        deadline: date | None = None,
    ) -> MutationOutcome:
        """Create a task. Not optimistic: the server assigns the id."""
        self._require_initiative(initiative_id)
        request = _validated(
            CreateActionItemRequest, initiative_id=initiative_id, title=title, deadline=deadline
        )
        return await self._write_then_refresh(
            "create_action_item",
            lambda: self.client.create_action_item(request.payload()),
        )

    async def update_action_item(self, item_id: str, **fields) -> MutationOutcome:
        """Edit title, deadline and/or status."""
        item = self._require_action_item(item_id)
        request = _validated(UpdateActionItemRequest, id=item_id, **fields)
        changes = request.changes()
        if not changes:
            raise InvalidMutationError("update_action_item needs at least one field")

        updated = replace(item, **changes)
        if updated.status is not item.status:
            self._reopen_status.pop(item_id, None)
            if updated.is_done:
                updated = replace(updated, completed_at=self._clock().isoformat())
            else:
                updated = replace(updated, completed_at=None)

        return await self._optimistic(
            "update_action_item",
            {action_item_key(item_id): updated},
            lambda: self.client.patch_action_item(request.payload()),
        )

    async def delete_action_item(self, item_id: str) -> MutationOutcome:
        self._require_action_item(item_id)
        request = DeleteActionItemRequest(id=item_id)
        outcome = await self._optimistic(
            "delete_action_item",
            {action_item_key(item_id): None},
            lambda: self.client.delete_action_item(request.payload()),
        )
        if outcome.ok:
            self._reopen_status.pop(item_id, None)
        return outcome

    # ==================== Decisions ====================

    async def decide(self, decision_id: str, decision_text: str) -> MutationOutcome:
        """Record the answer to an open decision. There is no undo."""
        decision = self._require_decision(decision_id)
        if not decision.is_open:
            raise InvalidMutationError(f"decision {decision_id} is {decision.status.value}")
        request = _validated(DecideRequest, id=decision_id, decision_text=decision_text)
        updated = replace(
            decision, status=DecisionStatus.DECIDED, decision_text=request.decision_text
        )
        return await self._optimistic(
            "decide",
            {decision_key(decision_id): updated},
            lambda: self.client.patch_decision(request.payload()),
        )

    async def defer(self, decision_id: str) -> MutationOutcome:
        """Hide a decision until a later refresh brings it back."""
        self._require_decision(decision_id)
        request = DeferRequest(id=decision_id)
        return await self._optimistic(
            "defer",
            {decision_key(decision_id): None},
            lambda: self.client.patch_decision(request.payload()),
        )

    # ==================== Initiatives ====================

    async def resolve_initiative(self, initiative_id: str) -> MutationOutcome:
        """Set priority to resolved. ``is_archived`` is not touched."""
        return await self._set_priority("resolve_initiative", initiative_id, Priority.RESOLVED)

    async def restore_initiative(self, initiative_id: str) -> MutationOutcome:
        """Put a resolved initiative back to the restore priority.

        An archived initiative stays archived and therefore still resolved.
        """
        priority = Priority(self.settings.restore_priority)
        return await self._set_priority("restore_initiative", initiative_id, priority)

    async def _set_priority(
        self, action: str, initiative_id: str, priority: Priority
    ) -> MutationOutcome:
        initiative = self._require_initiative(initiative_id)
        request = UpdateInitiativeRequest(priority=priority)
        return await self._optimistic(
            action,
            {initiative_key(initiative_id): replace(initiative, priority=priority)},
            lambda: self.client.patch_initiative(initiative_id, request.payload()),
        )

    async def create_initiative(self, **fields) -> MutationOutcome:
        request = _validated(CreateInitiativeRequest, **fields)
        return await self._write_then_refresh(
            "create_initiative",
            lambda: self.client.create_initiative(request.payload()),
            use_server_error=True,
        )

    # ==================== Syncs ====================

    async def update_next_sync(
        self,
        next_sync_date: date | None = None,
        next_sync_focus: str | None = None,
    ) -> MutationOutcome:
        """Edit the next-sync date/focus on the latest sync record."""
        sync_id = self.store.latest_sync_id
        if sync_id is None:
            logger.info("No sync record yet, next-sync update skipped")
            return MutationOutcome("update_next_sync", ok=False, skipped=True)

        request = _validated(
            UpdateNextSyncRequest, next_sync_date=next_sync_date, next_sync_focus=next_sync_focus
        )
        if request.is_empty:
            return MutationOutcome("update_next_sync", ok=False, skipped=True)

        changes: dict[EntityKey, Any] = {}
        summary = self.store.summary
        if summary is not None:
            updated = summary
            if request.next_sync_date is not None:
                days_until = (request.next_sync_date - self._clock().date()).days
                updated = replace(
                    updated,
                    next_sync_date=request.next_sync_date,
                    days_until_next_sync=days_until,
                )
            if request.next_sync_focus is not None:
                updated = replace(updated, next_sync_focus=request.next_sync_focus)
            changes[SUMMARY_KEY] = updated

        return await self._optimistic(
            "update_next_sync",
            changes,
            lambda: self.client.patch_sync(sync_id, request.payload()),
            refresh_after=True,
        )

    async def end_meeting(self, report: MeetingReport) -> MutationOutcome:
        """Save the record of a finished sync, then reload."""
        now = self._clock()
        request = _validated(
            CreateSyncRequest,
            sync_date=now.date(),
            notes=report.notes or None,
            started_at=(now - timedelta(seconds=report.duration_seconds)).isoformat(),
            ended_at=now.isoformat(),
            duration_seconds=report.duration_seconds,
            next_sync_date=report.next_sync_date,
            next_sync_focus=report.next_sync_focus or None,
            focus_areas=list(report.focus_areas),
            items_discussed=report.items_discussed,
            decisions_made=report.decisions_made,
            action_items_completed=report.action_items_done,
        )
        return await self._write_then_refresh(
            "end_meeting",
            lambda: self.client.create_sync(request.payload()),
        )

    # ==================== Protocol ====================

    async def _optimistic(
        self,
        action: str,
        changes: dict[EntityKey, Any],
        write: Callable[[], Awaitable[CollaboratorResult]],
        on_revert: Callable[[], None] | None = None,
        refresh_after: bool = False,
    ) -> MutationOutcome:
        with OperationContext(prefix="mut"):
            snapshot = self.store.capture(changes)
            tokens = self.store.apply(action, changes)
            logger.debug("Applied %s to %s", action, list(changes))

            result = await self._send(action, write)

            if result.success:
                self.store.commit(action, tokens)
                if refresh_after:
                    await self._run_refresh()
                return MutationOutcome(action, ok=True, data=result.data)

            reverted = self.store.revert(action, snapshot, tokens)
            if on_revert is not None:
                on_revert()
            message = self._fail(action, result)
            logger.warning(
                "Rolled back %s (%d restored, %d conflicting): %s",
                action,
                len(reverted.restored),
                len(reverted.conflicts),
                result.error,
            )
            if not reverted.clean:
                # the conflicting keys may hold another failed write's change
                await self._run_refresh()
            return MutationOutcome(
                action,
                ok=False,
                message=message,
                rolled_back=bool(reverted.restored),
                conflict=not reverted.clean,
            )

    async def _write_then_refresh(
        self,
        action: str,
        write: Callable[[], Awaitable[CollaboratorResult]],
        use_server_error: bool = False,
    ) -> MutationOutcome:
        with OperationContext(prefix="mut"):
            result = await self._send(action, write)
            if not result.success:
                message = self._fail(action, result, use_server_error=use_server_error)
                logger.warning("%s failed: %s", action, result.error)
                return MutationOutcome(action, ok=False, message=message)
            await self._run_refresh()
            return MutationOutcome(action, ok=True, data=result.data)

    async def _send(
        self, action: str, write: Callable[[], Awaitable[CollaboratorResult]]
    ) -> CollaboratorResult:
        # Nothing past this point reaches the caller as an exception.
        try:
            return await write()
        except Exception as e:
            logger.exception("%s raised during write", action)
            return CollaboratorResult(success=False, error=str(e), network_error=True)

    async def _run_refresh(self) -> None:
        if self._refresh is not None:
            await self._refresh()
            self._forget_reopen_statuses()

    def _forget_reopen_statuses(self) -> None:
        """Drop remembered statuses for items that are gone or no longer done."""
        for item_id in list(self._reopen_status):
            item = self.store.find_action_item(item_id)
            if item is None or not item.is_done:
                del self._reopen_status[item_id]

    def _fail(self, action: str, result: CollaboratorResult, use_server_error: bool = False) -> str:
        http_message, network_message = FAILURE_MESSAGES[action]
        if result.network_error:
            message = network_message
        elif use_server_error and result.server_error:
            message = result.server_error
        else:
            message = http_message
        seconds = (
            self.settings.long_notice_seconds
            if action in LONG_NOTICE_ACTIONS
            else self.settings.notice_seconds
        )
        self.notices.post(message, seconds)
        return message

    # ==================== Lookups ====================

    def _require_action_item(self, item_id: str) -> ActionItem:
        item = self.store.find_action_item(item_id)
        if item is None:
            raise EntityNotFoundError("action_item", item_id)
        return item

    def _require_decision(self, decision_id: str) -> Decision:
        decision = self.store.find_decision(decision_id)
        if decision is None:
            raise EntityNotFoundError("decision", decision_id)
        return decision

    def _require_initiative(self, initiative_id: str) -> Initiative:
        initiative = self.store.find_initiative(initiative_id)
        if initiative is None:
            raise EntityNotFoundError("initiative", initiative_id)
        return initiative
