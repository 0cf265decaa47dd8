"""
Entity Store - The single in-memory source of truth for the dashboard.

Holds the working copy of initiatives, action items (grouped by initiative),
decisions, key dates, the last summary and the latest sync id. Views read
from here; only two writers exist:

- RefreshController replaces whole slices with ``replace()``.
- MutationCoordinator patches single entities with ``capture()`` /
  ``apply()`` / ``revert()``.

Every entity key carries a version taken from one monotonic counter. A revert
only restores a key whose version is still the one its own apply produced;
anything newer wins and the revert is reported as a conflict.

No locks: every method is synchronous and runs on the event loop thread.
"""

import copy
import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from metronome.models import ActionItem, Decision, Initiative, KeyDate, Summary
from metronome.observability import get_operation_id

logger = logging.getLogger(__name__)

INITIATIVE = "initiative"
ACTION_ITEM = "action_item"
DECISION = "decision"
SUMMARY = "summary"

EntityKey = tuple[str, str]

SUMMARY_KEY: EntityKey = (SUMMARY, "")


def initiative_key(initiative_id: str) -> EntityKey:
    return (INITIATIVE, initiative_id)


def action_item_key(item_id: str) -> EntityKey:
    return (ACTION_ITEM, item_id)


def decision_key(decision_id: str) -> EntityKey:
    return (DECISION, decision_id)


@dataclass
class _Captured:
    """One entity as it was when a snapshot was taken."""

    value: Any  # deep copy, or None when the entity did not exist
    group: str | None  # owning initiative id for action items
    index: int | None  # position in its list
    version: int


@dataclass
class Snapshot:
    """Pre-mutation copy of the entities a mutation is about to touch."""

    entries: dict[EntityKey, _Captured] = field(default_factory=dict)

    @property
    def keys(self) -> list[EntityKey]:
        return list(self.entries)


@dataclass
class MutationRecord:
    """One entry of the store's mutation log."""

    seq: int
    action: str
    phase: str  # applied | reverted | conflict | committed | replaced
    keys: tuple[EntityKey, ...]
    operation_id: str | None = None


@dataclass
class RevertResult:
    restored: list[EntityKey] = field(default_factory=list)
    conflicts: list[EntityKey] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.conflicts


class EntityStore:
    """
    In-memory collections plus version bookkeeping and a bounded log.
    """

    def __init__(self, log_limit: int = 1000):
        self._initiatives: list[Initiative] = []
        self._action_items: dict[str, list[ActionItem]] = {}
        self._decisions: list[Decision] = []
        self._key_dates: list[KeyDate] = []
        self._summary: Summary | None = None
        self._latest_sync_id: str | None = None

        self._seq = 0
        self._versions: dict[EntityKey, int] = {}
        self._log: deque[MutationRecord] = deque(maxlen=log_limit)

    # ==================== Read access ====================

    @property
    def initiatives(self) -> list[Initiative]:
        return list(self._initiatives)

    @property
    def action_items(self) -> dict[str, list[ActionItem]]:
        return {init_id: list(items) for init_id, items in self._action_items.items()}

    @property
    def decisions(self) -> list[Decision]:
        return list(self._decisions)

    @property
    def key_dates(self) -> list[KeyDate]:
        return list(self._key_dates)

    @property
    def summary(self) -> Summary | None:
        return self._summary

    @property
    def latest_sync_id(self) -> str | None:
        return self._latest_sync_id

    @property
    def log(self) -> list[MutationRecord]:
        return list(self._log)

    def all_action_items(self) -> list[ActionItem]:
        return [item for items in self._action_items.values() for item in items]

    def items_for(self, initiative_id: str) -> list[ActionItem]:
        return list(self._action_items.get(initiative_id, []))

    def find_initiative(self, initiative_id: str) -> Initiative | None:
        return self.get(initiative_key(initiative_id))

    def find_action_item(self, item_id: str) -> ActionItem | None:
        return self.get(action_item_key(item_id))

    def find_decision(self, decision_id: str) -> Decision | None:
        return self.get(decision_key(decision_id))

    def get(self, key: EntityKey) -> Any:
        """Current value for an entity key, or None."""
        _, _, value = self._locate(key)
        return value

    def version(self, key: EntityKey) -> int:
        return self._versions.get(key, 0)

    def state(self) -> dict:
        """Deep, plain-dict copy of every collection (versions and log excluded)."""
        return {
            "initiatives": [i.to_dict() for i in self._initiatives],
            "action_items": {
                init_id: [a.to_dict() for a in items]
                for init_id, items in self._action_items.items()
            },
            "decisions": [d.to_dict() for d in self._decisions],
            "key_dates": [k.to_dict() for k in self._key_dates],
            "summary": self._summary.to_dict() if self._summary else None,
            "latest_sync_id": self._latest_sync_id,
        }

    # ==================== Refresh surface ====================

    _UNSET = object()

    def replace(
        self,
        *,
        initiatives: list[Initiative] | None = None,
        action_items: dict[str, list[ActionItem]] | None = None,
        decisions: list[Decision] | None = None,
        key_dates: list[KeyDate] | None = None,
        summary: Summary | None = None,
        latest_sync_id: Any = _UNSET,
    ) -> None:
        """Replace the given slices wholesale. Omitted slices stay as they are."""
        touched: list[EntityKey] = []

        if initiatives is not None:
            touched += [initiative_key(i.id) for i in self._initiatives]
            self._initiatives = list(initiatives)
            touched += [initiative_key(i.id) for i in self._initiatives]
        if action_items is not None:
            touched += [action_item_key(a.id) for a in self.all_action_items()]
            self._action_items = {k: list(v) for k, v in action_items.items()}
            touched += [action_item_key(a.id) for a in self.all_action_items()]
        if decisions is not None:
            touched += [decision_key(d.id) for d in self._decisions]
            self._decisions = list(decisions)
            touched += [decision_key(d.id) for d in self._decisions]
        if key_dates is not None:
            self._key_dates = list(key_dates)
        if summary is not None:
            self._summary = summary
            touched.append(SUMMARY_KEY)
        if latest_sync_id is not self._UNSET:
            self._latest_sync_id = latest_sync_id

        keys = tuple(dict.fromkeys(touched))
        self._bump(keys)
        self._record("refresh", "replaced", keys)

    # ==================== Mutation surface ====================

    def capture(self, keys: Iterable[EntityKey]) -> Snapshot:
        """Snapshot the listed entities, including their positions."""
        snapshot = Snapshot()
        for key in keys:
            group, index, value = self._locate(key)
            snapshot.entries[key] = _Captured(
                value=copy.deepcopy(value),
                group=group,
                index=index,
                version=self.version(key),
            )
        return snapshot

    def apply(
        self,
        action: str,
        changes: dict[EntityKey, Any],
    ) -> dict[EntityKey, int]:
        """
        Apply an optimistic change and return the version tokens it produced.

        ``changes`` maps each entity key to its new value; ``None`` removes the
        entity. Keys must exist. Values are swapped in at the same position.
        """
        for key in changes:
            if self._locate(key)[2] is None:
                raise KeyError(key)

        for key, value in changes.items():
            if value is None:
                self._remove(key)
            else:
                self._swap(key, value)

        keys = tuple(changes)
        self._bump(keys)
        self._record(action, "applied", keys)
        return {key: self._versions[key] for key in keys}

    def commit(self, action: str, tokens: dict[EntityKey, int]) -> None:
        """Mark an optimistic change as confirmed by the collaborator."""
        self._record(action, "committed", tuple(tokens))

    def revert(
        self,
        action: str,
        snapshot: Snapshot,
        tokens: dict[EntityKey, int],
    ) -> RevertResult:
        """
        Undo an optimistic change from its snapshot.

        A key is restored only when its version still equals the token the
        change produced; otherwise a later write owns it and it is left alone.
        """
        result = RevertResult()
        # ascending positions so removed neighbours land back in order
        ordered = sorted(
            snapshot.entries.items(),
            key=lambda entry: -1 if entry[1].index is None else entry[1].index,
        )
        for key, captured in ordered:
            if self.version(key) != tokens.get(key):
                result.conflicts.append(key)
                continue
            self._restore(key, captured)
            result.restored.append(key)

        if result.restored:
            self._bump(tuple(result.restored))
            self._record(action, "reverted", tuple(result.restored))
        if result.conflicts:
            self._record(action, "conflict", tuple(result.conflicts))
            logger.warning(
                "Revert of %s skipped %d entities changed since apply: %s",
                action,
                len(result.conflicts),
                result.conflicts,
            )
        return result

    # ==================== Internals ====================

    def _bump(self, keys: Iterable[EntityKey]) -> None:
        for key in keys:
            self._seq += 1
            self._versions[key] = self._seq

    def _record(self, action: str, phase: str, keys: tuple[EntityKey, ...]) -> None:
        self._log.append(
            MutationRecord(
                seq=self._seq,
                action=action,
                phase=phase,
                keys=keys,
                operation_id=get_operation_id(),
            )
        )

    def _container(self, kind: str) -> list:
        if kind == INITIATIVE:
            return self._initiatives
        if kind == DECISION:
            return self._decisions
        raise ValueError(f"no list container for {kind!r}")

    def _locate(self, key: EntityKey) -> tuple[str | None, int | None, Any]:
        """Return (group, index, value) for an entity key; value None if absent."""
        kind, entity_id = key
        if kind == SUMMARY:
            return None, None, self._summary
        if kind == ACTION_ITEM:
            for group, items in self._action_items.items():
                for index, item in enumerate(items):
                    if item.id == entity_id:
                        return group, index, item
            return None, None, None
        for index, entity in enumerate(self._container(kind)):
            if entity.id == entity_id:
                return None, index, entity
        return None, None, None

    def _swap(self, key: EntityKey, value: Any) -> None:
        kind, _ = key
        if kind == SUMMARY:
            self._summary = value
            return
        group, index, _ = self._locate(key)
        if kind == ACTION_ITEM:
            self._action_items[group][index] = value
        else:
            self._container(kind)[index] = value

    def _remove(self, key: EntityKey) -> None:
        kind, _ = key
        if kind == SUMMARY:
            self._summary = None
            return
        group, index, _ = self._locate(key)
        if index is None:
            return
        if kind == ACTION_ITEM:
            del self._action_items[group][index]
            if not self._action_items[group]:
                del self._action_items[group]
        else:
            del self._container(kind)[index]

    def _restore(self, key: EntityKey, captured: _Captured) -> None:
        kind, _ = key
        value = copy.deepcopy(captured.value)
        if kind == SUMMARY:
            self._summary = value
            return
        if value is None:
            self._remove(key)
            return
        if self._locate(key)[2] is not None:
            self._swap(key, value)
            return
        if kind == ACTION_ITEM:
            target = self._action_items.setdefault(captured.group, [])
        else:
            target = self._container(kind)
        target.insert(min(captured.index, len(target)), value)

