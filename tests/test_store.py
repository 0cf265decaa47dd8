"""Tests for EntityStore: slices, capture/apply/revert and versions."""

from dataclasses import replace
from datetime import date

import pytest

from metronome.models import ActionItem, ActionStatus, Decision, Initiative, Priority, Summary
from metronome.observability import OperationContext
from metronome.store import (
    SUMMARY_KEY,
    EntityStore,
    action_item_key,
    decision_key,
    initiative_key,
)
from metronome.views import group_action_items


def _loaded(log_limit: int = 1000) -> EntityStore:
    store = EntityStore(log_limit=log_limit)
    store.replace(
        initiatives=[Initiative("i-1", "One"), Initiative("i-2", "Two")],
        action_items=group_action_items(
            [
                ActionItem("a-1", "i-1", "First"),
                ActionItem("a-2", "i-1", "Second", deadline=date(2025, 3, 14)),
                ActionItem("a-3", "i-2", "Third"),
            ]
        ),
        decisions=[Decision("d-1", "Pick"), Decision("d-2", "Approve")],
        summary=Summary(total_active=2),
        latest_sync_id="s-1",
    )
    return store


class TestReplace:
    def test_slices_populated(self):
        store = _loaded()
        assert [i.id for i in store.initiatives] == ["i-1", "i-2"]
        assert [a.id for a in store.items_for("i-1")] == ["a-1", "a-2"]
        assert store.latest_sync_id == "s-1"
        assert store.summary.total_active == 2

    def test_omitted_slices_untouched(self):
        store = _loaded()
        store.replace(decisions=[])
        assert store.decisions == []
        assert len(store.initiatives) == 2
        assert store.latest_sync_id == "s-1"

    def test_latest_sync_can_be_cleared_explicitly(self):
        store = _loaded()
        store.replace(latest_sync_id=None)
        assert store.latest_sync_id is None

    def test_bumps_versions(self):
        store = _loaded()
        before = store.version(initiative_key("i-1"))
        store.replace(initiatives=[Initiative("i-1", "One again")])
        assert store.version(initiative_key("i-1")) > before

    def test_read_properties_are_copies(self):
        store = _loaded()
        store.initiatives.clear()
        store.action_items["i-1"].clear()
        assert len(store.initiatives) == 2
        assert len(store.items_for("i-1")) == 2


class TestApplyRevert:
    def test_apply_swaps_in_place(self):
        store = _loaded()
        item = store.find_action_item("a-2")
        store.apply("t", {action_item_key("a-2"): replace(item, title="Renamed")})
        assert [a.title for a in store.items_for("i-1")] == ["First", "Renamed"]

    def test_apply_missing_key_raises_and_changes_nothing(self):
        store = _loaded()
        before = store.state()
        with pytest.raises(KeyError):
            store.apply(
                "t",
                {
                    initiative_key("i-1"): Initiative("i-1", "Changed"),
                    initiative_key("nope"): Initiative("nope", "X"),
                },
            )
        assert store.state() == before

    def test_revert_restores_exactly(self):
        store = _loaded()
        before = store.state()
        keys = [action_item_key("a-1"), decision_key("d-1"), SUMMARY_KEY]
        snapshot = store.capture(keys)
        tokens = store.apply(
            "t",
            {
                action_item_key("a-1"): None,
                decision_key("d-1"): None,
                SUMMARY_KEY: Summary(total_active=9),
            },
        )
        assert store.find_action_item("a-1") is None

        result = store.revert("t", snapshot, tokens)
        assert result.clean
        assert sorted(result.restored) == sorted(keys)
        assert store.state() == before

    def test_removed_entity_returns_to_its_position(self):
        store = _loaded()
        snapshot = store.capture([action_item_key("a-1")])
        tokens = store.apply("delete", {action_item_key("a-1"): None})
        store.revert("delete", snapshot, tokens)
        assert [a.id for a in store.items_for("i-1")] == ["a-1", "a-2"]

    def test_removed_last_item_recreates_group(self):
        store = _loaded()
        snapshot = store.capture([action_item_key("a-3")])
        tokens = store.apply("delete", {action_item_key("a-3"): None})
        assert "i-2" not in store.action_items
        store.revert("delete", snapshot, tokens)
        assert [a.id for a in store.items_for("i-2")] == ["a-3"]

    def test_snapshot_is_a_deep_copy(self):
        store = _loaded()
        snapshot = store.capture([initiative_key("i-1")])
        store.find_initiative("i-1").title = "mutated in place"
        tokens = {initiative_key("i-1"): store.version(initiative_key("i-1"))}
        store.revert("t", snapshot, tokens)
        assert store.find_initiative("i-1").title == "One"

    def test_later_write_wins_over_revert(self):
        store = _loaded()
        key = initiative_key("i-1")
        first = store.capture([key])
        first_tokens = store.apply("a", {key: Initiative("i-1", "One", priority=Priority.RESOLVED)})
        store.apply("b", {key: Initiative("i-1", "One", priority=Priority.HIGH)})

        result = store.revert("a", first, first_tokens)
        assert result.conflicts == [key]
        assert not result.clean
        assert store.find_initiative("i-1").priority is Priority.HIGH

    def test_refresh_during_flight_wins_over_revert(self):
        store = _loaded()
        key = action_item_key("a-1")
        snapshot = store.capture([key])
        item = store.find_action_item("a-1")
        tokens = store.apply("toggle", {key: replace(item, status=ActionStatus.DONE)})
        store.replace(
            action_items=group_action_items([ActionItem("a-1", "i-1", "First from server")])
        )
        result = store.revert("toggle", snapshot, tokens)
        assert result.conflicts == [key]
        assert store.find_action_item("a-1").title == "First from server"

    def test_versions_strictly_increase(self):
        store = _loaded()
        key = decision_key("d-2")
        v0 = store.version(key)
        tokens = store.apply("x", {key: Decision("d-2", "Approve!")})
        assert tokens[key] > v0
        snapshot = store.capture([key])
        store.revert("x", snapshot, tokens)
        assert store.version(key) > tokens[key]


class TestMutationLog:
    def test_phases_recorded_with_operation_id(self):
        store = _loaded()
        key = initiative_key("i-2")
        with OperationContext(operation_id="mut-test"):
            snapshot = store.capture([key])
            tokens = store.apply("resolve", {key: Initiative("i-2", "Two", priority=Priority.RESOLVED)})
            store.revert("resolve", snapshot, tokens)

        phases = [(r.action, r.phase) for r in store.log]
        assert phases[-2:] == [("resolve", "applied"), ("resolve", "reverted")]
        assert store.log[-1].operation_id == "mut-test"
        assert store.log[0].phase == "replaced"

    def test_log_is_bounded(self):
        store = _loaded(log_limit=3)
        key = initiative_key("i-1")
        for n in range(5):
            tokens = store.apply(f"a{n}", {key: Initiative("i-1", f"v{n}")})
            store.commit(f"a{n}", tokens)
        assert len(store.log) == 3
        assert store.log[-1].phase == "committed"
        assert [r.seq for r in store.log] == sorted(r.seq for r in store.log)
