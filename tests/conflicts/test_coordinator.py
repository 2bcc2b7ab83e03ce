import logging

import pytest

from app.core.errors import ConflictDetected, LockContention, ScheduleValidationError, StaleLockError
from app.services.conflicts import (
    Conflict,
    LockState,
    ResolutionStrategy,
    ResourceEdit,
    detect_conflicts,
    merge_changes,
)


class TestDetectConflicts:
    def test_no_snapshot_no_conflicts(self):
        assert detect_conflicts(None, {"a": 1}, {"a": 2}) == []

    def test_divergent_changed_field(self):
        conflicts = detect_conflicts({"isWorking": True}, {"isWorking": False}, {"isWorking": True})
        # incoming equals the snapshot but the stored value moved
        assert conflicts == [Conflict(field="isWorking", current_value=False, incoming_value=True)]

    def test_untouched_fields_never_reported(self):
        base = {"name": "A", "description": "x", "pattern": {}}
        current = {"name": "B", "description": "x", "pattern": {}}
        changes = {"description": "y", "pattern": {"0": {}}}
        assert detect_conflicts(base, current, changes) == []

    def test_convergent_edit_not_a_conflict(self):
        assert detect_conflicts({"name": "A"}, {"name": "B"}, {"name": "B"}) == []

    def test_conflict_payload(self):
        c = Conflict(field="timeBlocks", current_value=[], incoming_value=[{"start": "08:00", "end": "12:00"}])
        assert c.to_dict() == {
            "field": "timeBlocks",
            "currentValue": [],
            "incomingValue": [{"start": "08:00", "end": "12:00"}],
        }


class TestMergeChanges:
    conflicts = [Conflict(field="name", current_value="B", incoming_value="C")]

    def test_last_write_wins(self):
        assert merge_changes({"name": "C", "description": "y"}, self.conflicts, ResolutionStrategy.LAST_WRITE_WINS) == {
            "name": "C", "description": "y",
        }

    def test_keep_current(self):
        assert merge_changes({"name": "C", "description": "y"}, self.conflicts, ResolutionStrategy.KEEP_CURRENT) == {}

    def test_user_choice_current(self):
        merged = merge_changes(
            {"name": "C", "description": "y"}, self.conflicts, ResolutionStrategy.USER_CHOICE, {"name": "current"},
        )
        # non-conflicting fields always apply
        assert merged == {"description": "y"}

    def test_user_choice_incoming_alias(self):
        merged = merge_changes(
            {"name": "C"}, self.conflicts, ResolutionStrategy.USER_CHOICE, {"name": "incomingValue"},
        )
        assert merged == {"name": "C"}

    def test_user_choice_missing_choice(self):
        with pytest.raises(ScheduleValidationError):
            merge_changes({"name": "C"}, self.conflicts, ResolutionStrategy.USER_CHOICE, {})

    def test_user_choice_invalid_choice(self):
        with pytest.raises(ScheduleValidationError):
            merge_changes({"name": "C"}, self.conflicts, ResolutionStrategy.USER_CHOICE, {"name": "both"})


class TestAcquire:
    def test_acquire_unlocked(self, coordinator):
        lock = coordinator.acquire("day", 1, 1, "A")
        assert lock.holder_user_id == 1
        assert lock.state == LockState.LOCKED
        assert coordinator.expires_in_ms(lock) == 120000

    def test_contention_reports_holder_and_remaining_ttl(self, coordinator, clock):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(30)
        with pytest.raises(LockContention) as exc:
            coordinator.acquire("day", 1, 2, "B")
        assert exc.value.to_dict() == {
            "error": "locked",
            "lockedBy": {"userId": 1, "userName": "A", "expiresIn": 90000},
        }

    def test_expired_lock_is_free(self, coordinator, clock):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        lock = coordinator.acquire("day", 1, 2, "B")
        assert lock.holder_user_id == 2

    def test_reacquire_extends(self, coordinator, clock):
        first = coordinator.acquire("day", 1, 1, "A")
        clock.advance(60)
        second = coordinator.acquire("day", 1, 1, "A")
        assert second.acquired_at == first.acquired_at
        assert coordinator.expires_in_ms(second) == 120000

    def test_force_takes_over(self, coordinator, caplog):
        coordinator.acquire("day", 1, 1, "A")
        with caplog.at_level(logging.WARNING):
            lock = coordinator.acquire("day", 1, 2, "B", force=True)
        assert lock.holder_user_id == 2
        assert "forced the lock" in caplog.text

    def test_resources_independent(self, coordinator):
        coordinator.acquire("day", 1, 1, "A")
        assert coordinator.acquire("day", 2, 2, "B").holder_user_id == 2
        assert coordinator.acquire("template", 1, 2, "B").holder_user_id == 2

    def test_get_lock(self, coordinator, clock):
        assert coordinator.get_lock("day", 1) is None
        coordinator.acquire("day", 1, 1, "A")
        assert coordinator.get_lock("day", 1).holder_name == "A"
        clock.advance(120)
        assert coordinator.get_lock("day", 1) is None


class TestCancel:
    def test_cancel_releases(self, coordinator):
        coordinator.acquire("day", 1, 1, "A")
        assert coordinator.cancel("day", 1, 1) is True
        assert coordinator.get_lock("day", 1) is None

    def test_cancel_someone_elses_lock(self, coordinator):
        coordinator.acquire("day", 1, 1, "A")
        assert coordinator.cancel("day", 1, 2) is False
        assert coordinator.get_lock("day", 1) is not None

    def test_cancel_from_conflicted(self, coordinator, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        with pytest.raises(ConflictDetected):
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record), changes={"isWorking": False}, apply=apply_to,
                base_snapshot={"isWorking": None},
            )
        assert coordinator.cancel("day", 1, 1) is True
        assert record["isWorking"] is True


class TestSubmit:
    def test_commit_releases_lock(self, coordinator, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        result = coordinator.submit(
            "day", 1, 1, "A", current=dict(record), changes={"isWorking": False}, apply=apply_to,
            base_snapshot=dict(record),
        )
        assert result["isWorking"] is False
        assert coordinator.get_lock("day", 1) is None

    def test_implicit_acquire(self, coordinator, record, apply_to):
        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Tue"}, apply=apply_to)
        assert record["name"] == "Tue"
        assert coordinator.get_lock("day", 1) is None

    def test_submit_while_other_holds_lock(self, coordinator, record, apply_to):
        coordinator.acquire("day", 1, 2, "B")
        with pytest.raises(LockContention):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Tue"}, apply=apply_to)
        assert record["name"] == "Mon"

    def test_conflict_precision(self, coordinator, record, apply_to):
        # only "name" moved server side; the caller changes the other two fields
        base = dict(record)
        record["name"] = "Changed elsewhere"
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record),
            changes={"isWorking": False, "timeBlocks": []}, apply=apply_to, base_snapshot=base,
        )
        assert record["isWorking"] is False
        assert record["name"] == "Changed elsewhere"

    def test_conflict_keeps_lock(self, coordinator, store, record, apply_to):
        base = dict(record)
        record["isWorking"] = False
        with pytest.raises(ConflictDetected) as exc:
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record),
                changes={"isWorking": True, "name": "Tue"}, apply=apply_to, base_snapshot=base,
            )
        assert [c.field for c in exc.value.conflicts] == ["isWorking"]
        lock = coordinator.get_lock("day", 1)
        assert lock.state == LockState.CONFLICTED
        assert lock.holder_user_id == 1
        assert record["name"] == "Mon"

    def test_last_write_wins_after_conflict(self, coordinator, record, apply_to):
        base = dict(record)
        record["name"] = "B"
        with pytest.raises(ConflictDetected):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "C"}, apply=apply_to, base_snapshot=base)
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record), changes={"name": "C"}, apply=apply_to, base_snapshot=base,
            strategy=ResolutionStrategy.LAST_WRITE_WINS,
        )
        assert record["name"] == "C"
        assert coordinator.get_lock("day", 1) is None

    def test_keep_current_is_no_op_commit(self, coordinator, record, apply_to):
        base = dict(record)
        record["name"] = "B"
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record), changes={"name": "C", "isWorking": False},
            apply=apply_to, base_snapshot=base, strategy=ResolutionStrategy.KEEP_CURRENT,
        )
        assert record["name"] == "B"
        assert record["isWorking"] is True
        assert coordinator.get_lock("day", 1) is None

    def test_user_choice(self, coordinator, record, apply_to):
        base = dict(record)
        record["name"] = "B"
        record["isWorking"] = False
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record),
            changes={"name": "C", "isWorking": True, "timeBlocks": []},
            apply=apply_to, base_snapshot=base,
            strategy=ResolutionStrategy.USER_CHOICE,
            choices={"name": "current", "isWorking": "incoming"},
        )
        assert record == {"isWorking": True, "timeBlocks": [], "name": "B"}

    def test_force_overrides_other_holder(self, coordinator, record, apply_to):
        coordinator.acquire("day", 1, 2, "B")
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record), changes={"name": "Forced"}, apply=apply_to,
            strategy=ResolutionStrategy.FORCE,
        )
        assert record["name"] == "Forced"
        assert coordinator.get_lock("day", 1) is None

    def test_force_still_reports_divergence(self, coordinator, record, apply_to):
        base = dict(record)
        record["name"] = "B"
        with pytest.raises(ConflictDetected):
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record), changes={"name": "C"}, apply=apply_to,
                base_snapshot=base, strategy=ResolutionStrategy.FORCE,
            )

    def test_stale_lock(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Late"}, apply=apply_to)
        assert record["name"] == "Mon"

    def test_stale_lock_then_fresh_edit(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Late"}, apply=apply_to)
        # the stale record is gone, a reload-and-retry goes through
        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Retry"}, apply=apply_to)
        assert record["name"] == "Retry"

    def test_expired_lock_of_other_user_is_taken(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 2, "B")
        clock.advance(121)
        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Mine"}, apply=apply_to)
        assert record["name"] == "Mine"

    def test_failed_apply_keeps_lock(self, coordinator, record):
        def boom(changes):
            raise ScheduleValidationError("bad blocks")

        with pytest.raises(ScheduleValidationError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "X"}, apply=boom)
        assert coordinator.get_lock("day", 1).holder_user_id == 1

    def test_no_implicit_acquire(self, coordinator, record, apply_to):
        with pytest.raises(StaleLockError):
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record), changes={"name": "X"}, apply=apply_to,
                implicit_acquire=False,
            )


class TestActiveLocks:
    def test_lists_live_locks(self, coordinator, clock):
        coordinator.acquire("day", 1, 1, "A")
        coordinator.acquire("template", 3, 2, "B")
        assert {lock.key for lock in coordinator.active_locks()} == {("day", 1), ("template", 3)}
        clock.advance(121)
        assert coordinator.active_locks() == []


class TestLapsedLease:
    def test_stale_after_record_purged(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(241)
        # someone lists locks, which drops records past TTL plus grace
        assert coordinator.active_locks() == []

        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"isWorking": False}, apply=apply_to)
        assert record["isWorking"] is True

    def test_stale_after_other_user_took_and_cancelled(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        coordinator.acquire("day", 1, 2, "B")
        coordinator.cancel("day", 1, 2)

        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"isWorking": False}, apply=apply_to)
        assert record["isWorking"] is True

    def test_stale_after_forced_away_and_committed(self, coordinator, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        coordinator.submit(
            "day", 1, 2, "B", current=dict(record), changes={"name": "B's"}, apply=apply_to,
            strategy=ResolutionStrategy.FORCE,
        )
        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "A's"}, apply=apply_to)
        assert record["name"] == "B's"

    def test_reported_once_then_retry_goes_through(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(241)
        coordinator.active_locks()
        with pytest.raises(StaleLockError):
            coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Late"}, apply=apply_to)

        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Reloaded"}, apply=apply_to)
        assert record["name"] == "Reloaded"

    def test_reacquire_clears_lapsed(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        coordinator.acquire("day", 1, 2, "B")
        coordinator.cancel("day", 1, 2)

        coordinator.acquire("day", 1, 1, "A")
        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "Fresh"}, apply=apply_to)
        assert record["name"] == "Fresh"

    def test_never_held_still_acquires_implicitly(self, coordinator, clock, record, apply_to):
        coordinator.acquire("day", 1, 2, "B")
        clock.advance(241)
        coordinator.active_locks()
        # B's lapse does not concern A
        coordinator.submit("day", 1, 1, "A", current=dict(record), changes={"name": "A"}, apply=apply_to)
        assert record["name"] == "A"


class TestLeaseToken:
    def test_matching_token(self, coordinator, record, apply_to):
        lock = coordinator.acquire("day", 1, 1, "A")
        coordinator.submit(
            "day", 1, 1, "A", current=dict(record), changes={"name": "Tue"}, apply=apply_to, lock_token=lock.token,
        )
        assert record["name"] == "Tue"

    def test_token_survives_extension(self, coordinator, clock):
        first = coordinator.acquire("day", 1, 1, "A")
        clock.advance(60)
        assert coordinator.acquire("day", 1, 1, "A").token == first.token

    def test_superseded_token(self, coordinator, clock, record, apply_to):
        old = coordinator.acquire("day", 1, 1, "A")
        clock.advance(121)
        coordinator.acquire("day", 1, 1, "A")
        with pytest.raises(StaleLockError):
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record), changes={"name": "X"}, apply=apply_to, lock_token=old.token,
            )
        assert record["name"] == "Mon"

    def test_token_without_live_lock(self, coordinator, record, apply_to):
        lock = coordinator.acquire("day", 1, 1, "A")
        coordinator.cancel("day", 1, 1)
        with pytest.raises(StaleLockError):
            coordinator.submit(
                "day", 1, 1, "A", current=dict(record), changes={"name": "X"}, apply=apply_to, lock_token=lock.token,
            )


class TestSubmitMany:
    @pytest.fixture
    def records(self) -> dict:
        return {1: {"isWorking": True, "name": "Mon"}, 2: {"isWorking": True, "name": "Tue"}}

    @pytest.fixture
    def apply_all(self, records):
        def apply(changes_by_id: dict) -> dict:
            for resource_id, changes in changes_by_id.items():
                records[resource_id].update(changes)
            return records
        return apply

    def edits(self, records, changes, base=None):
        return [
            ResourceEdit(resource_id=rid, current=dict(records[rid]), changes=changes.get(rid, {}),
                         base_snapshot=(base or {}).get(rid))
            for rid in records
        ]

    def test_applies_all_and_releases(self, coordinator, records, apply_all):
        coordinator.submit_many(
            "day", 1, "A", self.edits(records, {1: {"isWorking": False}, 2: {"name": "Off"}}), apply=apply_all,
        )
        assert records[1]["isWorking"] is False
        assert records[2]["name"] == "Off"
        assert coordinator.active_locks() == []

    def test_contention_applies_nothing_and_releases_taken_locks(self, coordinator, records, apply_all):
        coordinator.acquire("day", 2, 2, "B")
        with pytest.raises(LockContention):
            coordinator.submit_many("day", 1, "A", self.edits(records, {1: {"isWorking": False}}), apply=apply_all)

        assert records[1]["isWorking"] is True
        assert coordinator.get_lock("day", 1) is None
        assert coordinator.get_lock("day", 2).holder_user_id == 2

    def test_conflict_on_one_day_blocks_all(self, coordinator, records, apply_all):
        base = {1: dict(records[1]), 2: dict(records[2])}
        records[2]["name"] = "Changed elsewhere"

        with pytest.raises(ConflictDetected) as exc:
            coordinator.submit_many(
                "day", 1, "A", self.edits(records, {1: {"isWorking": False}, 2: {"name": "Mine"}}, base),
                apply=apply_all,
            )

        assert [c.to_dict() for c in exc.value.conflicts] == [{
            "field": "name", "currentValue": "Changed elsewhere", "incomingValue": "Mine", "resourceId": 2,
        }]
        assert records[1]["isWorking"] is True
        assert coordinator.get_lock("day", 2).state == LockState.CONFLICTED
        assert coordinator.get_lock("day", 1).state == LockState.LOCKED

    def test_strategy_resolves_conflicts(self, coordinator, records, apply_all):
        base = {1: dict(records[1]), 2: dict(records[2])}
        records[2]["name"] = "Changed elsewhere"
        coordinator.submit_many(
            "day", 1, "A", self.edits(records, {1: {"isWorking": False}, 2: {"name": "Mine"}}, base),
            apply=apply_all, strategy=ResolutionStrategy.KEEP_CURRENT,
        )
        assert records[2]["name"] == "Changed elsewhere"
        assert records[1]["isWorking"] is True
        assert coordinator.active_locks() == []
