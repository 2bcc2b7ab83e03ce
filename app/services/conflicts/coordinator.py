"""
Conflict resolution coordinator.

Per resource (resource_type, resource_id):

    Unlocked --acquire--> LockedBySelf --submit(no divergence)--> Unlocked (committed)
                                       --submit(divergence)----> Conflicted (lock kept)
    Conflicted --submit(strategy)--> Unlocked
    LockedBySelf / Conflicted --cancel--> Unlocked
    LockedByOther --acquire--> LockContention (fails fast)
    LockedByOther --acquire(force)--> LockedBySelf

An expired lock is Unlocked for the next acquirer. A holder whose lease
ended without being released (expired, purged or taken over) gets
StaleLockError on submit instead of overwriting. So does a submit that
presents a lease token other than the live one.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from app.core.errors import (
    ConflictDetected,
    LockContention,
    ScheduleError,
    ScheduleValidationError,
    StaleLockError,
)

from .locks import EditLock, LockState, LockStore


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResolutionStrategy(str, Enum):
    LAST_WRITE_WINS = "last-write-wins"
    KEEP_CURRENT = "keep-current"
    USER_CHOICE = "user-choice"
    FORCE = "force"


class Choice(str, Enum):
    CURRENT = "current"
    INCOMING = "incoming"


@dataclass(frozen=True)
class Conflict:
    field: str
    current_value: Any
    incoming_value: Any
    # set when one submit spans several resources
    resource_id: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "field": self.field,
            "currentValue": self.current_value,
            "incomingValue": self.incoming_value,
        }
        if self.resource_id is not None:
            data["resourceId"] = self.resource_id
        return data


@dataclass
class ResourceEdit:
    """One resource's part of a multi-resource submit."""
    resource_id: int
    current: dict
    changes: dict
    base_snapshot: Optional[dict] = None
    choices: Optional[dict] = None
    lock_token: Optional[str] = None
    conflicts: list = field(default_factory=list)


def detect_conflicts(base_snapshot: Optional[dict], current: dict, changes: dict) -> list[Conflict]:
    """
    Fields the caller is changing whose stored value moved since the
    caller's snapshot. Fields the caller does not change are never
    reported, and an incoming value equal to the stored one is not a
    conflict.
    """
    if base_snapshot is None:
        return []
    conflicts = []
    for field_name, incoming in changes.items():
        if field_name not in base_snapshot or field_name not in current:
            continue
        stored = current[field_name]
        if base_snapshot[field_name] == stored or incoming == stored:
            continue
        conflicts.append(Conflict(field=field_name, current_value=stored, incoming_value=incoming))
    return conflicts


def _parse_choice(field_name: str, value: str) -> Choice:
    # clients may echo the conflict payload keys back
    aliases = {"currentValue": Choice.CURRENT, "incomingValue": Choice.INCOMING}
    if value in aliases:
        return aliases[value]
    try:
        return Choice(value)
    except ValueError:
        raise ScheduleValidationError(f"Invalid choice {value!r} for field '{field_name}'")


def merge_changes(
    changes: dict,
    conflicts: list[Conflict],
    strategy: Optional[ResolutionStrategy],
    choices: Optional[dict] = None,
) -> dict:
    """The subset of `changes` to apply under `strategy`."""
    if strategy == ResolutionStrategy.KEEP_CURRENT:
        return {}
    if strategy != ResolutionStrategy.USER_CHOICE:
        return dict(changes)

    choices = choices or {}
    merged = dict(changes)
    for conflict in conflicts:
        choice = choices.get(conflict.field)
        if choice is None:
            raise ScheduleValidationError(f"No choice given for conflicting field '{conflict.field}'")
        if _parse_choice(conflict.field, choice) == Choice.CURRENT:
            merged.pop(conflict.field, None)
    return merged


class EditCoordinator:
    """Issues edit locks and mediates every mutation of a lockable resource."""

    def __init__(self, store: LockStore, ttl_seconds: float):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def _now(self) -> float:
        return self.store.clock()

    def acquire(
        self,
        resource_type: str,
        resource_id: int,
        user_id: int,
        user_name: str,
        force: bool = False,
    ) -> EditLock:
        """
        Take or extend the lock. Never waits: a live lock held by someone
        else raises LockContention with the holder and remaining TTL,
        unless force is set.
        """
        key = (resource_type, resource_id)
        while True:
            now = self._now()
            current = self.store.get(key)
            held_by_other = (
                current is not None
                and not current.is_expired(now)
                and current.holder_user_id != user_id
            )
            if held_by_other and not force:
                raise LockContention(current.holder_user_id, current.holder_name, current.expires_in_ms(now))

            if current is not None and not current.is_expired(now) and current.holder_user_id == user_id:
                new = replace(current, expires_at=now + self.ttl_seconds)
            else:
                new = EditLock(
                    resource_type=resource_type,
                    resource_id=resource_id,
                    holder_user_id=user_id,
                    holder_name=user_name,
                    acquired_at=now,
                    expires_at=now + self.ttl_seconds,
                )

            if self.store.compare_and_set(key, current, new):
                self.store.pop_lapsed(key, user_id)
                if current is not None and current.holder_user_id != user_id:
                    self.store.mark_lapsed(current)
                if held_by_other:
                    logger.warning(
                        "User %s forced the lock on %s %s away from user %s",
                        user_id, resource_type, resource_id, current.holder_user_id,
                    )
                else:
                    logger.info("User %s holds lock on %s %s", user_id, resource_type, resource_id)
                return new
            # lost a race on this key, re-read and decide again

    def get_lock(self, resource_type: str, resource_id: int) -> Optional[EditLock]:
        """The live lock on a resource, or None."""
        lock = self.store.get((resource_type, resource_id))
        if lock is None or lock.is_expired(self._now()):
            return None
        return lock

    def is_locked(self, resource_type: str, resource_id: int) -> bool:
        return self.get_lock(resource_type, resource_id) is not None

    def expires_in_ms(self, lock: EditLock) -> int:
        return lock.expires_in_ms(self._now())

    def active_locks(self) -> list[EditLock]:
        # keep expired records for one TTL so late submitters see their own stale record
        self.store.purge_expired(grace_seconds=self.ttl_seconds)
        return self.store.active()

    def cancel(self, resource_type: str, resource_id: int, user_id: int) -> bool:
        """Release the caller's lock without applying anything."""
        key = (resource_type, resource_id)
        current = self.store.get(key)
        if current is None or current.holder_user_id != user_id:
            return False
        released = self.store.compare_and_delete(key, current)
        if released:
            logger.info("User %s cancelled edit on %s %s", user_id, resource_type, resource_id)
        return released

    def _release(self, resource_type: str, resource_id: int, user_id: int) -> None:
        # the record may have been extended or marked conflicted since we read it
        key = (resource_type, resource_id)
        held = self.store.get(key)
        if held is not None and held.holder_user_id == user_id:
            self.store.compare_and_delete(key, held)

    def _stale(self, resource_type: str, resource_id: int, user_id: int, reason: str) -> StaleLockError:
        logger.warning("User %s submitted on %s %s %s", user_id, resource_type, resource_id, reason)
        return StaleLockError(resource_type, resource_id)

    def _require_lock(
        self,
        resource_type: str,
        resource_id: int,
        user_id: int,
        user_name: str,
        force: bool,
        implicit_acquire: bool,
        lock_token: Optional[str] = None,
    ) -> EditLock:
        key = (resource_type, resource_id)
        now = self._now()
        current = self.store.get(key)

        if current is not None and current.holder_user_id == user_id:
            if current.is_expired(now):
                self.store.compare_and_delete(key, current)
                raise self._stale(resource_type, resource_id, user_id, "after their lock expired")
            if lock_token is not None and lock_token != current.token:
                raise self._stale(resource_type, resource_id, user_id, "with a superseded lease")
            return current

        if self.store.pop_lapsed(key, user_id) is not None:
            raise self._stale(resource_type, resource_id, user_id, "after their lease lapsed")
        if lock_token is not None:
            raise self._stale(resource_type, resource_id, user_id, "with a lease that is no longer held")

        if force:
            return self.acquire(resource_type, resource_id, user_id, user_name, force=True)
        if current is None:
            if not implicit_acquire:
                raise StaleLockError(resource_type, resource_id)
            return self.acquire(resource_type, resource_id, user_id, user_name)
        if current.is_expired(now):
            return self.acquire(resource_type, resource_id, user_id, user_name)
        raise LockContention(current.holder_user_id, current.holder_name, current.expires_in_ms(now))

    def _mark_conflicted(self, lock: EditLock, conflicts: list[Conflict]) -> None:
        self.store.compare_and_set(
            lock.key, lock, replace(lock, state=LockState.CONFLICTED, conflicts=tuple(conflicts)),
        )

    def submit(
        self,
        resource_type: str,
        resource_id: int,
        user_id: int,
        user_name: str,
        current: dict,
        changes: dict,
        apply: Callable[[dict], T],
        base_snapshot: Optional[dict] = None,
        strategy: Optional[ResolutionStrategy] = None,
        choices: Optional[dict] = None,
        implicit_acquire: bool = True,
        lock_token: Optional[str] = None,
    ) -> T:
        """
        Diff the caller's snapshot against `current`, then commit through
        `apply(changes_to_apply)` and release the lock.

        Without a strategy, divergent fields raise ConflictDetected and the
        lock moves to CONFLICTED (still held). With a strategy the merge is
        applied and the lock released. If `apply` raises, the lock is kept
        so the caller can correct and resubmit. Only a caller presenting no
        lease token and holding no lapsed lease acquires implicitly.
        """
        lock = self._require_lock(
            resource_type, resource_id, user_id, user_name,
            force=strategy == ResolutionStrategy.FORCE,
            implicit_acquire=implicit_acquire,
            lock_token=lock_token,
        )

        conflicts = detect_conflicts(base_snapshot, current, changes)
        if conflicts and strategy in (None, ResolutionStrategy.FORCE):
            self._mark_conflicted(lock, conflicts)
            logger.info(
                "Conflict on %s %s for user %s: %s",
                resource_type, resource_id, user_id, [c.field for c in conflicts],
            )
            raise ConflictDetected(conflicts)

        to_apply = merge_changes(changes, conflicts, strategy, choices)
        result = apply(to_apply)

        self._release(resource_type, resource_id, user_id)
        logger.info(
            "Committed %s %s for user %s (strategy=%s, fields=%s)",
            resource_type, resource_id, user_id,
            strategy.value if strategy else "none", sorted(to_apply),
        )
        return result

    def submit_many(
        self,
        resource_type: str,
        user_id: int,
        user_name: str,
        edits: list[ResourceEdit],
        apply: Callable[[dict[int, dict]], T],
        strategy: Optional[ResolutionStrategy] = None,
        implicit_acquire: bool = True,
    ) -> T:
        """
        Submit edits to several resources of one type as a unit.

        Every lock is taken (in id order) before anything is diffed; if any
        is contended or stale, the locks this call took are released and
        nothing is applied. A conflict on any resource fails the whole
        submit and marks the affected locks CONFLICTED. `apply` receives
        {resource_id: changes_to_apply} and must commit all of it at once.
        """
        taken = []
        held = []
        try:
            for edit in sorted(edits, key=lambda e: e.resource_id):
                had_lock = self.get_lock(resource_type, edit.resource_id)
                lock = self._require_lock(
                    resource_type, edit.resource_id, user_id, user_name,
                    force=strategy == ResolutionStrategy.FORCE,
                    implicit_acquire=implicit_acquire,
                    lock_token=edit.lock_token,
                )
                if had_lock is None or had_lock.holder_user_id != user_id:
                    taken.append(edit.resource_id)
                held.append((edit, lock))
        except ScheduleError:
            for resource_id in taken:
                self._release(resource_type, resource_id, user_id)
            raise

        all_conflicts = []
        for edit, lock in held:
            edit.conflicts = [
                replace(c, resource_id=edit.resource_id)
                for c in detect_conflicts(edit.base_snapshot, edit.current, edit.changes)
            ]
            all_conflicts.extend(edit.conflicts)

        if all_conflicts and strategy in (None, ResolutionStrategy.FORCE):
            for edit, lock in held:
                if edit.conflicts:
                    self._mark_conflicted(lock, edit.conflicts)
            logger.info(
                "Conflict on %s %s for user %s",
                resource_type, sorted({c.resource_id for c in all_conflicts}), user_id,
            )
            raise ConflictDetected(all_conflicts)

        to_apply = {
            edit.resource_id: merge_changes(edit.changes, edit.conflicts, strategy, edit.choices)
            for edit, _ in held
        }
        result = apply(to_apply)

        for edit, _ in held:
            self._release(resource_type, edit.resource_id, user_id)
        logger.info(
            "Committed %s %s for user %s (strategy=%s)",
            resource_type, sorted(to_apply), user_id, strategy.value if strategy else "none",
        )
        return result
