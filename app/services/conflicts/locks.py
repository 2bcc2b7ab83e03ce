"""
Edit lock table.
One record per (resource_type, resource_id) with atomic compare-and-set
per key. Expiry is measured on a monotonic clock.

A lease that ends without its holder releasing it (expired and purged,
or taken over by another user) is remembered as lapsed for that holder,
so their in-flight edit is refused instead of re-acquiring silently.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


Clock = Callable[[], float]
ResourceKey = tuple[str, int]


def _new_token() -> str:
    return uuid.uuid4().hex


class LockState(str, Enum):
    LOCKED = "locked"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class EditLock:
    resource_type: str
    resource_id: int
    holder_user_id: int
    holder_name: str
    acquired_at: float
    expires_at: float
    state: LockState = LockState.LOCKED
    conflicts: tuple = field(default_factory=tuple)
    # lease token, kept across extensions, new on every fresh acquisition
    token: str = field(default_factory=_new_token)

    @property
    def key(self) -> ResourceKey:
        return (self.resource_type, self.resource_id)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def expires_in_ms(self, now: float) -> int:
        return max(0, int(round((self.expires_at - now) * 1000)))


class LockStore:
    """In-process keyed lock table; every mutation is a compare-and-set."""

    def __init__(self, clock: Clock = time.monotonic):
        self.clock = clock
        self._locks: dict[ResourceKey, EditLock] = {}
        self._lapsed: dict[tuple[ResourceKey, int], EditLock] = {}
        self._mutex = threading.Lock()

    def get(self, key: ResourceKey) -> Optional[EditLock]:
        with self._mutex:
            return self._locks.get(key)

    def compare_and_set(self, key: ResourceKey, expected: Optional[EditLock], new: EditLock) -> bool:
        """Store `new` only if the current record is still `expected` (identity)."""
        with self._mutex:
            if self._locks.get(key) is not expected:
                return False
            self._locks[key] = new
            return True

    def compare_and_delete(self, key: ResourceKey, expected: EditLock) -> bool:
        with self._mutex:
            if self._locks.get(key) is not expected:
                return False
            del self._locks[key]
            return True

    def active(self) -> list[EditLock]:
        now = self.clock()
        with self._mutex:
            return [lock for lock in self._locks.values() if not lock.is_expired(now)]

    def purge_expired(self, grace_seconds: float = 0.0) -> int:
        """Drop records expired for longer than grace_seconds. Returns the count."""
        now = self.clock()
        with self._mutex:
            expired = [k for k, lock in self._locks.items() if now >= lock.expires_at + grace_seconds]
            for k in expired:
                lock = self._locks.pop(k)
                self._lapsed[(k, lock.holder_user_id)] = lock
        return len(expired)

    def mark_lapsed(self, lock: EditLock) -> None:
        with self._mutex:
            self._lapsed[(lock.key, lock.holder_user_id)] = lock

    def pop_lapsed(self, key: ResourceKey, user_id: int) -> Optional[EditLock]:
        """The user's lapsed lease on `key`, forgotten once returned."""
        with self._mutex:
            return self._lapsed.pop((key, user_id), None)
