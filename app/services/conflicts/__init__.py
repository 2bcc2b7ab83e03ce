"""
Edit locks and conflict resolution for shared schedule records.
"""

from .locks import EditLock, LockState, LockStore
from .coordinator import (
    Choice,
    Conflict,
    EditCoordinator,
    ResolutionStrategy,
    ResourceEdit,
    detect_conflicts,
    merge_changes,
)

__all__ = [
    "EditLock",
    "LockState",
    "LockStore",
    "Choice",
    "Conflict",
    "EditCoordinator",
    "ResolutionStrategy",
    "ResourceEdit",
    "detect_conflicts",
    "merge_changes",
]
