"""
Error taxonomy for schedule resolution, hours accounting and edit conflicts.
Route handlers let these propagate; app.main maps them to HTTP responses.
"""

from typing import Any, Optional


class ScheduleError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ScheduleValidationError(ScheduleError):
    """Bad time range, overlapping blocks or an invalid resolution request."""
    status_code = 400


class NotFoundError(ScheduleError):
    status_code = 404


class LockContention(ScheduleError):
    """Resource is held by another user. Never blocks; carries holder + remaining TTL."""
    status_code = 409

    def __init__(self, user_id: int, user_name: str, expires_in_ms: int):
        super().__init__(f"Resource is being edited by {user_name}")
        self.user_id = user_id
        self.user_name = user_name
        self.expires_in_ms = expires_in_ms

    def to_dict(self) -> dict:
        return {
            "error": "locked",
            "lockedBy": {
                "userId": self.user_id,
                "userName": self.user_name,
                "expiresIn": self.expires_in_ms,
            },
        }


class StaleLockError(ScheduleError):
    """The submitter's own lock expired before the edit was submitted."""
    status_code = 409

    def __init__(self, resource_type: str, resource_id: int):
        super().__init__(f"Edit lock on {resource_type} {resource_id} expired, reload and retry")
        self.resource_type = resource_type
        self.resource_id = resource_id

    def to_dict(self) -> dict:
        return {
            "error": "stale_lock",
            "message": self.message,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
        }


class ConflictDetected(ScheduleError):
    status_code = 409

    def __init__(self, conflicts: list):
        fields = ", ".join(c.field for c in conflicts)
        super().__init__(f"Conflicting changes on: {fields}")
        self.conflicts = conflicts

    def to_dict(self) -> dict:
        return {
            "error": "conflict",
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class DataIntegrityWarning(Warning):
    """Malformed stored template data. Logged and degraded, never surfaced to callers."""

    def __init__(self, message: str, template_id: Optional[int] = None, weekday: Optional[int] = None, raw: Any = None):
        super().__init__(message)
        self.template_id = template_id
        self.weekday = weekday
        self.raw = raw
