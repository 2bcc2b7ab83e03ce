from typing import ClassVar, Dict, Optional

from pydantic import model_validator

from app.schemas.base import CamelModel
from app.services.conflicts import ResolutionStrategy


class SnapshotEnvelope(CamelModel):
    """
    Per-resource conflict fields. Subclasses list their editable fields in
    EDITABLE (attribute -> API name); baseSnapshot and choices may be keyed
    by either and are normalized to API names.
    """
    base_snapshot: Optional[dict] = None
    # conflicting field -> "current" | "incoming"
    choices: Optional[Dict[str, str]] = None
    # token from the lock acquisition, if the client took one
    lock_token: Optional[str] = None

    EDITABLE: ClassVar[Dict[str, str]] = {}

    @model_validator(mode="after")
    def snapshot_keys_to_api_names(self):
        if self.base_snapshot is not None:
            self.base_snapshot = self._to_api_names(self.base_snapshot, "baseSnapshot")
        if self.choices is not None:
            self.choices = self._to_api_names(self.choices, "choices")
        return self

    @classmethod
    def _to_api_names(cls, values: dict, where: str) -> dict:
        names = {api_name: api_name for api_name in cls.EDITABLE.values()}
        names.update(cls.EDITABLE)
        unknown = sorted(k for k in values if k not in names)
        if unknown:
            raise ValueError(f"{where} has fields that cannot be edited here: {', '.join(unknown)}")
        return {names[k]: v for k, v in values.items()}

    def changes(self, fields: Optional[Dict[str, str]] = None) -> dict:
        """Explicitly set editable fields, keyed by API (camelCase) name."""
        fields = fields if fields is not None else self.EDITABLE
        data = self.model_dump(exclude_unset=True)
        return {api_name: data[attr] for attr, api_name in fields.items() if attr in data}


class EditEnvelope(SnapshotEnvelope):
    """Conflict-protocol fields carried by every lockable update."""
    strategy: Optional[ResolutionStrategy] = None
