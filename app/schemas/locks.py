from typing import Optional

from app.schemas.base import CamelModel


class EditLockResponse(CamelModel):
    resource_type: str
    resource_id: int
    holder_user_id: int
    holder_name: str
    state: str
    expires_in: int  # ms
    # only shown to the holder; echoed back as lockToken on submit
    lock_token: Optional[str] = None
