from typing import Generator, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_access_token
from app.db.database import SessionLocal
from app.db.models.users import Users
from app.services.conflicts import EditCoordinator, LockStore

security = HTTPBearer()

_coordinator = EditCoordinator(LockStore(), ttl_seconds=settings.EDIT_LOCK_TTL_SECONDS)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_coordinator() -> EditCoordinator:
    """Process-wide edit coordinator; tests override this dependency."""
    return _coordinator


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Users:
    token_data = decode_access_token(credentials.credentials)
    if token_data is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.query(Users).filter(Users.id == token_data.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    return user


def target_user_id(user_id: Optional[int], current_user: Users) -> int:
    """?userId= selects another user's schedule, defaulting to the caller."""
    return user_id if user_id is not None else current_user.id
