# app/deps.py
# Role: Shared application-level dependencies.
#       Provides the standard SQLAlchemy database session dependency, the
#       owner (user id) taken from the X-User-Id header, and the process-wide
#       event bus the SMS pipeline publishes to.

"""
Shared dependencies for the SMS expense tracker API.
"""

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from db import SessionLocal
from app.services.events import EventBus, default_bus
from app.services.onboarding import ensure_user_initialized

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Owner
# -------------------------------------------------------------------

def get_owner_id(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[int]:
    """
    Owner from the X-User-Id header, or None when it is missing/invalid.
    A known owner gets the default categories and rules on first use.
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        return None
    owner_id = int(x_user_id.strip())
    if owner_id <= 0:
        return None
    ensure_user_initialized(db, owner_id)
    return owner_id


def require_owner(owner_id: Optional[int] = Depends(get_owner_id)) -> int:
    if owner_id is None:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return owner_id


# -------------------------------------------------------------------
# Events
# -------------------------------------------------------------------

def get_event_bus() -> EventBus:
    return default_bus
