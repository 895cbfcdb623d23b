from __future__ import annotations

from fastapi import HTTPException, status

from notewise.config import data_dir
from notewise.entities import User
from notewise.storage.session_store import SessionManager

sessions = SessionManager(data_dir())


def get_current_user() -> User:
    """Dependency: the user of the active device session, or 401."""
    user = sessions.get_current_user()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return user
