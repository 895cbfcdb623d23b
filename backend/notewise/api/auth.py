from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from fastapi import APIRouter, Depends, HTTPException, status

from notewise.api.notes import editors
from notewise.config import data_dir
from notewise.entities import User, utc_now_iso
from notewise.models.auth import LoginRequest, ProfileUpdate, SignupRequest, UserOut
from notewise.storage.users_store import UsersStore
from notewise.utils.session_auth import get_current_user, sessions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

users = UsersStore(data_dir())


@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(req: SignupRequest) -> UserOut:
    if users.find_by_email(req.email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User exists")

    user = User(
        id=str(uuid.uuid4()),
        name=req.name.strip() or req.email.split("@")[0],
        email=req.email,
        avatar=req.avatar,
        created_at=utc_now_iso(),
    )
    users.save_user(user)
    sessions.set_current_user(user)
    return UserOut.from_user(user)


@router.post("/login", response_model=UserOut)
def login(req: LoginRequest) -> UserOut:
    user = users.find_by_email(req.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown user")

    sessions.set_current_user(user)
    return UserOut.from_user(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout() -> None:
    user = sessions.get_current_user()
    if user is not None:
        flushed = editors.flush_user(user.id)
        logger.info("Flushed %d open editors before logout", flushed)
    sessions.clear_session()
    return None


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.from_user(user)


@router.put("/me", response_model=UserOut)
def update_profile(req: ProfileUpdate, user: User = Depends(get_current_user)) -> UserOut:
    if req.email is not None:
        other = users.find_by_email(req.email)
        if other is not None and other.id != user.id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    updated = replace(
        user,
        name=req.name if req.name is not None else user.name,
        email=req.email if req.email is not None else user.email,
        avatar=req.avatar if req.avatar is not None else user.avatar,
    )
    users.save_user(updated)
    # keep the session copy in step with the users bucket
    sessions.set_current_user(updated)
    return UserOut.from_user(updated)
