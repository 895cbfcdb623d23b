from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from notewise.entities import User
from notewise.errors import StorageUnavailable
from notewise.storage.buckets import USERS_BUCKET, JsonBucket

logger = logging.getLogger(__name__)


class UsersStore:
    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self._bucket = JsonBucket(base_dir, USERS_BUCKET)

    def get_users(self) -> list[User]:
        raw = self._bucket.read(default=[])
        if not isinstance(raw, list):
            raise StorageUnavailable(f"{USERS_BUCKET} does not hold a list")
        try:
            return [User.from_dict(item) for item in raw]
        except (KeyError, TypeError, AttributeError) as exc:
            raise StorageUnavailable(f"{USERS_BUCKET} holds a malformed user") from exc

    def get_user(self, user_id: str) -> Optional[User]:
        for u in self.get_users():
            if u.id == user_id:
                return u
        return None

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for u in self.get_users():
            if u.email.lower() == wanted:
                return u
        return None

    def save_user(self, user: User) -> User:
        with self._bucket.lock:
            users = self.get_users()
            for i, existing in enumerate(users):
                if existing.id == user.id:
                    users[i] = user
                    break
            else:
                users.append(user)

            self._bucket.write([u.to_dict() for u in users])
        logger.info("Saved user %s", user.id)
        return user
