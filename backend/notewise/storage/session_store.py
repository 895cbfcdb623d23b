from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from notewise.entities import User
from notewise.errors import StorageUnavailable
from notewise.storage.buckets import CURRENT_USER_BUCKET, JsonBucket

logger = logging.getLogger(__name__)


class SessionManager:
    """Which user is active on this device. Local-only, one session at a time."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self._bucket = JsonBucket(base_dir, CURRENT_USER_BUCKET)

    def get_current_user(self) -> Optional[User]:
        raw = self._bucket.read(default=None)
        if raw is None:
            return None
        try:
            return User.from_dict(raw)
        except (KeyError, TypeError, AttributeError) as exc:
            raise StorageUnavailable(f"{CURRENT_USER_BUCKET} holds a malformed user") from exc

    def set_current_user(self, user: User) -> None:
        self._bucket.write(user.to_dict())
        logger.info("Session started for user %s", user.id)

    def clear_session(self) -> None:
        self._bucket.remove()
        logger.info("Session cleared")
