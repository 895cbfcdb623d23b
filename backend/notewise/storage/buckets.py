import json
import logging
import os
import threading
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from notewise.errors import StorageUnavailable

logger = logging.getLogger(__name__)

USERS_BUCKET = "users.json"
NOTES_BUCKET = "notes.json"
CURRENT_USER_BUCKET = "current_user.json"

# one lock per bucket file, shared by every JsonBucket in the process
_bucket_locks: dict[str, threading.RLock] = {}
_bucket_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = os.path.abspath(path)
    with _bucket_locks_guard:
        lock = _bucket_locks.get(key)
        if lock is None:
            lock = _bucket_locks[key] = threading.RLock()
        return lock


def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # unique temp name per write, so concurrent writers never share a file
    with NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(path.parent), prefix=path.name + ".", suffix=".tmp", delete=False
    ) as f:
        tmp_path = Path(f.name)
        try:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        except BaseException:
            f.close()
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


class JsonBucket:
    """One addressable bucket of persisted state, stored as a JSON document."""

    def __init__(self, base_dir: Path, name: str):
        self.base_dir = base_dir
        self.name = name

    @property
    def lock(self) -> threading.RLock:
        """Held around read-modify-write sequences on this bucket."""
        return _lock_for(self.path)

    @property
    def path(self) -> Path:
        return self.base_dir / self.name

    def read(self, default: Any = None) -> Any:
        p = self.path
        if not p.exists():
            return default
        try:
            return json.loads(p.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            # never treat an unreadable bucket as empty: the next write would
            # replace everyone's data with the caller's view
            logger.error("Cannot read bucket %s: %s", self.name, exc)
            raise StorageUnavailable(f"Cannot read {self.name}") from exc

    def write(self, data: Any) -> None:
        try:
            with self.lock:
                _atomic_write_json(self.path, data)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Cannot write bucket %s: %s", self.name, exc)
            raise StorageUnavailable(f"Cannot write {self.name}") from exc

    def remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Cannot remove bucket %s: %s", self.name, exc)
            raise StorageUnavailable(f"Cannot remove {self.name}") from exc
