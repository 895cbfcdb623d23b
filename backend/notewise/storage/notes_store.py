import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Sequence

from notewise.entities import Note, utc_now_iso, validate_note
from notewise.errors import InvalidNote, StorageUnavailable
from notewise.storage.buckets import NOTES_BUCKET, JsonBucket

logger = logging.getLogger(__name__)


class NoteStore:
    """Single shared notes bucket, partitioned by ``user_id`` on every access.

    Every write recomputes the whole collection as
    (notes of all other users) + (the target user's new set), so a write for
    one user can never remove or alter another user's notes.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self._bucket = JsonBucket(base_dir, NOTES_BUCKET)

    @property
    def lock(self):
        """Held by every writer across load, merge and write."""
        return self._bucket.lock

    def _load_all(self) -> list[Note]:
        raw = self._bucket.read(default=[])
        if not isinstance(raw, list):
            raise StorageUnavailable(f"{NOTES_BUCKET} does not hold a list")
        try:
            return [Note.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StorageUnavailable(f"{NOTES_BUCKET} holds a malformed note") from exc

    def _write_all(self, notes: Iterable[Note]) -> None:
        self._bucket.write([n.to_dict() for n in notes])

    def _merge_partition(self, all_notes: list[Note], user_id: str, mine: list[Note]) -> list[Note]:
        others = [n for n in all_notes if n.user_id != user_id]
        return others + mine

    def get_all_notes(self) -> list[Note]:
        return self._load_all()

    def get_notes(self, user_id: str) -> list[Note]:
        # exact match: an empty user id is a partition of its own, not a wildcard
        return [n for n in self._load_all() if n.user_id == user_id]

    def get_note(self, user_id: str, note_id: str) -> Note | None:
        for n in self.get_notes(user_id):
            if n.id == note_id:
                return n
        return None

    def save_notes(self, notes: Sequence[Note]) -> None:
        """Replace the entire collection with exactly ``notes``.

        Low-level primitive: it does no partitioning. Passing only one user's
        notes drops every other user's notes. Feature code goes through
        :meth:`save_note` / :meth:`delete_note` instead.
        """
        for n in notes:
            validate_note(n)
            try:
                Note.from_dict(n.to_dict())
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidNote(f"Note {n.id} has missing or malformed fields") from exc
        self._write_all(notes)
        logger.warning("Replaced entire notes collection (%d notes)", len(notes))

    def save_note(self, note: Note) -> Note:
        """Upsert ``note`` into its owner's partition and return it as stored.

        ``updatedAt`` is refreshed; ``createdAt`` of an existing note is kept.
        """
        validate_note(note)
        with self._bucket.lock:
            return self._upsert(note)

    def _upsert(self, note: Note) -> Note:
        all_notes = self._load_all()

        for n in all_notes:
            if n.id == note.id and n.user_id != note.user_id:
                raise InvalidNote("Note id already belongs to another user")

        mine = [n for n in all_notes if n.user_id == note.user_id]
        now = utc_now_iso()
        stored = None
        for i, existing in enumerate(mine):
            if existing.id == note.id:
                stored = replace(note, created_at=existing.created_at, updated_at=now)
                mine[i] = stored
                break
        if stored is None:
            stored = replace(note, created_at=note.created_at or now, updated_at=now)
            mine.append(stored)

        self._write_all(self._merge_partition(all_notes, note.user_id, mine))
        logger.debug("Saved note %s for user %s", note.id, note.user_id)
        return stored

    def delete_note(self, note_id: str, user_id: str) -> bool:
        with self._bucket.lock:
            return self._delete(note_id, user_id)

    def _delete(self, note_id: str, user_id: str) -> bool:
        all_notes = self._load_all()
        mine = [n for n in all_notes if n.user_id == user_id]
        remaining = [n for n in mine if n.id != note_id]
        if len(remaining) == len(mine):
            return False

        self._write_all(self._merge_partition(all_notes, user_id, remaining))
        logger.info("Deleted note %s for user %s", note_id, user_id)
        return True
