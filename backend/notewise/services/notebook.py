"""User-scoped note operations used by the dashboard routes.

A Notebook only ever writes through ``NoteStore.save_note`` and
``NoteStore.delete_note``; it never replaces the whole collection.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Iterable, Optional

from notewise.entities import Note, new_note, parse_ts
from notewise.errors import NotFound
from notewise.storage.notes_store import NoteStore
from notewise.utils.note_crypto import EncryptionService, decrypt_note, encrypt_note

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Note"


def matches_query(note: Note, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    if q in note.title.lower():
        return True
    # ciphertext is not searchable text
    if not note.is_encrypted and q in note.content.lower():
        return True
    return any(q in tag.lower() for tag in note.tags)


def sort_notes(notes: Iterable[Note]) -> list[Note]:
    """Pinned first, then most recently updated first."""
    by_recency = sorted(notes, key=lambda n: parse_ts(n.updated_at), reverse=True)
    return sorted(by_recency, key=lambda n: not n.is_pinned)


class Notebook:
    def __init__(self, store: NoteStore, user_id: str, crypto: Optional[EncryptionService] = None):
        if not user_id:
            raise ValueError("user_id must not be empty")
        self.store = store
        self.user_id = user_id
        self.crypto = crypto

    def get_note(self, note_id: str) -> Note:
        note = self.store.get_note(self.user_id, note_id)
        if note is None:
            raise NotFound(f"Note {note_id} not found")
        return note

    def list_notes(self, query: str = "") -> list[Note]:
        notes = self.store.get_notes(self.user_id)
        return sort_notes(n for n in notes if matches_query(n, query))

    def create_note(self, title: str = "") -> Note:
        note = new_note(str(uuid.uuid4()), self.user_id, title.strip() or DEFAULT_TITLE)
        stored = self.store.save_note(note)
        logger.info("Created note %s for user %s", stored.id, self.user_id)
        return stored

    def rename_note(self, note_id: str, title: str) -> Note:
        title = title.strip()
        if not title:
            raise ValueError("Title must not be blank")
        return self.store.save_note(replace(self.get_note(note_id), title=title))

    def toggle_pin(self, note_id: str) -> Note:
        note = self.get_note(note_id)
        return self.store.save_note(replace(note, is_pinned=not note.is_pinned))

    def set_tags(self, note_id: str, tags: Iterable[str]) -> Note:
        return self.store.save_note(replace(self.get_note(note_id), tags=tuple(tags)))

    def update_content(self, note_id: str, content: str, html_content: str) -> Note:
        note = self.get_note(note_id)
        if note.is_encrypted:
            raise ValueError("Cannot edit an encrypted note")
        return self.store.save_note(replace(note, content=content, html_content=html_content))

    def toggle_encryption(self, note_id: str, password: str) -> Note:
        """Encrypt a plaintext note or decrypt an encrypted one.

        Both text fields change together or not at all; on InvalidPassword
        the stored note is untouched.
        """
        note = self.get_note(note_id)
        if note.is_encrypted:
            updated = decrypt_note(note, password, self.crypto)
        else:
            updated = encrypt_note(note, password, self.crypto)
        stored = self.store.save_note(updated)
        logger.info(
            "Note %s is now %s", note_id, "encrypted" if stored.is_encrypted else "decrypted"
        )
        return stored

    def delete_note(self, note_id: str) -> bool:
        return self.store.delete_note(note_id, self.user_id)
