"""User and Note records as persisted in the local buckets.

Both are frozen dataclasses: every mutation produces a new value via
``dataclasses.replace``, so a failed multi-field change can never leave a
half-updated record behind. ``to_dict``/``from_dict`` use the persisted
field names (camelCase).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from notewise.errors import InvalidNote

AVATAR_IDS = ("avatar1", "avatar2", "avatar3", "avatar4", "avatar5")
DEFAULT_AVATAR = AVATAR_IDS[0]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_ts(s: str) -> datetime:
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    avatar: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "User":
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            email=raw.get("email", ""),
            avatar=raw.get("avatar") or DEFAULT_AVATAR,
            created_at=raw["createdAt"],
        )


@dataclass(frozen=True)
class Note:
    id: str
    user_id: str
    title: str
    content: str = ""
    html_content: str = ""
    is_pinned: bool = False
    is_encrypted: bool = False
    tags: tuple[str, ...] = field(default_factory=tuple)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content,
            "htmlContent": self.html_content,
            "isPinned": self.is_pinned,
            "isEncrypted": self.is_encrypted,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Note":
        return cls(
            id=str(raw["id"]),
            user_id=str(raw["userId"]),
            title=raw.get("title", ""),
            content=raw.get("content", ""),
            html_content=raw.get("htmlContent", ""),
            is_pinned=bool(raw.get("isPinned", False)),
            is_encrypted=bool(raw.get("isEncrypted", False)),
            tags=_tags_from(raw.get("tags", [])),
            created_at=_timestamp_from(raw, "createdAt"),
            updated_at=_timestamp_from(raw, "updatedAt"),
        )


def _tags_from(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise TypeError("tags must be a list of strings")
    return tuple(value)


def _timestamp_from(raw: dict[str, Any], key: str) -> str:
    value = raw[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    parse_ts(value)  # ValueError when unparseable
    return value


def new_note(note_id: str, user_id: str, title: str, tags: Iterable[str] = ()) -> Note:
    now = utc_now_iso()
    return Note(
        id=note_id,
        user_id=user_id,
        title=title,
        tags=tuple(tags),
        created_at=now,
        updated_at=now,
    )


def is_well_formed(note: Note) -> bool:
    return bool(note.id) and bool(note.user_id) and len(set(note.tags)) == len(note.tags)


def validate_note(note: Note) -> Note:
    if not note.id:
        raise InvalidNote("Note id must not be empty")
    if not note.user_id:
        raise InvalidNote("Note userId must not be empty")
    if len(set(note.tags)) != len(note.tags):
        raise InvalidNote("Note tags must not contain duplicates")
    return note
