from typing import Optional

from pydantic import BaseModel, Field

from notewise.entities import Note


class NoteCreate(BaseModel):
    title: str = Field(default="", max_length=200)


class TitleUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class ContentUpdate(BaseModel):
    content: str = Field(default="", max_length=500_000)
    html_content: str = Field(default="", max_length=1_000_000)


class TagsUpdate(BaseModel):
    tags: list[str] = Field(default_factory=list, max_length=64)


class EncryptionRequest(BaseModel):
    password: str = Field(min_length=1, max_length=256)


class NoteOut(BaseModel):
    id: str
    user_id: str
    title: str
    content: str
    html_content: str
    is_pinned: bool
    is_encrypted: bool
    tags: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_note(cls, note: Note) -> "NoteOut":
        return cls(
            id=note.id,
            user_id=note.user_id,
            title=note.title,
            content=note.content,
            html_content=note.html_content,
            is_pinned=note.is_pinned,
            is_encrypted=note.is_encrypted,
            tags=list(note.tags),
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class AutosaveOut(BaseModel):
    note_id: str
    state: str
    saving: bool
    updated_at: str
    error: Optional[str] = None


class InsightsOut(BaseModel):
    word_count: int
    reading_time: int
    summary: str
    key_points: list[str]
    related_topics: list[str]
    glossary: dict[str, str] = Field(default_factory=dict)


class GrammarOut(BaseModel):
    note_id: str
    corrected: str
