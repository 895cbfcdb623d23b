import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from notewise.config import data_dir, debounce_seconds
from notewise.entities import Note, User
from notewise.errors import InvalidNote, InvalidPassword, NotFound
from notewise.models.notes import (
    AutosaveOut,
    ContentUpdate,
    EncryptionRequest,
    GrammarOut,
    InsightsOut,
    NoteCreate,
    NoteOut,
    TagsUpdate,
    TitleUpdate,
)
from notewise.services.autosave import AutosaveController, AutosaveRegistry, AutosaveState
from notewise.services.insights import InsightsProvider, safe_correct_grammar, safe_insights
from notewise.services.notebook import Notebook
from notewise.storage.notes_store import NoteStore
from notewise.utils.session_auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])

store = NoteStore(data_dir())

# open edit sessions, debounced into store writes
editors = AutosaveRegistry(store, delay=debounce_seconds())

# remote insights collaborator; None means local results only
insights_provider: Optional[InsightsProvider] = None


def get_notebook(user: User = Depends(get_current_user)) -> Notebook:
    return Notebook(store, user.id)


def _load(notebook: Notebook, note_id: str) -> Note:
    try:
        return notebook.get_note(note_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Note not found")


def _status(note: Note, ctl: AutosaveController | None) -> AutosaveOut:
    if ctl is None:
        return AutosaveOut(note_id=note.id, state=AutosaveState.IDLE.value, saving=False, updated_at=note.updated_at)
    return AutosaveOut(
        note_id=note.id,
        state=ctl.state.value,
        saving=ctl.is_saving,
        updated_at=ctl.note.updated_at,
        error=str(ctl.last_error) if ctl.last_error else None,
    )


@router.get("", response_model=list[NoteOut])
def list_notes(q: str = "", notebook: Notebook = Depends(get_notebook)) -> list[NoteOut]:
    return [NoteOut.from_note(n) for n in notebook.list_notes(q)]


@router.post("", response_model=NoteOut, status_code=201)
def create_note(payload: NoteCreate, notebook: Notebook = Depends(get_notebook)) -> NoteOut:
    return NoteOut.from_note(notebook.create_note(payload.title))


@router.get("/{note_id}", response_model=NoteOut)
def get_note(note_id: str, notebook: Notebook = Depends(get_notebook)) -> NoteOut:
    return NoteOut.from_note(_load(notebook, note_id))


# idempotent: deleting an absent note is a no-op
@router.delete("/{note_id}", status_code=204)
def delete_note(note_id: str, notebook: Notebook = Depends(get_notebook)) -> None:
    editors.discard(notebook.user_id, note_id)
    notebook.delete_note(note_id)
    return None


@router.put("/{note_id}/title", response_model=NoteOut)
def rename_note(note_id: str, payload: TitleUpdate, notebook: Notebook = Depends(get_notebook)) -> NoteOut:
    _load(notebook, note_id)
    try:
        return NoteOut.from_note(notebook.rename_note(note_id, payload.title))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/{note_id}/pin", response_model=NoteOut)
def toggle_pin(note_id: str, notebook: Notebook = Depends(get_notebook)) -> NoteOut:
    _load(notebook, note_id)
    return NoteOut.from_note(notebook.toggle_pin(note_id))


@router.put("/{note_id}/tags", response_model=NoteOut)
def set_tags(note_id: str, payload: TagsUpdate, notebook: Notebook = Depends(get_notebook)) -> NoteOut:
    _load(notebook, note_id)
    try:
        return NoteOut.from_note(notebook.set_tags(note_id, payload.tags))
    except InvalidNote as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/{note_id}/encryption", response_model=NoteOut)
def toggle_encryption(
    note_id: str, payload: EncryptionRequest, notebook: Notebook = Depends(get_notebook)
) -> NoteOut:
    _load(notebook, note_id)

    ctl = editors.get(notebook.user_id, note_id)
    if ctl is not None:
        # pending text must land before the fields are transformed
        ctl.flush()
        editors.discard(notebook.user_id, note_id)

    try:
        return NoteOut.from_note(notebook.toggle_encryption(note_id, payload.password))
    except InvalidPassword:
        raise HTTPException(status_code=403, detail="Invalid password")


@router.put("/{note_id}/content", response_model=AutosaveOut)
def edit_content(note_id: str, payload: ContentUpdate, notebook: Notebook = Depends(get_notebook)) -> AutosaveOut:
    note = _load(notebook, note_id)
    ctl = editors.open(note)
    try:
        ctl.edit(payload.content, payload.html_content)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _status(note, ctl)


@router.post("/{note_id}/save", response_model=AutosaveOut)
def save_now(note_id: str, notebook: Notebook = Depends(get_notebook)) -> AutosaveOut:
    note = _load(notebook, note_id)
    ctl = editors.get(notebook.user_id, note_id)
    if ctl is not None:
        try:
            ctl.flush()
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
    return _status(note, ctl)


@router.get("/{note_id}/autosave", response_model=AutosaveOut)
def autosave_status(note_id: str, notebook: Notebook = Depends(get_notebook)) -> AutosaveOut:
    note = _load(notebook, note_id)
    return _status(note, editors.get(notebook.user_id, note_id))


@router.get("/{note_id}/insights", response_model=InsightsOut)
def note_insights(note_id: str, notebook: Notebook = Depends(get_notebook)) -> InsightsOut:
    note = _load(notebook, note_id)
    try:
        insights = safe_insights(note, insights_provider)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return InsightsOut(
        word_count=insights.word_count,
        reading_time=insights.reading_time,
        summary=insights.summary,
        key_points=insights.key_points,
        related_topics=insights.related_topics,
        glossary=insights.glossary,
    )


@router.post("/{note_id}/grammar", response_model=GrammarOut)
def note_grammar(note_id: str, notebook: Notebook = Depends(get_notebook)) -> GrammarOut:
    """Return corrected text for review. The stored note is not changed."""
    note = _load(notebook, note_id)
    try:
        corrected = safe_correct_grammar(note, insights_provider)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return GrammarOut(note_id=note.id, corrected=corrected)
