"""Debounced autosave for one note being edited.

States move ``idle -> dirty -> saving -> idle``. An edit that lands while a
save is in flight does not cancel that save; once it commits the controller
goes back to ``dirty`` for the newer edit. Rapid edits collapse into one
save per debounce window.

Scheduling is injected (:class:`Scheduler`), so the same controller runs on
``threading.Timer`` in the app and on a manual clock in tests.
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import replace
from typing import Callable, Optional, Protocol

from notewise.entities import Note
from notewise.errors import StorageUnavailable
from notewise.storage.notes_store import NoteStore

logger = logging.getLogger(__name__)


class AutosaveState(str, enum.Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    SAVING = "saving"


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class TimerScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class AutosaveController:
    def __init__(
        self,
        store: NoteStore,
        note: Note,
        delay: float,
        scheduler: Optional[Scheduler] = None,
    ):
        self.store = store
        self.delay = delay
        self.scheduler = scheduler or TimerScheduler()
        self.last_error: Optional[StorageUnavailable] = None

        self._note = note
        self._state = AutosaveState.IDLE
        self._pending: Optional[Cancellable] = None
        self._edit_seq = 0
        self._lock = threading.RLock()

    @property
    def note(self) -> Note:
        return self._note

    @property
    def state(self) -> AutosaveState:
        return self._state

    @property
    def is_saving(self) -> bool:
        return self._state is AutosaveState.SAVING

    @property
    def has_pending_timer(self) -> bool:
        return self._pending is not None

    def edit(self, content: str, html_content: str) -> None:
        with self._lock:
            if self._note.is_encrypted:
                raise ValueError("Cannot edit an encrypted note")
            self._note = replace(self._note, content=content, html_content=html_content)
            self._edit_seq += 1
            if self._state is AutosaveState.IDLE:
                self._state = AutosaveState.DIRTY
            self._restart_timer()

    def flush(self) -> Note:
        """Save now if there are unsaved edits. Storage errors propagate."""
        with self._lock:
            self._cancel_timer()
            if self._state is AutosaveState.DIRTY:
                self._save()
            return self._note

    def close(self) -> None:
        with self._lock:
            self._cancel_timer()

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._pending = self.scheduler.call_later(self.delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_timer(self) -> None:
        with self._lock:
            self._pending = None
            if self._state is not AutosaveState.DIRTY:
                return
            try:
                self._save()
            except (StorageUnavailable, ValueError) as exc:
                logger.error("Autosave of note %s failed: %s", self._note.id, exc)

    def _merged_snapshot(self) -> Note:
        # only the text fields belong to this edit session; title, pin, tags
        # and the encryption flag come from the stored record
        current = self.store.get_note(self._note.user_id, self._note.id)
        if current is None:
            return self._note
        if current.is_encrypted:
            raise ValueError("Note was encrypted while being edited")
        return replace(current, content=self._note.content, html_content=self._note.html_content)

    def _save(self) -> None:
        self._state = AutosaveState.SAVING
        seq = self._edit_seq
        try:
            # merge and write as one step against other writers of the bucket
            with self.store.lock:
                snapshot = self._merged_snapshot()
                stored = self.store.save_note(snapshot)
        except StorageUnavailable as exc:
            self.last_error = exc
            self._state = AutosaveState.DIRTY
            raise
        except ValueError:
            self._state = AutosaveState.DIRTY
            raise

        self.last_error = None
        if self._edit_seq == seq:
            self._note = stored
            self._state = AutosaveState.IDLE
        else:
            # newer edit arrived during the save; keep its text on top of the stored record
            self._note = replace(stored, content=self._note.content, html_content=self._note.html_content)
            self._state = AutosaveState.DIRTY
        logger.debug("Autosaved note %s (state=%s)", snapshot.id, self._state.value)


class AutosaveRegistry:
    """One controller per (user, note) edit session."""

    def __init__(self, store: NoteStore, delay: float, scheduler: Optional[Scheduler] = None):
        self.store = store
        self.delay = delay
        self.scheduler = scheduler
        self._controllers: dict[tuple[str, str], AutosaveController] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, note_id: str) -> Optional[AutosaveController]:
        return self._controllers.get((user_id, note_id))

    def open(self, note: Note) -> AutosaveController:
        key = (note.user_id, note.id)
        with self._lock:
            ctl = self._controllers.get(key)
            if ctl is None:
                ctl = AutosaveController(self.store, note, self.delay, self.scheduler)
                self._controllers[key] = ctl
            return ctl

    def discard(self, user_id: str, note_id: str) -> None:
        with self._lock:
            ctl = self._controllers.pop((user_id, note_id), None)
        if ctl is not None:
            ctl.close()

    def flush_user(self, user_id: str) -> int:
        """Save and drop every open controller of ``user_id``.

        A controller whose save fails stays registered with its edit, and the
        first storage error is raised once every controller has been tried.
        """
        with self._lock:
            opened = [(k, c) for k, c in self._controllers.items() if k[0] == user_id]

        flushed = 0
        failure: Optional[StorageUnavailable] = None
        for key, ctl in opened:
            try:
                ctl.flush()
            except StorageUnavailable as exc:
                logger.error("Could not flush note %s for user %s: %s", key[1], user_id, exc)
                failure = failure or exc
                continue
            except ValueError as exc:
                # the note was encrypted underneath the editor; plaintext cannot go over it
                logger.warning("Dropping unsaved edit of encrypted note %s: %s", key[1], exc)
            with self._lock:
                if self._controllers.get(key) is ctl:
                    del self._controllers[key]
            ctl.close()
            flushed += 1

        if failure is not None:
            raise failure
        return flushed
