import json
from dataclasses import replace

import pytest

from fakes import ManualScheduler, RecordingStore
from notewise.entities import new_note
from notewise.errors import StorageUnavailable
from notewise.services.autosave import AutosaveController, AutosaveRegistry, AutosaveState, TimerScheduler
from notewise.storage.notes_store import NoteStore

DEBOUNCE = 1000  # manual clock runs in milliseconds


@pytest.fixture()
def clock():
    return ManualScheduler()


@pytest.fixture()
def rstore(tmp_path, clock):
    return RecordingStore(tmp_path, clock)


@pytest.fixture()
def note(rstore):
    return rstore.save_note(new_note("n1", "userA", "Draft"))


@pytest.fixture()
def ctl(rstore, note, clock):
    rstore.saves.clear()
    return AutosaveController(rstore, note, DEBOUNCE, clock)


def test_edit_moves_idle_to_dirty(ctl):
    assert ctl.state is AutosaveState.IDLE
    ctl.edit("h", "<p>h</p>")
    assert ctl.state is AutosaveState.DIRTY
    assert ctl.has_pending_timer
    assert not ctl.is_saving


def test_rapid_edits_coalesce_into_one_save(ctl, rstore, clock):
    ctl.edit("a", "<p>a</p>")
    clock.advance(200)
    ctl.edit("ab", "<p>ab</p>")
    clock.advance(200)
    ctl.edit("abc", "<p>abc</p>")

    clock.advance(999)
    assert rstore.saves == []

    clock.advance(1)
    assert len(rstore.saves) == 1
    saved_at, saved = rstore.saves[0]
    assert saved_at == 1400
    assert (saved.content, saved.html_content) == ("abc", "<p>abc</p>")
    assert ctl.state is AutosaveState.IDLE

    clock.advance(5000)
    assert len(rstore.saves) == 1


def test_save_refreshes_in_memory_copy(ctl, rstore, note, clock):
    ctl.edit("body", "<p>body</p>")
    clock.advance(DEBOUNCE)
    stored = rstore.get_note("userA", "n1")
    assert stored.content == "body"
    assert ctl.note == stored
    assert ctl.note.updated_at >= note.updated_at


def test_edit_during_save_is_not_lost(ctl, rstore, clock):
    observed = []

    def mid_save_edit():
        observed.append(ctl.state)
        ctl.edit("second", "<p>second</p>")

    rstore.during_save = mid_save_edit
    ctl.edit("first", "<p>first</p>")
    clock.advance(DEBOUNCE)

    assert observed == [AutosaveState.SAVING]
    # the in-flight save committed the older text
    assert rstore.get_note("userA", "n1").content == "first"
    assert ctl.state is AutosaveState.DIRTY
    assert ctl.note.content == "second"

    clock.advance(DEBOUNCE)
    assert len(rstore.saves) == 2
    assert rstore.get_note("userA", "n1").content == "second"
    assert ctl.state is AutosaveState.IDLE


def test_flush_saves_immediately_and_cancels_timer(ctl, rstore, clock):
    ctl.edit("now", "<p>now</p>")
    ctl.flush()
    assert len(rstore.saves) == 1
    assert not ctl.has_pending_timer
    clock.advance(DEBOUNCE * 2)
    assert len(rstore.saves) == 1


def test_flush_when_idle_does_nothing(ctl, rstore):
    ctl.flush()
    assert rstore.saves == []


def test_close_cancels_without_saving(ctl, rstore, clock):
    ctl.edit("x", "<p>x</p>")
    ctl.close()
    clock.advance(DEBOUNCE * 2)
    assert rstore.saves == []


def test_flush_propagates_storage_errors(ctl, rstore):
    rstore.fail_next = StorageUnavailable("disk full")
    ctl.edit("x", "<p>x</p>")
    with pytest.raises(StorageUnavailable):
        ctl.flush()
    assert ctl.state is AutosaveState.DIRTY
    assert ctl.note.content == "x"

    ctl.flush()
    assert rstore.get_note("userA", "n1").content == "x"
    assert ctl.last_error is None


def test_timer_failure_keeps_edit_and_does_not_retry(ctl, rstore, clock):
    rstore.fail_next = StorageUnavailable("disk full")
    ctl.edit("x", "<p>x</p>")
    clock.advance(DEBOUNCE)

    assert ctl.state is AutosaveState.DIRTY
    assert isinstance(ctl.last_error, StorageUnavailable)
    assert not ctl.has_pending_timer
    assert rstore.saves == []

    # the next edit schedules a fresh save
    ctl.edit("xy", "<p>xy</p>")
    clock.advance(DEBOUNCE)
    assert rstore.get_note("userA", "n1").content == "xy"


def test_autosave_keeps_changes_made_elsewhere(ctl, rstore, clock):
    ctl.edit("text", "<p>text</p>")
    # pinned and renamed through another path while the edit is pending
    current = rstore.get_note("userA", "n1")
    rstore.save_note(replace(current, is_pinned=True, title="Renamed"))

    clock.advance(DEBOUNCE)
    stored = rstore.get_note("userA", "n1")
    assert stored.is_pinned and stored.title == "Renamed"
    assert stored.content == "text"


def test_encrypted_note_cannot_be_edited(rstore, clock):
    note = rstore.save_note(replace(new_note("n2", "userA", "t"), is_encrypted=True, content="ct", html_content="ct"))
    ctl = AutosaveController(rstore, note, DEBOUNCE, clock)
    with pytest.raises(ValueError):
        ctl.edit("plain", "<p>plain</p>")
    assert ctl.state is AutosaveState.IDLE


def test_registry_reuses_controller_and_flushes_per_user(rstore, clock):
    a = rstore.save_note(new_note("a1", "userA", "t"))
    b = rstore.save_note(new_note("b1", "userB", "t"))
    registry = AutosaveRegistry(rstore, DEBOUNCE, clock)

    ctl_a = registry.open(a)
    assert registry.open(a) is ctl_a
    ctl_a.edit("from A", "<p>from A</p>")
    registry.open(b).edit("from B", "<p>from B</p>")

    assert registry.flush_user("userA") == 1
    assert rstore.get_note("userA", "a1").content == "from A"
    assert rstore.get_note("userB", "b1").content == ""
    assert registry.get("userA", "a1") is None
    assert registry.get("userB", "b1") is not None

    registry.discard("userB", "b1")
    clock.advance(DEBOUNCE * 2)
    assert rstore.get_note("userB", "b1").content == ""


def test_flush_user_keeps_controller_whose_save_fails(rstore, clock):
    first = rstore.save_note(new_note("a1", "userA", "t"))
    second = rstore.save_note(new_note("a2", "userA", "t"))
    registry = AutosaveRegistry(rstore, DEBOUNCE, clock)
    registry.open(first).edit("unsaved", "<p>unsaved</p>")
    registry.open(second).edit("saved", "<p>saved</p>")

    rstore.fail_next = StorageUnavailable("disk full")
    with pytest.raises(StorageUnavailable):
        registry.flush_user("userA")

    failed = registry.get("userA", "a1")
    assert failed is not None
    assert failed.state is AutosaveState.DIRTY
    assert failed.note.content == "unsaved"
    assert registry.get("userA", "a2") is None
    assert rstore.get_note("userA", "a2").content == "saved"

    assert registry.flush_user("userA") == 1
    assert registry.get("userA", "a1") is None
    assert rstore.get_note("userA", "a1").content == "unsaved"


def test_timer_saves_and_request_saves_share_the_bucket(tmp_path):
    store = NoteStore(tmp_path)
    note = store.save_note(new_note("a1", "userA", "Draft"))
    ctl = AutosaveController(store, note, 0, TimerScheduler())

    for i in range(200):
        ctl.edit(f"edit {i}", f"<p>edit {i}</p>")
        store.save_note(new_note(f"b{i}", "userB", f"note {i}"))
    ctl.flush()

    raw = json.loads((tmp_path / "notes.json").read_text(encoding="utf-8"))
    assert len(raw) == 201
    assert len(store.get_notes("userB")) == 200
    assert store.get_note("userA", "a1").content == "edit 199"
    assert list(tmp_path.glob("*.tmp")) == []
