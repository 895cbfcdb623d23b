import importlib

import pytest
from fastapi.testclient import TestClient

from notewise.storage.notes_store import NoteStore
from notewise.utils.note_crypto import EncryptionService


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    # full-strength PBKDF2 makes every encrypt/decrypt take a noticeable time
    monkeypatch.setenv("NOTEWISE_KDF_ITERATIONS", "1000")


@pytest.fixture()
def store(tmp_path):
    return NoteStore(tmp_path)


@pytest.fixture()
def crypto():
    return EncryptionService(iterations=1000)


@pytest.fixture()
def client(tmp_path, monkeypatch):
    # isolate data dir per test
    monkeypatch.setenv("NOTEWISE_DATA_DIR", str(tmp_path))
    # autosave timers never fire on their own in API tests; they flush explicitly
    monkeypatch.setenv("AUTOSAVE_DEBOUNCE_MS", "600000")

    # reload modules so that the module-level stores pick up the new env vars
    import notewise.utils.session_auth
    import notewise.api.notes
    import notewise.api.auth
    import notewise.main
    importlib.reload(notewise.utils.session_auth)
    importlib.reload(notewise.api.notes)
    importlib.reload(notewise.api.auth)
    importlib.reload(notewise.main)

    return TestClient(notewise.main.app)


@pytest.fixture()
def signed_in(client):
    r = client.post("/auth/signup", json={"email": "ada@example.com", "name": "Ada"})
    assert r.status_code == 201
    return client
