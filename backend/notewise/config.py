from __future__ import annotations

import os
from pathlib import Path

# Base data dir: repository_root/data (we are in backend/notewise/)
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "data"

DEFAULT_DEBOUNCE_MS = 1000
DEFAULT_KDF_ITERATIONS = 480_000


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def data_dir() -> Path:
    return Path(os.getenv("NOTEWISE_DATA_DIR", str(DEFAULT_DATA_DIR)))


def debounce_seconds() -> float:
    ms = _int_env("AUTOSAVE_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS)
    if ms < 0:
        ms = DEFAULT_DEBOUNCE_MS
    return ms / 1000.0


def kdf_iterations() -> int:
    n = _int_env("NOTEWISE_KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS)
    return n if n > 0 else DEFAULT_KDF_ITERATIONS


def log_level() -> str:
    return os.getenv("NOTEWISE_LOG_LEVEL", "INFO").upper()
