"""Password-based encryption of note text using cryptography's Fernet.

Provides:
- EncryptionService.encrypt(plaintext, password) -> str
- EncryptionService.decrypt(ciphertext, password) -> str
- encrypt_note(note, password) / decrypt_note(note, password)

Each ciphertext carries its own salt and PBKDF2 iteration count, formatted as
``nw1$<iterations>$<salt>$<fernet token>``, so the ciphertext plus the
password is enough to decrypt. Fernet authenticates the token, so a wrong
password or a tampered ciphertext is rejected instead of yielding garbage.
New ciphertexts use ``NOTEWISE_KDF_ITERATIONS`` rounds (see notewise.config).
"""
from __future__ import annotations

import base64
import binascii
import os
from dataclasses import replace
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from notewise.config import kdf_iterations
from notewise.entities import Note
from notewise.errors import InvalidPassword

FORMAT_TAG = "nw1"
SALT_BYTES = 16
MAX_ITERATIONS = 10_000_000


def _derive_fernet_key(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


class EncryptionService:
    def __init__(self, iterations: Optional[int] = None):
        self._iterations = iterations

    @property
    def iterations(self) -> int:
        return self._iterations or kdf_iterations()

    def encrypt(self, plaintext: str, password: str) -> str:
        if not password:
            raise InvalidPassword("Password must not be empty")
        salt = os.urandom(SALT_BYTES)
        iterations = self.iterations
        token = Fernet(_derive_fernet_key(password, salt, iterations)).encrypt(plaintext.encode("utf-8"))
        salt_text = base64.urlsafe_b64encode(salt).decode("ascii")
        return f"{FORMAT_TAG}${iterations}${salt_text}${token.decode('ascii')}"

    def decrypt(self, ciphertext: str, password: str) -> str:
        """Return the plaintext, which may legitimately be empty.

        Raises InvalidPassword for a wrong password or malformed ciphertext.
        """
        if not password:
            raise InvalidPassword("Password must not be empty")

        parts = ciphertext.split("$") if isinstance(ciphertext, str) else []
        if len(parts) != 4 or parts[0] != FORMAT_TAG:
            raise InvalidPassword("Malformed ciphertext")
        _, iterations_text, salt_text, token = parts

        try:
            iterations = int(iterations_text)
            salt = base64.urlsafe_b64decode(salt_text.encode("ascii"))
        except (ValueError, binascii.Error) as exc:
            raise InvalidPassword("Malformed ciphertext") from exc
        if not 0 < iterations <= MAX_ITERATIONS or len(salt) != SALT_BYTES:
            raise InvalidPassword("Malformed ciphertext")

        try:
            raw = Fernet(_derive_fernet_key(password, salt, iterations)).decrypt(token.encode("ascii"))
            return raw.decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise InvalidPassword("Invalid password") from exc


default_service = EncryptionService()


def encrypt_note(note: Note, password: str, service: Optional[EncryptionService] = None) -> Note:
    """Encrypt content and htmlContent together and flag the note encrypted."""
    if note.is_encrypted:
        raise ValueError("Note is already encrypted")
    svc = service or default_service
    content = svc.encrypt(note.content, password)
    html_content = svc.encrypt(note.html_content, password)
    return replace(note, content=content, html_content=html_content, is_encrypted=True)


def decrypt_note(note: Note, password: str, service: Optional[EncryptionService] = None) -> Note:
    """Decrypt both text fields, or raise InvalidPassword leaving ``note`` as it was."""
    if not note.is_encrypted:
        raise ValueError("Note is not encrypted")
    svc = service or default_service
    content = svc.decrypt(note.content, password)
    html_content = svc.decrypt(note.html_content, password)
    return replace(note, content=content, html_content=html_content, is_encrypted=False)
