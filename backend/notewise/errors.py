"""Error taxonomy shared by the store, the crypto helpers and the API."""


class NotewiseError(Exception):
    """Base class for recoverable note store errors."""


class InvalidPassword(NotewiseError):
    """Wrong password, or ciphertext that is malformed or corrupted."""


class StorageUnavailable(NotewiseError):
    """A persisted bucket could not be read, parsed or written."""


class NotFound(NotewiseError):
    """A note id is absent from the caller's partition."""


class InvalidNote(NotewiseError):
    """A candidate note is not well-formed."""
