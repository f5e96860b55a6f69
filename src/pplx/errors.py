"""Exception types shared across pplx."""

from __future__ import annotations

from pathlib import Path


class PplxError(Exception):
    """Base class for every error pplx raises on purpose."""


class StoreError(PplxError):
    """A session store operation failed."""

    def __init__(self, message: str, *, session_id: str | None = None, path: Path | None = None):
        super().__init__(message)
        self.session_id = session_id
        self.path = path


class SessionNotFoundError(StoreError):
    pass


class StorageIOError(StoreError):
    pass


class SessionParseError(StoreError):
    pass


class InvalidQueryError(StoreError, ValueError):
    pass


class APIError(PplxError):
    """The remote completion API returned an error or could not be reached."""


class ConfigError(PplxError):
    pass
