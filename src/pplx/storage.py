"""JSON-file storage for conversation sessions.

Each session lives in ``{sessions_dir}/{id}.json``. Writes go to a sibling
temp file that is renamed over the target, so a reader only ever sees a
complete old or complete new record. Records written by older releases are
upgraded when they are read (see ``MIGRATIONS``).
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import (
    InvalidQueryError,
    SessionNotFoundError,
    SessionParseError,
    StorageIOError,
)
from .models import SCHEMA_VERSION, Conversation, ConversationMetadata, Role, SessionSummary
from .shortid import short_id_for

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"


# ─── Migrations ──────────────────────────────────────────────────────────────


def _fill_short_id(data: dict[str, Any]) -> bool:
    """Derive a missing short id from the creation time. Returns True if set."""
    if data.get("shortId"):
        return False
    metadata = ConversationMetadata.model_validate(data.get("metadata"))
    data["shortId"] = short_id_for(metadata.created_at)
    return True


def _migrate_v0(data: dict[str, Any]) -> dict[str, Any]:
    """Records from before short ids and version tags."""
    _fill_short_id(data)
    return data


# Maps a record version to the step that upgrades it to version + 1.
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0,
}


def migrate(data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Upgrade a raw record to SCHEMA_VERSION. Returns (record, changed)."""
    version = data.get("version", 0)
    # JSON true/false load as bool, which is an int subclass
    if isinstance(version, bool) or not isinstance(version, int) or version > SCHEMA_VERSION:
        raise ValueError(f"unsupported record version {version!r}")

    changed = False
    while version < SCHEMA_VERSION:
        data = MIGRATIONS[version](data)
        version += 1
        data["version"] = version
        changed = True

    # A current record can still have lost its short id (hand edits)
    if _fill_short_id(data):
        changed = True
    return data, changed


# ─── Store ───────────────────────────────────────────────────────────────────


class SessionStore:
    """Saves, loads, lists and searches conversations in one directory.

    The directory is assumed to have a single writer. There is no locking;
    concurrent writers to the same id lose updates (last rename wins).
    """

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = Path(sessions_dir)

    def path_for(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}{RECORD_SUFFIX}"

    # ─── Create / save ───────────────────────────────────────────────────

    def create(self, model: str, initial_query: str) -> Conversation:
        """A new, unsaved conversation."""
        return Conversation.new(model, initial_query)

    def create_and_save(self, model: str, initial_query: str) -> Conversation:
        conversation = self.create(model, initial_query)
        self.save(conversation)
        return conversation

    def save(self, conversation: Conversation) -> None:
        """Write the full record atomically (temp file, fsync, rename)."""
        path = self.path_for(conversation.id)
        tmp_path = path.with_name(path.name + TEMP_SUFFIX)

        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"Failed to create sessions directory {self.sessions_dir}: {e}",
                session_id=conversation.id,
                path=self.sessions_dir,
            ) from e

        data = conversation.to_json()
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageIOError(
                f"Failed to save session {conversation.id}: {e}",
                session_id=conversation.id,
                path=path,
            ) from e

        logger.debug("Saved session: %s", path)

    def append(self, session_id: str, role: Role, content: str) -> Conversation:
        """Load a session, append one message and save it."""
        conversation = self.load(session_id)
        conversation.add_message(role, content)
        self.save(conversation)
        return conversation

    # ─── Load ────────────────────────────────────────────────────────────

    def load(self, session_id: str) -> Conversation:
        if not session_id or Path(session_id).name != session_id:
            raise SessionNotFoundError(f"Session not found: {session_id}", session_id=session_id)
        return self._load_file(self.path_for(session_id), session_id=session_id)

    def load_by_short_id(self, short_id: str) -> Conversation:
        """Scan every record for a matching short id."""
        for conversation in self._iter_conversations():
            if conversation.short_id == short_id:
                return conversation
        raise SessionNotFoundError(f"Session with short ID {short_id} not found", session_id=short_id)

    def resolve(self, id_or_short_id: str) -> Conversation:
        """Load by short id, falling back to the canonical id."""
        try:
            return self.load_by_short_id(id_or_short_id)
        except SessionNotFoundError:
            pass
        try:
            return self.load(id_or_short_id)
        except SessionNotFoundError:
            raise SessionNotFoundError(
                f"Session not found: {id_or_short_id}", session_id=id_or_short_id
            ) from None

    def exists(self, session_id: str) -> bool:
        return self.path_for(session_id).is_file()

    def _load_file(self, path: Path, session_id: str | None = None) -> Conversation:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SessionNotFoundError(
                f"Session not found: {session_id or path.stem}",
                session_id=session_id,
                path=path,
            ) from None
        except OSError as e:
            raise StorageIOError(
                f"Failed to read session file {path}: {e}", session_id=session_id, path=path
            ) from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("record is not a JSON object")
            data, migrated = migrate(data)
            conversation = Conversation.model_validate(data)
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            raise SessionParseError(
                f"Failed to parse session file {path}: {e}", session_id=session_id, path=path
            ) from e

        if migrated:
            try:
                self.save(conversation)
            except StorageIOError as e:
                logger.warning("Failed to save migrated session %s: %s", conversation.id, e)
            else:
                logger.debug(
                    "Migrated session %s to version %d (short ID %s)",
                    conversation.id,
                    conversation.version,
                    conversation.short_id,
                )

        return conversation

    # ─── Enumerate ───────────────────────────────────────────────────────

    def _record_paths(self) -> list[Path]:
        if not self.sessions_dir.is_dir():
            return []
        try:
            return sorted(p for p in self.sessions_dir.glob(f"*{RECORD_SUFFIX}") if p.is_file())
        except OSError as e:
            raise StorageIOError(
                f"Failed to read sessions directory {self.sessions_dir}: {e}",
                path=self.sessions_dir,
            ) from e

    def _iter_conversations(self) -> Iterator[Conversation]:
        """Every readable record; unreadable files are logged and skipped."""
        for path in self._record_paths():
            try:
                yield self._load_file(path)
            except (SessionParseError, StorageIOError, SessionNotFoundError) as e:
                logger.warning("Skipping session file %s: %s", path.name, e)

    def _load_all(self) -> list[Conversation]:
        """All conversations, newest first."""
        conversations = list(self._iter_conversations())
        conversations.sort(key=lambda c: c.metadata.created_at, reverse=True)
        return conversations

    def list_sessions(self) -> list[SessionSummary]:
        return [c.to_summary() for c in self._load_all()]

    def list_recent(self, n: int) -> list[SessionSummary]:
        return self.list_sessions()[: max(n, 0)]

    def latest(self) -> Conversation:
        conversations = self._load_all()
        if not conversations:
            raise SessionNotFoundError("No sessions found")
        return conversations[0]

    def search(self, query: str) -> list[SessionSummary]:
        """Sessions whose short id equals, or whose text contains, ``query``.

        Case-insensitive. Checks the short id, then the initial query, then
        every message.
        """
        if not query or not query.strip():
            raise InvalidQueryError("Search query cannot be empty")

        needle = query.casefold()
        return [c.to_summary() for c in self._load_all() if _matches(c, needle)]

    def stats(self) -> tuple[int, datetime | None, datetime | None]:
        """(total, oldest created_at, newest created_at)."""
        sessions = self.list_sessions()
        if not sessions:
            return 0, None, None
        return len(sessions), sessions[-1].created_at, sessions[0].created_at

    # ─── Delete ──────────────────────────────────────────────────────────

    def delete(self, session_id: str) -> None:
        if not session_id or Path(session_id).name != session_id:
            raise SessionNotFoundError(f"Session not found: {session_id}", session_id=session_id)
        path = self.path_for(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise SessionNotFoundError(
                f"Session not found: {session_id}", session_id=session_id, path=path
            ) from None
        except OSError as e:
            raise StorageIOError(
                f"Failed to delete session {session_id}: {e}", session_id=session_id, path=path
            ) from e
        logger.debug("Deleted session: %s", path)


def _matches(conversation: Conversation, needle: str) -> bool:
    if conversation.short_id.casefold() == needle:
        return True
    if needle in conversation.metadata.initial_query.casefold():
        return True
    return any(needle in msg.content.casefold() for msg in conversation.messages)
