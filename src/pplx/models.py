"""Data models for saved conversations and the completion API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from .shortid import short_id_for

# Version written into every record saved by this release.
SCHEMA_VERSION = 1

Role = Literal["user", "assistant"]


def now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def session_id_for(moment: datetime) -> str:
    """Canonical session id, e.g. ``20240115-103045.123``."""
    return moment.strftime("%Y%m%d-%H%M%S.") + f"{moment.microsecond // 1000:03d}"


def _aware(value: datetime) -> datetime:
    # Naive timestamps are taken as local time so records always compare
    return value if value.tzinfo is not None else value.astimezone()


Timestamp = Annotated[datetime, AfterValidator(_aware)]


class Message(BaseModel):
    role: Role
    content: str
    timestamp: Timestamp


class ConversationMetadata(BaseModel):
    model: str
    initial_query: str
    created_at: Timestamp
    updated_at: Timestamp


class SessionSummary(BaseModel):
    id: str
    short_id: str
    created_at: datetime
    initial_query: str
    message_count: int


class Conversation(BaseModel):
    """A saved session: append-only messages plus metadata."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    short_id: str = Field("", alias="shortId")
    version: int = SCHEMA_VERSION
    messages: list[Message] = []
    metadata: ConversationMetadata

    @classmethod
    def new(cls, model: str, initial_query: str) -> Conversation:
        created = now()
        return cls(
            id=session_id_for(created),
            short_id=short_id_for(created),
            messages=[],
            metadata=ConversationMetadata(
                model=model,
                initial_query=initial_query,
                created_at=created,
                updated_at=created,
            ),
        )

    def add_message(self, role: Role, content: str) -> Message:
        msg = Message(role=role, content=content, timestamp=now())
        self.messages.append(msg)
        # Clock adjustments must not move updated_at before created_at
        self.metadata.updated_at = max(msg.timestamp, self.metadata.created_at)
        return msg

    def last_messages(self, n: int) -> list[Message]:
        """The trailing ``n`` messages in conversation order."""
        if n <= 0:
            return []
        return self.messages[-n:]

    def to_summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            short_id=self.short_id,
            created_at=self.metadata.created_at,
            initial_query=self.metadata.initial_query,
            message_count=len(self.messages),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# ─── Completion API wire types ───────────────────────────────────────────────


class ChatMessage(BaseModel):
    role: str
    content: str


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    date: str | None = None


class Citation(BaseModel):
    """An inline ``[N]`` marker; ``index`` points into the turn's search results."""

    number: int
    index: int


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    search_context_size: str | None = None
    citation_tokens: int | None = None
    num_search_queries: int | None = None
    reasoning_tokens: int | None = None


class Choice(BaseModel):
    index: int = 0
    finish_reason: str | None = None
    message: ChatMessage


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    search_mode: str | None = None
    reasoning_effort: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class ChatCompletionResponse(BaseModel):
    id: str | None = None
    model: str | None = None
    created: int | None = None
    object: str | None = None
    usage: Usage | None = None
    choices: list[Choice] = []
    search_results: list[SearchResult] = []
