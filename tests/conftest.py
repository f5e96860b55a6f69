"""Shared fixtures for the pplx test suite."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import httpx
import pytest

from pplx.client import CompletionClient
from pplx.config import Settings
from pplx.models import Conversation, ConversationMetadata, Message, session_id_for
from pplx.shortid import short_id_for
from pplx.storage import SessionStore

DEFAULT_CREATED = datetime(2024, 1, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)

PARIS_RESULTS = [
    {"title": "Wikipedia", "url": "https://wikipedia.org/Paris", "date": "2024-01-01"},
    {"title": "Britannica", "url": "https://britannica.com/Paris"},
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's PPLX_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("PPLX_"):
            monkeypatch.delenv(name)


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(api_key="pplx-test", sessions_dir=tmp_path / "sessions")


@pytest.fixture
def make_conversation():
    """Build a conversation with a fixed creation time and optional messages."""

    def _make(
        initial_query: str = "What is Paris?",
        created_at: datetime = DEFAULT_CREATED,
        messages: list[tuple[str, str]] | None = None,
        model: str = "sonar",
    ) -> Conversation:
        conversation = Conversation(
            id=session_id_for(created_at),
            short_id=short_id_for(created_at),
            metadata=ConversationMetadata(
                model=model,
                initial_query=initial_query,
                created_at=created_at,
                updated_at=created_at,
            ),
        )
        for role, content in messages or []:
            conversation.messages.append(Message(role=role, content=content, timestamp=created_at))
        return conversation

    return _make


def completion_body(content: str, search_results: list[dict] | None = None) -> dict:
    return {
        "id": "resp-1",
        "model": "sonar",
        "created": 1705314645,
        "object": "chat.completion",
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
        "search_results": PARIS_RESULTS if search_results is None else search_results,
    }


@pytest.fixture
def fake_client():
    """A real CompletionClient talking to an in-process mock transport.

    Returns ``(client, requests)``; every JSON request body sent is appended
    to ``requests``.
    """
    clients: list[CompletionClient] = []

    def _make(
        content: str = "Paris is the capital of France. [1]",
        search_results: list[dict] | None = None,
        status: int = 200,
        on_request=None,
    ) -> tuple[CompletionClient, list[dict]]:
        requests: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            if on_request is not None:
                on_request(request)
            if status != 200:
                return httpx.Response(status, text="upstream exploded")
            return httpx.Response(200, json=completion_body(content, search_results))

        client = CompletionClient(
            api_key="pplx-test",
            model="sonar",
            retry_delay=0,
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        return client, requests

    yield _make

    for client in clients:
        client.close()
