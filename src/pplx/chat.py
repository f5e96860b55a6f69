"""One question/answer round trip against a conversation."""

from __future__ import annotations

import logging

from .citations import ParsedResponse, parse_response
from .client import CompletionClient
from .config import Settings
from .context import build_outgoing
from .models import ChatCompletionRequest, ChatMessage, Conversation

logger = logging.getLogger(__name__)


def build_request(settings: Settings, model: str, messages: list[ChatMessage]) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model=model,
        messages=messages,
        max_tokens=settings.max_tokens or None,
        temperature=settings.temperature,
        top_p=settings.top_p,
        search_mode=settings.search_mode,
        reasoning_effort=settings.reasoning_effort,
    )


def send_turn(
    conversation: Conversation,
    user_input: str,
    client: CompletionClient,
    settings: Settings,
) -> ParsedResponse:
    """Ask ``user_input`` in the context of ``conversation``.

    On success the user message and the cleaned answer are appended to the
    conversation; the caller saves it. If the request fails the conversation
    is left untouched.
    """
    messages = build_outgoing(conversation, user_input, settings.context_window)
    request = build_request(settings, conversation.metadata.model, messages)
    logger.debug("Sending %d messages for session %s", len(messages), conversation.id)

    parsed = parse_response(client.create_completion(request))

    conversation.add_message("user", user_input)
    conversation.add_message("assistant", parsed.clean_content)
    return parsed


def ask_once(query: str, client: CompletionClient, settings: Settings, model: str | None = None) -> ParsedResponse:
    """A standalone question with no stored history."""
    request = build_request(settings, model or settings.model, build_outgoing(None, query))
    return parse_response(client.create_completion(request))
