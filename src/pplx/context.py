"""Build the message list sent to the API for the next turn."""

from __future__ import annotations

from .citations import strip_references
from .config import MAX_CONTEXT_MESSAGES
from .models import ChatMessage, Conversation


def build_outgoing(
    conversation: Conversation | None,
    new_input: str,
    window_size: int = MAX_CONTEXT_MESSAGES,
) -> list[ChatMessage]:
    """Return the last ``window_size`` stored messages followed by ``new_input``.

    Reference blocks are stripped from assistant messages so the model never
    sees its own formatted citations. The new input is not appended again if
    it is already the last message in the window.
    """
    if conversation is None or not conversation.messages:
        return [ChatMessage(role="user", content=new_input)]

    window = conversation.last_messages(window_size)
    outgoing: list[ChatMessage] = []
    for msg in window:
        content = msg.content
        if msg.role == "assistant":
            content = strip_references(content)
        outgoing.append(ChatMessage(role=msg.role, content=content))

    if not window or window[-1].content != new_input:
        outgoing.append(ChatMessage(role="user", content=new_input))

    return outgoing
