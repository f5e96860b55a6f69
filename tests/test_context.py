"""Tests for the outgoing context window."""

from pplx.context import build_outgoing
from pplx.models import ChatMessage

REFERENCE_BLOCK = "\n\n## References:\n[1] Wikipedia - https://wikipedia.org/Paris\n"


def test_no_conversation_sends_only_new_input():
    assert build_outgoing(None, "Hello") == [ChatMessage(role="user", content="Hello")]


def test_empty_conversation_sends_only_new_input(make_conversation):
    assert build_outgoing(make_conversation(), "Hello") == [ChatMessage(role="user", content="Hello")]


def test_history_kept_in_order_with_new_input_last(make_conversation):
    conversation = make_conversation(
        messages=[
            ("user", "What is Paris?"),
            ("assistant", "A city. [1]"),
            ("user", "In which country?"),
            ("assistant", "France. [1]"),
            ("user", "How big is it?"),
        ]
    )
    outgoing = build_outgoing(conversation, "And its population?", window_size=20)
    assert len(outgoing) == 6
    assert [m.content for m in outgoing] == [
        "What is Paris?",
        "A city. [1]",
        "In which country?",
        "France. [1]",
        "How big is it?",
        "And its population?",
    ]
    assert outgoing[-1].role == "user"


def test_window_keeps_only_trailing_messages(make_conversation):
    conversation = make_conversation(
        messages=[("user" if i % 2 == 0 else "assistant", f"m{i}") for i in range(30)]
    )
    outgoing = build_outgoing(conversation, "new", window_size=20)
    assert len(outgoing) == 21
    assert outgoing[0].content == "m10"
    assert outgoing[-2].content == "m29"


def test_assistant_reference_blocks_are_stripped(make_conversation):
    conversation = make_conversation(
        messages=[
            ("user", "What is Paris?"),
            ("assistant", "Paris is the capital of France. [1]" + REFERENCE_BLOCK),
        ]
    )
    outgoing = build_outgoing(conversation, "Tell me more")
    assert outgoing[1] == ChatMessage(role="assistant", content="Paris is the capital of France. [1]")
    assert all("References:" not in m.content for m in outgoing)


def test_user_messages_are_not_stripped(make_conversation):
    text = "Quote:\nReferences: keep this"
    conversation = make_conversation(messages=[("user", text)])
    assert build_outgoing(conversation, "next")[0].content == text


def test_duplicate_submission_not_appended_twice(make_conversation):
    conversation = make_conversation(messages=[("user", "What is Paris?")])
    outgoing = build_outgoing(conversation, "What is Paris?")
    assert outgoing == [ChatMessage(role="user", content="What is Paris?")]


def test_zero_window_sends_only_new_input(make_conversation):
    conversation = make_conversation(messages=[("user", "old"), ("assistant", "answer")])
    assert build_outgoing(conversation, "new", window_size=0) == [ChatMessage(role="user", content="new")]


def test_does_not_modify_conversation(make_conversation):
    conversation = make_conversation(messages=[("assistant", "Answer" + REFERENCE_BLOCK)])
    build_outgoing(conversation, "next")
    assert conversation.messages[0].content == "Answer" + REFERENCE_BLOCK
    assert len(conversation.messages) == 1
