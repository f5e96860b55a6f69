"""Tests for a single request/response round trip."""

import pytest

from pplx.chat import ask_once, build_request, send_turn
from pplx.config import Settings
from pplx.errors import APIError
from pplx.models import ChatMessage

REFERENCE_BLOCK = "\n\n## References:\n[1] Wikipedia - https://wikipedia.org/Paris\n"


def test_build_request_omits_default_max_tokens():
    messages = [ChatMessage(role="user", content="hi")]
    payload = build_request(Settings(), "sonar", messages).to_payload()
    assert "max_tokens" not in payload
    assert payload["temperature"] == 0.2
    assert payload["top_p"] == 0.9
    assert payload["search_mode"] == "web"
    assert payload["reasoning_effort"] == "medium"

    payload = build_request(Settings(max_tokens=500), "sonar-pro", messages).to_payload()
    assert payload["max_tokens"] == 500
    assert payload["model"] == "sonar-pro"


def test_send_turn_appends_user_and_clean_answer(store, settings, fake_client):
    client, _ = fake_client()
    conversation = store.create("sonar", "What is the capital of France?")

    parsed = send_turn(conversation, "What is the capital of France?", client, settings)

    assert [(m.role, m.content) for m in conversation.messages] == [
        ("user", "What is the capital of France?"),
        ("assistant", "Paris is the capital of France. [1]"),
    ]
    assert parsed.formatted() == "Paris is the capital of France. [1]" + REFERENCE_BLOCK


def test_send_turn_never_stores_reference_blocks(store, settings, fake_client):
    client, _ = fake_client(content="Paris. [1]\n\n## References:\n[1] Some site - https://x.test")
    conversation = store.create("sonar", "q")

    send_turn(conversation, "q", client, settings)

    assert conversation.messages[-1].content == "Paris. [1]"


def test_send_turn_sends_stripped_history(store, settings, fake_client, make_conversation):
    client, requests = fake_client()
    conversation = make_conversation(
        messages=[("user", "What is Paris?"), ("assistant", "A city. [1]" + REFERENCE_BLOCK)],
        model="sonar-pro",
    )

    send_turn(conversation, "Where?", client, settings)

    assert requests[0]["model"] == "sonar-pro"
    assert requests[0]["messages"] == [
        {"role": "user", "content": "What is Paris?"},
        {"role": "assistant", "content": "A city. [1]"},
        {"role": "user", "content": "Where?"},
    ]
    assert len(conversation.messages) == 4


def test_send_turn_respects_context_window(store, fake_client, make_conversation, tmp_path):
    client, requests = fake_client()
    settings = Settings(api_key="k", sessions_dir=tmp_path, context_window=2)
    conversation = make_conversation(
        messages=[("user", "one"), ("assistant", "two"), ("user", "three"), ("assistant", "four")]
    )

    send_turn(conversation, "five", client, settings)

    assert [m["content"] for m in requests[0]["messages"]] == ["three", "four", "five"]


def test_failed_turn_leaves_conversation_untouched(store, settings, fake_client):
    client, _ = fake_client(status=503)
    conversation = store.create("sonar", "q")
    updated_at = conversation.metadata.updated_at

    with pytest.raises(APIError):
        send_turn(conversation, "q", client, settings)

    assert conversation.messages == []
    assert conversation.metadata.updated_at == updated_at


def test_ask_once(settings, fake_client):
    client, requests = fake_client()
    parsed = ask_once("What is Paris?", client, settings, model="sonar-pro")

    assert requests[0]["model"] == "sonar-pro"
    assert requests[0]["messages"] == [{"role": "user", "content": "What is Paris?"}]
    assert parsed.citations[0].index == 0
