from __future__ import annotations

import threading

import pytest

from careline_core import MessageValidationError, TokenConfig, TokenEstimator
from careline_core.vocabulary import NOT_CONFIGURED_REPLY, PIPELINE_APOLOGY
from chatstore import AssistantMessageMeta, ConversationNotFound, SummaryMessageMeta, UserMessageMeta
from fakes import FailingCompletionProvider, FakeCompletionProvider, FakeSearchProvider
from careline_tools import SearchResult

LONG_QUESTION = "I have had a mild headache since this morning, what should I do about it?"


def _assert_token_invariant(conversation) -> None:
    assert conversation.token_usage == sum(message.token_count for message in conversation.messages)


def test_process_message_persists_exchange_and_titles_conversation(make_pipeline, store, completion_provider):
    pipeline = make_pipeline()
    conversation = store.create()

    result = pipeline.process_message(conversation.id, f"  {LONG_QUESTION}  ")

    assert result.success is True
    assert result.stage == "done"
    assert result.user_message.content == LONG_QUESTION
    assert result.assistant_message.content == completion_provider.reply
    assert result.assistant_message.token_count == TokenEstimator().estimate(completion_provider.reply)
    assert result.token_usage["this_exchange"] == (
        result.user_message.token_count + result.assistant_message.token_count
    )

    loaded = store.get(conversation.id)
    assert [message.role for message in loaded.messages] == ["user", "assistant"]
    assert result.token_usage["conversation_total"] == loaded.token_usage
    _assert_token_invariant(loaded)
    assert loaded.title == LONG_QUESTION[:50] + "..."

    meta = loaded.messages[1].metadata
    assert isinstance(meta, AssistantMessageMeta)
    assert meta.model == "gpt-3.5-turbo"
    assert meta.classification["urgency_level"] == result.response["urgency_level"]
    assert isinstance(loaded.messages[0].metadata, UserMessageMeta)


def test_urgent_user_message_drives_classification(make_pipeline, store):
    pipeline = make_pipeline(provider=FakeCompletionProvider(reply="Please stay calm."))
    conversation = store.create()

    result = pipeline.process_message(conversation.id, "I have a severe headache and my chest hurts, should I call 911?")

    assert result.response["urgency_level"] == "critical"
    assert result.response["summary"].startswith("⚠️ URGENT: ")


def test_unconfigured_gateway_still_returns_a_reply(make_pipeline, store, completion_provider):
    pipeline = make_pipeline(api_key="")
    conversation = store.create()

    result = pipeline.process_message(conversation.id, "hello there")

    assert result.success is True
    assert result.assistant_message.content == NOT_CONFIGURED_REPLY
    assert result.assistant_message.token_count == 0
    assert result.completion["success"] is False
    assert completion_provider.calls == []
    _assert_token_invariant(store.get(conversation.id))


def test_provider_failure_persists_fallback_reply(make_pipeline, store):
    pipeline = make_pipeline(provider=FailingCompletionProvider("upstream 503"))
    conversation = store.create()

    result = pipeline.process_message(conversation.id, "hello there")

    assert result.success is True
    assert result.completion["is_fallback"] is True
    assert result.completion["error"] == "upstream 503"
    meta = result.assistant_message.metadata
    assert meta.is_fallback is True
    assert meta.model == "fallback"


def test_unexpected_failure_apologizes_once(make_pipeline, store, monkeypatch):
    pipeline = make_pipeline()
    conversation = store.create()

    def broken(reply):
        raise RuntimeError("catalog offline")

    monkeypatch.setattr(pipeline.products, "extract_candidates", broken)
    result = pipeline.process_message(conversation.id, "hello there")

    assert result.success is False
    assert result.stage == "completion_obtained"
    assert result.error == "catalog offline"
    assert result.assistant_message.content == PIPELINE_APOLOGY

    loaded = store.get(conversation.id)
    assert [message.role for message in loaded.messages] == ["user", "assistant"]
    assert [message.content for message in loaded.messages].count("hello there") == 1
    assert loaded.messages[1].metadata.model == "none"
    assert loaded.messages[1].metadata.provider == {"error": "catalog offline"}
    _assert_token_invariant(loaded)


@pytest.mark.parametrize("text", ["", "   ", None, "x" * 101])
def test_invalid_messages_are_rejected_before_writing(make_pipeline, store, text):
    pipeline = make_pipeline(max_message_length=100)
    conversation = store.create()

    with pytest.raises(MessageValidationError):
        pipeline.process_message(conversation.id, text)
    assert store.get(conversation.id).messages == []


def test_missing_conversation_raises(make_pipeline, completion_provider):
    pipeline = make_pipeline()

    with pytest.raises(ConversationNotFound):
        pipeline.process_message("missing", "hello")
    assert completion_provider.calls == []


def test_existing_title_is_kept(make_pipeline, store):
    pipeline = make_pipeline()
    conversation = store.create(title="Existing")

    pipeline.process_message(conversation.id, "first question")
    pipeline.process_message(conversation.id, "second question")

    assert store.get(conversation.id).title == "Existing"
    assert pipeline.generate_title(store.create().id) is None


def _seed_long_history(store, conversation_id: str, count: int = 4) -> None:
    for index in range(count):
        role = "user" if index % 2 == 0 else "assistant"
        meta = (
            UserMessageMeta(timestamp="2025-07-01T09:00:00Z")
            if role == "user"
            else AssistantMessageMeta(timestamp="2025-07-01T09:00:00Z", model="gpt-3.5-turbo")
        )
        store.append_message(
            conversation_id,
            role=role,
            content=str(index) * 400,
            token_count=100,
            metadata=meta,
        )


def test_pipeline_compresses_long_history(make_pipeline, store, completion_provider):
    pipeline = make_pipeline(tokens=TokenConfig(max_conversation_tokens=50, priority_messages=2))
    conversation = store.create()
    _seed_long_history(store, conversation.id)

    result = pipeline.process_message(conversation.id, "new question")

    assert result.compressed is True
    loaded = store.get(conversation.id)
    assert sum(1 for message in loaded.messages if message.compressed) == 3
    summaries = [message for message in loaded.messages if isinstance(message.metadata, SummaryMessageMeta)]
    assert len(summaries) == 1
    _assert_token_invariant(loaded)

    sent = completion_provider.calls[0]["messages"]
    assert sent[1]["role"] == "system"
    assert sent[1]["content"].startswith("Summary of previous messages: ")
    assert sent[-1] == {"role": "user", "content": "new question"}


def test_compression_can_be_disabled(make_pipeline, store):
    pipeline = make_pipeline(tokens=TokenConfig(max_conversation_tokens=50, enable_compression=False))
    conversation = store.create()
    _seed_long_history(store, conversation.id)

    result = pipeline.process_message(conversation.id, "new question")

    assert result.compressed is False
    assert not any(message.compressed for message in store.get(conversation.id).messages)


def test_concurrent_messages_are_serialized(make_pipeline, store):
    pipeline = make_pipeline()
    conversation = store.create()
    errors: list[Exception] = []

    def send(index: int) -> None:
        try:
            pipeline.process_message(conversation.id, f"question {index}")
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=send, args=(index,)) for index in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert pipeline._locks == {}
    loaded = store.get(conversation.id)
    assert [message.role for message in loaded.messages] == ["user", "assistant"] * 5
    _assert_token_invariant(loaded)


def test_token_stats_and_connectivity(make_pipeline, store):
    pipeline = make_pipeline()
    conversation = store.create()
    pipeline.process_message(conversation.id, "hello there")

    stats = pipeline.get_token_stats(conversation.id)
    assert stats["total_messages"] == 2
    assert stats["user_messages"] == 1
    assert stats["assistant_messages"] == 1
    assert stats["total_tokens"] == store.get(conversation.id).token_usage

    assert pipeline.test_connectivity()["success"] is True
    with pytest.raises(ConversationNotFound):
        pipeline.get_token_stats("missing")


def test_profile_and_override_personalize_the_reply(make_pipeline, store, profiles, completion_provider):
    profile = profiles.create(name="Dana", age=70, chronic_conditions="diabetes")
    conversation = store.create(profile_id=profile.id)
    pipeline = make_pipeline()

    result = pipeline.process_message(conversation.id, "Is walking good for me?", {"allergies": "penicillin"})

    prompt = completion_provider.calls[0]["messages"][0]["content"]
    assert "Patient Profile: Age: 70, Chronic conditions: diabetes, Allergies: penicillin" in prompt
    assert "User: Dana" in prompt
    personalization = result.response["personalization"]
    assert personalization["age_considerations"]["message"].startswith("As a senior")
    assert "(penicillin)" in personalization["allergy_warnings"]["message"]


def test_product_mentions_are_resolved_to_links(make_pipeline, store):
    reply = "I recommend a blood pressure monitor for home use."
    search = FakeSearchProvider([SearchResult(title="Monitor", url="https://shop.example/bp", description="", source="DuckDuckGo")])
    pipeline = make_pipeline(provider=FakeCompletionProvider(reply=reply), search=search)
    conversation = store.create()

    result = pipeline.process_message(conversation.id, "How do I track my blood pressure?")

    recommendations = result.response["product_recommendations"]
    assert [entry["product"]["name"] for entry in recommendations] == ["blood pressure monitor"]
    assert recommendations[0]["links"][0]["url"] == "https://shop.example/bp"
    assert "Consider the recommended products/treatments mentioned above" in result.response["action_items"]
    assert search.queries == ["blood pressure monitor healthcare medical"]


def test_title_failure_keeps_the_delivered_reply(make_pipeline, store, monkeypatch):
    pipeline = make_pipeline()
    conversation = store.create()

    def locked(conversation_id, title):
        raise RuntimeError("db locked")

    monkeypatch.setattr(store, "set_title_if_absent", locked)
    result = pipeline.process_message(conversation.id, "hello there")

    assert result.success is True
    assert result.stage == "done"
    assert result.conversation.title is None
    loaded = store.get(conversation.id)
    assert [message.role for message in loaded.messages] == ["user", "assistant"]
    assert PIPELINE_APOLOGY not in [message.content for message in loaded.messages]
    assert result.token_usage["conversation_total"] == loaded.token_usage
    _assert_token_invariant(loaded)


def test_result_reflects_persisted_conversation(make_pipeline, store):
    pipeline = make_pipeline()
    conversation = store.create()

    result = pipeline.process_message(conversation.id, "hello there")

    loaded = store.get(conversation.id)
    assert result.conversation.title == loaded.title == "hello there"
    assert result.conversation.token_usage == loaded.token_usage
    assert [message.id for message in result.conversation.messages] == [message.id for message in loaded.messages]


def test_conversation_locks_are_released(make_pipeline, store):
    pipeline = make_pipeline()
    conversation = store.create()

    with pytest.raises(ConversationNotFound):
        pipeline.process_message("never-created", "hello")
    assert pipeline._locks == {}

    pipeline.process_message(conversation.id, "hello there")
    assert pipeline._locks == {}
