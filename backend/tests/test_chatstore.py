from __future__ import annotations

import pytest

from chatstore import (
    AssistantMessageMeta,
    ConversationNotFound,
    ProfileNotFound,
    StoreError,
    SummaryMessageMeta,
    UserMessageMeta,
    hash_key,
)
from chatstore.models import metadata_from_dict, metadata_to_dict


def _user_meta() -> UserMessageMeta:
    return UserMessageMeta(timestamp="2025-07-01T09:00:00Z")


def test_append_message_keeps_token_usage_in_sync(store):
    conversation = store.create()
    store.append_message(conversation.id, role="user", content="hello", token_count=2, metadata=_user_meta())
    store.append_message(
        conversation.id,
        role="assistant",
        content="hi there",
        token_count=5,
        metadata=AssistantMessageMeta(timestamp="2025-07-01T09:00:01Z", model="gpt-3.5-turbo"),
    )

    loaded = store.get(conversation.id)
    assert loaded.token_usage == 7 == sum(message.token_count for message in loaded.messages)
    assert [message.role for message in loaded.messages] == ["user", "assistant"]
    assert loaded.messages[0].seq < loaded.messages[1].seq


def test_append_to_unknown_conversation_writes_nothing(store):
    with pytest.raises(ConversationNotFound):
        store.append_message("missing", role="user", content="hello", token_count=2, metadata=_user_meta())


def test_append_rejects_unknown_role(store):
    conversation = store.create()
    with pytest.raises(StoreError):
        store.append_message(conversation.id, role="tool", content="x", token_count=1, metadata=_user_meta())
    assert store.get(conversation.id).messages == []


def test_mark_compressed_flips_flag_without_touching_tokens(store):
    conversation = store.create()
    first = store.append_message(conversation.id, role="user", content="one", token_count=3, metadata=_user_meta())
    store.append_message(conversation.id, role="user", content="two", token_count=4, metadata=_user_meta())

    assert store.mark_compressed([first.id, "unknown-id"]) == 1
    loaded = store.get(conversation.id)
    assert loaded.messages[0].compressed is True
    assert isinstance(loaded.messages[0].metadata, UserMessageMeta)
    assert loaded.messages[1].compressed is False
    assert [message.content for message in loaded.active_messages] == ["two"]
    assert loaded.token_usage == 7


def test_set_title_if_absent_is_idempotent(store):
    conversation = store.create()
    assert store.set_title_if_absent(conversation.id, "First") is True
    assert store.set_title_if_absent(conversation.id, "Second") is False
    assert store.get(conversation.id).title == "First"


def test_export_contains_ordered_messages(store, clock):
    conversation = store.create(title="Knee pain")
    store.append_message(conversation.id, role="user", content="hello", token_count=2, metadata=_user_meta())
    clock.advance(60)

    exported = store.export(conversation.id)
    assert exported["export_format"] == "json"
    assert exported["conversation"]["title"] == "Knee pain"
    assert [message["content"] for message in exported["messages"]] == ["hello"]
    assert exported["messages"][0]["metadata"]["type"] == "user"
    assert exported["exported_at"] == "2025-07-01T09:01:00Z"


def test_get_unknown_conversation_raises(store):
    with pytest.raises(ConversationNotFound):
        store.get("nope")
    with pytest.raises(ConversationNotFound):
        store.export("nope")


def test_metadata_round_trips_through_tagged_dicts():
    meta = AssistantMessageMeta(
        timestamp="2025-07-01T09:00:00Z",
        model="gpt-4o",
        classification={"urgency_level": "light"},
        provider={"usage": {"completion_tokens": 12}},
    )
    data = metadata_to_dict(meta)
    assert data["type"] == "assistant"
    assert metadata_from_dict(data) == meta

    summary = metadata_from_dict({"type": "compression_summary", "timestamp": "t", "compressed_messages_count": 3})
    assert isinstance(summary, SummaryMessageMeta)

    with pytest.raises(ValueError):
        metadata_from_dict({"type": "mystery"})


def test_profile_create_and_get(profiles):
    profile = profiles.create(
        name="  Dana  ",
        age="71",
        gender=False,
        allergies="penicillin",
        medications="",
        is_pregnant=False,
        is_smoker=True,
        extra_info={"notes": "walks daily"},
    )

    loaded = profiles.get(profile.id)
    assert loaded.name == "Dana"
    assert loaded.age == 71
    assert loaded.gender is False
    context = loaded.as_context()
    assert context["allergies"] == "penicillin"
    assert context["is_smoker"] is True
    assert "medications" not in context
    assert "is_pregnant" not in context
    assert context["extra_info"] == {"notes": "walks daily"}


def test_profile_validation_and_missing(profiles):
    with pytest.raises(StoreError):
        profiles.create(age=200)
    with pytest.raises(StoreError):
        profiles.create(age="old")
    with pytest.raises(StoreError):
        profiles.create(extra_info=["not", "a", "dict"])
    with pytest.raises(ProfileNotFound):
        profiles.get("missing")


def test_ttl_cache_expires_with_clock(cache, clock):
    cache.set("k", {"v": 1}, ttl_seconds=60)
    assert cache.get("k") == {"v": 1}
    clock.advance(61)
    assert cache.get("k") is None


def test_ttl_cache_remember_computes_once_and_skips_none(cache):
    calls: list[int] = []

    def factory():
        calls.append(1)
        return ["value"]

    assert cache.remember("key", 30, factory) == ["value"]
    assert cache.remember("key", 30, factory) == ["value"]
    assert len(calls) == 1

    assert cache.remember("none", 30, lambda: None) is None
    assert cache.get("none") is None


def test_hash_key_is_deterministic():
    assert hash_key("context", "fever") == hash_key("context", "fever")
    assert hash_key("context", "fever") != hash_key("context", "cough")
    assert hash_key("product_search", "scale").startswith("product_search:")
