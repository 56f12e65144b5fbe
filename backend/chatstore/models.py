from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, ClassVar, Union


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
MESSAGE_ROLES = {ROLE_USER, ROLE_ASSISTANT, ROLE_SYSTEM}


@dataclass(frozen=True)
class UserMessageMeta:
    kind: ClassVar[str] = "user"
    timestamp: str
    source: str = "api"
    compressed: bool = False


@dataclass(frozen=True)
class AssistantMessageMeta:
    kind: ClassVar[str] = "assistant"
    timestamp: str
    model: str
    is_fallback: bool = False
    classification: dict[str, Any] | None = None
    # Opaque provider document (finish reason, usage, response id, cost...).
    provider: dict[str, Any] = field(default_factory=dict)
    compressed: bool = False


@dataclass(frozen=True)
class SummaryMessageMeta:
    kind: ClassVar[str] = "compression_summary"
    timestamp: str
    compressed_messages_count: int
    compressed: bool = False


MessageMetadata = Union[UserMessageMeta, AssistantMessageMeta, SummaryMessageMeta]

_META_TYPES: dict[str, type] = {
    UserMessageMeta.kind: UserMessageMeta,
    AssistantMessageMeta.kind: AssistantMessageMeta,
    SummaryMessageMeta.kind: SummaryMessageMeta,
}


def metadata_to_dict(meta: MessageMetadata) -> dict[str, Any]:
    data = asdict(meta)
    data["type"] = meta.kind
    return data


def metadata_from_dict(data: dict[str, Any]) -> MessageMetadata:
    payload = dict(data)
    kind = str(payload.pop("type", "") or "")
    meta_type = _META_TYPES.get(kind)
    if meta_type is None:
        raise ValueError(f"Unknown message metadata type: {kind!r}")
    known = meta_type.__dataclass_fields__.keys()
    return meta_type(**{key: value for key, value in payload.items() if key in known})


def mark_metadata_compressed(meta: MessageMetadata) -> MessageMetadata:
    return replace(meta, compressed=True)


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    role: str
    content: str
    token_count: int
    metadata: MessageMetadata
    created_at: str
    seq: int = 0

    @property
    def compressed(self) -> bool:
        return self.metadata.compressed

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "token_count": self.token_count,
            "metadata": metadata_to_dict(self.metadata),
            "created_at": self.created_at,
        }


@dataclass
class Conversation:
    id: str
    created_at: str
    profile_id: str | None = None
    title: str | None = None
    token_usage: int = 0
    last_activity_at: str | None = None
    messages: list[Message] = field(default_factory=list)

    @property
    def active_messages(self) -> list[Message]:
        return [message for message in self.messages if not message.compressed]

    def first_user_message(self) -> Message | None:
        for message in self.messages:
            if message.role == ROLE_USER:
                return message
        return None

    def as_dict(self, *, include_messages: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "profile_id": self.profile_id,
            "title": self.title,
            "token_usage": self.token_usage,
            "last_activity_at": self.last_activity_at,
            "created_at": self.created_at,
            "message_count": len(self.messages),
        }
        if include_messages:
            data["messages"] = [message.as_dict() for message in self.messages]
        return data


@dataclass(frozen=True)
class Profile:
    id: str
    name: str | None = None
    age: int | None = None
    # True = male, False = female, None = not recorded.
    gender: bool | None = None
    weight: str | None = None
    height: str | None = None
    blood_type: str | None = None
    chronic_conditions: str | None = None
    allergies: str | None = None
    medications: str | None = None
    is_pregnant: bool = False
    is_smoker: bool = False
    is_drinker: bool = False
    extra_info: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or "Family Member"

    def as_context(self) -> dict[str, Any]:
        """Structured profile fields, omitting anything not recorded."""
        context: dict[str, Any] = {}
        for key in (
            "name",
            "age",
            "gender",
            "weight",
            "height",
            "blood_type",
            "chronic_conditions",
            "allergies",
            "medications",
        ):
            value = getattr(self, key)
            if value is None or value == "":
                continue
            context[key] = value
        for flag in ("is_pregnant", "is_smoker", "is_drinker"):
            if getattr(self, flag):
                context[flag] = True
        if self.extra_info:
            context["extra_info"] = dict(self.extra_info)
        return context
