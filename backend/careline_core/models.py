from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from chatstore.models import Conversation, Message

PIPELINE_STAGES = (
    "received",
    "user_message_persisted",
    "history_compressed",
    "context_built",
    "completion_obtained",
    "links_resolved",
    "assistant_message_persisted",
    "done",
)


@dataclass
class ContextBundle:
    system_prompt: str
    user_context: dict[str, Any] = field(default_factory=dict)
    conversation_context: dict[str, Any] = field(default_factory=dict)
    relevant_data: dict[str, Any] = field(default_factory=dict)
    keywords: list[str] = field(default_factory=list)
    user_profile: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CompletionResult:
    content: str
    token_count: int
    metadata: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    is_fallback: bool = False
    error: str | None = None

    @property
    def model(self) -> str:
        return str(self.metadata.get("model") or "unknown")

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NextStep:
    category: str
    action: str
    priority: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ClassificationResult:
    urgency_level: str
    confidence: int
    urgency_score: int
    summary: str
    status_info: dict[str, str]
    key_points: list[str] = field(default_factory=list)
    symptoms_mentioned: list[str] = field(default_factory=list)
    conditions_mentioned: list[str] = field(default_factory=list)
    treatments_mentioned: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    next_steps: list[NextStep] = field(default_factory=list)
    when_to_seek_help: list[str] = field(default_factory=list)
    personalization: dict[str, Any] = field(default_factory=dict)
    product_recommendations: list[dict[str, Any]] = field(default_factory=list)
    response_type: str = "general"
    confidence_level: int = 0
    disclaimers: list[str] = field(default_factory=list)
    action_items: list[str] = field(default_factory=list)
    additional_resources: list[dict[str, str]] = field(default_factory=list)
    tier_hits: dict[str, int] = field(default_factory=dict)
    vocabulary_version: str = ""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineResult:
    success: bool
    conversation: Conversation
    user_message: Message
    assistant_message: Message | None
    token_usage: dict[str, int]
    response: dict[str, Any] | None = None
    completion: dict[str, Any] = field(default_factory=dict)
    compressed: bool = False
    stage: str = "done"
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "conversation": self.conversation.as_dict(),
            "user_message": self.user_message.as_dict(),
            "assistant_message": self.assistant_message.as_dict() if self.assistant_message else None,
            "token_usage": dict(self.token_usage),
            "response": self.response,
            "completion": self.completion,
            "compressed": self.compressed,
            "stage": self.stage,
            "error": self.error,
        }
