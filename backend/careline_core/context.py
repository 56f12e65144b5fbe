from __future__ import annotations

import logging
from typing import Any

from chatstore import TTLCache, hash_key
from chatstore.models import Conversation, Profile

from .config import ContextConfig
from .keywords import KeywordExtractor
from .models import ContextBundle
from .vocabulary import DEFAULT_SYSTEM_PROMPT, StaticKnowledge

logger = logging.getLogger(__name__)


def _clean_override(override: dict[str, Any] | None) -> dict[str, Any]:
    if not isinstance(override, dict):
        return {}
    return {key: value for key, value in override.items() if value is not None and value != ""}


class ContextAssembler:
    def __init__(
        self,
        *,
        cache: TTLCache,
        extractor: KeywordExtractor | None = None,
        config: ContextConfig | None = None,
        knowledge: StaticKnowledge | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self.cache = cache
        self.extractor = extractor or KeywordExtractor()
        self.config = config or ContextConfig()
        self.knowledge = knowledge or StaticKnowledge()
        self.system_prompt = system_prompt

    def build(
        self,
        user_message: str,
        conversation: Conversation,
        profile: Profile | None = None,
        health_context_override: dict[str, Any] | None = None,
    ) -> ContextBundle:
        keywords = self.extractor.extract(user_message, max_keywords=self.config.max_keywords)
        return ContextBundle(
            system_prompt=self.system_prompt,
            user_context=self.user_context(profile),
            conversation_context=self.conversation_context(conversation),
            relevant_data=self.relevant_data(user_message, keywords),
            keywords=keywords,
            user_profile=self.user_profile(profile, health_context_override),
        )

    def user_context(self, profile: Profile | None) -> dict[str, Any]:
        context: dict[str, Any] = {"user_preferences": dict(self.knowledge.user_preferences)}
        if profile is not None:
            context["user_name"] = profile.display_name
            context["profile_id"] = profile.id
        return context

    def conversation_context(self, conversation: Conversation) -> dict[str, Any]:
        messages = conversation.messages
        all_text = " ".join(message.content for message in messages)
        limit = self.config.recent_message_chars
        recent = [
            {
                "role": message.role,
                "content": message.content[:limit],
                "timestamp": message.created_at,
            }
            for message in messages[-self.config.recent_message_count :]
        ]
        return {
            "conversation_id": conversation.id,
            "conversation_title": conversation.title,
            "total_messages": len(messages),
            "conversation_topics": self.extractor.extract(all_text, max_keywords=self.config.max_keywords),
            "recent_context": recent,
        }

    def relevant_data(self, query: str, keywords: list[str]) -> dict[str, Any]:
        ttl_seconds = self.config.cache_ttl_minutes * 60
        return self.cache.remember(
            hash_key("context", query),
            ttl_seconds,
            lambda: self._static_knowledge_for(keywords),
        )

    def _static_knowledge_for(self, keywords: list[str]) -> dict[str, Any]:
        topics: dict[str, list[str]] = {}
        for category, terms in self.knowledge.topics.items():
            matches = [keyword for keyword in keywords if keyword in terms]
            if matches:
                topics[category] = matches

        advisories: list[str] = []
        for keyword in keywords:
            advisory = self.knowledge.condition_advisories.get(keyword)
            if advisory and advisory not in advisories:
                advisories.append(advisory)

        return {
            "healthcare_topics": topics,
            "common_conditions": advisories,
            "safety_guidelines": dict(self.knowledge.safety_guidelines),
            "statistical_data": dict(self.knowledge.statistical_data),
        }

    def user_profile(
        self,
        profile: Profile | None,
        health_context_override: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        override = _clean_override(health_context_override)
        if profile is None and not override:
            return None
        context = profile.as_context() if profile is not None else {}
        if override:
            logger.debug("Applying health context override (fields=%s)", sorted(override))
            context.update(override)
        return context
