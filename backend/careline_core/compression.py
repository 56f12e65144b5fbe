from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from chatstore import ConversationStore
from chatstore.models import ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, Conversation, Message, SummaryMessageMeta
from chatstore.time_utils import parse_iso, to_iso, utc_now

from .config import TokenConfig
from .keywords import KeywordExtractor
from .tokens import TokenEstimator

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "Summary of previous messages: "
CONTEXT_SUMMARY_PREFIX = "Previous conversation summary: "
_EXCERPT_CHARS = 100
_SUMMARY_TOPICS = 5
_SUMMARY_EXCERPTS = 3


def _excerpt(text: str, limit: int = _EXCERPT_CHARS) -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _is_summary(message: Message) -> bool:
    return isinstance(message.metadata, SummaryMessageMeta)


def _as_chat_turn(message: Message) -> dict[str, str]:
    return {"role": message.role, "content": message.content}


class HistoryCompressor:
    """Keeps a conversation inside its token budget.

    ``compress`` is the only method with side effects: it persists one summary
    message and flags the messages it folded. Compressed messages stay in
    storage (and in ``token_usage``) but leave the model-facing history.
    """

    def __init__(
        self,
        store: ConversationStore,
        *,
        config: TokenConfig | None = None,
        extractor: KeywordExtractor | None = None,
        estimator: TokenEstimator | None = None,
        clock: Callable = utc_now,
    ) -> None:
        self.store = store
        self.config = config or TokenConfig()
        self.extractor = extractor or KeywordExtractor()
        self.estimator = estimator or TokenEstimator()
        self._clock = clock

    def should_compress(self, conversation: Conversation) -> bool:
        return conversation.token_usage > self.config.max_conversation_tokens

    def build_summary(self, messages: Sequence[Message]) -> str:
        user_messages = [message for message in messages if message.role == ROLE_USER]
        assistant_messages = [message for message in messages if message.role == ROLE_ASSISTANT]
        topics = self.extractor.extract(
            " ".join(message.content for message in user_messages),
            max_keywords=_SUMMARY_TOPICS,
        )
        recent = " ".join(_excerpt(message.content) for message in list(messages)[-_SUMMARY_EXCERPTS:])
        return (
            f"The conversation covered {len(user_messages)} user queries and "
            f"{len(assistant_messages)} responses. "
            f"Main topics discussed: {', '.join(topics) or 'none'}. "
            f"Recent context: {recent}"
        )

    def compress(self, conversation: Conversation) -> Message | None:
        """Fold everything outside the priority window into one summary message.

        Returns the new summary message, or None when there is nothing to fold.
        A previous summary outside the window is folded like any other message.
        """
        active = conversation.active_messages
        window = self.config.priority_messages
        if len(active) <= window:
            return None
        to_compress = active[:-window]
        summary = self.build_summary(to_compress)
        content = SUMMARY_PREFIX + summary
        summary_message = self.store.append_message(
            conversation.id,
            role=ROLE_SYSTEM,
            content=content,
            token_count=self.estimator.estimate(content),
            metadata=SummaryMessageMeta(
                timestamp=to_iso(self._clock()),
                compressed_messages_count=len(to_compress),
            ),
        )
        marked = self.store.mark_compressed(message.id for message in to_compress)
        logger.info(
            "Compressed conversation history (conversation_id=%s, compressed=%d, summary_tokens=%d)",
            conversation.id,
            marked,
            summary_message.token_count,
        )
        return summary_message

    def optimize_for_context(self, conversation: Conversation) -> list[dict[str, str]]:
        """Model-facing history for ``conversation``. Pure; never writes.

        Summary messages lead as system context. Of the remaining dialogue the
        last ``priority_messages`` always go verbatim; older turns are replayed
        as-is while small, otherwise condensed into one system summary.
        """
        active = conversation.active_messages
        summaries = [message for message in active if _is_summary(message)]
        dialogue = [message for message in active if not _is_summary(message)]
        history = [{"role": ROLE_SYSTEM, "content": message.content} for message in summaries]

        window = self.config.priority_messages
        if len(dialogue) <= window:
            history.extend(_as_chat_turn(message) for message in dialogue)
            return history

        older, recent = dialogue[:-window], dialogue[-window:]
        older_tokens = sum(message.token_count for message in older)
        if older_tokens > self.config.older_history_token_limit:
            history.append({"role": ROLE_SYSTEM, "content": CONTEXT_SUMMARY_PREFIX + self.build_summary(older)})
        else:
            history.extend(_as_chat_turn(message) for message in older)
        history.extend(_as_chat_turn(message) for message in recent)
        return history

    def token_stats(self, conversation: Conversation) -> dict[str, Any]:
        messages = conversation.messages
        count = len(messages)
        total = conversation.token_usage

        def tokens_for(role: str) -> int:
            return sum(message.token_count for message in messages if message.role == role)

        first_at = parse_iso(messages[0].created_at) if messages else None
        last_at = parse_iso(conversation.last_activity_at)
        duration_minutes = 0
        if first_at and last_at and last_at > first_at:
            duration_minutes = int((last_at - first_at).total_seconds() // 60)
        return {
            "total_messages": count,
            "total_tokens": total,
            "user_tokens": tokens_for(ROLE_USER),
            "assistant_tokens": tokens_for(ROLE_ASSISTANT),
            "average_tokens_per_message": round(total / count, 2) if count else 0,
            "compression_needed": self.should_compress(conversation),
            "compressed_messages": sum(1 for message in messages if message.compressed),
            "user_messages": sum(1 for message in messages if message.role == ROLE_USER),
            "assistant_messages": sum(1 for message in messages if message.role == ROLE_ASSISTANT),
            "system_messages": sum(1 for message in messages if message.role == ROLE_SYSTEM),
            "last_activity": conversation.last_activity_at,
            "duration_minutes": duration_minutes,
        }
