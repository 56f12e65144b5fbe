from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Iterator

from chatstore import ConversationStore, ProfileNotFound, ProfileStore
from chatstore.models import (
    ROLE_ASSISTANT,
    ROLE_USER,
    AssistantMessageMeta,
    Conversation,
    Message,
    Profile,
    UserMessageMeta,
)
from chatstore.time_utils import to_iso, utc_now

from .classifier import ResponseClassifier
from .compression import HistoryCompressor
from .config import ChatSettings
from .context import ContextAssembler
from .gateway import CompletionGateway
from .models import PipelineResult
from .tokens import TokenEstimator
from .vocabulary import PIPELINE_APOLOGY

if TYPE_CHECKING:
    from careline_tools import ProductRecommender

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50


class MessageValidationError(Exception):
    pass


def title_from(text: str) -> str:
    text = text.strip()
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text


class MessagePipeline:
    """Runs one inbound user message end to end.

    Messages for the same conversation are serialized so the running
    ``token_usage`` counter and the append order stay consistent.
    """

    def __init__(
        self,
        *,
        store: ConversationStore,
        profiles: ProfileStore,
        compressor: HistoryCompressor,
        assembler: ContextAssembler,
        gateway: CompletionGateway,
        classifier: ResponseClassifier,
        products: "ProductRecommender",
        settings: ChatSettings | None = None,
        estimator: TokenEstimator | None = None,
        clock: Callable = utc_now,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.compressor = compressor
        self.assembler = assembler
        self.gateway = gateway
        self.classifier = classifier
        self.products = products
        self.settings = settings or ChatSettings()
        self.estimator = estimator or TokenEstimator()
        self._clock = clock
        # conversation id -> [lock, holders and waiters]; dropped when unused.
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _conversation_lock(self, conversation_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(conversation_id)
            if entry is None:
                entry = self._locks[conversation_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[conversation_id]

    def validate_message(self, text: Any) -> str:
        if not isinstance(text, str) or not text.strip():
            raise MessageValidationError("Message text is required.")
        text = text.strip()
        if len(text) > self.settings.max_message_length:
            raise MessageValidationError(
                f"Message exceeds the maximum length of {self.settings.max_message_length} characters."
            )
        return text

    def process_message(
        self,
        conversation_id: str,
        text: str,
        health_context_override: dict[str, Any] | None = None,
    ) -> PipelineResult:
        text = self.validate_message(text)
        # Raises ConversationNotFound before anything is written or locked.
        self.store.get(conversation_id)
        with self._conversation_lock(conversation_id):
            user_message = self.store.append_message(
                conversation_id,
                role=ROLE_USER,
                content=text,
                token_count=self.estimator.estimate(text),
                metadata=UserMessageMeta(timestamp=to_iso(self._clock())),
            )
            progress = ["user_message_persisted"]
            try:
                result = self._respond(conversation_id, user_message, health_context_override, progress)
            except Exception as exc:
                logger.exception("Chat processing failed (conversation_id=%s)", conversation_id)
                return self._apologize(conversation_id, user_message, progress[-1], exc)
            # The reply is already persisted; a title failure must not add another one.
            if self.settings.auto_title:
                self._apply_title(result)
            return result

    def _apply_title(self, result: PipelineResult) -> None:
        try:
            title = self.generate_title(result.conversation.id)
        except Exception:
            logger.exception("Title generation failed (conversation_id=%s)", result.conversation.id)
            return
        if title:
            result.conversation.title = title

    def _respond(
        self,
        conversation_id: str,
        user_message: Message,
        health_context_override: dict[str, Any] | None,
        progress: list[str],
    ) -> PipelineResult:
        conversation = self.store.get(conversation_id)
        compressed = False
        if self.settings.tokens.enable_compression and self.compressor.should_compress(conversation):
            compressed = self.compressor.compress(conversation) is not None
            if compressed:
                conversation = self.store.get(conversation_id)
        progress.append("history_compressed")

        profile = self._load_profile(conversation)
        context = self.assembler.build(user_message.content, conversation, profile, health_context_override)
        history = self.compressor.optimize_for_context(conversation)
        progress.append("context_built")
        completion = self.gateway.generate(history, context, conversation_id=conversation_id)
        progress.append("completion_obtained")

        candidates = self.products.extract_candidates(completion.content)
        product_links = self.products.resolve_links(candidates) if candidates else []
        progress.append("links_resolved")
        classification = self.classifier.classify(
            completion.content,
            user_message.content,
            context.user_profile,
            product_recommendations=product_links,
            has_product_candidates=bool(candidates),
        )

        assistant_message = self.store.append_message(
            conversation_id,
            role=ROLE_ASSISTANT,
            content=completion.content,
            token_count=completion.token_count,
            metadata=AssistantMessageMeta(
                timestamp=to_iso(self._clock()),
                model=completion.model,
                is_fallback=completion.is_fallback,
                classification=classification.as_dict(),
                provider=dict(completion.metadata),
            ),
        )
        progress.append("assistant_message_persisted")

        conversation = replace(
            conversation,
            token_usage=conversation.token_usage + assistant_message.token_count,
            last_activity_at=assistant_message.created_at,
            messages=[*conversation.messages, assistant_message],
        )
        return PipelineResult(
            success=True,
            conversation=conversation,
            user_message=user_message,
            assistant_message=assistant_message,
            token_usage={
                "conversation_total": conversation.token_usage,
                "this_exchange": user_message.token_count + assistant_message.token_count,
            },
            response=classification.as_dict(),
            completion={
                "success": completion.success,
                "is_fallback": completion.is_fallback,
                "error": completion.error,
                "metadata": dict(completion.metadata),
            },
            compressed=compressed,
        )

    def _apologize(self, conversation_id: str, user_message: Message, stage: str, exc: Exception) -> PipelineResult:
        assistant_message: Message | None = None
        try:
            assistant_message = self.store.append_message(
                conversation_id,
                role=ROLE_ASSISTANT,
                content=PIPELINE_APOLOGY,
                token_count=self.estimator.estimate(PIPELINE_APOLOGY),
                metadata=AssistantMessageMeta(
                    timestamp=to_iso(self._clock()),
                    model="none",
                    is_fallback=True,
                    provider={"error": str(exc)},
                ),
            )
            conversation = self.store.get(conversation_id)
        except Exception:
            logger.exception("Could not persist apology reply (conversation_id=%s)", conversation_id)
            conversation = Conversation(id=conversation_id, created_at=user_message.created_at)
        this_exchange = user_message.token_count + (assistant_message.token_count if assistant_message else 0)
        return PipelineResult(
            success=False,
            conversation=conversation,
            user_message=user_message,
            assistant_message=assistant_message,
            token_usage={"conversation_total": conversation.token_usage, "this_exchange": this_exchange},
            stage=stage,
            error=str(exc),
        )

    def _load_profile(self, conversation: Conversation) -> Profile | None:
        if not conversation.profile_id:
            return None
        try:
            return self.profiles.get(conversation.profile_id)
        except ProfileNotFound:
            logger.warning(
                "Conversation references a missing profile (conversation_id=%s, profile_id=%s)",
                conversation.id,
                conversation.profile_id,
            )
            return None

    def generate_title(self, conversation_id: str) -> str | None:
        """Title the conversation from its first user message, once."""
        conversation = self.store.get(conversation_id)
        if conversation.title:
            return conversation.title
        first = conversation.first_user_message()
        if first is None:
            return None
        title = title_from(first.content)
        if self.store.set_title_if_absent(conversation_id, title):
            return title
        return self.store.get(conversation_id).title

    def get_token_stats(self, conversation_id: str) -> dict[str, Any]:
        return self.compressor.token_stats(self.store.get(conversation_id))

    def test_connectivity(self) -> dict[str, Any]:
        return self.gateway.test_connectivity()
