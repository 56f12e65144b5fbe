from __future__ import annotations

import logging
import random
from typing import Any, Callable, Sequence

from chatstore.time_utils import to_iso, utc_now

from .config import CompletionConfig
from .models import CompletionResult, ContextBundle
from .provider import CompletionProvider, OpenAICompatibleProvider, ProviderError
from .tokens import TokenEstimator
from .vocabulary import (
    BASELINE_MODEL,
    CLOSING_REMINDER,
    CONNECTIVITY_TEST_MESSAGE,
    FALLBACK_REPLIES,
    MODEL_PRICING,
    NOT_CONFIGURED_ERROR,
    NOT_CONFIGURED_REPLY,
    STRUCTURED_RESPONSE_GUIDELINES,
)

logger = logging.getLogger(__name__)

_PROMPT_TOPICS = 5


def calculate_cost(input_tokens: int, output_tokens: int, model: str | None = None) -> dict[str, Any]:
    """USD cost of one completion from the static per-1K-token price table."""
    pricing = MODEL_PRICING.get(model or "") or MODEL_PRICING[BASELINE_MODEL]
    input_cost = (input_tokens / 1000) * pricing["input"]
    output_cost = (output_tokens / 1000) * pricing["output"]
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "input_cost": round(input_cost, 6),
        "output_cost": round(output_cost, 6),
        "total_cost": round(input_cost + output_cost, 6),
        "model": model if model in MODEL_PRICING else BASELINE_MODEL,
    }


def summarize_profile(profile: dict[str, Any] | None) -> str:
    if not profile:
        return ""
    parts: list[str] = []
    if profile.get("age") is not None:
        parts.append(f"Age: {profile['age']}")
    gender = profile.get("gender")
    if isinstance(gender, bool):
        parts.append("Gender: " + ("Male" if gender else "Female"))
    elif isinstance(gender, str) and gender.strip():
        parts.append(f"Gender: {gender.strip().capitalize()}")
    if profile.get("chronic_conditions"):
        parts.append(f"Chronic conditions: {profile['chronic_conditions']}")
    if profile.get("allergies"):
        parts.append(f"Allergies: {profile['allergies']}")
    if profile.get("medications"):
        parts.append(f"Current medications: {profile['medications']}")
    if profile.get("is_pregnant"):
        parts.append("Currently pregnant")
    if profile.get("blood_type"):
        parts.append(f"Blood type: {profile['blood_type']}")
    if profile.get("is_smoker"):
        parts.append("Smoker")
    if profile.get("is_drinker"):
        parts.append("Regular alcohol consumption")
    return ", ".join(parts)


def _coerce_completion_text(choice: dict[str, Any]) -> str:
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            item["text"]
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        return "\n".join(parts)
    return ""


class CompletionGateway:
    def __init__(
        self,
        *,
        config: CompletionConfig,
        provider: CompletionProvider | None = None,
        estimator: TokenEstimator | None = None,
        rng: random.Random | None = None,
        clock: Callable = utc_now,
    ) -> None:
        self.config = config
        self.provider = provider or OpenAICompatibleProvider(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
        self.estimator = estimator or TokenEstimator()
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def build_system_prompt(self, context: ContextBundle | None = None) -> str:
        base = (context.system_prompt if context else "") or self.config.system_prompt
        prompt = base + STRUCTURED_RESPONSE_GUIDELINES

        lines: list[str] = []
        if context is not None:
            profile_summary = summarize_profile(context.user_profile)
            if profile_summary:
                lines.append(f"Patient Profile: {profile_summary}")
            user_name = context.user_context.get("user_name")
            if user_name:
                lines.append(f"User: {user_name}")
            topics = context.conversation_context.get("conversation_topics") or []
            if topics:
                lines.append("Previous topics: " + ", ".join(topics[:_PROMPT_TOPICS]))
            guidelines = context.relevant_data.get("safety_guidelines") or {}
            if guidelines:
                lines.append("Safety considerations: " + " ".join(guidelines.values()))
        if lines:
            prompt += "\n\nPatient Context:\n" + "\n".join(lines)
        return prompt + CLOSING_REMINDER

    def generate(
        self,
        messages: Sequence[dict[str, str]],
        context: ContextBundle | None = None,
        *,
        conversation_id: str | None = None,
    ) -> CompletionResult:
        if not self.is_configured:
            logger.warning("Completion requested but no API key is configured (conversation_id=%s)", conversation_id)
            return CompletionResult(
                content=NOT_CONFIGURED_REPLY,
                token_count=0,
                metadata={
                    "model": self.config.model,
                    "finish_reason": "not_configured",
                    "created_at": to_iso(self._clock()),
                },
                success=False,
                error=NOT_CONFIGURED_ERROR,
            )

        payload_messages = [{"role": "system", "content": self.build_system_prompt(context)}]
        payload_messages.extend({"role": turn["role"], "content": turn["content"]} for turn in messages)
        try:
            body = self.provider.create(
                model=self.config.model,
                messages=payload_messages,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
            return self._process_response(body, payload_messages)
        except Exception as exc:
            logger.error(
                "Completion provider failed (conversation_id=%s, messages=%d): %s",
                conversation_id,
                len(payload_messages),
                exc,
            )
            return self._fallback(str(exc))

    def _process_response(self, body: dict[str, Any], payload_messages: list[dict[str, str]]) -> CompletionResult:
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ProviderError("Invalid response format from completion provider.")
        choice = choices[0]
        content = _coerce_completion_text(choice).strip()
        if not content:
            raise ProviderError("Completion provider returned an empty reply.")

        usage = body.get("usage") if isinstance(body.get("usage"), dict) else {}
        completion_tokens = usage.get("completion_tokens")
        if isinstance(completion_tokens, int) and completion_tokens > 0:
            token_count = completion_tokens
        else:
            token_count = self.estimator.estimate(content)
        prompt_tokens = usage.get("prompt_tokens")
        if not isinstance(prompt_tokens, int) or prompt_tokens <= 0:
            prompt_tokens = self.estimator.estimate_messages(payload_messages)

        return CompletionResult(
            content=content,
            token_count=token_count,
            metadata={
                "model": body.get("model") or self.config.model,
                "finish_reason": choice.get("finish_reason"),
                "usage": usage,
                "response_id": body.get("id"),
                "created_at": to_iso(self._clock()),
                "cost": calculate_cost(prompt_tokens, token_count, self.config.model),
                "is_fallback": False,
            },
        )

    def _fallback(self, error: str) -> CompletionResult:
        content = self._rng.choice(FALLBACK_REPLIES)
        return CompletionResult(
            content=content,
            token_count=self.estimator.estimate(content),
            metadata={
                "model": "fallback",
                "finish_reason": "error",
                "is_fallback": True,
                "error": error,
                "created_at": to_iso(self._clock()),
            },
            is_fallback=True,
            error=error,
        )

    def test_connectivity(self) -> dict[str, Any]:
        if not self.is_configured:
            return {
                "success": False,
                "message": "OpenAI API key is not configured",
                "error": NOT_CONFIGURED_ERROR,
            }
        result = self.generate([{"role": "user", "content": CONNECTIVITY_TEST_MESSAGE}])
        if result.is_fallback:
            return {
                "success": False,
                "message": "API connection failed",
                "error": result.error,
            }
        return {
            "success": True,
            "message": "API connection successful",
            "response": result.content,
            "model": result.model,
        }
