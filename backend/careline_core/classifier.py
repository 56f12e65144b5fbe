from __future__ import annotations

import logging
import re
from typing import Any

from .models import ClassificationResult, NextStep
from .vocabulary import (
    ACTION_DESCRIPTIONS,
    ACTION_PRIORITIES,
    ADDITIONAL_RESOURCES,
    ALLERGY_ADVISORY,
    CONDITION_ADVISORY,
    DEFAULT_NEXT_STEP,
    DISCLAIMERS,
    EMERGENCY_DISCLAIMER,
    EMPTY_REPLY_SUMMARY,
    MEDICATION_ADVISORY,
    MINOR_ADVISORY,
    MINOR_AGE,
    PREGNANCY_ADVISORY,
    RESPONSE_TYPES,
    SENIOR_ADVISORY,
    SENIOR_AGE,
    SPECIFICITY_TERMS,
    STATUS_LEVELS,
    SUMMARY_PREFIXES,
    URGENCY_WEIGHTS,
    UrgencyVocabulary,
)

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_LIST_ITEM_RE = re.compile(r"^[ \t]*(?:\d+\.|[-*])[ \t]+(.+)$", re.MULTILINE)

_SUMMARY_MIN, _SUMMARY_MAX = 20, 150
_KEY_POINT_MIN, _KEY_POINT_MAX = 30, 200
_MAX_KEY_POINTS = 5
_FALLBACK_SUMMARY_CHARS = 100


def _sentences(text: str) -> list[str]:
    return [sentence.strip() for sentence in _SENTENCE_SPLIT_RE.split(text) if sentence.strip()]


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _coerce_age(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _fill(template: dict[str, Any], value: str) -> dict[str, Any]:
    advisory = dict(template)
    advisory["message"] = template["message"].format(value=value)
    return advisory


class ResponseClassifier:
    """Turns a free-text model reply into a structured, urgency-tagged breakdown.

    Pure keyword and regex heuristics. Urgency is first-match-wins over the
    tiers in priority order: a single critical phrase outranks any number of
    lower-tier phrases. ``classify`` never raises.
    """

    def __init__(self, vocabulary: UrgencyVocabulary | None = None) -> None:
        self.vocabulary = vocabulary or UrgencyVocabulary()

    def classify(
        self,
        raw_reply: str | None,
        user_message: str | None = "",
        profile: dict[str, Any] | None = None,
        *,
        product_recommendations: list[dict[str, Any]] | None = None,
        has_product_candidates: bool | None = None,
    ) -> ClassificationResult:
        reply = raw_reply if isinstance(raw_reply, str) else ""
        message = user_message if isinstance(user_message, str) else ""
        products = list(product_recommendations or [])
        if has_product_candidates is None:
            has_product_candidates = bool(products)
        try:
            return self._classify(reply, message, profile, products, has_product_candidates)
        except Exception:
            logger.exception("Response classification failed; returning neutral result")
            return self.neutral_result()

    def _classify(
        self,
        reply: str,
        message: str,
        profile: dict[str, Any] | None,
        products: list[dict[str, Any]],
        has_product_candidates: bool,
    ) -> ClassificationResult:
        combined = f"{reply} {message}".lower()
        reply_lower = reply.lower()
        level, tier_hits = self.determine_urgency(combined)
        return ClassificationResult(
            urgency_level=level,
            confidence=self.confidence(level, tier_hits),
            urgency_score=self.urgency_score(tier_hits),
            summary=self.summarize(reply, level),
            status_info=dict(STATUS_LEVELS[level]),
            key_points=self.key_points(reply),
            symptoms_mentioned=self.mentioned(reply_lower, self.vocabulary.symptoms),
            conditions_mentioned=self.mentioned(reply_lower, self.vocabulary.conditions),
            treatments_mentioned=self.mentioned(reply_lower, self.vocabulary.treatments),
            warnings=self.warnings(reply),
            next_steps=self.next_steps(combined),
            when_to_seek_help=self.when_to_seek_help(reply),
            personalization=self.personalization(profile),
            product_recommendations=products,
            response_type=self.response_type(reply_lower),
            confidence_level=self.confidence_level(reply),
            disclaimers=self.disclaimers(level),
            action_items=self.action_items(level, has_product_candidates),
            additional_resources=[dict(resource) for resource in ADDITIONAL_RESOURCES],
            tier_hits=tier_hits,
            vocabulary_version=self.vocabulary.version,
        )

    def neutral_result(self) -> ClassificationResult:
        return ClassificationResult(
            urgency_level="normal",
            confidence=50,
            urgency_score=0,
            summary=EMPTY_REPLY_SUMMARY,
            status_info=dict(STATUS_LEVELS["normal"]),
            next_steps=[NextStep(**DEFAULT_NEXT_STEP)],
            disclaimers=self.disclaimers("normal"),
            action_items=self.action_items("normal", False),
            additional_resources=[dict(resource) for resource in ADDITIONAL_RESOURCES],
            tier_hits={tier: 0 for tier, _ in self.vocabulary.tiers()},
            vocabulary_version=self.vocabulary.version,
        )

    # ---- urgency ---------------------------------------------------------

    def determine_urgency(self, text: str) -> tuple[str, dict[str, int]]:
        lowered = text.lower()
        tier_hits = {
            tier: sum(1 for phrase in phrases if phrase in lowered)
            for tier, phrases in self.vocabulary.tiers()
        }
        for tier, _ in self.vocabulary.tiers():
            if tier_hits[tier]:
                return tier, tier_hits
        return "normal", tier_hits

    @staticmethod
    def urgency_score(tier_hits: dict[str, int]) -> int:
        score = sum(URGENCY_WEIGHTS.get(tier, 0) * hits for tier, hits in tier_hits.items())
        return min(score, 100)

    @staticmethod
    def confidence(level: str, tier_hits: dict[str, int]) -> int:
        hits = tier_hits.get(level, 0)
        if not hits:
            return 50
        return min(hits * 20, 100)

    # ---- text extraction -------------------------------------------------

    def summarize(self, reply: str, level: str) -> str:
        summary = ""
        for sentence in _sentences(reply):
            if _SUMMARY_MIN < len(sentence) < _SUMMARY_MAX:
                summary = sentence
                break
        if not summary:
            text = reply.strip()
            summary = text[:_FALLBACK_SUMMARY_CHARS] + "..." if text else EMPTY_REPLY_SUMMARY
        return SUMMARY_PREFIXES.get(level, "") + summary

    def key_points(self, reply: str) -> list[str]:
        listed = [match.strip() for match in _LIST_ITEM_RE.findall(reply) if match.strip()]
        if listed:
            return listed
        return [
            sentence
            for sentence in _sentences(reply)
            if _KEY_POINT_MIN < len(sentence) < _KEY_POINT_MAX
        ][:_MAX_KEY_POINTS]

    @staticmethod
    def mentioned(text: str, terms: tuple[str, ...]) -> list[str]:
        lowered = text.lower()
        return [term for term in terms if term in lowered]

    def warnings(self, reply: str) -> list[str]:
        lowered = reply.lower()
        sentences = _sentences(reply)
        found: list[str] = []
        for phrase in self.vocabulary.warnings:
            if phrase not in lowered:
                continue
            for sentence in sentences:
                if phrase in sentence.lower():
                    found.append(sentence)
                    break
        return _dedupe(found)

    def when_to_seek_help(self, reply: str) -> list[str]:
        criteria: list[str] = []
        for phrase in self.vocabulary.seek_help:
            match = re.search(re.escape(phrase) + r"\s*([^.!?]+)", reply, re.IGNORECASE)
            if match and match.group(1).strip():
                criteria.append(match.group(1).strip())
        return _dedupe(criteria)

    def next_steps(self, text: str) -> list[NextStep]:
        lowered = text.lower()
        steps = [
            NextStep(
                category=category,
                action=ACTION_DESCRIPTIONS.get(category, DEFAULT_NEXT_STEP["action"]),
                priority=ACTION_PRIORITIES.get(category, "low"),
            )
            for category, keywords in self.vocabulary.actions
            if any(keyword in lowered for keyword in keywords)
        ]
        return steps or [NextStep(**DEFAULT_NEXT_STEP)]

    # ---- profile ---------------------------------------------------------

    def personalization(self, profile: dict[str, Any] | None) -> dict[str, Any]:
        if not isinstance(profile, dict) or not profile:
            return {}
        advisories: dict[str, Any] = {}
        age = _coerce_age(profile.get("age"))
        if age is not None and age >= SENIOR_AGE:
            advisories["age_considerations"] = dict(SENIOR_ADVISORY)
        elif age is not None and age <= MINOR_AGE:
            advisories["age_considerations"] = dict(MINOR_ADVISORY)
        if profile.get("chronic_conditions"):
            advisories["condition_considerations"] = _fill(CONDITION_ADVISORY, str(profile["chronic_conditions"]))
        if profile.get("allergies"):
            advisories["allergy_warnings"] = _fill(ALLERGY_ADVISORY, str(profile["allergies"]))
        if profile.get("medications"):
            advisories["medication_considerations"] = _fill(MEDICATION_ADVISORY, str(profile["medications"]))
        if profile.get("is_pregnant"):
            advisories["pregnancy_considerations"] = dict(PREGNANCY_ADVISORY)
        return advisories

    # ---- response furniture ---------------------------------------------

    @staticmethod
    def response_type(text: str) -> str:
        lowered = text.lower()
        for response_type, markers in RESPONSE_TYPES:
            if any(marker in lowered for marker in markers):
                return response_type
        return "general"

    @staticmethod
    def confidence_level(reply: str) -> int:
        lowered = reply.lower()
        specificity = sum(1 for term in SPECIFICITY_TERMS if term in lowered)
        return int(min(len(reply) / 10 + specificity * 10, 100))

    @staticmethod
    def disclaimers(level: str) -> list[str]:
        disclaimers = list(DISCLAIMERS)
        if level == "critical":
            disclaimers.insert(0, EMERGENCY_DISCLAIMER)
        return disclaimers

    @staticmethod
    def action_items(level: str, has_product_candidates: bool) -> list[str]:
        items = [STATUS_LEVELS[level]["action"]]
        if has_product_candidates:
            items.append("Consider the recommended products/treatments mentioned above")
        if level != "critical":
            items.append("Consult with your healthcare provider for personalized medical advice")
        return _dedupe(items)
