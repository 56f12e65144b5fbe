from __future__ import annotations

import pytest

from careline_core import ResponseClassifier, UrgencyVocabulary
from careline_core.vocabulary import EMERGENCY_DISCLAIMER, EMPTY_REPLY_SUMMARY, VOCABULARY_VERSION

IBUPROFEN_REPLY = "Take two ibuprofen and monitor mild symptoms, but call 911 if chest pain occurs"


def test_single_critical_phrase_outranks_light_phrases():
    result = ResponseClassifier().classify(IBUPROFEN_REPLY)

    assert result.urgency_level == "critical"
    assert result.tier_hits == {"critical": 2, "urgent": 0, "medium": 0, "light": 2}
    assert result.urgency_score == 56
    assert result.confidence == 40
    assert result.summary == "⚠️ URGENT: " + IBUPROFEN_REPLY
    assert result.status_info["label"] == "Critical"
    assert [step.category for step in result.next_steps] == ["immediate"]
    assert result.next_steps[0].priority == "critical"
    assert result.response_type == "emergency"
    assert result.disclaimers[0] == EMERGENCY_DISCLAIMER
    assert result.action_items == ["Call 911 or go to emergency room immediately"]
    assert result.symptoms_mentioned == ["pain"]
    assert result.vocabulary_version == VOCABULARY_VERSION


def test_user_message_can_raise_urgency():
    result = ResponseClassifier().classify("Rest well.", "I have crushing chest pain")

    assert result.urgency_level == "critical"
    assert result.symptoms_mentioned == []


def test_plain_reply_is_normal():
    result = ResponseClassifier().classify("Drinking water throughout the day supports good health.")

    assert result.urgency_level == "normal"
    assert result.confidence == 50
    assert result.urgency_score == 0
    assert result.summary == "Drinking water throughout the day supports good health"
    assert [step.category for step in result.next_steps] == ["general"]
    assert result.response_type == "general"
    assert EMERGENCY_DISCLAIMER not in result.disclaimers
    assert result.action_items == [
        "Continue healthy practices",
        "Consult with your healthcare provider for personalized medical advice",
    ]
    assert len(result.additional_resources) == 3


@pytest.mark.parametrize("reply", ["", None, "   "])
def test_empty_reply_gets_placeholder_summary(reply):
    result = ResponseClassifier().classify(reply, None)

    assert result.urgency_level == "normal"
    assert result.summary == EMPTY_REPLY_SUMMARY
    assert result.key_points == []
    assert result.warnings == []


def test_urgent_reply_uses_important_prefix():
    result = ResponseClassifier().classify("You may have an infection that needs prompt medical care.")

    assert result.urgency_level == "urgent"
    assert result.urgency_score == 30
    assert result.summary == "\U0001f6a8 Important: You may have an infection that needs prompt medical care"
    assert result.conditions_mentioned == ["infection"]


def test_key_points_prefer_list_items():
    reply = (
        "Here is what to do:\n"
        "1. Drink plenty of fluids\n"
        "- Get enough sleep\n"
        "  * Take breaks from screens\n"
        "plain line without a marker"
    )
    assert ResponseClassifier().key_points(reply) == [
        "Drink plenty of fluids",
        "Get enough sleep",
        "Take breaks from screens",
    ]


def test_key_points_fall_back_to_sentences():
    classifier = ResponseClassifier()
    reply = "Short one. This sentence is definitely longer than thirty characters. Another sufficiently long sentence appears right here!"
    assert classifier.key_points(reply) == [
        "This sentence is definitely longer than thirty characters",
        "Another sufficiently long sentence appears right here",
    ]

    many = " ".join(f"Sentence number {index} is long enough to be a key point." for index in range(7))
    assert len(classifier.key_points(many)) == 5


def test_summary_falls_back_to_truncated_reply():
    classifier = ResponseClassifier()
    assert classifier.classify("Ok. Yes. Sure.").summary == "Ok. Yes. Sure...."
    assert classifier.summarize("z" * 300, "normal") == "z" * 100 + "..."


def test_warnings_quote_whole_sentences():
    reply = "Avoid alcohol while taking this. Do not drive if drowsy. Never exceed the dose."
    assert ResponseClassifier().classify(reply).warnings == [
        "Do not drive if drowsy",
        "Avoid alcohol while taking this",
        "Never exceed the dose",
    ]


def test_when_to_seek_help_captures_trailing_clause():
    reply = "Seek medical attention if the swelling spreads. Contact your doctor if fever rises above 39C!"
    assert ResponseClassifier().when_to_seek_help(reply) == ["the swelling spreads", "fever rises above 39C"]


def test_next_steps_follow_category_order():
    steps = ResponseClassifier().next_steps("keep track of your readings, get more sleep, and check your dosage.")

    assert [(step.category, step.priority) for step in steps] == [
        ("monitor", "medium"),
        ("lifestyle", "low"),
        ("medication", "high"),
    ]


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (70, "As a senior"),
        (65, "As a senior"),
        (12, "For minors"),
        ("18", "For minors"),
        (30, None),
        ("unknown", None),
        (True, None),
    ],
)
def test_age_advisories(age, expected):
    advisories = ResponseClassifier().personalization({"age": age})
    if expected is None:
        assert "age_considerations" not in advisories
    else:
        assert advisories["age_considerations"]["message"].startswith(expected)


def test_profile_advisories_fill_in_values():
    advisories = ResponseClassifier().personalization(
        {
            "age": 40,
            "chronic_conditions": "diabetes",
            "allergies": "penicillin",
            "medications": "metformin",
            "is_pregnant": True,
        }
    )

    assert set(advisories) == {
        "condition_considerations",
        "allergy_warnings",
        "medication_considerations",
        "pregnancy_considerations",
    }
    assert "(diabetes)" in advisories["condition_considerations"]["message"]
    assert "(penicillin)" in advisories["allergy_warnings"]["message"]
    assert "(metformin)" in advisories["medication_considerations"]["message"]
    assert ResponseClassifier().personalization(None) == {}


@pytest.mark.parametrize(
    ("reply", "expected"),
    [
        ("Go to the emergency department.", "emergency"),
        ("Please book an appointment.", "consultation"),
        ("Regular exercise helps.", "lifestyle"),
        ("This medication may help.", "treatment"),
        ("Thanks for asking.", "general"),
    ],
)
def test_response_type(reply, expected):
    assert ResponseClassifier().response_type(reply) == expected


def test_confidence_level_rewards_length_and_specificity():
    classifier = ResponseClassifier()
    assert classifier.confidence_level("You should consider rest.") == 22
    assert classifier.confidence_level("x" * 2000) == 100


def test_action_items_mention_products_when_present():
    classifier = ResponseClassifier()
    assert classifier.action_items("urgent", True) == [
        "Contact your doctor or urgent care today",
        "Consider the recommended products/treatments mentioned above",
        "Consult with your healthcare provider for personalized medical advice",
    ]

    result = classifier.classify("Try a heating pad.", product_recommendations=[{"product": "heating pad"}])
    assert result.product_recommendations == [{"product": "heating pad"}]
    assert "Consider the recommended products/treatments mentioned above" in result.action_items


def test_vocabulary_is_injectable():
    vocabulary = UrgencyVocabulary(critical=("purple rash",), version="test-1")
    result = ResponseClassifier(vocabulary).classify("A purple rash appeared overnight.")

    assert result.urgency_level == "critical"
    assert result.vocabulary_version == "test-1"


def test_classify_never_raises(monkeypatch):
    classifier = ResponseClassifier()

    def broken(reply):
        raise RuntimeError("boom")

    monkeypatch.setattr(classifier, "key_points", broken)
    result = classifier.classify(IBUPROFEN_REPLY)

    assert result.urgency_level == "normal"
    assert result.summary == EMPTY_REPLY_SUMMARY
    assert result.tier_hits == {"critical": 0, "urgent": 0, "medium": 0, "light": 0}
