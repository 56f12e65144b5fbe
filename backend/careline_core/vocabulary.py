"""Static data tables used by the message pipeline.

Everything here is data, not behavior. Bump ``VOCABULARY_VERSION`` whenever a
table changes so persisted classifications can be traced back to the tables
that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

VOCABULARY_VERSION = "2025.07.1"

STOP_WORDS = frozenset(
    {
        "i", "me", "my", "myself", "we", "our", "ours", "ourselves", "you", "your", "yours",
        "yourself", "yourselves", "he", "him", "his", "himself", "she", "her", "hers",
        "herself", "it", "its", "itself", "they", "them", "their", "theirs", "themselves",
        "what", "which", "who", "whom", "this", "that", "these", "those", "am", "is", "are",
        "was", "were", "be", "been", "being", "have", "has", "had", "having", "do", "does",
        "did", "doing", "a", "an", "the", "and", "but", "if", "or", "because", "as", "until",
        "while", "of", "at", "by", "for", "with", "through", "during", "before", "after",
        "above", "below", "up", "down", "in", "out", "on", "off", "over", "under", "again",
        "further", "then", "once", "here", "there", "when", "where", "why", "how", "all",
        "any", "both", "each", "few", "more", "most", "other", "some", "such", "no", "nor",
        "not", "only", "own", "same", "so", "than", "too", "very", "can", "will", "just",
        "should", "now",
    }
)

# ---- urgency -------------------------------------------------------------

URGENCY_LEVELS = ("critical", "urgent", "medium", "light", "normal")

# Checked in this order; the first tier with any hit decides the level.
CRITICAL_PHRASES = (
    "emergency",
    "call 911",
    "life threatening",
    "life-threatening",
    "severe chest pain",
    "chest pain",
    "difficulty breathing",
    "unconscious",
    "severe bleeding",
    "stroke",
    "heart attack",
    "suicidal",
    "overdose",
    "anaphylaxis",
    "seizure",
    "poisoning",
    "seek immediate medical attention",
)

URGENT_PHRASES = (
    "urgent",
    "immediate",
    "see doctor today",
    "see a doctor soon",
    "doctor immediately",
    "high fever",
    "severe pain",
    "persistent vomiting",
    "dehydration",
    "infection",
    "concerning symptoms",
    "worsening symptoms",
    "medical attention needed",
    "don't delay",
    "prompt medical care",
)

MEDIUM_PHRASES = (
    "schedule appointment",
    "schedule an appointment",
    "see doctor",
    "see a doctor",
    "medical evaluation",
    "persistent",
    "recurring",
    "ongoing",
    "chronic",
    "monitor closely",
    "follow up",
    "consult doctor",
    "if symptoms persist",
)

LIGHT_PHRASES = (
    "monitor",
    "watch",
    "mild",
    "minor",
    "self-care",
    "home remedy",
    "home remedies",
    "rest",
    "over-the-counter",
    "lifestyle changes",
    "healthy habits",
    "wellness tips",
)

URGENCY_WEIGHTS = {"critical": 25, "urgent": 15, "medium": 8, "light": 3}

STATUS_LEVELS = {
    "critical": {
        "label": "Critical",
        "color": "red",
        "description": "Immediate emergency care required",
        "action": "Call 911 or go to emergency room immediately",
        "urgency": "Emergency - Act Now",
    },
    "urgent": {
        "label": "Urgent",
        "color": "orange",
        "description": "Medical attention needed within 24 hours",
        "action": "Contact your doctor or urgent care today",
        "urgency": "See Doctor Today",
    },
    "medium": {
        "label": "Medium",
        "color": "yellow",
        "description": "Should be evaluated by healthcare provider",
        "action": "Schedule appointment within 1-2 weeks",
        "urgency": "Schedule Appointment",
    },
    "light": {
        "label": "Light",
        "color": "blue",
        "description": "Monitor symptoms and consider medical advice",
        "action": "Watch symptoms, see doctor if worsens",
        "urgency": "Monitor & Consider Care",
    },
    "normal": {
        "label": "Normal",
        "color": "green",
        "description": "General health information and advice",
        "action": "Continue healthy practices",
        "urgency": "Informational",
    },
}

SUMMARY_PREFIXES = {
    "critical": "⚠️ URGENT: ",
    "urgent": "\U0001f6a8 Important: ",
}

# ---- detail extraction ---------------------------------------------------

SYMPTOM_TERMS = (
    "pain", "fever", "headache", "nausea", "fatigue", "dizziness",
    "shortness of breath", "cough", "swelling", "rash", "itching",
)

CONDITION_TERMS = (
    "diabetes", "hypertension", "asthma", "arthritis", "depression",
    "anxiety", "migraine", "allergies", "infection", "inflammation",
)

TREATMENT_TERMS = (
    "medication", "exercise", "therapy", "surgery", "rest",
    "ice", "heat", "massage", "stretching", "diet",
)

WARNING_PHRASES = (
    "do not", "avoid", "never", "stop taking", "discontinue",
    "dangerous", "harmful", "warning", "caution", "risk",
    "side effect", "contraindication", "interaction",
)

SEEK_HELP_PHRASES = (
    "seek medical attention if",
    "contact doctor if",
    "contact your doctor if",
    "call if",
    "see healthcare provider if",
    "emergency if",
    "urgent if",
)

SPECIFICITY_TERMS = ("should", "recommend", "suggest", "consider", "may", "might")

# Ordered; the first category with a hit wins.
RESPONSE_TYPES = (
    ("emergency", ("emergency", "911")),
    ("consultation", ("appointment", "doctor")),
    ("lifestyle", ("lifestyle", "exercise")),
    ("treatment", ("medication", "treatment")),
)

# ---- next steps ----------------------------------------------------------

ACTION_KEYWORDS = (
    ("immediate", ("call 911", "emergency room", "immediate medical attention", "urgent care")),
    ("schedule", ("make appointment", "schedule visit", "see doctor", "see a doctor", "consult healthcare provider")),
    ("monitor", ("monitor symptoms", "watch for", "keep track of", "observe")),
    ("lifestyle", ("exercise", "diet", "sleep", "stress management", "hydration")),
    ("medication", ("take medication", "prescription", "dosage", "side effects")),
)

ACTION_DESCRIPTIONS = {
    "immediate": "Seek emergency medical care immediately",
    "schedule": "Schedule an appointment with your healthcare provider",
    "monitor": "Monitor symptoms and track changes",
    "lifestyle": "Implement recommended lifestyle changes",
    "medication": "Follow medication instructions carefully",
}

ACTION_PRIORITIES = {
    "immediate": "critical",
    "schedule": "high",
    "monitor": "medium",
    "lifestyle": "low",
    "medication": "high",
}

DEFAULT_NEXT_STEP = {
    "category": "general",
    "action": "Continue monitoring your health and consult with healthcare providers as needed",
    "priority": "low",
}

# ---- personalization -----------------------------------------------------

SENIOR_AGE = 65
MINOR_AGE = 18

SENIOR_ADVISORY = {
    "message": "As a senior, consider discussing any new symptoms with your healthcare provider promptly.",
    "considerations": ["Medication interactions", "Fall risk", "Slower healing"],
}

MINOR_ADVISORY = {
    "message": "For minors, always involve a parent/guardian in healthcare decisions.",
    "considerations": ["Growth and development", "Age-appropriate treatments"],
}

CONDITION_ADVISORY = {
    "message": "Given your existing conditions ({value}), discuss any new symptoms with your healthcare provider.",
    "considerations": ["Potential interactions", "Condition management", "Specialized care needs"],
}

ALLERGY_ADVISORY = {
    "message": "Be aware of your allergies ({value}) when considering any treatments or medications.",
    "warning": "Always inform healthcare providers about your allergies",
}

MEDICATION_ADVISORY = {
    "message": "Current medications ({value}) may interact with new treatments.",
    "advice": "Consult pharmacist or doctor before adding new medications",
}

PREGNANCY_ADVISORY = {
    "message": "During pregnancy, always consult your obstetrician before taking any medications or treatments.",
    "warning": "Some treatments may not be safe during pregnancy",
}

# ---- fixed response furniture -------------------------------------------

DISCLAIMERS = (
    "This AI assistant provides general health information only",
    "Always consult qualified healthcare professionals for medical decisions",
    "Information provided is not a substitute for professional medical advice",
)

EMERGENCY_DISCLAIMER = "If this is a medical emergency, call 911 or seek immediate emergency care"

ADDITIONAL_RESOURCES = (
    {
        "title": "Emergency Services",
        "description": "Call 911 for life-threatening emergencies",
        "contact": "911",
        "type": "emergency",
    },
    {
        "title": "Telehealth Consultation",
        "description": "Speak with a healthcare provider online",
        "contact": "Contact your healthcare provider",
        "type": "consultation",
    },
    {
        "title": "Health Information",
        "description": "Reliable medical information and resources",
        "contact": "https://www.mayoclinic.org",
        "type": "information",
    },
)

EMPTY_REPLY_SUMMARY = "General health information provided."

# ---- static healthcare knowledge ----------------------------------------

HEALTHCARE_TOPICS = {
    "symptoms": ("fever", "pain", "headache", "fatigue", "nausea", "cough", "cold"),
    "conditions": ("diabetes", "hypertension", "anxiety", "depression", "arthritis"),
    "treatments": ("medication", "therapy", "exercise", "diet", "surgery"),
    "prevention": ("vaccination", "screening", "lifestyle", "nutrition", "wellness"),
}

CONDITION_ADVISORIES = {
    "chest": "Cardiovascular conditions require immediate medical attention if experiencing chest pain.",
    "heart": "Cardiovascular conditions require immediate medical attention if experiencing chest pain.",
    "blood": "Blood pressure monitoring is important for cardiovascular health.",
    "pressure": "Blood pressure monitoring is important for cardiovascular health.",
    "sugar": "Blood sugar management is crucial for diabetes care.",
    "diabetes": "Blood sugar management is crucial for diabetes care.",
}

SAFETY_GUIDELINES = {
    "emergency": "For medical emergencies, call emergency services immediately.",
    "consultation": "Always consult with a healthcare professional for medical advice.",
    "medication": "Never start or stop medications without consulting your doctor.",
    "symptoms": "Persistent or severe symptoms require medical evaluation.",
}

STATISTICAL_DATA = {
    "disclaimer": "Statistical data provided for educational purposes only.",
    "source": "Healthcare statistics from reputable medical sources.",
}

DEFAULT_USER_PREFERENCES = {
    "language": "en",
    "medical_history_considered": False,
    "communication_style": "professional",
}

# ---- completion ----------------------------------------------------------

DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly, professional healthcare assistant. In every response, use the patient's profile "
    "(age, gender, medical history, allergies, medications, lifestyle factors, etc.) to tailor your guidance. "
    "Speak in a supportive and empathetic tone, using clear, simple language. Never give a medical diagnosis "
    "or offer dangerous advice. Emphasize that you are **not a doctor** and that any information you provide "
    "is general in nature. Encourage the user to consult a qualified healthcare professional for any serious "
    "or specific concerns. If the user's symptoms or situation seem urgent or beyond general advice, advise "
    "them to seek medical attention right away. Always keep the conversation patient-focused, positive, and safe."
)

STRUCTURED_RESPONSE_GUIDELINES = (
    "\n\nStructured Response Guidelines:\n"
    "- If recommending products (vitamins, pain relievers, medical devices, etc.), be specific about the type\n"
    "- Use clear urgency indicators (urgent, emergency, monitor, etc.) when appropriate\n"
    "- Provide both immediate advice and follow-up recommendations\n"
    "- Consider the user's profile when making recommendations\n"
    "- Always include appropriate disclaimers about professional medical advice"
)

CLOSING_REMINDER = (
    "\n\nRemember: Personalize your response based on the patient profile, provide clear guidance with "
    "appropriate urgency level, and include specific product recommendations when helpful. Always prioritize "
    "safety and encourage professional medical consultation."
)

PLACEHOLDER_API_KEYS = frozenset({"your_openai_api_key_here"})

NOT_CONFIGURED_ERROR = "OpenAI API is not configured. Please set your API key in the environment variables."
NOT_CONFIGURED_REPLY = (
    "I apologize, but the AI service is not configured properly. "
    "Please contact the administrator to set up the OpenAI API key."
)

FALLBACK_REPLIES = (
    "I apologize, but I'm experiencing technical difficulties at the moment. Please try again in a few minutes.",
    "I'm currently unable to process your request due to a temporary issue. Please try again shortly.",
    "There seems to be a technical problem on my end. Please try your question again in a moment.",
)

PIPELINE_APOLOGY = "I apologize, but I'm experiencing technical difficulties. Please try again in a moment."

CONNECTIVITY_TEST_MESSAGE = 'Hello, this is a test message. Please respond with "Test successful!"'

BASELINE_MODEL = "gpt-3.5-turbo"

# USD per 1K tokens.
MODEL_PRICING = {
    "gpt-3.5-turbo": {"input": 0.0015, "output": 0.002},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
}


@dataclass(frozen=True)
class UrgencyVocabulary:
    """Phrase tables the response classifier scans with."""

    critical: tuple[str, ...] = CRITICAL_PHRASES
    urgent: tuple[str, ...] = URGENT_PHRASES
    medium: tuple[str, ...] = MEDIUM_PHRASES
    light: tuple[str, ...] = LIGHT_PHRASES
    symptoms: tuple[str, ...] = SYMPTOM_TERMS
    conditions: tuple[str, ...] = CONDITION_TERMS
    treatments: tuple[str, ...] = TREATMENT_TERMS
    warnings: tuple[str, ...] = WARNING_PHRASES
    seek_help: tuple[str, ...] = SEEK_HELP_PHRASES
    actions: tuple[tuple[str, tuple[str, ...]], ...] = ACTION_KEYWORDS
    version: str = VOCABULARY_VERSION

    def tiers(self) -> tuple[tuple[str, tuple[str, ...]], ...]:
        return (
            ("critical", self.critical),
            ("urgent", self.urgent),
            ("medium", self.medium),
            ("light", self.light),
        )


@dataclass(frozen=True)
class StaticKnowledge:
    """Canned healthcare knowledge attached to every assembled context."""

    topics: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(HEALTHCARE_TOPICS))
    condition_advisories: dict[str, str] = field(default_factory=lambda: dict(CONDITION_ADVISORIES))
    safety_guidelines: dict[str, str] = field(default_factory=lambda: dict(SAFETY_GUIDELINES))
    statistical_data: dict[str, str] = field(default_factory=lambda: dict(STATISTICAL_DATA))
    user_preferences: dict[str, object] = field(default_factory=lambda: dict(DEFAULT_USER_PREFERENCES))
