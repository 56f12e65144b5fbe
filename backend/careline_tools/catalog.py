from __future__ import annotations

import re
from dataclasses import dataclass, field

CATALOG_VERSION = "2025.07.1"

PRODUCT_TERMS = (
    "blood pressure monitor",
    "pulse oximeter",
    "thermometer",
    "glucose meter",
    "stethoscope",
    "heating pad",
    "compression socks",
    "vitamins",
    "supplements",
    "protein powder",
    "exercise equipment",
    "yoga mat",
    "resistance bands",
    "walking aids",
    "mobility scooter",
    "wheelchair",
    "crutches",
    "back support",
    "ergonomic chair",
    "air purifier",
    "humidifier",
    "cpap machine",
    "nebulizer",
    "ice pack",
    "massage device",
    "tens unit",
    "scale",
    "fitness tracker",
    "smartwatch",
    "medication organizer",
    "pill dispenser",
)

PRODUCT_CATEGORIES = {
    "monitoring": ("blood pressure monitor", "pulse oximeter", "thermometer", "glucose meter", "scale"),
    "mobility": ("walking aids", "mobility scooter", "wheelchair", "crutches"),
    "exercise": ("yoga mat", "resistance bands", "exercise equipment", "fitness tracker"),
    "therapy": ("heating pad", "ice pack", "massage device", "tens unit"),
    "respiratory": ("cpap machine", "nebulizer", "air purifier", "humidifier"),
    "supplements": ("vitamins", "supplements", "protein powder"),
    "comfort": ("compression socks", "back support", "ergonomic chair"),
    "medication": ("medication organizer", "pill dispenser"),
}

DEFAULT_CATEGORY = "general"

# Lead-ins that introduce a recommended item; group 1 is the trailing phrase.
RECOMMENDATION_PATTERNS = (
    re.compile(r"\b(?:recommend|suggest|consider|try|use|get|buy)\s+(?:a\s+|an\s+|some\s+)?([^.!?]+)", re.IGNORECASE),
    re.compile(
        r"\b(?:you might want to|you could|it would be good to)\s+(?:get|buy|use|try)\s+(?:a\s+|an\s+|some\s+)?([^.!?]+)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:consider purchasing|look into|invest in)\s+(?:a\s+|an\s+|some\s+)?([^.!?]+)", re.IGNORECASE),
)

SHOPPING_GUIDANCE = {
    "monitoring": {
        "tips": [
            "Look for FDA-approved devices",
            "Check customer reviews and ratings",
            "Consider warranty and customer support",
            "Compare accuracy specifications",
        ],
        "trusted_brands": ["Omron", "Braun", "ReliOn", "Greater Goods"],
    },
    "mobility": {
        "tips": [
            "Consult with healthcare provider first",
            "Consider your specific mobility needs",
            "Check weight capacity and adjustability",
            "Look for safety certifications",
        ],
        "trusted_brands": ["Drive Medical", "Medline", "Invacare", "Pride Mobility"],
    },
    "supplements": {
        "tips": [
            "Consult with doctor before starting",
            "Look for third-party testing",
            "Check for USP or NSF certification",
            "Verify ingredient quality and purity",
        ],
        "trusted_brands": ["Nature Made", "Garden of Life", "Thorne", "NOW Foods"],
    },
}

GENERIC_GUIDANCE = {
    "tips": [
        "Research product thoroughly before purchasing",
        "Read customer reviews and ratings",
        "Compare prices across multiple retailers",
        "Check return policy and warranty",
    ],
    "trusted_brands": [],
}

# (source, title template, url prefix, description template)
GENERIC_LINK_TEMPLATES = (
    (
        "Amazon",
        "Search for '{query}' on Amazon",
        "https://www.amazon.com/s?k=",
        "Find {query} products on Amazon with customer reviews and ratings",
    ),
    (
        "Google",
        "Search for '{query}' on Google",
        "https://www.google.com/search?q=",
        "Search Google for {query} information and products",
    ),
    (
        "WebMD",
        "Search for '{query}' on WebMD",
        "https://www.webmd.com/search/search_results/default.aspx?query=",
        "Find medical information about {query} on WebMD",
    ),
)


@dataclass(frozen=True)
class ProductVocabulary:
    terms: tuple[str, ...] = PRODUCT_TERMS
    categories: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(PRODUCT_CATEGORIES))
    patterns: tuple[re.Pattern, ...] = RECOMMENDATION_PATTERNS
    version: str = CATALOG_VERSION

    def category_for(self, name: str) -> str:
        lowered = name.lower()
        for category, items in self.categories.items():
            if lowered in items:
                return category
        return DEFAULT_CATEGORY
