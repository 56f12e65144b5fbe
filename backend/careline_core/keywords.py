from __future__ import annotations

import re
from collections import Counter
from typing import Iterable

from .vocabulary import STOP_WORDS

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


class KeywordExtractor:
    def __init__(self, stop_words: Iterable[str] = STOP_WORDS, min_length: int = 3) -> None:
        self.stop_words = frozenset(stop_words)
        self.min_length = min_length

    def tokenize(self, text: str | None) -> list[str]:
        cleaned = _PUNCTUATION_RE.sub("", (text or "").lower())
        return [
            word
            for word in cleaned.split()
            if len(word) >= self.min_length and word not in self.stop_words
        ]

    def extract(self, text: str | None, max_keywords: int = 10) -> list[str]:
        """Most frequent content words, ties broken by first appearance."""
        if max_keywords <= 0:
            return []
        counts = Counter(self.tokenize(text))
        # Counter keeps first-seen order and sorted() is stable.
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [word for word, _ in ranked[:max_keywords]]
