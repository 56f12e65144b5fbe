from __future__ import annotations

import math


class TokenEstimator:
    """Character-count heuristic standing in for a real tokenizer.

    Roughly four characters per token for English text. Every piece of text,
    including the empty string, costs at least one token.
    """

    def __init__(self, chars_per_token: int = 4) -> None:
        self.chars_per_token = max(1, int(chars_per_token))

    def estimate(self, text: str | None) -> int:
        return max(1, math.ceil(len(text or "") / self.chars_per_token))

    def estimate_messages(self, messages: list[dict[str, str]]) -> int:
        return sum(self.estimate(message.get("content")) for message in messages)
