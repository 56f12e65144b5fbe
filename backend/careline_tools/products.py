from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote_plus

from careline_core.config import SearchConfig
from chatstore import TTLCache, hash_key

from .catalog import GENERIC_GUIDANCE, GENERIC_LINK_TEMPLATES, SHOPPING_GUIDANCE, ProductVocabulary
from .web_search import SearchProvider, WebSearchProvider

logger = logging.getLogger(__name__)


def search_query_for(name: str) -> str:
    return f"{name} healthcare medical"


def generic_links(query: str) -> list[dict[str, str]]:
    encoded = quote_plus(query)
    return [
        {
            "title": title.format(query=query),
            "url": prefix + encoded,
            "description": description.format(query=query),
            "source": source,
        }
        for source, title, prefix, description in GENERIC_LINK_TEMPLATES
    ]


class ProductRecommender:
    def __init__(
        self,
        *,
        cache: TTLCache,
        search_provider: SearchProvider | None = None,
        vocabulary: ProductVocabulary | None = None,
        config: SearchConfig | None = None,
    ) -> None:
        self.cache = cache
        self.config = config or SearchConfig()
        self.search_provider = search_provider or WebSearchProvider(self.config)
        self.vocabulary = vocabulary or ProductVocabulary()

    def extract_candidates(self, reply: str | None) -> list[dict[str, str]]:
        text = (reply or "").lower()
        candidates: list[dict[str, str]] = []
        seen: set[tuple[str, str, str]] = set()
        for pattern in self.vocabulary.patterns:
            for match in pattern.findall(text):
                phrase = match.strip()
                for term in self.vocabulary.terms:
                    if term not in phrase:
                        continue
                    candidate = (term, phrase, self.vocabulary.category_for(term))
                    if candidate in seen:
                        continue
                    seen.add(candidate)
                    candidates.append({"name": term, "context": phrase, "category": candidate[2]})
        return candidates

    def resolve_links(self, candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
        resolved: list[dict[str, Any]] = []
        for candidate in candidates:
            name = str(candidate.get("name") or "").strip()
            if not name:
                continue
            query = search_query_for(name)
            resolved.append(
                {
                    "product": dict(candidate),
                    "links": self.links_for(name, query),
                    "search_query": query,
                    "shopping_guidance": self.shopping_guidance(str(candidate.get("category") or "")),
                }
            )
        return resolved

    def links_for(self, name: str, query: str) -> list[dict[str, str]]:
        key = hash_key("product_search", name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            results = self.search_provider.search(query, limit=self.config.max_results)
        except Exception as exc:
            logger.warning("Product search failed for %r: %s", name, exc)
            results = []
        links = [result.as_dict() for result in results] or generic_links(query)
        self.cache.set(key, links, self.config.cache_ttl_seconds)
        return links

    @staticmethod
    def shopping_guidance(category: str) -> dict[str, list[str]]:
        guidance = SHOPPING_GUIDANCE.get(category, GENERIC_GUIDANCE)
        return {key: list(values) for key, values in guidance.items()}
