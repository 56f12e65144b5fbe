from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Iterator, Protocol

import httpx

from careline_core.config import SearchConfig

logger = logging.getLogger(__name__)

DUCKDUCKGO_URL = "https://api.duckduckgo.com/"
SERPER_URL = "https://google.serper.dev/search"
_DESCRIPTION_LIMIT = 150


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _strip_html(html: str) -> str:
    content = re.sub(r"(?is)<script.*?>.*?</script>", " ", html or "")
    content = re.sub(r"(?is)<style.*?>.*?</style>", " ", content)
    content = re.sub(r"(?is)<[^>]+>", " ", content)
    return _normalize_whitespace(content)


def clean_description(text: str) -> str:
    text = _strip_html(text)
    if len(text) > _DESCRIPTION_LIMIT:
        text = text[: _DESCRIPTION_LIMIT - 3] + "..."
    return text.strip()


@dataclass
class SearchResult:
    title: str
    url: str
    description: str
    source: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


class SearchProvider(Protocol):
    def search(self, query: str, limit: int = 3) -> list[SearchResult]:
        ...


def _iter_related_topics(topics: Any) -> Iterator[dict[str, Any]]:
    if not isinstance(topics, list):
        return
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        if isinstance(topic.get("Topics"), list):
            yield from _iter_related_topics(topic["Topics"])
        else:
            yield topic


class WebSearchProvider:
    """DuckDuckGo Instant Answer lookups with Serper as an optional second source.

    Both sources degrade to an empty list on any failure.
    """

    def __init__(self, config: SearchConfig | None = None) -> None:
        self.config = config or SearchConfig()

    def search(self, query: str, limit: int = 3) -> list[SearchResult]:
        if self.config.disable_external or not query.strip():
            return []
        results = self._duckduckgo_search(query=query, limit=limit)
        if not results and self.config.serper_api_key:
            results = self._serper_search(query=query, limit=limit)
        return results

    def _duckduckgo_search(self, *, query: str, limit: int) -> list[SearchResult]:
        try:
            response = httpx.get(
                DUCKDUCKGO_URL,
                params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
                headers={"User-Agent": "careline-assistant/1.0"},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json() if response.content else {}
        except Exception as exc:
            logger.warning("DuckDuckGo search failed for %r: %s", query, exc)
            return []

        results: list[SearchResult] = []
        for topic in _iter_related_topics((payload or {}).get("RelatedTopics")):
            if len(results) >= limit:
                break
            url = str(topic.get("FirstURL") or "").strip()
            if not url:
                continue
            text = str(topic.get("Text") or "")
            results.append(
                SearchResult(
                    title=_strip_html(text) or "Related Product",
                    url=url,
                    description=clean_description(text),
                    source="DuckDuckGo",
                )
            )
        return results

    def _serper_search(self, *, query: str, limit: int) -> list[SearchResult]:
        try:
            response = httpx.post(
                SERPER_URL,
                json={"q": query, "num": 5},
                headers={"X-API-KEY": self.config.serper_api_key, "Content-Type": "application/json"},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json() if response.content else {}
        except Exception as exc:
            logger.warning("Serper search failed for %r: %s", query, exc)
            return []

        results: list[SearchResult] = []
        for row in (payload or {}).get("organic") or []:
            if len(results) >= limit:
                break
            if not isinstance(row, dict):
                continue
            url = str(row.get("link") or "").strip()
            if not url:
                continue
            results.append(
                SearchResult(
                    title=_normalize_whitespace(str(row.get("title") or "")) or "Search result",
                    url=url,
                    description=clean_description(str(row.get("snippet") or "")),
                    source="Google",
                )
            )
        return results
