from __future__ import annotations

from typing import Any, Protocol

import httpx


class ProviderError(Exception):
    pass


class CompletionProvider(Protocol):
    def create(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        ...


def provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


class OpenAICompatibleProvider:
    """Chat-completions client for any OpenAI-compatible endpoint."""

    def __init__(self, *, api_key: str, base_url: str = "https://api.openai.com/v1", timeout_seconds: float = 30.0) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def create(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=httpx.Timeout(self.timeout_seconds, connect=8.0)) as client:
                response = client.post(f"{self.base_url}/chat/completions", headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Completion request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Completion request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderError(provider_error_message(response))
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError("Completion provider returned a non-JSON body.") from exc
        if not isinstance(body, dict):
            raise ProviderError("Completion provider returned an unexpected payload.")
        return body
