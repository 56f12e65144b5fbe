from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from .vocabulary import DEFAULT_SYSTEM_PROMPT, PLACEHOLDER_API_KEYS

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_local_env_file(path: Path) -> None:
    """Apply KEY=VALUE lines from ``path`` without overriding the real environment."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            load_local_env_file(candidate)


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in _TRUE_VALUES


@dataclass(frozen=True)
class CompletionConfig:
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-3.5-turbo"
    max_tokens: int = 1000
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    @property
    def is_configured(self) -> bool:
        key = self.api_key.strip()
        return bool(key) and key not in PLACEHOLDER_API_KEYS

    @classmethod
    def from_env(cls) -> "CompletionConfig":
        return cls(
            api_key=_env_str("OPENAI_API_KEY"),
            base_url=_env_str("OPENAI_API_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
            model=_env_str("OPENAI_MODEL", "gpt-3.5-turbo"),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 1000),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
            timeout_seconds=_env_float("OPENAI_TIMEOUT", 30.0),
            system_prompt=_env_str("CHAT_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        )


@dataclass(frozen=True)
class TokenConfig:
    max_conversation_tokens: int = 6000
    priority_messages: int = 5
    # Older history above this many tokens is summarized instead of replayed.
    older_history_token_limit: int = 1000
    enable_compression: bool = True

    @classmethod
    def from_env(cls) -> "TokenConfig":
        return cls(
            max_conversation_tokens=_env_int("CHAT_MAX_CONVERSATION_TOKENS", 6000),
            priority_messages=max(1, _env_int("CHAT_PRIORITY_MESSAGES", 5)),
            enable_compression=_env_bool("CHAT_ENABLE_COMPRESSION", True),
        )


@dataclass(frozen=True)
class ContextConfig:
    cache_ttl_minutes: int = 30
    max_keywords: int = 10
    recent_message_count: int = 3
    recent_message_chars: int = 200

    @classmethod
    def from_env(cls) -> "ContextConfig":
        return cls(
            cache_ttl_minutes=_env_int("CHAT_CONTEXT_CACHE_TTL", 30),
            max_keywords=_env_int("CHAT_MAX_KEYWORDS", 10),
        )


@dataclass(frozen=True)
class SearchConfig:
    serper_api_key: str = ""
    disable_external: bool = False
    timeout_seconds: float = 10.0
    cache_ttl_seconds: int = 3600
    max_results: int = 3

    @classmethod
    def from_env(cls) -> "SearchConfig":
        return cls(
            serper_api_key=_env_str("SERPER_API_KEY"),
            disable_external=_env_bool("CARELINE_DISABLE_EXTERNAL_WEB", False),
            timeout_seconds=_env_float("CARELINE_WEB_TIMEOUT_SECONDS", 10.0),
            cache_ttl_seconds=_env_int("CARELINE_PRODUCT_CACHE_TTL", 3600),
        )


def _default_db_path() -> str:
    return str(Path(__file__).resolve().parents[1] / "data" / "careline.sqlite")


@dataclass(frozen=True)
class ChatSettings:
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    max_message_length: int = 4000
    auto_title: bool = True
    db_path: str = field(default_factory=_default_db_path)
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "ChatSettings":
        return cls(
            completion=CompletionConfig.from_env(),
            tokens=TokenConfig.from_env(),
            context=ContextConfig.from_env(),
            search=SearchConfig.from_env(),
            max_message_length=_env_int("CHAT_MAX_MESSAGE_LENGTH", 4000),
            auto_title=_env_bool("CHAT_AUTO_TITLE_GENERATION", True),
            db_path=_env_str("CARELINE_DB_PATH") or _default_db_path(),
            log_level=_env_str("CARELINE_LOG_LEVEL", "INFO").upper(),
            log_file=_env_str("CARELINE_LOG_FILE") or None,
        )
