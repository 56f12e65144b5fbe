from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from careline_core import (  # noqa: E402
    ChatSettings,
    CompletionConfig,
    CompletionGateway,
    ContextAssembler,
    HistoryCompressor,
    KeywordExtractor,
    MessagePipeline,
    ResponseClassifier,
    SearchConfig,
    TokenConfig,
    TokenEstimator,
)
from careline_tools import ProductRecommender  # noqa: E402
from chatstore import ConversationStore, ProfileStore, SQLiteChatDB, TTLCache  # noqa: E402
from fakes import FakeClock, FakeCompletionProvider, FakeSearchProvider  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path) -> SQLiteChatDB:
    return SQLiteChatDB(str(tmp_path / "careline-test.sqlite"))


@pytest.fixture
def store(db, clock) -> ConversationStore:
    return ConversationStore(db, clock=clock)


@pytest.fixture
def profiles(db, clock) -> ProfileStore:
    return ProfileStore(db, clock=clock)


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(clock=clock)


@pytest.fixture
def completion_provider() -> FakeCompletionProvider:
    return FakeCompletionProvider()


@pytest.fixture
def search_provider() -> FakeSearchProvider:
    return FakeSearchProvider()


@pytest.fixture
def make_pipeline(store, profiles, cache, clock, completion_provider, search_provider) -> Callable[..., MessagePipeline]:
    def _make(
        *,
        api_key: str = "sk-test",
        provider: Any = None,
        search: Any = None,
        tokens: TokenConfig | None = None,
        max_message_length: int = 4000,
    ) -> MessagePipeline:
        settings = ChatSettings(
            completion=CompletionConfig(api_key=api_key),
            tokens=tokens or TokenConfig(),
            search=SearchConfig(disable_external=True),
            max_message_length=max_message_length,
        )
        estimator = TokenEstimator()
        extractor = KeywordExtractor()
        return MessagePipeline(
            store=store,
            profiles=profiles,
            compressor=HistoryCompressor(
                store,
                config=settings.tokens,
                extractor=extractor,
                estimator=estimator,
                clock=clock,
            ),
            assembler=ContextAssembler(cache=cache, extractor=extractor),
            gateway=CompletionGateway(
                config=settings.completion,
                provider=provider or completion_provider,
                estimator=estimator,
                clock=clock,
            ),
            classifier=ResponseClassifier(),
            products=ProductRecommender(
                cache=cache,
                search_provider=search or search_provider,
                config=settings.search,
            ),
            settings=settings,
            estimator=estimator,
            clock=clock,
        )

    return _make


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "careline-app.sqlite"
    monkeypatch.setenv("CARELINE_DB_PATH", str(db_path))
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("CARELINE_LOG_LEVEL", "WARNING")
    # Keep CI deterministic; dedicated provider tests can override this.
    monkeypatch.setenv("CARELINE_DISABLE_EXTERNAL_WEB", "true")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client
