from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from careline_core import (
    ChatSettings,
    CompletionGateway,
    ContextAssembler,
    HistoryCompressor,
    KeywordExtractor,
    MessagePipeline,
    MessageValidationError,
    ResponseClassifier,
    TokenEstimator,
    bootstrap_local_env,
)
from careline_core.provider import CompletionProvider
from careline_tools import ProductRecommender
from careline_tools.web_search import SearchProvider
from chatstore import (
    ConversationNotFound,
    ConversationStore,
    ProfileNotFound,
    ProfileStore,
    SQLiteChatDB,
    StoreError,
    TTLCache,
)
from logging_config import setup_logging

bootstrap_local_env()
settings = ChatSettings.from_env()
setup_logging(log_level=settings.log_level, log_file=settings.log_file)

logger = logging.getLogger(__name__)


class ProfilePayload(BaseModel):
    name: str | None = None
    age: int | None = None
    # True = male, False = female.
    gender: bool | None = None
    weight: str | None = None
    height: str | None = None
    blood_type: str | None = None
    chronic_conditions: str | None = None
    allergies: str | None = None
    medications: str | None = None
    is_pregnant: bool = False
    is_smoker: bool = False
    is_drinker: bool = False
    extra_info: dict[str, Any] = Field(default_factory=dict)


class ConversationPayload(BaseModel):
    profile_id: str | None = None
    title: str | None = None


class MessagePayload(BaseModel):
    message: str
    health_context: dict[str, Any] | None = None


class CarelineApp:
    def __init__(
        self,
        settings: ChatSettings | None = None,
        *,
        completion_provider: CompletionProvider | None = None,
        search_provider: SearchProvider | None = None,
    ) -> None:
        self.settings = settings or ChatSettings.from_env()
        self.db = SQLiteChatDB(self.settings.db_path)
        self.conversations = ConversationStore(self.db)
        self.profiles = ProfileStore(self.db)
        self.cache = TTLCache()

        estimator = TokenEstimator()
        extractor = KeywordExtractor()
        self.pipeline = MessagePipeline(
            store=self.conversations,
            profiles=self.profiles,
            compressor=HistoryCompressor(
                self.conversations,
                config=self.settings.tokens,
                extractor=extractor,
                estimator=estimator,
            ),
            assembler=ContextAssembler(
                cache=self.cache,
                extractor=extractor,
                config=self.settings.context,
                system_prompt=self.settings.completion.system_prompt,
            ),
            gateway=CompletionGateway(
                config=self.settings.completion,
                provider=completion_provider,
                estimator=estimator,
            ),
            classifier=ResponseClassifier(),
            products=ProductRecommender(
                cache=self.cache,
                search_provider=search_provider,
                config=self.settings.search,
            ),
            settings=self.settings,
            estimator=estimator,
        )


container = CarelineApp(settings)
app = FastAPI(title="Careline Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_conversation_or_404(conversation_id: str):
    try:
        return container.conversations.get(conversation_id)
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "ai_configured": container.pipeline.gateway.is_configured}


@app.post("/profiles")
def create_profile(payload: ProfilePayload):
    try:
        profile = container.profiles.create(**payload.model_dump())
    except StoreError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"id": profile.id, **profile.as_context()}


@app.get("/profiles/{profile_id}")
def get_profile(profile_id: str):
    try:
        profile = container.profiles.get(profile_id)
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"id": profile.id, **profile.as_context()}


@app.post("/conversations")
def create_conversation(payload: ConversationPayload):
    if payload.profile_id:
        try:
            container.profiles.get(payload.profile_id)
        except ProfileNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
    conversation = container.conversations.create(profile_id=payload.profile_id, title=payload.title)
    return conversation.as_dict()


@app.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: str):
    return _get_conversation_or_404(conversation_id).as_dict(include_messages=True)


@app.post("/conversations/{conversation_id}/messages")
def send_message(conversation_id: str, payload: MessagePayload):
    try:
        result = container.pipeline.process_message(conversation_id, payload.message, payload.health_context)
    except MessageValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return result.as_dict()


@app.get("/conversations/{conversation_id}/stats")
def conversation_stats(conversation_id: str):
    try:
        return container.pipeline.get_token_stats(conversation_id)
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/conversations/{conversation_id}/export")
def export_conversation(conversation_id: str):
    try:
        return container.conversations.export(conversation_id)
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/ai/test")
def test_ai_connection():
    return container.pipeline.test_connectivity()
