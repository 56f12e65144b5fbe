from .classifier import ResponseClassifier
from .compression import HistoryCompressor
from .config import ChatSettings, CompletionConfig, ContextConfig, SearchConfig, TokenConfig, bootstrap_local_env
from .context import ContextAssembler
from .gateway import CompletionGateway, calculate_cost
from .keywords import KeywordExtractor
from .models import PIPELINE_STAGES, ClassificationResult, CompletionResult, ContextBundle, NextStep, PipelineResult
from .pipeline import MessagePipeline, MessageValidationError
from .provider import OpenAICompatibleProvider, ProviderError
from .tokens import TokenEstimator
from .vocabulary import StaticKnowledge, UrgencyVocabulary

__all__ = [
    "PIPELINE_STAGES",
    "ChatSettings",
    "ClassificationResult",
    "CompletionConfig",
    "CompletionGateway",
    "CompletionResult",
    "ContextAssembler",
    "ContextBundle",
    "ContextConfig",
    "HistoryCompressor",
    "KeywordExtractor",
    "MessagePipeline",
    "MessageValidationError",
    "NextStep",
    "OpenAICompatibleProvider",
    "PipelineResult",
    "ProviderError",
    "ResponseClassifier",
    "SearchConfig",
    "StaticKnowledge",
    "TokenConfig",
    "TokenEstimator",
    "UrgencyVocabulary",
    "bootstrap_local_env",
    "calculate_cost",
]
