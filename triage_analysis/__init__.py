"""Transcript triage analysis package."""

from .bot_summary import generate_bot_summary, load_bot_summary
from .llm import LLMGateway, build_provider
from .loader import load_conversation_rows
from .models import (
    AnalysisLog,
    AnalysisResult,
    AnalysisSettings,
    BucketRecommendation,
    ConversationRow,
)
from .pipeline import AnalysisAbortedError, TriagePipeline
from .storage import ConversationStorage, JsonlHistorySink

__all__ = [
    "AnalysisAbortedError",
    "AnalysisLog",
    "AnalysisResult",
    "AnalysisSettings",
    "BucketRecommendation",
    "ConversationRow",
    "ConversationStorage",
    "JsonlHistorySink",
    "LLMGateway",
    "TriagePipeline",
    "build_provider",
    "generate_bot_summary",
    "load_bot_summary",
    "load_conversation_rows",
]
