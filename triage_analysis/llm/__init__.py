"""LLM access: provider adapters and the retrying gateway."""

from .base import (
    FatalLLMError,
    LLMError,
    LLMProvider,
    TransientLLMError,
    classify_error,
)
from .gateway import LLMGateway
from .providers import GeminiProvider, OpenAIProvider, build_provider

__all__ = [
    "FatalLLMError",
    "GeminiProvider",
    "LLMError",
    "LLMGateway",
    "LLMProvider",
    "OpenAIProvider",
    "TransientLLMError",
    "build_provider",
    "classify_error",
]
