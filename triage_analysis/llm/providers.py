"""Provider adapters for OpenAI and Gemini."""

import httpx
import openai
from google import genai
from google.genai import types
from loguru import logger
from openai import AsyncOpenAI

from ..constants import (
    LLM_SEED,
    LLM_TEMPERATURE,
    MODEL_ALIASES,
    SYSTEM_PROMPT,
    ModelOption,
)
from .base import LLMProvider, TransientLLMError


class OpenAIProvider:
    """Chat-completions adapter returning JSON-mode text.

    Attributes:
        name: Provider-facing model name.
        client: AsyncOpenAI client with SDK retries disabled.
    """

    def __init__(self, *, api_key: str, model: str, timeout: float = 120.0):
        """Initialize the adapter.

        Args:
            api_key: OpenAI API key.
            model: Provider-facing model name.
            timeout: Request timeout in seconds.
        """
        http_client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self.client = AsyncOpenAI(
            api_key=api_key,
            http_client=http_client,
            max_retries=0,  # LLMGateway owns retries
        )
        self.name = model

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.name,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=LLM_TEMPERATURE,
                seed=LLM_SEED,
            )
        except openai.APIConnectionError as e:
            # Includes APITimeoutError; there is no status to classify
            raise TransientLLMError(f"OpenAI API error: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class GeminiProvider:
    """google-genai adapter requesting an application/json response.

    Attributes:
        name: Provider-facing model name.
        client: google-genai client.
    """

    def __init__(self, *, api_key: str, model: str):
        self.client = genai.Client(api_key=api_key)
        self.name = model

    async def complete(self, prompt: str) -> str:
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            temperature=LLM_TEMPERATURE,
            seed=LLM_SEED,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.name,
                contents=prompt,
                config=config,
            )
        except httpx.TransportError as e:
            raise TransientLLMError(f"Gemini API error: {e}") from e
        return response.text or ""


def resolve_model_name(model: str) -> str:
    """Map a CLI model option to the name the provider expects."""
    return MODEL_ALIASES.get(model, model)


def build_provider(
    *,
    model: str,
    openai_api_key: str | None = None,
    gemini_api_key: str | None = None,
) -> LLMProvider:
    """Create the provider adapter for a model option.

    Args:
        model: One of the ModelOption values (or a raw OpenAI model name).
        openai_api_key: Key used for OpenAI models.
        gemini_api_key: Key used for Gemini models.

    Returns:
        LLMProvider: Configured adapter.

    Raises:
        ValueError: The key for the selected provider is missing.
    """
    provider_model = resolve_model_name(model)

    if model == ModelOption.GEMINI_FLASH:
        if not gemini_api_key:
            raise ValueError(
                "Gemini API key required. Set GEMINI_API_KEY or use --gemini-api-key."
            )
        logger.debug(f"Using Gemini model {provider_model}")
        return GeminiProvider(api_key=gemini_api_key, model=provider_model)

    if not openai_api_key:
        raise ValueError(
            "OpenAI API key required. Set OPENAI_API_KEY or use --openai-api-key."
        )
    logger.debug(f"Using OpenAI model {provider_model}")
    return OpenAIProvider(api_key=openai_api_key, model=provider_model)
