"""Retrying gateway in front of an LLM provider."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import DEFAULT_BACKOFF_SECONDS, DEFAULT_MAX_RETRIES, LogMessage
from .base import LLMError, LLMProvider, TransientLLMError, classify_error


class LLMGateway:
    """Sends prompts to a provider with bounded exponential-backoff retry.

    Only transient failures are retried: the first attempt plus up to
    ``max_retries`` more, waiting ``backoff``, ``2 * backoff``, ``4 * backoff``
    between them. Fatal failures are raised immediately. When retries run out
    the last TransientLLMError is raised.

    Attributes:
        provider: Adapter that performs the actual network call.
        max_retries: Additional attempts after the first one.
        backoff: Delay before the first retry, in seconds.
    """

    def __init__(
        self,
        *,
        provider: LLMProvider,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the gateway.

        Args:
            provider: Adapter that performs the actual network call.
            max_retries: Additional attempts after the first one (default 3).
            backoff: Initial backoff delay in seconds, doubled on every retry.
            sleep: Awaitable sleep used between attempts; injectable for tests.
        """
        self.provider = provider
        self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        return self.provider.name

    async def send(self, prompt: str) -> str:
        """Send a prompt and return the raw response text.

        Args:
            prompt: Fully rendered prompt.

        Returns:
            str: Raw text returned by the provider.

        Raises:
            TransientLLMError: Transient failures persisted past the retry budget.
            FatalLLMError: The provider rejected the request outright.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientLLMError),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        raw = ""
        async for attempt in retrying:
            with attempt:
                raw = await self._call(prompt)
        return raw

    async def _call(self, prompt: str) -> str:
        try:
            return await self.provider.complete(prompt)
        except LLMError:
            raise
        except Exception as e:
            raise classify_error(e) from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            LogMessage.RETRYING.format(
                retry_state.attempt_number + 1,
                self.max_retries + 1,
                delay,
                error,
            )
        )
