"""Error taxonomy and provider interface for LLM calls."""

from typing import Final, Protocol

_TRANSIENT_MARKERS: Final[tuple[str, ...]] = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "quota",
    "resourceexhausted",
    "resource_exhausted",
    "too many requests",
)

HTTP_TOO_MANY_REQUESTS: Final[int] = 429


class LLMError(Exception):
    """Base class for failures talking to the model provider.

    Attributes:
        status_code: HTTP-like status reported by the provider, if any.
    """

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientLLMError(LLMError):
    """Rate limiting, quota exhaustion, server-side or connection failures."""


class FatalLLMError(LLMError):
    """Failures that will not go away on retry (auth, malformed request)."""


class LLMProvider(Protocol):
    """Anything that can turn a prompt into raw response text."""

    name: str

    async def complete(self, prompt: str) -> str: ...


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def is_transient_status(status: int | None) -> bool:
    if status is None:
        return False
    return status == HTTP_TOO_MANY_REQUESTS or 500 <= status < 600


def classify_error(exc: BaseException) -> LLMError:
    """Translate an arbitrary provider exception into the LLM error taxonomy.

    An error is transient when its status is 429 or 5xx, or when its message
    mentions rate limiting, quota or resource exhaustion. Everything else is
    fatal.

    Args:
        exc: Exception raised by a provider SDK or transport.

    Returns:
        LLMError: A TransientLLMError or FatalLLMError carrying the original
            message and status.
    """
    if isinstance(exc, LLMError):
        return exc

    status = _status_of(exc)
    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()

    if is_transient_status(status) or any(
        marker in lowered for marker in _TRANSIENT_MARKERS
    ):
        return TransientLLMError(message, status_code=status)
    return FatalLLMError(message, status_code=status)
