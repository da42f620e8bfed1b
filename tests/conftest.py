"""Shared fixtures: row factories, a scripted LLM provider and log capture."""

import json
from typing import Any

import pytest
from loguru import logger

from triage_analysis.llm import LLMGateway
from triage_analysis.models import ConversationRow


class StatusError(Exception):
    """Stand-in for an SDK error that carries an HTTP status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def rate_limited() -> StatusError:
    return StatusError("429 Too Many Requests", 429)


def make_row(
    topic: str = "",
    status: str = "unresolved",
    sentiment: str = "neutral",
    query: str = "",
    reasoning: str = "",
) -> ConversationRow:
    return ConversationRow(
        topic=topic,
        user_query=query or f"question about {topic}",
        resolution_status=status,
        user_sentiment=sentiment,
        resolution_status_reasoning=reasoning,
    )


def recommendation(topic: str, *, score: int = 5, indices: list | None = None, **extra):
    """Build one recommendation entry the way the model returns it."""
    entry: dict[str, Any] = {
        "topic": topic,
        "problemStatement": f"Users cannot complete {topic} in the bot today",
        "recommendation": f"Implement a dedicated flow that handles {topic} end to end",
        "rootCause": "No handler",
        "goalAlignmentScore": score,
        "strategicPriority": "High",
        "kpiToWatch": "containment rate",
        "examples": [f"I need help with {topic}"],
    }
    if indices is not None:
        entry["indices"] = indices
    entry.update(extra)
    return entry


class ScriptedProvider:
    """Fake provider that routes prompts to per-stage scripts.

    The strategic prompt is the only one that asks for ``topic_assignments``;
    every other prompt goes to the detail script. Script items are returned in
    order: exceptions are raised, dicts are JSON-encoded, strings are returned
    as-is. An exhausted script returns an empty JSON object.
    """

    name = "fake-model"

    def __init__(self, *, strategic: list | None = None, detail: list | None = None):
        self.strategic = list(strategic or [])
        self.detail = list(detail or [])
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        script = self.strategic if "topic_assignments" in prompt else self.detail
        if not script:
            return "{}"
        item = script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return item
        return json.dumps(item)


@pytest.fixture
def scenario_rows() -> list[ConversationRow]:
    """10 rows: 6 'login_issue' (4 unresolved, 2 resolved), 4 'refund' (resolved)."""
    return [
        make_row("login_issue", "unresolved", query="I cannot log in"),
        make_row("login_issue", "unresolved", query="password reset loops"),
        make_row("login_issue", "unresolved", "negative", query="locked out again"),
        make_row("login_issue", "unresolved", query="2FA code never arrives"),
        make_row("login_issue", "resolved", "positive", query="login works now"),
        make_row("login_issue", "resolved", query="how to log in"),
        make_row("refund", "resolved", query="refund status"),
        make_row("refund", "resolved", query="where is my refund"),
        make_row("refund", "resolved", "positive", query="refund received"),
        make_row("refund", "resolved", query="refund policy"),
    ]


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def make_gateway(fake_sleep):
    def _make(provider) -> LLMGateway:
        return LLMGateway(provider=provider, sleep=fake_sleep)

    return _make


@pytest.fixture
def log_messages():
    """Collect loguru output for the duration of a test."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, format="{level}|{message}", level="DEBUG")
    yield messages
    logger.remove(handler_id)
