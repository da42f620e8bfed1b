"""Tests for prompt construction."""

import json
import re

from tests.conftest import make_row
from triage_analysis.clustering import build_cluster_summaries, sample_failure_rows
from triage_analysis.constants import BOT_SUMMARY_BUDGET, QUERY_BUDGET, REASONING_BUDGET
from triage_analysis.prompts import (
    build_detail_prompt,
    build_direct_prompt,
    build_strategic_prompt,
    estimate_tokens,
)


def _payload_after(prompt: str, marker: str) -> list:
    """Decode the compact JSON array on the line after ``marker``."""
    lines = prompt.splitlines()
    for number, line in enumerate(lines):
        if line.startswith(marker):
            return json.loads(lines[number + 1])
    raise AssertionError(f"{marker} not found in prompt")


class TestStrategicPrompt:
    """Test the cluster-level prompt."""

    def test_clusters_goals_and_truncated_summary(self, scenario_rows):
        clusters = build_cluster_summaries(scenario_rows)
        summary = "S" * (BOT_SUMMARY_BUDGET + 50)

        prompt = build_strategic_prompt(
            clusters=clusters, bot_summary=summary, goals="Cut escalations", total_rows=10
        )

        assert 'BUSINESS GOALS: "Cut escalations"' in prompt
        assert "S" * BOT_SUMMARY_BUDGET in prompt
        assert "S" * (BOT_SUMMARY_BUDGET + 1) not in prompt
        assert '"topic_assignments"' in prompt

        payload = _payload_after(prompt, "DATASET:")
        assert [c["topic"] for c in payload] == ["login_issue", "refund"]
        assert payload[0]["failure_rate"] == "67%"


class TestDetailPrompt:
    """Test the row-level prompt."""

    def test_rows_keep_original_indices(self, scenario_rows):
        sampled = sample_failure_rows(scenario_rows)

        prompt = build_detail_prompt(sampled_rows=sampled, goals="g", total_rows=10)

        payload = _payload_after(prompt, "FAILURE CONVERSATIONS:")
        assert [row["i"] for row in payload] == [s.original_index for s in sampled]
        assert "topic_assignments" not in prompt

    def test_query_and_reasoning_are_truncated(self):
        row = make_row("t", query="q" * 500, reasoning="r" * 500)
        sampled = sample_failure_rows([row])

        payload = _payload_after(
            build_detail_prompt(sampled_rows=sampled, goals="g", total_rows=1),
            "FAILURE CONVERSATIONS:",
        )

        assert len(payload[0]["q"]) == QUERY_BUDGET
        assert len(payload[0]["reason"]) == REASONING_BUDGET


class TestDirectPrompt:
    def test_indices_span_every_row(self, scenario_rows):
        prompt = build_direct_prompt(rows=scenario_rows, bot_summary="bot", goals="g")

        assert "CONVERSATION DATA (Indices 0 to 9):" in prompt
        payload = _payload_after(prompt, "CONVERSATION DATA")
        assert [row["i"] for row in payload] == list(range(10))

    def test_empty_rows_do_not_produce_negative_range(self):
        prompt = build_direct_prompt(rows=[], bot_summary="bot", goals="g")

        assert re.search(r"Indices 0 to 0\b", prompt)


def test_estimate_tokens():
    assert estimate_tokens("x" * 401) == 100
    assert estimate_tokens("") == 0
