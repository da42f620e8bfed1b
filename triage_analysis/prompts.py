"""Prompt construction for the strategic, detail and direct LLM stages."""

import json

from .constants import (
    BOT_SUMMARY_BUDGET,
    CHARS_PER_TOKEN,
    DIRECT_BOT_SUMMARY_BUDGET,
    QUERY_BUDGET,
    REASONING_BUDGET,
)
from .models import ClusterSummary, ConversationRow, SampledRow

_RECOMMENDATION_SHAPE = (
    '{ "topic": "...", %s"problemStatement": "...", "recommendation": "...", '
    '"rootCause": "...", "goalAlignmentScore": 1-10, '
    '"strategicPriority": "Low|Medium|High|Critical", "kpiToWatch": "...", '
    '"examples": ["..."] }'
)

_BUCKET_DEFINITIONS = """Buckets:
- "1" = Service Expansion: no handler exists, new intent/flow needed
- "2" = System Optimization: handler exists but logic is broken or incomplete
- "3" = Information Gaps: handler exists but returns wrong or missing data"""


def _percent(rate: float) -> str:
    return f"{round(rate * 100)}%"


def _compact_json(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def _row_payload(*, index: int, row: ConversationRow) -> dict[str, object]:
    return {
        "i": index,
        "q": row.user_query[:QUERY_BUDGET],
        "s": row.resolution_status,
        "t": row.topic,
        "sentiment": row.user_sentiment,
        "reason": row.resolution_status_reasoning[:REASONING_BUDGET],
    }


def estimate_tokens(prompt: str) -> int:
    """Rough token estimate used for the run log (four characters per token)."""
    return len(prompt) // CHARS_PER_TOKEN


def build_strategic_prompt(
    *,
    clusters: list[ClusterSummary],
    bot_summary: str,
    goals: str,
    total_rows: int,
) -> str:
    """Build the cluster-level prompt.

    Args:
        clusters: Top clusters by failure rate (already capped by the caller).
        bot_summary: Capability summary of the bot; truncated to the budget.
        goals: Business goals the recommendations should serve.
        total_rows: Size of the full dataset.

    Returns:
        str: Prompt requesting topic assignments and per-bucket recommendations.
    """
    cluster_payload = [
        {
            "topic": cluster.topic,
            "total": cluster.total,
            "failure_rate": _percent(cluster.failure_rate),
            "negative_rate": _percent(cluster.negative_rate),
            "unresolved": cluster.unresolved,
            "drop_off": cluster.user_drop_off,
            "sample_queries": cluster.sample_queries,
        }
        for cluster in clusters
    ]
    recommendation_shape = _RECOMMENDATION_SHAPE % ""

    return f"""Act as a senior Chatbot Performance Strategist.

BUSINESS GOALS: "{goals}"

BOT SUMMARY: {bot_summary[:BOT_SUMMARY_BUDGET]}

DATASET: {total_rows} total conversations. Below are the top {len(clusters)} failure topic clusters (sorted by failure rate):
{_compact_json(cluster_payload)}

TASK: For each topic cluster, assign it to a bucket, name the specific issue category it belongs to, and return full recommendations.

{_BUCKET_DEFINITIONS}
- "0" = Resolved: failure_rate below 15% and negative_rate below 10%

The "issue_category" of a topic assignment MUST equal the "topic" of one of the recommendations you return for that bucket.

Return valid JSON only:
{{
  "topic_assignments": [{{ "topic": "...", "bucket": "1"|"2"|"3"|"0", "bucket_label": "...", "issue_category": "...", "reason": "..." }}],
  "bucket1": [{recommendation_shape}],
  "bucket2": [...],
  "bucket3": [...]
}}"""


def build_detail_prompt(
    *, sampled_rows: list[SampledRow], goals: str, total_rows: int
) -> str:
    """Build the row-level prompt over sampled failure rows.

    Every row is sent with its original index so recommendations can be
    attached back to exact rows.

    Args:
        sampled_rows: Output of the failure-row sampler.
        goals: Business goals the recommendations should serve.
        total_rows: Size of the full dataset.

    Returns:
        str: Prompt requesting recommendations with explicit indices.
    """
    rows_payload = [
        _row_payload(index=sampled.original_index, row=sampled.row)
        for sampled in sampled_rows
    ]
    recommendation_shape = _RECOMMENDATION_SHAPE % '"indices": [<i values>], '

    return f"""Act as a senior Chatbot Performance Strategist.

BUSINESS GOALS: "{goals}"

FAILURE CONVERSATIONS: {len(sampled_rows)} rows sampled from {total_rows} total (unresolved, drop-offs, and negative sentiment only):
{_compact_json(rows_payload)}

TASK: Analyse these failure conversations and assign each to a bucket.
Use the exact "i" values as indices in your response: these are original row positions in the full dataset.

{_BUCKET_DEFINITIONS}

Return valid JSON only:
{{
  "bucket1": [{recommendation_shape}],
  "bucket2": [...],
  "bucket3": [...]
}}"""


def build_direct_prompt(
    *, rows: list[ConversationRow], bot_summary: str, goals: str
) -> str:
    """Build the single-call prompt used for small datasets.

    Args:
        rows: Every row of the run; indices are positions in this list.
        bot_summary: Capability summary of the bot; truncated to the direct budget.
        goals: Business goals the recommendations should serve.

    Returns:
        str: Prompt requesting recommendations with explicit indices.
    """
    rows_payload = [_row_payload(index=idx, row=row) for idx, row in enumerate(rows)]
    recommendation_shape = _RECOMMENDATION_SHAPE % '"indices": [0, 5, 12], '
    last_index = max(len(rows) - 1, 0)

    return f"""Act as a senior Chatbot Performance Strategist.

CORE MISSION / BUSINESS GOALS:
"{goals}"

BOT ARCHITECTURE SUMMARY:
{bot_summary[:DIRECT_BOT_SUMMARY_BUDGET]}

CONVERSATION DATA (Indices 0 to {last_index}):
{_compact_json(rows_payload)}

TASK:
1. Identify recurring clusters of failures and categorize them into buckets.

{_BUCKET_DEFINITIONS}

2. For EACH recommendation, list the exact indices of the rows above that belong to it.
   Only use indices between 0 and {last_index}. Do NOT invent indices.

Return valid JSON only:
{{
  "bucket1": [{recommendation_shape}],
  "bucket2": [...],
  "bucket3": [...]
}}"""
