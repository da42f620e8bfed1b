"""Topic clustering and failure-row sampling.

Both functions are pure: they read the rows and never mutate them.
"""

from loguru import logger

from .constants import (
    DEFAULT_DETAIL_CAP,
    MAX_SAMPLE_QUERIES,
    LogMessage,
    ResolutionStatus,
    Sentiment,
)
from .models import ClusterSummary, ConversationRow, SampledRow

_STATUS_FIELDS = {
    ResolutionStatus.UNRESOLVED: "unresolved",
    ResolutionStatus.RESOLUTION_ATTEMPTED: "resolution_attempted",
    ResolutionStatus.PARTIALLY_RESOLVED: "partially_resolved",
    ResolutionStatus.USER_DROP_OFF: "user_drop_off",
}

_SENTIMENT_FIELDS = {
    Sentiment.POSITIVE: "positive_sentiment",
    Sentiment.NEUTRAL: "neutral_sentiment",
    Sentiment.NEGATIVE: "negative_sentiment",
}

# Lower rank sorts first when the sample has to be truncated.
_PRIORITY_NEGATIVE = 0
_PRIORITY_UNRESOLVED = 1
_PRIORITY_DROP_OFF = 2


def build_cluster_summaries(rows: list[ConversationRow]) -> list[ClusterSummary]:
    """Group rows by normalized topic and compute per-cluster statistics.

    The grouping key is the trimmed, lower-cased topic; an empty topic forms
    its own cluster. The displayed topic keeps the casing of the first row
    seen for the key.

    Args:
        rows: All conversation rows of the run.

    Returns:
        list[ClusterSummary]: Clusters sorted by failure rate, highest first.
            Clusters with equal failure rates keep first-seen order.
    """
    groups: dict[str, tuple[str, list[int]]] = {}
    for idx, row in enumerate(rows):
        key = row.normalized_topic
        if key not in groups:
            groups[key] = ((row.topic or "").strip(), [])
        groups[key][1].append(idx)

    summaries = [
        _summarize(topic=topic, indices=indices, rows=rows)
        for topic, indices in groups.values()
    ]
    summaries.sort(key=lambda summary: summary.failure_rate, reverse=True)

    logger.debug(LogMessage.CLUSTERS_BUILT.format(len(summaries), len(rows)))
    return summaries


def _summarize(
    *, topic: str, indices: list[int], rows: list[ConversationRow]
) -> ClusterSummary:
    summary = ClusterSummary(topic=topic, total=len(indices), row_indices=indices)
    unresolved_rows: list[ConversationRow] = []

    for idx in indices:
        row = rows[idx]
        status_field = _STATUS_FIELDS.get(row.normalized_status)
        if status_field is not None:
            setattr(summary, status_field, getattr(summary, status_field) + 1)
            if row.normalized_status == ResolutionStatus.UNRESOLVED:
                unresolved_rows.append(row)

        sentiment_field = _SENTIMENT_FIELDS.get(row.normalized_sentiment)
        if sentiment_field is not None:
            setattr(summary, sentiment_field, getattr(summary, sentiment_field) + 1)

    if summary.total:
        summary.failure_rate = (
            summary.unresolved + summary.user_drop_off
        ) / summary.total
        summary.negative_rate = summary.negative_sentiment / summary.total

    source = unresolved_rows or [rows[idx] for idx in indices]
    summary.sample_queries = [
        row.user_query for row in source[:MAX_SAMPLE_QUERIES] if row.user_query
    ]
    return summary


def sample_failure_rows(
    rows: list[ConversationRow], top_n: int = DEFAULT_DETAIL_CAP
) -> list[SampledRow]:
    """Select the failing rows worth row-level analysis.

    A row qualifies when its sentiment is negative, or its status is
    'unresolved' or 'user_drop_off'. When more than ``top_n`` rows qualify,
    negative-sentiment rows are kept first, then unresolved, then drop-offs;
    within a priority the input order is preserved.

    Args:
        rows: All conversation rows of the run.
        top_n: Maximum number of rows to return.

    Returns:
        list[SampledRow]: Selected rows carrying their original index.
    """
    candidates: list[tuple[int, SampledRow]] = []
    for idx, row in enumerate(rows):
        if row.normalized_sentiment == Sentiment.NEGATIVE:
            rank = _PRIORITY_NEGATIVE
        elif row.normalized_status == ResolutionStatus.UNRESOLVED:
            rank = _PRIORITY_UNRESOLVED
        elif row.normalized_status == ResolutionStatus.USER_DROP_OFF:
            rank = _PRIORITY_DROP_OFF
        else:
            continue
        candidates.append((rank, SampledRow(row=row, original_index=idx)))

    # sort() is stable, so ties keep input order
    candidates.sort(key=lambda candidate: candidate[0])
    sampled = [sampled_row for _, sampled_row in candidates[: max(top_n, 0)]]

    logger.debug(LogMessage.FAILURE_ROWS_SAMPLED.format(len(sampled), top_n))
    return sampled
