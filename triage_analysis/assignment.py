"""Bucket assignment and recommendation merging."""

from typing import Any

from loguru import logger

from .constants import BUCKET_LABELS, BucketId, LogMessage
from .models import BucketRecommendation, ConversationRow, TopicAssignment


def as_row_index(value: Any) -> int | None:
    """Interpret an LLM-supplied index, or return None when it is not an integer.

    Integral floats (``3.0``) count as integers; booleans do not.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def filter_indices(indices: list[Any], row_count: int) -> list[int]:
    """Keep the integer indices within ``[0, row_count)``, first occurrence only."""
    valid: list[int] = []
    seen: set[int] = set()
    for value in indices:
        idx = as_row_index(value)
        if idx is None or not 0 <= idx < row_count or idx in seen:
            continue
        seen.add(idx)
        valid.append(idx)
    return valid


def assign_topic_buckets(
    rows: list[ConversationRow], assignments: list[TopicAssignment]
) -> dict[str, TopicAssignment]:
    """Default every row to bucket "0", then apply the strategic topic mapping.

    Rows are matched on normalized topic. When the model returns the same
    topic twice the later assignment wins.

    Args:
        rows: Rows to stamp in place.
        assignments: Topic assignments from the strategic stage.

    Returns:
        dict[str, TopicAssignment]: The mapping keyed by normalized topic.
    """
    topic_map = {assignment.normalized_topic: assignment for assignment in assignments}

    for row in rows:
        row.bucket = BucketId.RESOLVED.value
        row.bucket_label = BUCKET_LABELS[BucketId.RESOLVED]
        row.issue_category = None

        assignment = topic_map.get(row.normalized_topic)
        if assignment is not None:
            row.bucket = assignment.bucket
            row.bucket_label = assignment.bucket_label

    return topic_map


def apply_index_overrides(
    rows: list[ConversationRow], recommendations: list[BucketRecommendation]
) -> None:
    """Move rows claimed by explicit recommendation indices into that bucket.

    Runs after ``assign_topic_buckets`` so row-exact claims win over the
    topic mapping; among recommendations, later ones win. Indices are
    filtered to valid rows and ``count`` is rewritten to match.

    Args:
        rows: Rows to stamp in place.
        recommendations: Recommendations in precedence order (lowest first).
    """
    for rec in recommendations:
        if rec.indices is None:
            continue

        valid = filter_indices(rec.indices, len(rows))
        dropped = len(rec.indices) - len(valid)
        if dropped:
            logger.debug(LogMessage.INDICES_DROPPED.format(dropped, rec.topic))

        rec.indices = valid
        rec.count = len(valid)
        label = BUCKET_LABELS[rec.bucket]
        for idx in valid:
            rows[idx].bucket = rec.bucket
            rows[idx].bucket_label = label


def merge_recommendations(
    strategic: list[BucketRecommendation], detail: list[BucketRecommendation]
) -> list[BucketRecommendation]:
    """Deduplicate one bucket's recommendations by normalized topic.

    On a topic collision the higher goal-alignment score is kept; on equal
    scores the later entry (detail comes after strategic) is kept.

    Returns:
        list[BucketRecommendation]: One entry per topic, highest score first.
    """
    merged: dict[str, BucketRecommendation] = {}
    for rec in [*strategic, *detail]:
        existing = merged.get(rec.normalized_topic)
        if existing is None or rec.goal_alignment_score >= existing.goal_alignment_score:
            merged[rec.normalized_topic] = rec

    return sorted(
        merged.values(), key=lambda rec: rec.goal_alignment_score, reverse=True
    )


def count_buckets(rows: list[ConversationRow]) -> dict[str, int]:
    """Number of rows per bucket id; unknown ids count as bucket "0"."""
    counts = {bucket.value: 0 for bucket in BucketId}
    for row in rows:
        bucket = row.bucket if row.bucket in counts else BucketId.RESOLVED.value
        counts[bucket] += 1
    return counts
