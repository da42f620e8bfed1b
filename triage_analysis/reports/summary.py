"""Backlog export: per-recommendation counts and table rows."""

import math

from ..assignment import count_buckets
from ..constants import ACTIONABLE_BUCKETS, BUCKET_LABELS
from ..models import AnalysisResult, BucketRecommendation
from .formatters import PLACEHOLDER
from .models import BacklogEntry

_EXCERPTS_PER_ENTRY = 2
_EXCERPT_SEPARATOR = " | "


def resolve_recommendation_counts(
    recommendations: list[BucketRecommendation], bucket_total: int
) -> list[int]:
    """Display count for each recommendation of one bucket.

    A recommendation with a positive count keeps it. The rows of the bucket
    not claimed by those counts are split evenly (rounded half up) among the
    recommendations whose count is zero.

    Args:
        recommendations: One bucket's merged recommendations.
        bucket_total: Number of rows that ended up in the bucket.

    Returns:
        list[int]: Counts in the order of ``recommendations``.
    """
    known = sum(rec.count for rec in recommendations if rec.count > 0)
    missing = sum(1 for rec in recommendations if rec.count <= 0)
    residual = max(0, bucket_total - known)
    per_missing = math.floor(residual / missing + 0.5) if missing else 0
    return [rec.count if rec.count > 0 else per_missing for rec in recommendations]


def build_backlog(result: AnalysisResult) -> list[BacklogEntry]:
    """Flatten the merged recommendations into ranked backlog entries."""
    bucket_totals = count_buckets(result.categorized_rows)
    entries: list[BacklogEntry] = []

    for bucket in ACTIONABLE_BUCKETS:
        recommendations = result.recommendations_for(bucket)
        total = bucket_totals[bucket.value]
        counts = resolve_recommendation_counts(recommendations, total)

        for rank, (rec, count) in enumerate(zip(recommendations, counts), start=1):
            excerpts = [example for example in rec.examples if example]
            entries.append(
                BacklogEntry(
                    rank=rank,
                    bucket=bucket.value,
                    bucket_label=BUCKET_LABELS[bucket],
                    issue_category=rec.topic,
                    chat_count=count,
                    bucket_share=count / total if total else 0.0,
                    problem_statement=rec.problem_statement or PLACEHOLDER,
                    root_cause=rec.root_cause or rec.problem_statement or PLACEHOLDER,
                    excerpts=_EXCERPT_SEPARATOR.join(excerpts[:_EXCERPTS_PER_ENTRY])
                    or PLACEHOLDER,
                    recommendation=rec.recommendation or PLACEHOLDER,
                    strategic_priority=rec.strategic_priority,
                    kpi_to_watch=rec.kpi_to_watch or PLACEHOLDER,
                    goal_alignment_score=rec.goal_alignment_score,
                )
            )

    return entries
