"""Post-run consistency checks.

Each check is stateless and returns a ValidationResult; none of them stop the
pipeline, they only annotate the run log.
"""

import json

from .assignment import as_row_index
from .constants import (
    ACTION_KEYWORDS,
    BUCKET_FAILURE_THRESHOLD,
    BUCKET_NEGATIVE_THRESHOLD,
    MIN_RECOMMENDATION_LENGTH,
    BucketId,
    ValidationStatus,
    ValidationType,
)
from .models import (
    BucketRecommendation,
    ClusterSummary,
    ConversationRow,
    ValidationResult,
)


def validate_indices(
    recommendations: list[BucketRecommendation], total_rows: int
) -> ValidationResult:
    """Every explicit index must be an integer within ``[0, total_rows)``."""
    invalid = []
    for rec in recommendations:
        bad = [
            idx
            for idx in rec.indices or []
            if as_row_index(idx) is None or not 0 <= as_row_index(idx) < total_rows
        ]
        if bad:
            invalid.append({"topic": rec.topic, "indices": bad})

    if invalid:
        return ValidationResult(
            type=ValidationType.INDEX.value,
            status=ValidationStatus.FAIL.value,
            message=f"Found {len(invalid)} topics with invalid row indices.",
            details=json.dumps(invalid, default=str),
        )
    return ValidationResult(
        type=ValidationType.INDEX.value,
        status=ValidationStatus.PASS.value,
        message="All recommendation indices are valid and within range.",
    )


def validate_bucket_consistency(
    rows: list[ConversationRow], clusters: list[ClusterSummary]
) -> ValidationResult:
    """Flag clusters left in bucket "0" despite high failure or negative rates.

    A cluster counts as bucket "0" when its first row sits there.
    """
    suspicious = []
    for cluster in clusters:
        if not cluster.row_indices:
            continue
        first_row = rows[cluster.row_indices[0]]
        if first_row.bucket != BucketId.RESOLVED:
            continue
        if (
            cluster.failure_rate > BUCKET_FAILURE_THRESHOLD
            or cluster.negative_rate > BUCKET_NEGATIVE_THRESHOLD
        ):
            suspicious.append(cluster.topic)

    if suspicious:
        return ValidationResult(
            type=ValidationType.BUCKET.value,
            status=ValidationStatus.WARNING.value,
            message=(
                f'{len(suspicious)} topics marked as "Resolved" have high '
                "failure/negative rates."
            ),
            details=", ".join(suspicious),
        )
    return ValidationResult(
        type=ValidationType.BUCKET.value,
        status=ValidationStatus.PASS.value,
        message="Bucket assignments are consistent with topic performance metrics.",
    )


def validate_example_presence(
    recommendations: list[BucketRecommendation],
) -> ValidationResult:
    """Every recommendation needs at least one supporting example."""
    missing = [rec.topic for rec in recommendations if not rec.examples]

    if missing:
        return ValidationResult(
            type=ValidationType.EXAMPLES.value,
            status=ValidationStatus.FAIL.value,
            message=f"{len(missing)} recommendations are missing evidence/examples.",
            details=", ".join(missing),
        )
    return ValidationResult(
        type=ValidationType.EXAMPLES.value,
        status=ValidationStatus.PASS.value,
        message="All recommendations include supporting evidence.",
    )


def validate_recommendation_quality(
    recommendations: list[BucketRecommendation],
) -> ValidationResult:
    """Warn on short recommendations or ones without an action verb."""
    poor = []
    for rec in recommendations:
        text = rec.recommendation.lower()
        too_short = (
            len(text) < MIN_RECOMMENDATION_LENGTH
            or len(rec.problem_statement) < MIN_RECOMMENDATION_LENGTH
        )
        missing_action = not any(keyword in text for keyword in ACTION_KEYWORDS)
        if too_short or missing_action:
            poor.append(rec.topic)

    if poor:
        return ValidationResult(
            type=ValidationType.QUALITY.value,
            status=ValidationStatus.WARNING.value,
            message=(
                f"{len(poor)} recommendations have low detail or lack clear "
                "action items."
            ),
            details=", ".join(poor),
        )
    return ValidationResult(
        type=ValidationType.QUALITY.value,
        status=ValidationStatus.PASS.value,
        message="Recommendation quality is high with actionable descriptions.",
    )


def run_all_validations(
    recommendations: list[BucketRecommendation],
    rows: list[ConversationRow],
    clusters: list[ClusterSummary],
) -> list[ValidationResult]:
    """Run every check over a completed analysis."""
    return [
        validate_indices(recommendations, len(rows)),
        validate_bucket_consistency(rows, clusters),
        validate_example_presence(recommendations),
        validate_recommendation_quality(recommendations),
    ]
