"""Tolerant parsing of LLM stage responses.

The model's JSON is treated as an untrusted external schema: every field is
optional, values are coerced where a sensible reading exists, malformed list
entries are dropped one at a time, and an undecodable response becomes the
stage's empty structure instead of an exception.
"""

import json
import re
from typing import Any

from loguru import logger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .constants import (
    ACTIONABLE_BUCKETS,
    BUCKET_LABELS,
    BUCKET_RESPONSE_KEYS,
    EMPTY_STRING,
    MAX_ALIGNMENT_SCORE,
    MAX_EXAMPLES_PER_RECOMMENDATION,
    MIN_ALIGNMENT_SCORE,
    BucketId,
    LogMessage,
    StrategicPriority,
)
from .models import BucketRecommendation, TopicAssignment

_CODE_FENCE = re.compile(r"```(?:json|JSON)?")


def _as_text(value: Any) -> str:
    if value is None:
        return EMPTY_STRING
    return value if isinstance(value, str) else str(value)


def _validated_entries(
    value: Any, model: type[BaseModel], label: str
) -> list[BaseModel]:
    if not isinstance(value, list):
        return []
    entries = []
    for item in value:
        if not isinstance(item, dict):
            logger.debug(LogMessage.ENTRY_DROPPED.format(label, item))
            continue
        try:
            entries.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug(LogMessage.ENTRY_DROPPED.format(label, e))
    return entries


class RawRecommendation(BaseModel):
    """A recommendation exactly as the model returned it, after coercion."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    topic: str = EMPTY_STRING
    indices: list[Any] | None = None
    problem_statement: str = Field(
        default=EMPTY_STRING,
        validation_alias=AliasChoices("problemStatement", "problem_statement"),
    )
    recommendation: str = EMPTY_STRING
    root_cause: str = Field(
        default=EMPTY_STRING,
        validation_alias=AliasChoices("rootCause", "root_cause"),
    )
    goal_alignment_score: int = Field(
        default=0,
        validation_alias=AliasChoices("goalAlignmentScore", "goal_alignment_score"),
    )
    strategic_priority: str = Field(
        default=StrategicPriority.MEDIUM.value,
        validation_alias=AliasChoices("strategicPriority", "strategic_priority"),
    )
    kpi_to_watch: str = Field(
        default=EMPTY_STRING,
        validation_alias=AliasChoices("kpiToWatch", "kpi_to_watch"),
    )
    examples: list[str] = Field(default_factory=list)

    @field_validator(
        "topic",
        "problem_statement",
        "recommendation",
        "root_cause",
        "kpi_to_watch",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("indices", mode="before")
    @classmethod
    def _coerce_indices(cls, value: Any) -> list[Any] | None:
        # Contents stay unchecked here; range filtering happens at assignment
        return value if isinstance(value, list) else None

    @field_validator("goal_alignment_score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> int:
        if value is None or isinstance(value, bool):
            return 0
        try:
            score = int(float(value))
        except (TypeError, ValueError, OverflowError):
            # Covers NaN and the infinities json.loads accepts
            return 0
        return max(MIN_ALIGNMENT_SCORE, min(MAX_ALIGNMENT_SCORE, score))

    @field_validator("strategic_priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> str:
        wanted = _as_text(value).strip().lower()
        for priority in StrategicPriority:
            if priority.value.lower() == wanted:
                return priority.value
        return StrategicPriority.MEDIUM.value

    @field_validator("examples", mode="before")
    @classmethod
    def _coerce_examples(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        examples = [_as_text(item).strip() for item in value if item is not None]
        return [example for example in examples if example][
            :MAX_EXAMPLES_PER_RECOMMENDATION
        ]

    def to_domain(self, *, bucket: str, source: str) -> BucketRecommendation:
        return BucketRecommendation(
            topic=self.topic.strip(),
            bucket=bucket,
            problem_statement=self.problem_statement,
            recommendation=self.recommendation,
            root_cause=self.root_cause,
            goal_alignment_score=self.goal_alignment_score,
            strategic_priority=self.strategic_priority,
            kpi_to_watch=self.kpi_to_watch,
            examples=list(self.examples),
            indices=list(self.indices) if self.indices is not None else None,
            source=source,
        )


class RawTopicAssignment(BaseModel):
    """A strategic-stage topic mapping exactly as the model returned it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    topic: str = EMPTY_STRING
    bucket: str = BucketId.RESOLVED.value
    bucket_label: str = Field(
        default=EMPTY_STRING,
        validation_alias=AliasChoices("bucket_label", "bucketLabel", "label"),
    )
    issue_category: str = Field(
        default=EMPTY_STRING,
        validation_alias=AliasChoices("issue_category", "issueCategory"),
    )
    reason: str = EMPTY_STRING

    @field_validator(
        "topic", "bucket_label", "issue_category", "reason", mode="before"
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("bucket", mode="before")
    @classmethod
    def _coerce_bucket(cls, value: Any) -> str:
        bucket = _as_text(value).strip()
        valid = {member.value for member in BucketId}
        return bucket if bucket in valid else BucketId.RESOLVED.value

    def to_domain(self) -> TopicAssignment:
        return TopicAssignment(
            topic=self.topic.strip(),
            bucket=self.bucket,
            bucket_label=self.bucket_label.strip() or BUCKET_LABELS[self.bucket],
            issue_category=self.issue_category.strip() or None,
            reason=self.reason or None,
        )


class BucketedResponse(BaseModel):
    """Shape shared by every stage: three lists of recommendations."""

    model_config = ConfigDict(extra="ignore")

    bucket1: list[RawRecommendation] = Field(default_factory=list)
    bucket2: list[RawRecommendation] = Field(default_factory=list)
    bucket3: list[RawRecommendation] = Field(default_factory=list)

    @field_validator("bucket1", "bucket2", "bucket3", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> list[BaseModel]:
        return _validated_entries(value, RawRecommendation, "recommendation")

    def recommendations(self, *, source: str) -> dict[str, list[BucketRecommendation]]:
        """Convert every bucket list to domain recommendations."""
        return {
            bucket.value: [
                raw.to_domain(bucket=bucket.value, source=source)
                for raw in getattr(self, BUCKET_RESPONSE_KEYS[bucket])
            ]
            for bucket in ACTIONABLE_BUCKETS
        }


class StrategicResponse(BucketedResponse):
    """Cluster-level stage output."""

    topic_assignments: list[RawTopicAssignment] = Field(default_factory=list)

    @field_validator("topic_assignments", mode="before")
    @classmethod
    def _drop_malformed_assignments(cls, value: Any) -> list[BaseModel]:
        return _validated_entries(value, RawTopicAssignment, "topic assignment")

    def assignments(self) -> list[TopicAssignment]:
        return [raw.to_domain() for raw in self.topic_assignments]


class DetailResponse(BucketedResponse):
    """Row-level (and direct) stage output."""


def extract_json(text: str) -> Any:
    """Decode JSON from free text, tolerating Markdown code fences.

    Falls back to the outermost ``{...}`` span when the cleaned text is not
    valid JSON on its own.

    Raises:
        ValueError: No decodable JSON object was found.
    """
    cleaned = _CODE_FENCE.sub(EMPTY_STRING, text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start : end + 1])


def _parse(text: str | None, model: type[BucketedResponse], stage: str):
    if not text or not text.strip():
        return model()
    try:
        data = extract_json(text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return model.model_validate(data)
    except (ValueError, RecursionError) as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors;
        # RecursionError comes from pathologically nested arrays
        logger.warning(LogMessage.PARSE_FALLBACK.format(stage, e))
        return model()


def parse_strategic_response(text: str | None) -> StrategicResponse:
    """Parse the cluster-level stage output; never raises."""
    return _parse(text, StrategicResponse, "strategic")


def parse_detail_response(text: str | None) -> DetailResponse:
    """Parse the row-level stage output; never raises."""
    return _parse(text, DetailResponse, "detail")
