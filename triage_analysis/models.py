"""Data models for transcript triage analysis."""

from dataclasses import asdict, dataclass, field
from typing import Any

from .constants import (
    BUCKET_LABELS,
    DEFAULT_BOT_TITLE,
    DEFAULT_CLUSTER_CAP,
    DEFAULT_DETAIL_CAP,
    DEFAULT_DIRECT_THRESHOLD,
    DEFAULT_MODEL,
    EMPTY_STRING,
    BucketId,
    PipelineMode,
    RecommendationSource,
    RowKey,
    StageResponseKey,
    StrategicPriority,
)


def normalize_key(value: str | None) -> str:
    """Normalize free text for matching: trimmed and lower-cased."""
    return (value or EMPTY_STRING).strip().lower()


@dataclass
class ConversationRow:
    """One transcript record.

    Identity is the row's position in the input collection for the lifetime
    of a run. ``bucket``, ``bucket_label`` and ``issue_category`` are stamped
    in place by the pipeline.

    Attributes:
        topic: Topic detected for the conversation (free text).
        user_query: What the user asked.
        resolution_status: Resolution outcome, e.g. 'unresolved'.
        user_sentiment: 'positive', 'neutral' or 'negative'.
        resolution_status_reasoning: Why the status was assigned.
        chat_url: Link back to the transcript.
        resolution: How the bot resolved the conversation.
        topic_description: Longer description of the topic.
        time_stamp: When the conversation started.
        user_id: Identifier of the user.
        bucket: Assigned bucket id ("0".."3").
        bucket_label: Human readable label of the bucket.
        issue_category: Recommendation topic the row is attributed to.
    """

    topic: str = EMPTY_STRING
    user_query: str = EMPTY_STRING
    resolution_status: str = EMPTY_STRING
    user_sentiment: str = EMPTY_STRING
    resolution_status_reasoning: str = EMPTY_STRING
    chat_url: str = EMPTY_STRING
    resolution: str = EMPTY_STRING
    topic_description: str = EMPTY_STRING
    time_stamp: str = EMPTY_STRING
    user_id: str = EMPTY_STRING
    bucket: str = BucketId.RESOLVED.value
    bucket_label: str = BUCKET_LABELS[BucketId.RESOLVED]
    issue_category: str | None = None

    @property
    def normalized_topic(self) -> str:
        return normalize_key(self.topic)

    @property
    def normalized_status(self) -> str:
        return normalize_key(self.resolution_status)

    @property
    def normalized_sentiment(self) -> str:
        return normalize_key(self.user_sentiment)

    @classmethod
    def from_dict(cls, *, data: dict[str, Any]) -> "ConversationRow":
        """Create a ConversationRow from an export record.

        Missing or null columns become empty strings. ``TIME_STAMP`` falls back
        to ``CONVERSATION_START_TIME``.

        Args:
            data: Mapping of export column names to values.

        Returns:
            ConversationRow: A new row with default bucket assignment.
        """

        def text(key: str) -> str:
            value = data.get(key)
            return EMPTY_STRING if value is None else str(value)

        return cls(
            topic=text(RowKey.TOPIC),
            user_query=text(RowKey.USER_QUERY),
            resolution_status=text(RowKey.RESOLUTION_STATUS),
            user_sentiment=text(RowKey.USER_SENTIMENT),
            resolution_status_reasoning=text(RowKey.RESOLUTION_STATUS_REASONING),
            chat_url=text(RowKey.CHAT_URL),
            resolution=text(RowKey.RESOLUTION),
            topic_description=text(RowKey.TOPIC_DESCRIPTION),
            time_stamp=text(RowKey.TIME_STAMP) or text(RowKey.CONVERSATION_START_TIME),
            user_id=text(RowKey.USER_ID),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the row to an export record keyed by column name."""
        return {
            RowKey.CHAT_URL.value: self.chat_url,
            RowKey.TOPIC.value: self.topic,
            RowKey.USER_QUERY.value: self.user_query,
            RowKey.RESOLUTION.value: self.resolution,
            RowKey.RESOLUTION_STATUS.value: self.resolution_status,
            RowKey.RESOLUTION_STATUS_REASONING.value: self.resolution_status_reasoning,
            RowKey.TOPIC_DESCRIPTION.value: self.topic_description,
            RowKey.TIME_STAMP.value: self.time_stamp,
            RowKey.USER_ID.value: self.user_id,
            RowKey.USER_SENTIMENT.value: self.user_sentiment,
            RowKey.BUCKET.value: self.bucket,
            RowKey.BUCKET_LABEL.value: self.bucket_label,
            RowKey.ISSUE_CATEGORY.value: self.issue_category or EMPTY_STRING,
        }


@dataclass
class ClusterSummary:
    """Aggregate over all rows sharing a normalized topic.

    Attributes:
        topic: Topic in its original (trimmed) casing.
        total: Number of rows in the cluster.
        unresolved: Rows with status 'unresolved'.
        resolution_attempted: Rows with status 'resolution_attempted'.
        partially_resolved: Rows with status 'partially_resolved'.
        user_drop_off: Rows with status 'user_drop_off'.
        positive_sentiment: Rows with positive sentiment.
        neutral_sentiment: Rows with neutral sentiment.
        negative_sentiment: Rows with negative sentiment.
        failure_rate: (unresolved + user_drop_off) / total.
        negative_rate: negative_sentiment / total.
        sample_queries: Up to three queries, unresolved rows first.
        row_indices: Positions of the summarized rows in the input.
    """

    topic: str
    total: int
    unresolved: int = 0
    resolution_attempted: int = 0
    partially_resolved: int = 0
    user_drop_off: int = 0
    positive_sentiment: int = 0
    neutral_sentiment: int = 0
    negative_sentiment: int = 0
    failure_rate: float = 0.0
    negative_rate: float = 0.0
    sample_queries: list[str] = field(default_factory=list)
    row_indices: list[int] = field(default_factory=list)

    @property
    def normalized_topic(self) -> str:
        return normalize_key(self.topic)


@dataclass
class SampledRow:
    """A failure row selected for the detail stage, with its original index."""

    row: ConversationRow
    original_index: int


@dataclass
class TopicAssignment:
    """Strategic-stage mapping of one cluster topic to a bucket."""

    topic: str
    bucket: str
    bucket_label: str
    issue_category: str | None = None
    reason: str | None = None

    @property
    def normalized_topic(self) -> str:
        return normalize_key(self.topic)


@dataclass
class BucketRecommendation:
    """An actionable finding produced by one of the LLM stages.

    Attributes:
        topic: Issue-category label.
        bucket: Bucket id the recommendation belongs to.
        problem_statement: What is going wrong.
        recommendation: What to build or change.
        root_cause: Why it is going wrong.
        goal_alignment_score: 1-10 relevance to the business goals (0 if missing).
        strategic_priority: Low, Medium, High or Critical.
        kpi_to_watch: Metric to track after implementation.
        examples: Supporting excerpts.
        indices: Explicit row indices, when the stage supplied them.
        count: Number of rows the recommendation covers.
        source: Stage that produced the recommendation.
    """

    topic: str
    bucket: str
    problem_statement: str = EMPTY_STRING
    recommendation: str = EMPTY_STRING
    root_cause: str = EMPTY_STRING
    goal_alignment_score: int = 0
    strategic_priority: str = StrategicPriority.MEDIUM.value
    kpi_to_watch: str = EMPTY_STRING
    examples: list[str] = field(default_factory=list)
    indices: list[Any] | None = None
    count: int = 0
    source: str = RecommendationSource.STRATEGIC.value

    @property
    def normalized_topic(self) -> str:
        return normalize_key(self.topic)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    """Outcome of one validation check."""

    type: str
    status: str
    message: str
    details: str | None = None


@dataclass
class StageTiming:
    """Timing and outcome of one LLM stage."""

    batch_name: str
    input_size: int
    token_estimate: int = 0
    duration_ms: int = 0
    success: bool = False
    error_message: str | None = None


@dataclass
class ClusterDetail:
    """Per-cluster line of the run log."""

    rank: int
    topic: str
    total: int
    failure_rate: float
    negative_rate: float
    sent_to_ai: bool


@dataclass
class AnalysisLog:
    """Append-only audit record of one run."""

    run_id: str
    start_time: str
    model: str
    bot_title: str
    mode: str = PipelineMode.STAGED.value
    end_time: str | None = None
    csv_total_rows: int = 0
    csv_after_filter: int = 0
    csv_filtered_out: int = 0
    filter_statuses: list[str] = field(default_factory=list)
    total_clusters_generated: int = 0
    top_clusters_selected: int = 0
    clusters_dropped: int = 0
    cluster_details: list[ClusterDetail] = field(default_factory=list)
    batch_summary: list[StageTiming] = field(default_factory=list)
    topic_assignments_returned: int = 0
    topic_assignments_mapped: int = 0
    topic_assignments_unmatched: int = 0
    bucket0_count: int = 0
    bucket1_count: int = 0
    bucket2_count: int = 0
    bucket3_count: int = 0
    recommendations_generated: int = 0
    rows_accounted_for: int = 0
    data_loss_rows: int = 0
    data_loss_topics: list[str] = field(default_factory=list)
    validation_results: list[ValidationResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisProgress:
    """Progress notification emitted between pipeline stages."""

    current_batch: int
    total_batches: int
    stage: str
    message: str


@dataclass
class InputStats:
    """Row counts before and after status filtering."""

    total: int
    filtered_out: int = 0
    filter_statuses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisSettings:
    """Per-run configuration of the pipeline."""

    model: str = DEFAULT_MODEL
    bot_title: str = DEFAULT_BOT_TITLE
    cluster_cap: int = DEFAULT_CLUSTER_CAP
    detail_cap: int = DEFAULT_DETAIL_CAP
    mode: PipelineMode = PipelineMode.STAGED
    direct_threshold: int = DEFAULT_DIRECT_THRESHOLD
    concurrent_stages: bool = False


@dataclass
class AnalysisResult:
    """Everything a run hands back to its caller."""

    categorized_rows: list[ConversationRow]
    bucket1: list[BucketRecommendation]
    bucket2: list[BucketRecommendation]
    bucket3: list[BucketRecommendation]
    total_rows_processed: int
    analysis_log: AnalysisLog
    cluster_summaries: list[ClusterSummary] = field(default_factory=list)

    def recommendations_for(self, bucket: str) -> list[BucketRecommendation]:
        return {
            BucketId.SERVICE_EXPANSION: self.bucket1,
            BucketId.SYSTEM_OPTIMIZATION: self.bucket2,
            BucketId.INFORMATION_GAPS: self.bucket3,
        }.get(bucket, [])

    def all_recommendations(self) -> list[BucketRecommendation]:
        return self.bucket1 + self.bucket2 + self.bucket3

    def recommendations_dict(self) -> dict[str, Any]:
        """Serialize the three recommendation lists."""
        return {
            StageResponseKey.BUCKET1.value: [rec.to_dict() for rec in self.bucket1],
            StageResponseKey.BUCKET2.value: [rec.to_dict() for rec in self.bucket2],
            StageResponseKey.BUCKET3.value: [rec.to_dict() for rec in self.bucket3],
        }
