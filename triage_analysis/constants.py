"""Constants and enumerations for transcript triage analysis."""

from enum import StrEnum
from typing import Final


# Sampling limits
DEFAULT_CLUSTER_CAP: Final[int] = 20
DEFAULT_DETAIL_CAP: Final[int] = 150
DEFAULT_DIRECT_THRESHOLD: Final[int] = 250
MAX_SAMPLE_QUERIES: Final[int] = 3
MAX_EXAMPLES_PER_RECOMMENDATION: Final[int] = 5

# Prompt character budgets
BOT_SUMMARY_BUDGET: Final[int] = 5000
DIRECT_BOT_SUMMARY_BUDGET: Final[int] = 8000
REASONING_BUDGET: Final[int] = 80
QUERY_BUDGET: Final[int] = 200
CHARS_PER_TOKEN: Final[int] = 4

# Retry policy
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_BACKOFF_SECONDS: Final[float] = 1.0

# LLM request parameters
LLM_TEMPERATURE: Final[float] = 0.0
LLM_SEED: Final[int] = 42
SYSTEM_PROMPT: Final[str] = "You are a senior Chatbot Performance Strategist."

# Validation thresholds
BUCKET_FAILURE_THRESHOLD: Final[float] = 0.15
BUCKET_NEGATIVE_THRESHOLD: Final[float] = 0.10
MIN_RECOMMENDATION_LENGTH: Final[int] = 20
ACTION_KEYWORDS: Final[tuple[str, ...]] = (
    "implement",
    "update",
    "fix",
    "add",
    "create",
    "optimize",
    "improve",
    "expand",
)

# Goal alignment score bounds
MIN_ALIGNMENT_SCORE: Final[int] = 1
MAX_ALIGNMENT_SCORE: Final[int] = 10

# History store
HISTORY_RETENTION: Final[int] = 50
DEFAULT_HISTORY_FILE: Final[str] = "analysis_history.jsonl"
DEFAULT_OUTPUT_DIR: Final[str] = "output"
DEFAULT_BOT_TITLE: Final[str] = "Bot Analysis"

# Output file names, formatted with the run id
ROWS_FILENAME: Final[str] = "categorized_rows_{}.csv"
RECOMMENDATIONS_FILENAME: Final[str] = "recommendations_{}.json"
BACKLOG_FILENAME: Final[str] = "backlog_{}.csv"
LOG_MARKDOWN_FILENAME: Final[str] = "analysis_log_{}.md"
LOG_JSON_FILENAME: Final[str] = "analysis_log_{}.json"

# Bot-definition exports
BOT_JSON_SUFFIX: Final[str] = ".json"
MISSING_DESCRIPTION: Final[str] = "Description not found"
SECTION_SEPARATOR: Final[str] = "\n" + "#" * 50 + "\n\n"

# Run id
RUN_ID_LENGTH: Final[int] = 7

# JSON Serialization
JSON_INDENT: Final[int] = 2

# Empty Values
EMPTY_STRING: Final[str] = ""

# Numeric Constants
EXIT_CODE_ERROR: Final[int] = 1


class BucketId(StrEnum):
    """Classification outcome for a conversation row."""

    RESOLVED = "0"
    SERVICE_EXPANSION = "1"
    SYSTEM_OPTIMIZATION = "2"
    INFORMATION_GAPS = "3"


BUCKET_LABELS: Final[dict[str, str]] = {
    BucketId.RESOLVED: "Resolved / Out of Scope",
    BucketId.SERVICE_EXPANSION: "Service Expansion (New Agent)",
    BucketId.SYSTEM_OPTIMIZATION: "System Optimization (Logic Update)",
    BucketId.INFORMATION_GAPS: "Information Gaps (KB Update)",
}

ACTIONABLE_BUCKETS: Final[tuple[BucketId, ...]] = (
    BucketId.SERVICE_EXPANSION,
    BucketId.SYSTEM_OPTIMIZATION,
    BucketId.INFORMATION_GAPS,
)


class ResolutionStatus(StrEnum):
    """Resolution statuses that carry meaning for the pipeline."""

    UNRESOLVED = "unresolved"
    PARTIALLY_RESOLVED = "partially_resolved"
    RESOLUTION_ATTEMPTED = "resolution_attempted"
    USER_DROP_OFF = "user_drop_off"


ANALYZABLE_STATUSES: Final[tuple[str, ...]] = (
    ResolutionStatus.UNRESOLVED,
    ResolutionStatus.PARTIALLY_RESOLVED,
    ResolutionStatus.RESOLUTION_ATTEMPTED,
    ResolutionStatus.USER_DROP_OFF,
)


class Sentiment(StrEnum):
    """User sentiment values."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class StrategicPriority(StrEnum):
    """Priority assigned to a recommendation."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RecommendationSource(StrEnum):
    """LLM stage a recommendation came from."""

    STRATEGIC = "strategic"
    DETAIL = "detail"


class PipelineMode(StrEnum):
    """How the pipeline talks to the model."""

    STAGED = "staged"
    DIRECT = "direct"
    AUTO = "auto"


class ProgressStage(StrEnum):
    """Stages reported to progress callbacks."""

    CLUSTERING = "clustering"
    STRATEGIC = "strategic"
    DETAIL = "detail"
    MERGING = "merging"
    DONE = "done"


class StageName(StrEnum):
    """Batch names recorded in the run log."""

    STRATEGIC = "Stage A: Strategic Mapping"
    DETAIL = "Stage B: Detail Recommendations"
    DIRECT = "Direct: Row Classification"


class ValidationType(StrEnum):
    """Validation check identifiers."""

    INDEX = "Index"
    BUCKET = "Bucket"
    EXAMPLES = "Examples"
    QUALITY = "Quality"


class ValidationStatus(StrEnum):
    """Validation check outcomes."""

    PASS = "Pass"
    FAIL = "Fail"
    WARNING = "Warning"


class ModelOption(StrEnum):
    """Models selectable from the CLI."""

    GEMINI_FLASH = "gemini-flash"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4 = "gpt-4"
    GPT_4_1 = "gpt-4.1"
    GPT_5_2 = "gpt-5.2"


MODEL_ALIASES: Final[dict[str, str]] = {
    ModelOption.GEMINI_FLASH: "gemini-3-flash-preview",
    ModelOption.GPT_4_1: "gpt-4-turbo",
    ModelOption.GPT_5_2: "gpt-4o",
}

DEFAULT_MODEL: Final[ModelOption] = ModelOption.GPT_4O


class RowKey(StrEnum):
    """Column names of the transcript export."""

    CHAT_URL = "CHATURL"
    TOPIC = "TOPIC"
    USER_QUERY = "USER_QUERY"
    RESOLUTION = "RESOLUTION"
    RESOLUTION_STATUS = "RESOLUTION_STATUS"
    RESOLUTION_STATUS_REASONING = "RESOLUTION_STATUS_REASONING"
    TOPIC_DESCRIPTION = "TOPIC_DESCRIPTION"
    TIME_STAMP = "TIME_STAMP"
    CONVERSATION_START_TIME = "CONVERSATION_START_TIME"
    USER_ID = "USER_ID"
    USER_SENTIMENT = "USER_SENTIMENT"
    BUCKET = "BUCKET"
    BUCKET_LABEL = "BUCKET_LABEL"
    ISSUE_CATEGORY = "ISSUE_CATEGORY"


class StageResponseKey(StrEnum):
    """Top-level keys of the LLM stage responses."""

    TOPIC_ASSIGNMENTS = "topic_assignments"
    BUCKET1 = "bucket1"
    BUCKET2 = "bucket2"
    BUCKET3 = "bucket3"


BUCKET_RESPONSE_KEYS: Final[dict[str, StageResponseKey]] = {
    BucketId.SERVICE_EXPANSION: StageResponseKey.BUCKET1,
    BucketId.SYSTEM_OPTIMIZATION: StageResponseKey.BUCKET2,
    BucketId.INFORMATION_GAPS: StageResponseKey.BUCKET3,
}


class TagType(StrEnum):
    """Inline tag kinds found in bot goal steps."""

    AGENT_INPUT = "agentInput"
    AGENT_VARIABLE = "agentVariable"
    CALL_SKILL = "call_skill"
    GET_INPUT = "get_input"


class LogMessage(StrEnum):
    """Log message templates."""

    LOADED_ROWS = "Loaded {} of {} rows from {} (filtered out {})"
    BOT_SUMMARY_GENERATED = "Generated bot summary from {} ({} characters)"
    CLUSTERS_BUILT = "Built {} topic clusters from {} rows"
    FAILURE_ROWS_SAMPLED = "Sampled {} failure rows (cap {})"
    STAGE_STARTED = "Running {} over {} inputs"
    STAGE_SUCCEEDED = "{} completed in {:.2f}s"
    STAGE_FAILED = "{} failed after {:.2f}s: {}"
    STAGE_SKIPPED = "{} skipped in {} mode"
    STAGE_EMPTY = "{} skipped: nothing to send"
    RETRYING = "Retrying LLM call (attempt {} of {}) in {:.1f}s. Error: {}"
    PARSE_FALLBACK = "Could not decode {} response, falling back to empty result: {}"
    ENTRY_DROPPED = "Dropping malformed {} entry: {}"
    INDICES_DROPPED = "Dropped {} out-of-range indices from '{}'"
    MODE_SELECTED = "Pipeline mode: {} ({} rows)"
    ANALYSIS_COMPLETE = "Analysis complete: {} rows processed, {} recommendations"
    HISTORY_WRITE_FAILED = "Failed to append run {} to history: {}"
    SAVED_ROWS = "Saved {} categorized rows to {}"
    SAVED_RECOMMENDATIONS = "Saved recommendations to {}"
    SAVED_BACKLOG = "Saved {} backlog entries to {}"
    SAVED_LOG = "Saved analysis log to {}"
    HISTORY_LINE_SKIPPED = "Skipping unreadable history line {} in {}: {}"
    ERROR_OCCURRED = "Error occurred: {}"


class AuditMessage(StrEnum):
    """Error entries written to the run log."""

    STAGE_API_ERROR = "{} API Error: {}"
    CRITICAL_ERROR = "Critical Pipeline Error: {}"


STAGE_ERROR_PREFIXES: Final[dict[str, str]] = {
    StageName.STRATEGIC: "Stage A (Strategic)",
    StageName.DETAIL: "Stage B (Detail)",
    StageName.DIRECT: "Direct (Classification)",
}


class CliHelp(StrEnum):
    """CLI help messages."""

    APP = "Transcript triage: turn support transcripts into an improvement backlog"
    CSV_PATH = "Transcript export (CSV) to analyze."
    GOALS = "Business goals the recommendations should align with."
    BOT_SUMMARY = (
        "Bot capability summary: a text file, or a bot-definition export (.json) "
        "that is summarized automatically."
    )
    SUMMARIZE_BOT_COMMAND = "Write the capability summary generated from a bot-definition export."
    BOT_EXPORT = "Bot-definition export (JSON)."
    SUMMARY_OUTPUT = "Where to write the summary; printed to the console when omitted."
    BOT_TITLE = "Display name of the bot, used in the run log."
    MODEL = "Model used for both LLM stages."
    MODE = "staged, direct, or auto (direct for small datasets)."
    DETAIL_CAP = "Maximum number of failure rows sent to the detail stage."
    INCLUDE_RESOLVED = "Keep rows with resolved statuses instead of filtering them out."
    CONCURRENT_STAGES = "Issue the strategic and detail calls concurrently."
    OUTPUT_DIR = "Directory for categorized rows, recommendations and run log."
    HISTORY_FILE = "Append-only JSONL file recording past runs."
    HISTORY_LIMIT = "Number of recent runs to show."
    OPENAI_API_KEY = "OpenAI API key. Can also be set via OPENAI_API_KEY."
    GEMINI_API_KEY = "Gemini API key. Can also be set via GEMINI_API_KEY."
    ANALYZE_COMMAND = """Classify transcripts and build a prioritized improvement backlog.

Clusters rows by topic, asks the model for a strategic topic mapping and for
row-level recommendations, reconciles both into one classification per row
and writes the results plus an audit log to the output directory."""
