"""Run telemetry: builds the AnalysisLog audit record for one pipeline run."""

import secrets
import string
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Protocol

from loguru import logger

from .assignment import count_buckets
from .constants import RUN_ID_LENGTH, BucketId, LogMessage
from .models import (
    AnalysisLog,
    ClusterDetail,
    ClusterSummary,
    ConversationRow,
    InputStats,
    StageTiming,
    TopicAssignment,
    ValidationResult,
)
from .prompts import estimate_tokens

_RUN_ID_ALPHABET = string.ascii_uppercase + string.digits


class HistorySink(Protocol):
    """Append-only store of condensed run entries."""

    def append(self, entry: dict[str, Any]) -> None: ...


def new_run_id() -> str:
    return "".join(secrets.choice(_RUN_ID_ALPHABET) for _ in range(RUN_ID_LENGTH))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def history_entry(log: AnalysisLog) -> dict[str, Any]:
    """Condensed form of a finalized log kept in the history store."""
    return {
        "run_id": log.run_id,
        "end_time": log.end_time,
        "bot_title": log.bot_title,
        "total_rows": log.csv_after_filter,
        "bucket_distribution": {
            "b0": log.bucket0_count,
            "b1": log.bucket1_count,
            "b2": log.bucket2_count,
            "b3": log.bucket3_count,
        },
        "recommendations": log.recommendations_generated,
    }


class RunLogger:
    """Records stage timings, counts and errors of a run into an AnalysisLog.

    The log is created when the logger is constructed and finalized exactly
    once; any recording call after ``finalize`` raises RuntimeError.

    Attributes:
        log: The record being built.
        sink: Optional history store written once at finalize.
    """

    def __init__(
        self,
        *,
        model: str,
        bot_title: str,
        mode: str,
        sink: HistorySink | None = None,
    ):
        self.log = AnalysisLog(
            run_id=new_run_id(),
            start_time=_now_iso(),
            model=model,
            bot_title=bot_title,
            mode=mode,
        )
        self.sink = sink
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _ensure_open(self) -> None:
        if self._finalized:
            raise RuntimeError(f"Analysis log {self.log.run_id} is already finalized")

    def record_input(self, *, stats: InputStats, after_filter: int) -> None:
        self._ensure_open()
        self.log.csv_total_rows = stats.total
        self.log.csv_after_filter = after_filter
        self.log.csv_filtered_out = stats.filtered_out
        self.log.filter_statuses = list(stats.filter_statuses)

    def record_clusters(self, clusters: list[ClusterSummary], cap: int) -> None:
        self._ensure_open()
        self.log.total_clusters_generated = len(clusters)
        self.log.top_clusters_selected = min(len(clusters), cap)
        self.log.clusters_dropped = max(0, len(clusters) - cap)
        self.log.cluster_details = [
            ClusterDetail(
                rank=rank,
                topic=cluster.topic,
                total=cluster.total,
                failure_rate=cluster.failure_rate,
                negative_rate=cluster.negative_rate,
                sent_to_ai=rank <= cap,
            )
            for rank, cluster in enumerate(clusters, start=1)
        ]

    @contextmanager
    def stage(self, *, name: str, input_size: int, prompt: str) -> Iterator[StageTiming]:
        """Time an LLM stage.

        The timing entry is appended when the stage starts so concurrent
        stages keep their start order. Exceptions are recorded on the entry
        and re-raised.
        """
        self._ensure_open()
        timing = StageTiming(
            batch_name=name,
            input_size=input_size,
            token_estimate=estimate_tokens(prompt),
        )
        self.log.batch_summary.append(timing)
        started = time.perf_counter()
        try:
            yield timing
            timing.success = True
        except BaseException as e:
            # Includes cancellation of a concurrent sibling stage
            timing.error_message = str(e) or e.__class__.__name__
            raise
        finally:
            elapsed = time.perf_counter() - started
            timing.duration_ms = int(elapsed * 1000)
            if timing.success:
                logger.info(LogMessage.STAGE_SUCCEEDED.format(name, elapsed))
            else:
                logger.warning(
                    LogMessage.STAGE_FAILED.format(name, elapsed, timing.error_message)
                )

    def record_error(self, message: str) -> None:
        self._ensure_open()
        self.log.errors.append(message)

    def record_topic_coverage(
        self,
        *,
        returned: int,
        topic_map: dict[str, TopicAssignment],
        clusters: list[ClusterSummary],
    ) -> None:
        """Record how many clusters the strategic mapping actually covered."""
        self._ensure_open()
        mapped = {c.normalized_topic for c in clusters if c.normalized_topic in topic_map}
        self.log.topic_assignments_returned = returned
        self.log.topic_assignments_mapped = len(mapped)
        self.log.topic_assignments_unmatched = max(0, len(clusters) - len(mapped))
        self.log.data_loss_topics = [
            c.topic for c in clusters if c.normalized_topic not in topic_map
        ]

    def record_buckets(self, rows: list[ConversationRow]) -> None:
        self._ensure_open()
        counts = count_buckets(rows)
        self.log.bucket0_count = counts[BucketId.RESOLVED]
        self.log.bucket1_count = counts[BucketId.SERVICE_EXPANSION]
        self.log.bucket2_count = counts[BucketId.SYSTEM_OPTIMIZATION]
        self.log.bucket3_count = counts[BucketId.INFORMATION_GAPS]
        self.log.rows_accounted_for = sum(counts.values())

    def record_recommendations(self, count: int) -> None:
        self._ensure_open()
        self.log.recommendations_generated = count

    def record_validation(self, results: list[ValidationResult]) -> None:
        self._ensure_open()
        self.log.validation_results = list(results)

    def finalize(self) -> AnalysisLog:
        """Stamp the end time, compute data loss and write the history entry.

        A failing history sink is logged and does not fail the run.

        Returns:
            AnalysisLog: The finished record.
        """
        self._ensure_open()
        self.log.end_time = _now_iso()
        self.log.data_loss_rows = max(
            0, self.log.csv_after_filter - self.log.rows_accounted_for
        )
        self._finalized = True

        if self.sink is not None:
            try:
                self.sink.append(history_entry(self.log))
            except Exception as e:
                logger.warning(LogMessage.HISTORY_WRITE_FAILED.format(self.log.run_id, e))

        return self.log
