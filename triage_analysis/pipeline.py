"""Pipeline orchestration: clustering, LLM stages, reconciliation and audit."""

import asyncio
from collections.abc import Callable

from loguru import logger

from .assignment import (
    apply_index_overrides,
    assign_topic_buckets,
    merge_recommendations,
)
from .categories import IssueCategoryResolver, explicit_categories
from .clustering import build_cluster_summaries, sample_failure_rows
from .constants import (
    ACTIONABLE_BUCKETS,
    STAGE_ERROR_PREFIXES,
    AuditMessage,
    BucketId,
    LogMessage,
    PipelineMode,
    ProgressStage,
    RecommendationSource,
    StageName,
)
from .llm import LLMGateway, TransientLLMError
from .models import (
    AnalysisLog,
    AnalysisProgress,
    AnalysisResult,
    AnalysisSettings,
    BucketRecommendation,
    ClusterSummary,
    ConversationRow,
    InputStats,
    SampledRow,
)
from .parsing import (
    DetailResponse,
    StrategicResponse,
    parse_detail_response,
    parse_strategic_response,
)
from .prompts import build_detail_prompt, build_direct_prompt, build_strategic_prompt
from .run_log import HistorySink, RunLogger
from .validation import run_all_validations

ProgressCallback = Callable[[AnalysisProgress], None]

_TOTAL_PROGRESS_STEPS = 5


class AnalysisAbortedError(Exception):
    """A fatal error stopped the run.

    Attributes:
        log: The finalized run log, covering everything done before the abort.
    """

    def __init__(self, message: str, *, log: AnalysisLog):
        super().__init__(message)
        self.log = log


class TriagePipeline:
    """Turns conversation rows into bucketed rows and a recommendation backlog.

    In staged mode the strategic (cluster-level) and detail (row-level) calls
    run one after the other, or concurrently when the settings ask for it.
    A stage whose call fails transiently contributes nothing and the run goes
    on; any other failure aborts the run with AnalysisAbortedError.

    Attributes:
        gateway: Retrying LLM gateway shared by every stage.
        settings: Per-run knobs.
        history_sink: Where the condensed run entry goes at finalize.
        on_progress: Optional callback notified between stages.
    """

    def __init__(
        self,
        *,
        gateway: LLMGateway,
        settings: AnalysisSettings | None = None,
        history_sink: HistorySink | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.gateway = gateway
        self.settings = settings or AnalysisSettings()
        self.history_sink = history_sink
        self.on_progress = on_progress

    def select_mode(self, row_count: int) -> PipelineMode:
        """Resolve ``auto`` against the direct-path row threshold."""
        mode = PipelineMode(self.settings.mode)
        if mode != PipelineMode.AUTO:
            return mode
        if row_count <= self.settings.direct_threshold:
            return PipelineMode.DIRECT
        return PipelineMode.STAGED

    def _notify(self, step: int, stage: ProgressStage, message: str) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            AnalysisProgress(
                current_batch=step,
                total_batches=_TOTAL_PROGRESS_STEPS,
                stage=stage.value,
                message=message,
            )
        )

    async def run(
        self,
        *,
        rows: list[ConversationRow],
        goals: str,
        bot_summary: str,
        input_stats: InputStats | None = None,
    ) -> AnalysisResult:
        """Run the whole analysis over ``rows``.

        Rows are stamped in place with bucket, bucket label and issue category.

        Args:
            rows: Conversation rows, already filtered by the caller.
            goals: Business goals the recommendations should serve.
            bot_summary: Capability summary of the bot.
            input_stats: Pre-filter counts for the run log; defaults to no filtering.

        Returns:
            AnalysisResult: Categorized rows, merged recommendations and the log.

        Raises:
            AnalysisAbortedError: A fatal error stopped the run.
        """
        mode = self.select_mode(len(rows))
        run_logger = RunLogger(
            model=self.settings.model,
            bot_title=self.settings.bot_title,
            mode=mode.value,
            sink=self.history_sink,
        )
        logger.info(LogMessage.MODE_SELECTED.format(mode.value, len(rows)))

        try:
            return await self._run(
                run_logger,
                mode=mode,
                rows=rows,
                goals=goals,
                bot_summary=bot_summary,
                input_stats=input_stats or InputStats(total=len(rows)),
            )
        except Exception as e:
            if not run_logger.finalized:
                run_logger.record_error(AuditMessage.CRITICAL_ERROR.format(e))
                run_logger.finalize()
            logger.error(AuditMessage.CRITICAL_ERROR.format(e))
            raise AnalysisAbortedError(str(e), log=run_logger.log) from e

    async def _run(
        self,
        run_logger: RunLogger,
        *,
        mode: PipelineMode,
        rows: list[ConversationRow],
        goals: str,
        bot_summary: str,
        input_stats: InputStats,
    ) -> AnalysisResult:
        run_logger.record_input(stats=input_stats, after_filter=len(rows))

        self._notify(1, ProgressStage.CLUSTERING, f"Clustering {len(rows)} rows")
        clusters = build_cluster_summaries(rows)
        run_logger.record_clusters(clusters, self.settings.cluster_cap)
        top_clusters = clusters[: self.settings.cluster_cap]

        if mode == PipelineMode.DIRECT:
            logger.info(LogMessage.STAGE_SKIPPED.format(StageName.STRATEGIC, mode.value))
            strategic = StrategicResponse()
            detail = await self._direct_stage(
                run_logger, rows=rows, goals=goals, bot_summary=bot_summary
            )
        else:
            sampled = sample_failure_rows(rows, self.settings.detail_cap)
            strategic, detail = await self._staged_calls(
                run_logger,
                clusters=top_clusters,
                sampled=sampled,
                goals=goals,
                bot_summary=bot_summary,
                total_rows=len(rows),
            )

        self._notify(4, ProgressStage.MERGING, "Reconciling buckets and recommendations")
        topic_map = assign_topic_buckets(rows, strategic.assignments())
        if mode != PipelineMode.DIRECT:
            run_logger.record_topic_coverage(
                returned=len(strategic.topic_assignments),
                topic_map=topic_map,
                clusters=clusters,
            )

        strategic_recs = strategic.recommendations(
            source=RecommendationSource.STRATEGIC.value
        )
        detail_recs = detail.recommendations(source=RecommendationSource.DETAIL.value)

        # Detail indices are applied last so they win over strategic ones
        apply_index_overrides(rows, _flatten(strategic_recs))
        apply_index_overrides(rows, _flatten(detail_recs))

        merged = {
            bucket.value: merge_recommendations(
                strategic_recs[bucket.value], detail_recs[bucket.value]
            )
            for bucket in ACTIONABLE_BUCKETS
        }

        IssueCategoryResolver(
            rows=rows,
            recommendations=merged,
            categories=explicit_categories(topic_map),
        ).resolve()

        all_recommendations = _flatten(merged)
        run_logger.record_buckets(rows)
        run_logger.record_recommendations(len(all_recommendations))
        run_logger.record_validation(
            run_all_validations(all_recommendations, rows, clusters)
        )
        log = run_logger.finalize()

        self._notify(_TOTAL_PROGRESS_STEPS, ProgressStage.DONE, "Analysis complete")
        logger.success(
            LogMessage.ANALYSIS_COMPLETE.format(len(rows), len(all_recommendations))
        )

        return AnalysisResult(
            categorized_rows=rows,
            bucket1=merged[BucketId.SERVICE_EXPANSION],
            bucket2=merged[BucketId.SYSTEM_OPTIMIZATION],
            bucket3=merged[BucketId.INFORMATION_GAPS],
            total_rows_processed=len(rows),
            analysis_log=log,
            cluster_summaries=top_clusters,
        )

    async def _staged_calls(
        self,
        run_logger: RunLogger,
        *,
        clusters: list[ClusterSummary],
        sampled: list[SampledRow],
        goals: str,
        bot_summary: str,
        total_rows: int,
    ) -> tuple[StrategicResponse, DetailResponse]:
        if not self.settings.concurrent_stages:
            strategic = await self._strategic_stage(
                run_logger,
                clusters=clusters,
                goals=goals,
                bot_summary=bot_summary,
                total_rows=total_rows,
            )
            detail = await self._detail_stage(
                run_logger, sampled=sampled, goals=goals, total_rows=total_rows
            )
            return strategic, detail

        tasks = [
            asyncio.ensure_future(
                self._strategic_stage(
                    run_logger,
                    clusters=clusters,
                    goals=goals,
                    bot_summary=bot_summary,
                    total_rows=total_rows,
                )
            ),
            asyncio.ensure_future(
                self._detail_stage(
                    run_logger, sampled=sampled, goals=goals, total_rows=total_rows
                )
            ),
        ]
        try:
            strategic, detail = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Collect the cancelled sibling before propagating
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return strategic, detail

    async def _strategic_stage(
        self,
        run_logger: RunLogger,
        *,
        clusters: list[ClusterSummary],
        goals: str,
        bot_summary: str,
        total_rows: int,
    ) -> StrategicResponse:
        if not clusters:
            logger.info(LogMessage.STAGE_EMPTY.format(StageName.STRATEGIC))
            return StrategicResponse()

        self._notify(
            2, ProgressStage.STRATEGIC, f"Mapping {len(clusters)} topic clusters"
        )
        prompt = build_strategic_prompt(
            clusters=clusters,
            bot_summary=bot_summary,
            goals=goals,
            total_rows=total_rows,
        )
        raw = await self._call_stage(
            run_logger, name=StageName.STRATEGIC, input_size=len(clusters), prompt=prompt
        )
        return parse_strategic_response(raw)

    async def _detail_stage(
        self,
        run_logger: RunLogger,
        *,
        sampled: list[SampledRow],
        goals: str,
        total_rows: int,
    ) -> DetailResponse:
        if not sampled:
            logger.info(LogMessage.STAGE_EMPTY.format(StageName.DETAIL))
            return DetailResponse()

        self._notify(3, ProgressStage.DETAIL, f"Analyzing {len(sampled)} failure rows")
        prompt = build_detail_prompt(
            sampled_rows=sampled, goals=goals, total_rows=total_rows
        )
        raw = await self._call_stage(
            run_logger, name=StageName.DETAIL, input_size=len(sampled), prompt=prompt
        )
        return parse_detail_response(raw)

    async def _direct_stage(
        self,
        run_logger: RunLogger,
        *,
        rows: list[ConversationRow],
        goals: str,
        bot_summary: str,
    ) -> DetailResponse:
        if not rows:
            logger.info(LogMessage.STAGE_EMPTY.format(StageName.DIRECT))
            return DetailResponse()

        self._notify(3, ProgressStage.DETAIL, f"Classifying {len(rows)} rows directly")
        prompt = build_direct_prompt(rows=rows, bot_summary=bot_summary, goals=goals)
        raw = await self._call_stage(
            run_logger, name=StageName.DIRECT, input_size=len(rows), prompt=prompt
        )
        return parse_detail_response(raw)

    async def _call_stage(
        self,
        run_logger: RunLogger,
        *,
        name: StageName,
        input_size: int,
        prompt: str,
    ) -> str | None:
        """Send one stage prompt; a transient failure yields None and a log entry."""
        logger.info(LogMessage.STAGE_STARTED.format(name, input_size))
        try:
            with run_logger.stage(name=name.value, input_size=input_size, prompt=prompt):
                return await self.gateway.send(prompt)
        except TransientLLMError as e:
            run_logger.record_error(
                AuditMessage.STAGE_API_ERROR.format(STAGE_ERROR_PREFIXES[name], e)
            )
            return None


def _flatten(
    recommendations: dict[str, list[BucketRecommendation]],
) -> list[BucketRecommendation]:
    return [
        rec
        for bucket in ACTIONABLE_BUCKETS
        for rec in recommendations.get(bucket.value, [])
    ]
