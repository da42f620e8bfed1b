"""Markdown rendering of the run log."""

from ..models import AnalysisLog
from .formatters import (
    PLACEHOLDER,
    format_flag,
    format_percent,
    format_seconds,
    format_status,
    markdown_table,
)
from .models import TableSection


def build_log_sections(log: AnalysisLog) -> list[TableSection]:
    """Lay the run log out as the numbered report tables.

    Errors are not a table; ``render_log_markdown`` appends them as a list.
    """
    return [
        TableSection(
            title="1. Run Info",
            headers=["Run ID", "Bot", "Model", "Mode", "Started", "Finished"],
            rows=[
                [
                    log.run_id,
                    log.bot_title,
                    log.model,
                    log.mode,
                    log.start_time,
                    log.end_time or PLACEHOLDER,
                ]
            ],
        ),
        TableSection(
            title="2. Input Filtering",
            headers=["Total Rows", "After Filter", "Filtered Out", "Kept Statuses"],
            rows=[
                [
                    log.csv_total_rows,
                    log.csv_after_filter,
                    log.csv_filtered_out,
                    ", ".join(log.filter_statuses) or "None",
                ]
            ],
        ),
        TableSection(
            title="3. Clustering",
            headers=["Total Clusters", "Top Selected", "Dropped"],
            rows=[
                [
                    log.total_clusters_generated,
                    log.top_clusters_selected,
                    log.clusters_dropped,
                ]
            ],
        ),
        TableSection(
            title="Clustering Detail",
            headers=[
                "Rank",
                "Topic",
                "Total Rows",
                "Failure Rate",
                "Negative Rate",
                "Sent to AI",
            ],
            rows=[
                [
                    detail.rank,
                    detail.topic,
                    detail.total,
                    format_percent(detail.failure_rate),
                    format_percent(detail.negative_rate),
                    format_flag(detail.sent_to_ai),
                ]
                for detail in log.cluster_details
            ],
        ),
        TableSection(
            title="4. Batch Timing",
            headers=["Batch Name", "Input Size", "Token Est.", "Duration", "Success", "Error"],
            rows=[
                [
                    timing.batch_name,
                    timing.input_size,
                    timing.token_estimate,
                    format_seconds(timing.duration_ms),
                    "✅" if timing.success else "❌",
                    timing.error_message or PLACEHOLDER,
                ]
                for timing in log.batch_summary
            ],
        ),
        TableSection(
            title="5. LLM Output Coverage",
            headers=[
                "Topics Returned",
                "Mapped Successfully",
                "Unmatched Topics",
                "Recommendations",
            ],
            rows=[
                [
                    log.topic_assignments_returned,
                    log.topic_assignments_mapped,
                    log.topic_assignments_unmatched,
                    log.recommendations_generated,
                ]
            ],
        ),
        TableSection(
            title="6. Bucket Distribution",
            headers=[
                "Bucket 0 (Resolved)",
                "Bucket 1 (Expansion)",
                "Bucket 2 (Optimization)",
                "Bucket 3 (Info Gaps)",
            ],
            rows=[
                [
                    log.bucket0_count,
                    log.bucket1_count,
                    log.bucket2_count,
                    log.bucket3_count,
                ]
            ],
        ),
        TableSection(
            title="7. Data Loss Summary",
            headers=["Accounted For", "Missing Rows", "Missing Topics"],
            rows=[
                [
                    log.rows_accounted_for,
                    log.data_loss_rows,
                    ", ".join(log.data_loss_topics) or "None",
                ]
            ],
        ),
        TableSection(
            title="8. Validation Results",
            headers=["Type", "Status", "Message", "Details"],
            rows=[
                [
                    result.type,
                    format_status(result.status),
                    result.message,
                    result.details or PLACEHOLDER,
                ]
                for result in log.validation_results
            ],
        ),
    ]


def render_log_markdown(log: AnalysisLog) -> str:
    """Render the run log as a Markdown document.

    Args:
        log: A (normally finalized) run log.

    Returns:
        str: The report, ending with a "9. Errors" list.
    """
    lines = [f"# Analysis Log - {log.bot_title}", ""]

    for section in build_log_sections(log):
        lines.append(f"## {section.title}")
        lines.append("")
        lines.extend(markdown_table(section.headers, section.rows))
        lines.append("")

    lines.append("## 9. Errors")
    lines.append("")
    if log.errors:
        lines.extend(f"- {error}" for error in log.errors)
    else:
        lines.append("None")
    lines.append("")

    return "\n".join(lines)
