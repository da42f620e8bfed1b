"""Data models for report generation."""

from dataclasses import dataclass, field


@dataclass
class TableSection:
    """One titled table of the run-log report."""

    title: str
    headers: list[str]
    rows: list[list[object]] = field(default_factory=list)


@dataclass
class BacklogEntry:
    """One line of the improvement backlog export."""

    rank: int
    bucket: str
    bucket_label: str
    issue_category: str
    chat_count: int
    bucket_share: float  # share of the bucket's rows, 0..1
    problem_statement: str
    root_cause: str
    excerpts: str
    recommendation: str
    strategic_priority: str
    kpi_to_watch: str
    goal_alignment_score: int
    approval_status: str = "Pending"
