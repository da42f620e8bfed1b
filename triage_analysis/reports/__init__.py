"""Report generation: run-log rendering and backlog export rows."""

from .formatters import format_percent, markdown_table
from .markdown import build_log_sections, render_log_markdown
from .models import BacklogEntry, TableSection
from .summary import build_backlog, resolve_recommendation_counts

__all__ = [
    "BacklogEntry",
    "TableSection",
    "build_backlog",
    "build_log_sections",
    "format_percent",
    "markdown_table",
    "render_log_markdown",
    "resolve_recommendation_counts",
]
