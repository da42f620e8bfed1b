"""Storage for analysis outputs and the run history."""

import json
from collections import deque
from dataclasses import asdict
from pathlib import Path
from typing import Any

import polars as pl
from loguru import logger

from .constants import (
    BACKLOG_FILENAME,
    DEFAULT_HISTORY_FILE,
    DEFAULT_OUTPUT_DIR,
    HISTORY_RETENTION,
    JSON_INDENT,
    LOG_JSON_FILENAME,
    LOG_MARKDOWN_FILENAME,
    RECOMMENDATIONS_FILENAME,
    ROWS_FILENAME,
    LogMessage,
    RowKey,
)
from .models import AnalysisLog, AnalysisResult, ConversationRow
from .reports import build_backlog, render_log_markdown

ROW_COLUMNS: list[str] = [
    key.value for key in RowKey if key != RowKey.CONVERSATION_START_TIME
]


class ConversationStorage:
    """Writes the outputs of a run to an output directory.

    Attributes:
        output_dir: Directory every file is written into; created on demand.
    """

    def __init__(self, *, output_dir: Path | str = DEFAULT_OUTPUT_DIR):
        self.output_dir = Path(output_dir)

    def _path(self, template: str, run_id: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / template.format(run_id)

    def save_categorized_rows(
        self, *, rows: list[ConversationRow], run_id: str
    ) -> Path:
        """Save the stamped rows to a CSV file using Polars.

        Args:
            rows: Categorized rows in input order.
            run_id: Id of the run, used in the file name.

        Returns:
            Path: The written file.
        """
        filepath = self._path(ROWS_FILENAME, run_id)

        if rows:
            df = pl.DataFrame([row.to_dict() for row in rows]).select(ROW_COLUMNS)
        else:
            df = pl.DataFrame(schema={column: pl.Utf8 for column in ROW_COLUMNS})
        df.write_csv(filepath)

        logger.success(LogMessage.SAVED_ROWS.format(len(rows), filepath))
        return filepath

    def save_recommendations(self, *, result: AnalysisResult) -> Path:
        """Save the three merged recommendation lists to a JSON file."""
        filepath = self._path(RECOMMENDATIONS_FILENAME, result.analysis_log.run_id)

        with filepath.open("w") as f:
            json.dump(result.recommendations_dict(), f, indent=JSON_INDENT, default=str)

        logger.success(LogMessage.SAVED_RECOMMENDATIONS.format(filepath))
        return filepath

    def save_backlog(self, *, result: AnalysisResult) -> Path | None:
        """Save the ranked improvement backlog to a CSV file.

        Returns:
            Path | None: The written file, or None when there is nothing to save.
        """
        entries = build_backlog(result)
        if not entries:
            logger.warning("No recommendations found to save to backlog")
            return None

        filepath = self._path(BACKLOG_FILENAME, result.analysis_log.run_id)
        df = pl.DataFrame([asdict(entry) for entry in entries])
        df.write_csv(filepath)

        logger.success(LogMessage.SAVED_BACKLOG.format(len(df), filepath))
        return filepath

    def save_analysis_log(self, *, log: AnalysisLog) -> tuple[Path, Path]:
        """Save the run log as Markdown and as JSON.

        Returns:
            tuple[Path, Path]: The Markdown file and the JSON file.
        """
        markdown_path = self._path(LOG_MARKDOWN_FILENAME, log.run_id)
        json_path = self._path(LOG_JSON_FILENAME, log.run_id)

        markdown_path.write_text(render_log_markdown(log), encoding="utf-8")
        with json_path.open("w") as f:
            json.dump(log.to_dict(), f, indent=JSON_INDENT, default=str)

        logger.success(LogMessage.SAVED_LOG.format(markdown_path))
        return markdown_path, json_path

    def save_result(self, *, result: AnalysisResult) -> list[Path]:
        """Save every output of a completed run.

        Returns:
            list[Path]: All written files.
        """
        run_id = result.analysis_log.run_id
        paths = [
            self.save_categorized_rows(rows=result.categorized_rows, run_id=run_id),
            self.save_recommendations(result=result),
        ]
        backlog = self.save_backlog(result=result)
        if backlog is not None:
            paths.append(backlog)
        paths.extend(self.save_analysis_log(log=result.analysis_log))
        return paths


class JsonlHistorySink:
    """Append-only JSON Lines store of condensed run entries.

    Lines are only ever appended, never rewritten, so concurrent runs cannot
    drop each other's entries. Retention applies on read: only the newest
    ``retention`` entries are ever returned.

    Attributes:
        path: The history file.
        retention: Maximum number of entries returned.
    """

    def __init__(
        self,
        path: Path | str = DEFAULT_HISTORY_FILE,
        *,
        retention: int = HISTORY_RETENTION,
    ):
        self.path = Path(path)
        self.retention = retention

    def append(self, entry: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def recent(self, limit: int = HISTORY_RETENTION) -> list[dict[str, Any]]:
        """Most recent entries first; unreadable lines are skipped."""
        if not self.path.exists() or limit <= 0:
            return []

        entries: deque[dict[str, Any]] = deque(maxlen=min(limit, self.retention))
        with self.path.open(encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(
                        LogMessage.HISTORY_LINE_SKIPPED.format(line_number, self.path, e)
                    )

        return list(reversed(entries))
