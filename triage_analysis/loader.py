"""CSV ingestion of transcript exports."""

from pathlib import Path

import polars as pl
from loguru import logger

from .constants import ANALYZABLE_STATUSES, LogMessage
from .models import ConversationRow, InputStats, normalize_key


def load_conversation_rows(
    path: Path | str, *, include_resolved: bool = False
) -> tuple[list[ConversationRow], InputStats]:
    """Load transcript rows from a delimited export.

    Every column is read as text. By default only rows whose status is one of
    the analyzable (non-resolved) statuses are kept.

    Args:
        path: CSV file to read.
        include_resolved: Keep every row regardless of status.

    Returns:
        tuple[list[ConversationRow], InputStats]: The kept rows in file order
            and the filtering counts for the run log.
    """
    path = Path(path)
    df = pl.read_csv(path, infer_schema_length=0)

    rows = [ConversationRow.from_dict(data=record) for record in df.iter_rows(named=True)]
    total = len(rows)

    if include_resolved:
        stats = InputStats(total=total)
    else:
        rows = [row for row in rows if row.normalized_status in ANALYZABLE_STATUSES]
        stats = InputStats(
            total=total,
            filtered_out=total - len(rows),
            filter_statuses=[normalize_key(status) for status in ANALYZABLE_STATUSES],
        )

    logger.info(LogMessage.LOADED_ROWS.format(len(rows), total, path, stats.filtered_out))
    return rows, stats
