"""Formatting helpers shared by the report renderers."""

from ..constants import EMPTY_STRING, ValidationStatus

PLACEHOLDER = "--"

_STATUS_BADGES = {
    ValidationStatus.PASS: "✅ Pass",
    ValidationStatus.FAIL: "❌ Fail",
    ValidationStatus.WARNING: "⚠️ Warning",
}


def format_percent(rate: float) -> str:
    """Format a 0..1 rate with one decimal, e.g. ``0.5 -> '50.0%'``."""
    return f"{rate * 100:.1f}%"


def format_seconds(duration_ms: int) -> str:
    return f"{duration_ms / 1000:.2f}s"


def format_status(status: str) -> str:
    """Validation status with its badge; unknown statuses pass through."""
    return _STATUS_BADGES.get(status, status)


def format_flag(value: bool) -> str:
    return "YES" if value else "NO"


def _cell(value: object) -> str:
    text = EMPTY_STRING if value is None else str(value)
    # Pipes and newlines would break the table layout
    return text.replace("|", "\\|").replace("\n", " ")


def markdown_table(headers: list[str], rows: list[list[object]]) -> list[str]:
    """Render a Markdown table as a list of lines.

    Args:
        headers: Column titles.
        rows: Cell values; ``None`` renders as an empty cell.

    Returns:
        list[str]: Header, separator and one line per row.
    """
    lines = [
        f"| {' | '.join(headers)} |",
        f"| {' | '.join('---' for _ in headers)} |",
    ]
    lines.extend(f"| {' | '.join(_cell(value) for value in row)} |" for row in rows)
    return lines
