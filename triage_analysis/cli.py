"""CLI interface for transcript triage analysis."""

import asyncio
import json
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .bot_summary import generate_bot_summary, load_bot_summary
from .constants import (
    DEFAULT_BOT_TITLE,
    DEFAULT_DETAIL_CAP,
    DEFAULT_HISTORY_FILE,
    DEFAULT_MODEL,
    DEFAULT_OUTPUT_DIR,
    EXIT_CODE_ERROR,
    CliHelp,
    LogMessage,
    ModelOption,
    PipelineMode,
)
from .llm import LLMGateway, build_provider
from .loader import load_conversation_rows
from .models import AnalysisProgress, AnalysisSettings
from .pipeline import AnalysisAbortedError, TriagePipeline
from .storage import ConversationStorage, JsonlHistorySink

app = typer.Typer(help=CliHelp.APP)
console = Console()


async def _analyze_async(
    csv_path: Path,
    goals: str,
    bot_summary_path: Path,
    bot_title: str,
    model: ModelOption,
    mode: PipelineMode,
    detail_cap: int,
    include_resolved: bool,
    concurrent_stages: bool,
    output_dir: Path,
    history_file: Path,
    openai_api_key: str | None,
    gemini_api_key: str | None,
) -> None:
    """Async implementation of the analyze command."""
    rows, input_stats = load_conversation_rows(
        csv_path, include_resolved=include_resolved
    )
    if not rows:
        logger.error(f"No analyzable rows found in {csv_path}")
        raise typer.Exit(code=EXIT_CODE_ERROR)

    bot_summary = load_bot_summary(bot_summary_path)

    try:
        provider = build_provider(
            model=model.value,
            openai_api_key=openai_api_key,
            gemini_api_key=gemini_api_key,
        )
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(code=EXIT_CODE_ERROR)

    settings = AnalysisSettings(
        model=model.value,
        bot_title=bot_title,
        detail_cap=detail_cap,
        mode=mode,
        concurrent_stages=concurrent_stages,
    )
    storage = ConversationStorage(output_dir=output_dir)

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("({task.completed}/{task.total})"),
        console=console,
    ) as progress:
        task_id = progress.add_task("Starting analysis...", total=None)

        def on_progress(update: AnalysisProgress) -> None:
            progress.update(
                task_id,
                description=update.message,
                completed=update.current_batch,
                total=update.total_batches,
            )

        pipeline = TriagePipeline(
            gateway=LLMGateway(provider=provider),
            settings=settings,
            history_sink=JsonlHistorySink(history_file),
            on_progress=on_progress,
        )

        try:
            result = await pipeline.run(
                rows=rows,
                goals=goals,
                bot_summary=bot_summary,
                input_stats=input_stats,
            )
        except AnalysisAbortedError as e:
            # Keep the audit trail of the aborted run
            storage.save_analysis_log(log=e.log)
            raise

    storage.save_result(result=result)

    log = result.analysis_log
    for error in log.errors:
        logger.warning(error)
    logger.success(
        f"Run {log.run_id}: {log.bucket1_count} expansion, "
        f"{log.bucket2_count} optimization, {log.bucket3_count} information-gap rows; "
        f"{log.recommendations_generated} recommendations"
    )


@app.command(help=CliHelp.ANALYZE_COMMAND)
def analyze(
    csv_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help=CliHelp.CSV_PATH
    ),
    goals: str = typer.Option(..., "--goals", "-g", help=CliHelp.GOALS),
    bot_summary_path: Path = typer.Option(
        ...,
        "--bot-summary",
        "-s",
        exists=True,
        dir_okay=False,
        readable=True,
        help=CliHelp.BOT_SUMMARY,
    ),
    bot_title: str = typer.Option(
        DEFAULT_BOT_TITLE, "--bot-title", "-t", help=CliHelp.BOT_TITLE
    ),
    model: ModelOption = typer.Option(
        DEFAULT_MODEL, "--model", "-m", help=CliHelp.MODEL
    ),
    mode: PipelineMode = typer.Option(PipelineMode.AUTO, "--mode", help=CliHelp.MODE),
    detail_cap: int = typer.Option(
        DEFAULT_DETAIL_CAP, "--detail-cap", min=1, help=CliHelp.DETAIL_CAP
    ),
    include_resolved: bool = typer.Option(
        False, "--include-resolved", help=CliHelp.INCLUDE_RESOLVED
    ),
    concurrent_stages: bool = typer.Option(
        False, "--concurrent-stages", help=CliHelp.CONCURRENT_STAGES
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
    history_file: Path = typer.Option(
        DEFAULT_HISTORY_FILE, "--history-file", help=CliHelp.HISTORY_FILE
    ),
    openai_api_key: str = typer.Option(
        None,
        "--openai-api-key",
        envvar="OPENAI_API_KEY",
        help=CliHelp.OPENAI_API_KEY,
    ),
    gemini_api_key: str = typer.Option(
        None,
        "--gemini-api-key",
        envvar="GEMINI_API_KEY",
        help=CliHelp.GEMINI_API_KEY,
    ),
) -> None:
    try:
        asyncio.run(
            _analyze_async(
                csv_path=csv_path,
                goals=goals,
                bot_summary_path=bot_summary_path,
                bot_title=bot_title,
                model=model,
                mode=mode,
                detail_cap=detail_cap,
                include_resolved=include_resolved,
                concurrent_stages=concurrent_stages,
                output_dir=output_dir,
                history_file=history_file,
                openai_api_key=openai_api_key,
                gemini_api_key=gemini_api_key,
            )
        )
    except typer.Exit:
        raise
    except Exception as e:
        logger.exception(LogMessage.ERROR_OCCURRED.format(e))
        raise typer.Exit(code=EXIT_CODE_ERROR)


@app.command()
def history(
    history_file: Path = typer.Option(
        DEFAULT_HISTORY_FILE, "--history-file", help=CliHelp.HISTORY_FILE
    ),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help=CliHelp.HISTORY_LIMIT),
) -> None:
    """Show the most recent analysis runs."""
    entries = JsonlHistorySink(history_file).recent(limit)
    if not entries:
        logger.info(f"No runs recorded in {history_file}")
        return

    table = Table(title="Recent analysis runs")
    for column in ("Run ID", "Finished", "Bot", "Rows", "B0", "B1", "B2", "B3", "Recs"):
        table.add_column(column)

    for entry in entries:
        distribution = entry.get("bucket_distribution", {})
        table.add_row(
            str(entry.get("run_id", "")),
            str(entry.get("end_time", "")),
            str(entry.get("bot_title", "")),
            str(entry.get("total_rows", 0)),
            *(str(distribution.get(key, 0)) for key in ("b0", "b1", "b2", "b3")),
            str(entry.get("recommendations", 0)),
        )

    console.print(table)


@app.command("summarize-bot", help=CliHelp.SUMMARIZE_BOT_COMMAND)
def summarize_bot(
    export_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help=CliHelp.BOT_EXPORT
    ),
    output: Path = typer.Option(None, "--output", "-o", help=CliHelp.SUMMARY_OUTPUT),
) -> None:
    try:
        raw = json.loads(export_path.read_text(encoding="utf-8"))
    except ValueError as e:
        logger.error(LogMessage.ERROR_OCCURRED.format(e))
        raise typer.Exit(code=EXIT_CODE_ERROR)

    summary = generate_bot_summary(raw)
    if output is None:
        console.print(summary, markup=False, highlight=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(summary, encoding="utf-8")
    logger.success(f"Bot summary written to {output}")
