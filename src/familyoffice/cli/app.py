"""FamilyOffice command line."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from familyoffice.cli.render import Renderer
from familyoffice.config import Settings, get_settings
from familyoffice.context.providers import ChatHistoryMessage, ReferenceReport, extract_cashtags
from familyoffice.errors import FamilyOfficeError
from familyoffice.logging_utils import configure_logging
from familyoffice.runtime.reducer import TurnResult
from familyoffice.tasks.desk import ResearchDesk

EXIT_COMMANDS = frozenset({"quit", "exit", "q"})
_history_adapter = TypeAdapter(list[ChatHistoryMessage])

app = typer.Typer(
    name="familyoffice",
    help="Equity research reports and follow-up chat driven by a coding agent.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _build_desk(settings: Settings) -> ResearchDesk:
    return ResearchDesk.from_settings(settings)


def _load_settings(verbose: bool) -> Settings:
    settings = get_settings(verbose=True) if verbose else get_settings()
    configure_logging(profile="console", level=settings.log_level)
    return settings


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc.strerror or exc}") from exc


def _parse_references(values: list[str]) -> dict[str, ReferenceReport]:
    references: dict[str, ReferenceReport] = {}
    for value in values:
        ticker, separator, raw_path = value.partition("=")
        if not separator or not ticker.strip() or not raw_path.strip():
            raise typer.BadParameter(f"expected TICKER=PATH, got {value!r}")
        symbol = ticker.strip().upper()
        references[symbol] = ReferenceReport(ticker=symbol, content=_read_text(Path(raw_path.strip())))
    return references


def _load_history(path: Path | None) -> list[ChatHistoryMessage]:
    if path is None:
        return []
    try:
        return _history_adapter.validate_json(_read_text(path))
    except ValidationError as exc:
        raise typer.BadParameter(f"invalid chat history in {path}: {exc.error_count()} error(s)") from exc


def _finish(renderer: Renderer, result: TurnResult, output: Path | None) -> None:
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.response_text, encoding="utf-8")
        renderer.info(f"Saved to {output}")
    else:
        renderer.response(result.response_text)
    if result.usage is not None:
        renderer.usage(result.usage.input_tokens, result.usage.output_tokens)


def _run_task(
    verbose: bool,
    output: Path | None,
    task: Callable[[ResearchDesk, Renderer], Awaitable[TurnResult]],
) -> None:
    settings = _load_settings(verbose)
    desk = _build_desk(settings)
    renderer = Renderer()
    try:
        result = asyncio.run(task(desk, renderer))
    except FamilyOfficeError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    finally:
        renderer.close()
        desk.cleanup()
    _finish(renderer, result, output)


OutputOption = Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the result to this file")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug progress lines")]


@app.command()
def research(
    ticker: Annotated[str, typer.Argument(help="Ticker symbol, e.g. AAPL")],
    company: Annotated[Optional[str], typer.Option("--company", "-c", help="Company name")] = None,
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Write a new research report."""
    _run_task(
        verbose,
        output,
        lambda desk, renderer: desk.research(ticker.upper(), company, on_progress=renderer.progress),
    )


@app.command()
def reevaluate(
    ticker: Annotated[str, typer.Argument(help="Ticker symbol")],
    report: Annotated[Path, typer.Argument(help="Existing report to reevaluate")],
    company: Annotated[Optional[str], typer.Option("--company", "-c", help="Company name")] = None,
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Reevaluate an existing report against current information."""
    existing = _read_text(report)
    _run_task(
        verbose,
        output,
        lambda desk, renderer: desk.reevaluate(ticker.upper(), existing, company, on_progress=renderer.progress),
    )


@app.command()
def update(
    ticker: Annotated[str, typer.Argument(help="Ticker symbol")],
    report: Annotated[Optional[Path], typer.Option("--report", "-r", help="Current report")] = None,
    history: Annotated[
        Optional[Path], typer.Option("--history", help="JSON list of {role, content, timestamp} messages")
    ] = None,
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Regenerate a report from a chat transcript."""
    messages = _load_history(history)
    current = _read_text(report) if report is not None else None
    _run_task(
        verbose,
        output,
        lambda desk, renderer: desk.update_report(ticker.upper(), messages, current, on_progress=renderer.progress),
    )


@app.command()
def check(
    ticker: Annotated[str, typer.Argument(help="Ticker symbol")],
    report: Annotated[Path, typer.Argument(help="Report to audit")],
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Run the quality-check pass over a report."""
    content = _read_text(report)
    _run_task(
        verbose,
        output,
        lambda desk, renderer: desk.check_report(ticker.upper(), content, on_progress=renderer.progress),
    )


@app.command()
def chat(
    ticker: Annotated[str, typer.Argument(help="Ticker symbol")],
    report: Annotated[Optional[Path], typer.Option("--report", "-r", help="Report loaded as context")] = None,
    reference: Annotated[
        Optional[list[str]],
        typer.Option("--reference", help="TICKER=PATH report attached when the message mentions $TICKER"),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Chat about a stock; the session is kept for the whole conversation."""
    symbol = ticker.upper()
    report_content = _read_text(report) if report is not None else None
    references = _parse_references(reference or [])
    settings = _load_settings(verbose)
    desk = _build_desk(settings)
    renderer = Renderer()
    try:
        asyncio.run(_chat_loop(desk, renderer, symbol, report_content, references))
    finally:
        renderer.close()
        desk.cleanup()


async def _chat_loop(
    desk: ResearchDesk,
    renderer: Renderer,
    ticker: str,
    report_content: str | None,
    references: dict[str, ReferenceReport],
) -> None:
    renderer.info(f"Chatting about {ticker}. Type 'quit' to leave.")
    while True:
        try:
            message = (await renderer.read_input()).strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not message:
            continue
        if message.lower() in EXIT_COMMANDS:
            break

        attached = [references[tag] for tag in extract_cashtags(message, exclude=ticker) if tag in references]
        if attached:
            renderer.progress(f"📎 Attached {len(attached)} reference report(s)")
        try:
            result = await desk.chat(
                ticker,
                message,
                report_content,
                attached,
                on_progress=renderer.progress,
                on_partial=renderer.partial,
            )
        except FamilyOfficeError as exc:
            logger.debug("cli.chat.error error={}", exc)
            renderer.close()
            renderer.error(str(exc))
            continue
        renderer.response(result.response_text, title=ticker)
    renderer.info("Goodbye!")
