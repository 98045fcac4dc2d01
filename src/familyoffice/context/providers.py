"""Auxiliary text blocks injected into prompts."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

import httpx
from loguru import logger

from familyoffice.context.market import QuoteProvider, format_quote_markdown
from familyoffice.errors import MarketDataError

CASHTAG_PATTERN = re.compile(r"\$([A-Z]{1,5})\b")


@dataclass(frozen=True)
class ChatHistoryMessage:
    """One past chat message."""

    role: str
    content: str
    timestamp: datetime | None = None


@dataclass(frozen=True)
class ReferenceReport:
    """Report for another ticker attached to a chat message."""

    ticker: str
    content: str


def current_date_text(today: date | None = None) -> str:
    today = today or date.today()
    return f"{today:%A}, {today:%B} {today.day}, {today.year}"


def market_data_unavailable(ticker: str, reason: str = "no market-data provider is configured") -> str:
    return f"## Market Data: {ticker.upper()}\n\n*Market data not available ({reason}).*\n"


async def market_data_block(ticker: str, provider: QuoteProvider | None) -> str:
    """Render the latest quote, degrading to a "not available" block on any fetch problem."""
    if provider is None:
        return market_data_unavailable(ticker)
    try:
        quote = await provider.get_quote(ticker)
    except (httpx.HTTPError, MarketDataError) as exc:
        logger.warning("market.quote.error ticker={} error={}", ticker, exc)
        return market_data_unavailable(ticker, "quote request failed")
    if quote is None:
        return market_data_unavailable(ticker, "no quote returned")
    return format_quote_markdown(quote)


def report_context(report: str | None) -> str:
    if report:
        return (
            "- **Report Available**: Yes, a research report has been loaded for context and reference\n"
            "- **Report Content**: Use this report to provide informed analysis and reference specific "
            "sections when relevant\n\n"
            "---\n"
            "## Loaded Report:\n"
            f"{report}\n"
            "---"
        )
    return (
        "- **Report Available**: No specific report loaded\n"
        "- **Research Mode**: Focus on providing current information through web searches"
    )


def chat_history_section(ticker: str, history: Sequence[ChatHistoryMessage]) -> str:
    """Render a chat transcript as chronological quote blocks, or "" when there is none."""
    if not history:
        return ""

    ordered = list(history)
    if all(message.timestamp is not None for message in ordered):
        ordered.sort(key=lambda message: message.timestamp)  # type: ignore[arg-type,return-value]

    lines = [
        "## Chat Conversation History",
        "",
        f"The following is our complete conversation about {ticker}:",
        "",
        "---",
    ]
    for message in ordered:
        role = "User" if message.role == "user" else "Assistant"
        header = f"**{role}**"
        if message.timestamp is not None:
            header += f" ({message.timestamp:%Y-%m-%d %H:%M})"
        lines.append(f"{header}:")
        lines.extend(f"> {line}" if line else ">" for line in message.content.splitlines() or [""])
        lines.extend(["", "---"])
    lines.append("")
    return "\n".join(lines)


def extract_cashtags(text: str, *, exclude: str | None = None) -> list[str]:
    excluded = exclude.upper() if exclude else None
    tickers: dict[str, None] = {}
    for match in CASHTAG_PATTERN.finditer(text):
        ticker = match.group(1)
        if ticker != excluded:
            tickers.setdefault(ticker, None)
    return list(tickers)


def append_reference_reports(message: str, references: Iterable[ReferenceReport]) -> str:
    references = list(references)
    if not references:
        return message

    blocks = [
        message.rstrip(),
        "",
        "---",
        "## Reference Reports",
        "",
        "The following reports were attached for comparison. They describe other companies, "
        "not the one this conversation is about.",
    ]
    for reference in references:
        blocks.extend(["", f"### ${reference.ticker.upper()}", "", reference.content.strip()])
    blocks.extend(["", "---"])
    return "\n".join(blocks)
