from datetime import date, datetime

import httpx
import pytest

from familyoffice.context import (
    ChatHistoryMessage,
    ReferenceReport,
    append_reference_reports,
    chat_history_section,
    current_date_text,
    extract_cashtags,
    market_data_block,
    report_context,
)
from familyoffice.errors import MarketDataError


def test_current_date_text() -> None:
    assert current_date_text(date(2026, 10, 16)) == "Friday, October 16, 2026"
    assert current_date_text(date(2026, 1, 5)) == "Monday, January 5, 2026"


def test_report_context_with_and_without_report() -> None:
    loaded = report_context("# Apple")
    empty = report_context(None)

    assert "**Report Available**: Yes" in loaded
    assert "## Loaded Report:\n# Apple\n---" in loaded
    assert "No specific report loaded" in empty


def test_chat_history_section_is_empty_without_messages() -> None:
    assert chat_history_section("AAPL", []) == ""


def test_chat_history_section_orders_by_timestamp_and_quotes_lines() -> None:
    history = [
        ChatHistoryMessage("assistant", "Line one\nLine two", datetime(2026, 10, 15, 10, 5)),
        ChatHistoryMessage("user", "Tell me more", datetime(2026, 10, 15, 10, 0)),
    ]

    section = chat_history_section("AAPL", history)

    assert section.startswith("## Chat Conversation History\n")
    assert "our complete conversation about AAPL" in section
    assert "**User** (2026-10-15 10:00):\n> Tell me more" in section
    assert "**Assistant** (2026-10-15 10:05):\n> Line one\n> Line two" in section
    assert section.index("**User**") < section.index("**Assistant**")


def test_chat_history_section_keeps_input_order_without_timestamps() -> None:
    history = [ChatHistoryMessage("assistant", "first"), ChatHistoryMessage("user", "second")]

    section = chat_history_section("AAPL", history)

    assert section.index("> first") < section.index("> second")
    assert "**Assistant**:" in section


def test_extract_cashtags() -> None:
    text = "Compare $AAPL with $MSFT and $msft, then $NVDA and $MSFT again; $TOOLONG is ignored"

    assert extract_cashtags(text) == ["AAPL", "MSFT", "NVDA"]
    assert extract_cashtags(text, exclude="aapl") == ["MSFT", "NVDA"]
    assert extract_cashtags("no tags here") == []


def test_append_reference_reports() -> None:
    assert append_reference_reports("hello", []) == "hello"

    message = append_reference_reports(
        "How does $MSFT compare?\n",
        [ReferenceReport("msft", "  Microsoft report  "), ReferenceReport("GOOG", "Alphabet report")],
    )

    assert message.startswith("How does $MSFT compare?\n\n---\n## Reference Reports")
    assert "### $MSFT\n\nMicrosoft report" in message
    assert "### $GOOG\n\nAlphabet report" in message
    assert message.endswith("---")


class _Failing:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def get_quote(self, ticker: str):
        raise self.error


class _Empty:
    async def get_quote(self, ticker: str):
        return None


@pytest.mark.asyncio
async def test_market_data_block_degrades() -> None:
    assert "no market-data provider is configured" in await market_data_block("aapl", None)
    assert "## Market Data: AAPL" in await market_data_block("aapl", None)
    assert "quote request failed" in await market_data_block("AAPL", _Failing(MarketDataError("limit")))
    assert "quote request failed" in await market_data_block("AAPL", _Failing(httpx.ConnectError("down")))
    assert "no quote returned" in await market_data_block("AAPL", _Empty())


@pytest.mark.asyncio
async def test_market_data_block_propagates_unexpected_errors() -> None:
    with pytest.raises(RuntimeError):
        await market_data_block("AAPL", _Failing(RuntimeError("bug")))
