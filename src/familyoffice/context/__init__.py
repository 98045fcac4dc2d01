"""Context providers feeding prompt templates."""

from familyoffice.context.market import AlphaVantageQuoteProvider, Quote, QuoteProvider, format_quote_markdown
from familyoffice.context.providers import (
    ChatHistoryMessage,
    ReferenceReport,
    append_reference_reports,
    chat_history_section,
    current_date_text,
    extract_cashtags,
    market_data_block,
    report_context,
)

__all__ = [
    "AlphaVantageQuoteProvider",
    "ChatHistoryMessage",
    "Quote",
    "QuoteProvider",
    "ReferenceReport",
    "append_reference_reports",
    "chat_history_section",
    "current_date_text",
    "extract_cashtags",
    "format_quote_markdown",
    "market_data_block",
    "report_context",
]
