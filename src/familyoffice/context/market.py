"""Market-data quotes and their markdown rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, Protocol

import httpx
from loguru import logger

from familyoffice.errors import MarketDataError


@dataclass(frozen=True)
class Quote:
    """Point-in-time quote for one symbol."""

    symbol: str
    current_price: float
    change: float
    change_percent: float
    open: float
    high: float
    low: float
    previous_close: float
    volume: int
    source: str = "Alpha Vantage"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class QuoteProvider(Protocol):
    async def get_quote(self, ticker: str) -> Quote | None: ...


class AlphaVantageQuoteProvider:
    """Fetch GLOBAL_QUOTE data from Alpha Vantage."""

    API_URL: ClassVar[str] = "https://www.alphavantage.co/query"
    USER_AGENT: ClassVar[str] = "FamilyOffice/1.0"

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def get_quote(self, ticker: str) -> Quote | None:
        symbol = ticker.upper()
        params = {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self._api_key}
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            transport=self._transport,
            headers={"User-Agent": self.USER_AGENT, "Accept": "application/json"},
        ) as client:
            response = await client.get(self.API_URL, params=params)
            response.raise_for_status()
            payload = response.json()

        if not isinstance(payload, dict):
            raise MarketDataError(f"Alpha Vantage returned an unexpected payload for {symbol}")
        if message := payload.get("Error Message"):
            raise MarketDataError(f"Alpha Vantage error: {message}")
        if note := payload.get("Note") or payload.get("Information"):
            raise MarketDataError(f"Alpha Vantage rate limit: {note}")

        raw = payload.get("Global Quote")
        if not raw:
            logger.warning("market.quote.empty ticker={}", symbol)
            return None
        return _quote_from_global(raw, fallback_symbol=symbol)


def _quote_from_global(raw: dict[str, Any], *, fallback_symbol: str) -> Quote:
    def number(key: str) -> float:
        value = str(raw.get(key) or "0").rstrip("%")
        try:
            return float(value)
        except ValueError:
            return 0.0

    return Quote(
        symbol=str(raw.get("01. symbol") or fallback_symbol),
        current_price=number("05. price"),
        change=number("09. change"),
        change_percent=number("10. change percent"),
        open=number("02. open"),
        high=number("03. high"),
        low=number("04. low"),
        previous_close=number("08. previous close"),
        volume=int(number("06. volume")),
    )


def format_quote_markdown(quote: Quote) -> str:
    arrow = "▲" if quote.change >= 0 else "▼"
    sign = "+" if quote.change >= 0 else ""
    retrieved = quote.timestamp.strftime("%Y-%m-%d %H:%M %Z").strip()
    return (
        f"## Market Data: {quote.symbol}\n\n"
        f"**Current Price**: ${quote.current_price:.2f} {arrow} {sign}{quote.change:.2f} "
        f"({sign}{quote.change_percent:.2f}%)  \n"
        f"**Open**: ${quote.open:.2f}  \n"
        f"**High**: ${quote.high:.2f}  \n"
        f"**Low**: ${quote.low:.2f}  \n"
        f"**Previous Close**: ${quote.previous_close:.2f}  \n"
        f"**Volume**: {quote.volume:,}  \n\n"
        f"*Data retrieved: {retrieved}*  \n"
        f"*Source: {quote.source}*\n"
    )
