"""Quote providers — look up the latest price for a ticker.

:class:`StooqQuoteProvider` fetches a one-line CSV quote from stooq.com.
The protocol layer only sees the :class:`QuoteProvider` protocol.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Protocol, runtime_checkable

import httpx

from stockmcp.config import DEFAULT_TICKER
from stockmcp.protocol.errors import QuoteFetchError
from stockmcp.protocol.models import QuoteResult

logger = logging.getLogger(__name__)

STOOQ_URL = "https://stooq.com/q/l/"
STOOQ_FIELDS = "sd2t2ohlcvn"
USER_AGENT = "stockmcp/1.0"
MISSING = "N/D"

# Column order for f=sd2t2ohlcvn when the CSV has no header row.
_COLUMNS = ("Symbol", "Date", "Time", "Open", "High", "Low", "Close", "Volume", "Name")


@runtime_checkable
class QuoteProvider(Protocol):
    """Returns the latest quote for a ticker or raises :class:`QuoteFetchError`."""

    async def fetch_quote(self, ticker: str) -> QuoteResult: ...


def stooq_symbol(ticker: str) -> str:
    """Normalize *ticker* to stooq's form: lower-case, ``.us`` unless qualified."""
    symbol = ticker.strip() or DEFAULT_TICKER
    symbol = symbol.lower()
    return symbol if "." in symbol else f"{symbol}.us"


def parse_quote_rows(rows: list[list[str]], ticker: str = "") -> QuoteResult:
    """Turn stooq CSV rows (with or without a header row) into a quote."""
    rows = [row for row in rows if row]
    if not rows:
        raise QuoteFetchError(ticker, "No data")

    if rows[0] and rows[0][0] == "Symbol" and len(rows) > 1:
        header, values = rows[0], rows[1]
    else:
        header, values = list(_COLUMNS), rows[0]
    record = dict(zip(header, values))

    symbol = (record.get("Symbol") or "").strip()
    if not symbol:
        raise QuoteFetchError(ticker, "No symbol")
    close = (record.get("Close") or "").strip()
    if close == MISSING:
        raise QuoteFetchError(ticker, "No price")
    try:
        price = float(close)
    except ValueError:
        raise QuoteFetchError(ticker, "Bad price") from None

    name = record.get("Name")
    return QuoteResult(
        symbol=symbol.upper(),
        price=price,
        date=record.get("Date"),
        time=record.get("Time"),
        name=None if name == MISSING else name,
    )


class StooqQuoteProvider:
    """Fetches quotes from stooq's CSV endpoint.

    Usage::

        provider = StooqQuoteProvider()
        quote = await provider.fetch_quote("AAPL")
    """

    def __init__(self, base_url: str = STOOQ_URL, timeout: float = 10.0) -> None:
        self._base_url = base_url
        self._timeout = timeout

    async def fetch_quote(self, ticker: str) -> QuoteResult:
        symbol = stooq_symbol(ticker)
        params = {"s": symbol, "f": STOOQ_FIELDS, "e": "csv"}
        logger.debug("Fetching quote for %s", symbol)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers={"User-Agent": USER_AGENT}
            ) as client:
                response = await client.get(self._base_url, params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise QuoteFetchError(ticker, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise QuoteFetchError(ticker, str(exc) or type(exc).__name__) from exc

        rows = list(csv.reader(io.StringIO(response.text)))
        return parse_quote_rows(rows, ticker)
