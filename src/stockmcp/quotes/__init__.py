"""Quote sources used by the ``get_stock_price`` tool."""

from stockmcp.quotes.provider import QuoteProvider, StooqQuoteProvider

__all__ = [
    "QuoteProvider",
    "StooqQuoteProvider",
]
