"""
IEX Cloud data source adapter.

Low-latency US equity quotes (stock/{ticker}/quote, field latestPrice).
Tried before the gateway's minute history for US equities.
"""

from typing import Any, Optional

from portfolio_pricer.adapters.data_sources.base import PriceSource
from portfolio_pricer.core.errors import NotFoundError
from portfolio_pricer.services.data.timed_fetch import TimedFetcher


class IexQuoteSource(PriceSource):
    """IEX Cloud quote adapter."""

    BASE_URL = "https://cloud.iexapis.com/stable"

    def __init__(self, fetcher: TimedFetcher, token: Optional[str] = None):
        super().__init__(fetcher)
        self.token = token

    @property
    def name(self) -> str:
        return "iex"

    def fetch_price(self, code: str) -> Any:
        if not self.token:
            raise NotFoundError("IEX token not configured")

        ticker = code.strip().upper()
        response = self.fetcher.fetch(
            f"{self.BASE_URL}/stock/{ticker}/quote",
            params={"token": self.token},
            headers={"Accept": "*/*"},
        )
        return response.json().get("latestPrice")
