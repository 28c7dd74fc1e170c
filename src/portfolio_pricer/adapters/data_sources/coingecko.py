"""
CoinGecko data source adapter.

Spot price in USD from the public simple/price endpoint. Codes are CoinGecko
coin IDs ("bitcoin", "ethereum"), as entered in the portfolio sheet.

Free tier is strictly rate limited; the batch driver waits extra before each
crypto lookup.
"""

from typing import Any, Optional

from portfolio_pricer.adapters.data_sources.base import PriceSource
from portfolio_pricer.core.errors import NotFoundError
from portfolio_pricer.services.data.timed_fetch import TimedFetcher


class CoinGeckoSource(PriceSource):
    """CoinGecko simple/price adapter."""

    BASE_URL = "https://api.coingecko.com/api/v3"
    VS_CURRENCY = "usd"

    def __init__(self, fetcher: TimedFetcher, api_key: Optional[str] = None):
        """
        Initialize CoinGecko source.

        Args:
            fetcher: Shared timed fetcher
            api_key: Optional demo API key for higher rate limits
        """
        super().__init__(fetcher)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "coingecko"

    def fetch_price(self, code: str) -> Any:
        coin_id = code.strip().lower()
        params = {"ids": coin_id, "vs_currencies": self.VS_CURRENCY}
        if self.api_key:
            params["x_cg_demo_api_key"] = self.api_key

        response = self.fetcher.fetch(
            f"{self.BASE_URL}/simple/price",
            params=params,
            headers={"Accept": "application/json"},
        )
        data = response.json()

        if coin_id not in data:
            raise NotFoundError(f"No data for {coin_id}")
        return data[coin_id].get(self.VS_CURRENCY)
