"""
Danjuan fund NAV adapter.

Last-resort source for funds: the most recent point of the NAV history.
A response is usable only when result_code is 0 and at least one item exists.
"""

from typing import Any

from portfolio_pricer.adapters.data_sources.base import PriceSource
from portfolio_pricer.core.errors import NotFoundError


class DanjuanFundNavSource(PriceSource):
    """Danjuan fund NAV history adapter."""

    BASE_URL = "https://danjuanfunds.com/djapi"

    @property
    def name(self) -> str:
        return "danjuan"

    def fetch_price(self, code: str) -> Any:
        response = self.fetcher.fetch(
            f"{self.BASE_URL}/fund/nav/history/{code.strip()}",
            params={"page": 1, "size": 1},
        )
        data = response.json()

        if data.get("result_code") != 0:
            raise NotFoundError(f"result_code={data.get('result_code')}")
        items = (data.get("data") or {}).get("items") or []
        if not items:
            raise NotFoundError("no NAV items")
        return items[0].get("nav")
