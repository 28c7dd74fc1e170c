"""
Market-data gateway (AKTools) source adapters.

The gateway exposes AKShare datasets as JSON under /api/public/<dataset>.
Responses are arrays of rows keyed by Chinese column names:
- Minute history (HK, US): last row's 最新价
- A-share / ETF / LOF listings: one row per instrument, 代码 -> 最新价
- Open-fund NAV history: last row's 单位净值
- FX spot quotes: 货币对 -> 买报价

Listings are cached for the snapshot TTL; everything else is fetched per call.
"""

from typing import Any, Dict, Optional, Tuple

from portfolio_pricer.adapters.data_sources.base import BulkSnapshotSource, PriceSource
from portfolio_pricer.core.errors import NotFoundError
from portfolio_pricer.services.data.snapshot_cache import SnapshotCache
from portfolio_pricer.services.data.timed_fetch import TimedFetcher


DEFAULT_GATEWAY_URL = "http://127.0.0.1:8080"


def _gateway_url(base_url: str, dataset: str) -> str:
    return f"{base_url.rstrip('/')}/api/public/{dataset}"


def _last_row_value(rows: Any, field: str) -> Any:
    if not rows:
        raise NotFoundError("empty history")
    value = rows[-1].get(field)
    if value is None:
        raise NotFoundError(f"last row has no {field}")
    return value


class StockHkHistMinSource(PriceSource):
    """Hong Kong equities from the 1-minute history (stock_hk_hist_min_em)."""

    DATASET = "stock_hk_hist_min_em"
    START_DATE = "2022-01-01"

    def __init__(self, fetcher: TimedFetcher, base_url: str = DEFAULT_GATEWAY_URL):
        super().__init__(fetcher)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def fetch_price(self, code: str) -> Any:
        response = self.fetcher.fetch(
            _gateway_url(self.base_url, self.DATASET),
            params={
                "symbol": code,
                "period": "1",
                "adjust": "",
                "start_date": self.START_DATE,
            },
        )
        return _last_row_value(response.json(), "最新价")


class StockUsHistMinSource(PriceSource):
    """US equities from the 1-minute history (stock_us_hist_min_em)."""

    DATASET = "stock_us_hist_min_em"

    def __init__(self, fetcher: TimedFetcher, base_url: str = DEFAULT_GATEWAY_URL):
        super().__init__(fetcher)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def fetch_price(self, code: str) -> Any:
        response = self.fetcher.fetch(
            _gateway_url(self.base_url, self.DATASET),
            params={"symbol": code},
        )
        return _last_row_value(response.json(), "最新价")


class FundOpenFundInfoSource(PriceSource):
    """Open-end fund NAV, walking the unit-NAV history to its latest point."""

    DATASET = "fund_open_fund_info_em"
    INDICATOR = "单位净值走势"

    def __init__(self, fetcher: TimedFetcher, base_url: str = DEFAULT_GATEWAY_URL):
        super().__init__(fetcher)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def fetch_price(self, code: str) -> Any:
        response = self.fetcher.fetch(
            _gateway_url(self.base_url, self.DATASET),
            params={"fund": code, "indicator": self.INDICATOR},
        )
        return _last_row_value(response.json(), "单位净值")


class FxSpotQuoteSource(PriceSource):
    """
    FX spot bid quotes (fx_spot_quote).

    Codes are currency pairs as the gateway writes them, e.g. "USD/CNY".
    Not cached: rates are read once per run.
    """

    DATASET = "fx_spot_quote"
    PAIR_FIELD = "货币对"
    BID_FIELD = "买报价"

    def __init__(self, fetcher: TimedFetcher, base_url: str = DEFAULT_GATEWAY_URL):
        super().__init__(fetcher)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def fetch_price(self, code: str) -> Any:
        response = self.fetcher.fetch(_gateway_url(self.base_url, self.DATASET))
        for row in response.json():
            if row.get(self.PAIR_FIELD) == code:
                return row.get(self.BID_FIELD)
        raise NotFoundError(f"FX pair {code} not quoted")


class StockZhASpotSource(BulkSnapshotSource):
    """
    A-share listing (stock_zh_a_spot_em), matched exactly on the bare code.

    Sheet codes may carry an exchange suffix ("600519.SH"); it is dropped.
    """

    DATASET = "stock_zh_a_spot_em"
    match = "exact"

    def __init__(
        self,
        fetcher: TimedFetcher,
        cache: SnapshotCache,
        base_url: str = DEFAULT_GATEWAY_URL
    ):
        super().__init__(fetcher, cache)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def snapshot_request(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        return _gateway_url(self.base_url, self.DATASET), None

    def normalize_code(self, code: str) -> str:
        return code.strip().split(".")[0]


class FundEtfCategorySinaSource(BulkSnapshotSource):
    """
    Sina fund listing for one category (fund_etf_category_sina).

    Categories: "ETF基金", "LOF基金", "封闭式基金". Listing codes are prefixed
    with the exchange ("sh510300"), so rows are matched by substring.
    """

    DATASET = "fund_etf_category_sina"
    match = "contains"

    CATEGORY_NAMES = {
        "ETF基金": "etf",
        "LOF基金": "lof",
        "封闭式基金": "closed",
    }

    def __init__(
        self,
        fetcher: TimedFetcher,
        cache: SnapshotCache,
        category: str,
        base_url: str = DEFAULT_GATEWAY_URL
    ):
        if category not in self.CATEGORY_NAMES:
            raise ValueError(
                f"Unknown fund category {category!r}. "
                f"Supported: {list(self.CATEGORY_NAMES)}"
            )
        super().__init__(fetcher, cache)
        self.category = category
        self.base_url = base_url

    @property
    def name(self) -> str:
        return f"{self.DATASET}:{self.CATEGORY_NAMES[self.category]}"

    def snapshot_request(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        return _gateway_url(self.base_url, self.DATASET), {"symbol": self.category}


class FundEtfSpotEmSource(BulkSnapshotSource):
    """Eastmoney ETF spot listing (fund_etf_spot_em), substring match."""

    DATASET = "fund_etf_spot_em"
    match = "contains"

    def __init__(
        self,
        fetcher: TimedFetcher,
        cache: SnapshotCache,
        base_url: str = DEFAULT_GATEWAY_URL
    ):
        super().__init__(fetcher, cache)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return self.DATASET

    def snapshot_request(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        return _gateway_url(self.base_url, self.DATASET), None


class FundLofSpotEmSource(FundEtfSpotEmSource):
    """Eastmoney LOF spot listing (fund_lof_spot_em), substring match."""

    DATASET = "fund_lof_spot_em"
