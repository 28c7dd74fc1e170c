"""Shared pytest fixtures and configuration."""
import pytest
from unittest.mock import MagicMock, Mock

from portfolio_pricer.services.data.snapshot_cache import SnapshotCache
from portfolio_pricer.services.data.types import SheetRecord


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def json_response(payload, status_code=200):
    """Mock requests.Response returning payload from .json()."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def make_response():
    """Factory for mock JSON responses."""
    return json_response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Snapshot cache with a one-hour TTL on a fake clock."""
    return SnapshotCache(ttl=3600, timer=clock)


@pytest.fixture
def mock_fetcher():
    """TimedFetcher stand-in; set fetch.return_value / side_effect per test."""
    fetcher = Mock()
    fetcher.fetch.return_value = json_response([])
    return fetcher


@pytest.fixture
def a_share_listing():
    """Sample stock_zh_a_spot_em rows."""
    return [
        {"序号": 1, "代码": "600519", "名称": "贵州茅台", "最新价": 1688.0},
        {"序号": 2, "代码": "000001", "名称": "平安银行", "最新价": 10.52},
        {"序号": 3, "代码": "300750", "名称": "宁德时代", "最新价": None},
    ]


@pytest.fixture
def etf_listing():
    """Sample fund_etf_category_sina rows (codes carry exchange prefixes)."""
    return [
        {"代码": "sh510300", "名称": "沪深300ETF", "最新价": 3.912},
        {"代码": "sz159915", "名称": "创业板ETF", "最新价": 1.874},
    ]


@pytest.fixture
def instrument_records():
    """Portfolio sheet rows."""
    return [
        SheetRecord("rec1", {"code": "bitcoin", "Type": "加密货币", "exchange_name": "美元"}),
        SheetRecord("rec2", {"code": "00700", "Type": "港股股票", "exchange_name": "港币"}),
        SheetRecord("rec3", {"code": "510300", "Type": "基金ETF", "exchange_name": "人民币"}),
    ]


@pytest.fixture
def rate_records():
    """Exchange-rate sheet rows."""
    return [
        SheetRecord("rate1", {"标题": "美元"}),
        SheetRecord("rate2", {"标题": "港币"}),
        SheetRecord("rate3", {"标题": "人民币"}),
    ]
