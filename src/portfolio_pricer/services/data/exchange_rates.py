"""
Exchange-rate normalization into the reporting currency (CNY).

All configured pairs are fetched concurrently and converted into per-currency
multipliers. Some pairs are quoted foreign/CNY and used as-is; others are
quoted CNY/foreign and inverted. The table is published only when every pair
resolved to a positive rate; otherwise NormalizationError is raised and no
partial table exists.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from portfolio_pricer.adapters.data_sources.base import PriceSource
from portfolio_pricer.core.errors import NormalizationError
from portfolio_pricer.services.data.types import ExchangeRateTarget, PriceQuote


REPORTING_CURRENCY = "人民币"


@dataclass(frozen=True)
class CurrencyPair:
    """A currency tag and the spot pair that prices it."""
    tag: str
    symbol: str
    inverse: bool = False
    precision: int = 3

    def multiplier(self, quoted_rate: float) -> float:
        """Convert a quoted rate into a reporting-currency multiplier."""
        rate = 1.0 / quoted_rate if self.inverse else quoted_rate
        return round(rate, self.precision)


DEFAULT_PAIRS = (
    CurrencyPair("美元", "USD/CNY"),
    CurrencyPair("港币", "HKD/CNY"),
    CurrencyPair("泰铢", "CNY/THB", inverse=True),
    CurrencyPair("欧元", "EUR/CNY"),
    CurrencyPair("韩币", "CNY/KRW", inverse=True, precision=5),
)


class ExchangeRateTable:
    """Read-only currency tag -> multiplier mapping."""

    def __init__(self, rates: Mapping[str, float], reporting_currency: str = REPORTING_CURRENCY):
        self._rates = dict(rates)
        self._rates[reporting_currency] = 1.0
        self.reporting_currency = reporting_currency

    def __contains__(self, tag: str) -> bool:
        return tag in self._rates

    def __getitem__(self, tag: str) -> float:
        return self._rates[tag]

    def __len__(self) -> int:
        return len(self._rates)

    def multiplier(self, tag: Optional[str]) -> float:
        """Multiplier for a currency tag; untagged or unknown currencies are 1.0."""
        if not tag:
            return 1.0
        return self._rates.get(tag, 1.0)

    def as_dict(self) -> Dict[str, float]:
        return dict(self._rates)

    def __repr__(self):
        return f"ExchangeRateTable({self._rates})"


class ExchangeRateNormalizer:
    """
    Resolves the full exchange-rate table in one concurrent fan-out.

    Either every configured pair resolves or the whole call fails.
    """

    def __init__(
        self,
        source: PriceSource,
        pairs: Sequence[CurrencyPair] = DEFAULT_PAIRS,
        reporting_currency: str = REPORTING_CURRENCY,
        max_workers: Optional[int] = None
    ):
        """
        Initialize normalizer.

        Args:
            source: Spot quote source keyed by pair symbol (e.g. "USD/CNY")
            pairs: Required currency pairs
            reporting_currency: Tag mapped to 1.0 without a lookup
            max_workers: Fan-out width (default: one worker per pair)
        """
        self.source = source
        self.pairs = list(pairs)
        self.reporting_currency = reporting_currency
        self.max_workers = max_workers or max(1, len(self.pairs))

    def resolve(self, targets: Iterable[ExchangeRateTarget] = ()) -> ExchangeRateTable:
        """
        Resolve multipliers for all configured pairs.

        Args:
            targets: Exchange-rate rows that will consume the table; tags with
                no configured pair are reported but do not fail the call

        Returns:
            Complete table, reporting currency included

        Raises:
            NormalizationError: If any pair is missing or non-positive
        """
        quotes = self._fetch_all()

        failed: List[str] = []
        rates: Dict[str, float] = {}
        for pair in self.pairs:
            quote = quotes[pair.tag]
            if not quote.found or quote.value <= 0:
                logger.error(f"Exchange rate {pair.symbol} ({pair.tag}) unresolved")
                failed.append(pair.tag)
                continue
            rates[pair.tag] = pair.multiplier(quote.value)

        if failed:
            raise NormalizationError(failed)

        table = ExchangeRateTable(rates, self.reporting_currency)
        for target in targets:
            if target.currency_tag not in table:
                logger.warning(
                    f"No exchange rate configured for {target.currency_tag} "
                    f"(record {target.id})"
                )

        logger.info(f"Resolved {len(rates)} exchange rates: {rates}")
        return table

    def _fetch_all(self) -> Dict[str, PriceQuote]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pair.tag: pool.submit(self.source.lookup, pair.symbol)
                for pair in self.pairs
            }
            return {tag: future.result() for tag, future in futures.items()}
