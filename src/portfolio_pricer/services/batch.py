"""
Batch pricing run.

Resolves the exchange-rate table first; if that fails nothing else happens.
Then instruments are priced strictly one after another, in sheet order, with
a fixed delay before every lookup (and a longer one before crypto lookups) to
stay under the providers' shared rate limits.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from loguru import logger

from portfolio_pricer.core.errors import NormalizationError
from portfolio_pricer.services.data.exchange_rates import (
    ExchangeRateNormalizer,
    ExchangeRateTable,
)
from portfolio_pricer.services.data.resolver import FallbackResolver
from portfolio_pricer.services.data.types import (
    AssetType,
    ExchangeRateTarget,
    Instrument,
    PriceQuote,
    RateRecord,
    ResultRecord,
    SheetRecord,
)


@dataclass
class BatchResult:
    """Records to write back after a run."""
    prices: List[ResultRecord] = field(default_factory=list)
    rates: List[RateRecord] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.prices and not self.rates


class BatchOrchestrator:
    """Prices every instrument of the portfolio sheet."""

    def __init__(
        self,
        resolver: FallbackResolver,
        normalizer: ExchangeRateNormalizer,
        request_delay: float = 1.0,
        crypto_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize orchestrator.

        Args:
            resolver: Fallback price resolver
            normalizer: Exchange-rate normalizer
            request_delay: Seconds to wait before every instrument lookup
            crypto_delay: Additional seconds to wait before crypto lookups
            sleep: Sleep function (injectable for tests)
        """
        self.resolver = resolver
        self.normalizer = normalizer
        self.request_delay = request_delay
        self.crypto_delay = crypto_delay
        self._sleep = sleep

    def run(
        self,
        instrument_records: Sequence[SheetRecord],
        rate_records: Sequence[SheetRecord]
    ) -> BatchResult:
        """
        Price the portfolio.

        Args:
            instrument_records: Rows of the portfolio sheet
            rate_records: Rows of the exchange-rate sheet

        Returns:
            Price and rate records to write; empty if exchange rates failed
        """
        targets = [
            target for target in (ExchangeRateTarget.from_record(r) for r in rate_records)
            if target is not None
        ]

        try:
            table = self.normalizer.resolve(targets)
        except NormalizationError as e:
            logger.error(f"Failed to fetch exchange rates, aborting run: {e}")
            return BatchResult()

        result = BatchResult(rates=self._rate_records(targets, table))

        total = len(instrument_records)
        for record in instrument_records:
            instrument = Instrument.from_record(record)
            if instrument is None:
                logger.warning(
                    f"Missing required fields {Instrument.missing_fields(record)} "
                    f"in record {record.record_id}"
                )
                continue

            multiplier = table.multiplier(instrument.quote_currency_tag)
            quote = self._price(instrument)

            if quote.found:
                result.prices.append(ResultRecord(
                    instrument_id=instrument.id,
                    resolved_price=quote.value,
                    applied_multiplier=multiplier,
                ))
                logger.info(
                    f"Updated {instrument.code} [{instrument.asset_type_tag}]: "
                    f"price={quote.value} rate={multiplier} "
                    f"({len(result.prices)}/{total})"
                )
            else:
                result.failed.append(instrument.id)
                logger.warning(
                    f"Failed to fetch price for {instrument.code} "
                    f"[{instrument.asset_type_tag}, {instrument.quote_currency_tag}] "
                    f"({len(result.prices)}/{total})"
                )

        return result

    def _price(self, instrument: Instrument) -> PriceQuote:
        self._sleep(self.request_delay)
        asset_type = instrument.asset_type
        if asset_type is AssetType.CRYPTO:
            self._sleep(self.crypto_delay)
        return self.resolver.resolve(asset_type, instrument.code)

    @staticmethod
    def _rate_records(
        targets: Sequence[ExchangeRateTarget],
        table: ExchangeRateTable
    ) -> List[RateRecord]:
        records = []
        for target in targets:
            if target.currency_tag in table:
                records.append(RateRecord(target.id, table[target.currency_tag]))
        return records
