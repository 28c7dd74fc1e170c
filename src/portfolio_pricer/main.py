"""
Run one pricing pass: read both sheets, price everything, write results back.

Usage:
    portfolio-pricer
    python -m portfolio_pricer

Configuration is read from the environment (see core/config.py).
"""

from contextlib import ExitStack
from typing import Optional

from loguru import logger

from portfolio_pricer.adapters.data_sources.aktools import FxSpotQuoteSource
from portfolio_pricer.adapters.stores.vika import VikaSheetStore
from portfolio_pricer.core.config import Settings
from portfolio_pricer.core.logging_config import configure_logging
from portfolio_pricer.services.batch import BatchOrchestrator, BatchResult
from portfolio_pricer.services.data.exchange_rates import ExchangeRateNormalizer
from portfolio_pricer.services.data.resolver import build_resolver
from portfolio_pricer.services.data.snapshot_cache import SnapshotCache
from portfolio_pricer.services.data.timed_fetch import TimedFetcher


def run(settings: Settings) -> BatchResult:
    """
    Execute one run against the configured sheets.

    Args:
        settings: Run configuration

    Returns:
        The records that were written

    Raises:
        ValueError: If required settings are missing
        StoreError: If a sheet cannot be read or written
    """
    settings.validate()

    with ExitStack() as stack:
        fetcher = stack.enter_context(TimedFetcher(
            timeout=settings.api_timeout,
            max_retries=settings.max_retries,
        ))
        portfolio = stack.enter_context(VikaSheetStore(
            token=settings.vika_token,
            datasheet_id=settings.vika_datasheet_id,
            view_id=settings.vika_view_id,
            base_url=settings.vika_base_url,
            timeout=settings.api_timeout,
        ))
        rate_sheet = stack.enter_context(VikaSheetStore(
            token=settings.vika_token,
            datasheet_id=settings.vika_rate_datasheet_id,
            base_url=settings.vika_base_url,
            timeout=settings.api_timeout,
        ))

        cache = SnapshotCache(ttl=settings.cache_ttl)
        orchestrator = BatchOrchestrator(
            resolver=build_resolver(fetcher, cache, settings),
            normalizer=ExchangeRateNormalizer(FxSpotQuoteSource(fetcher, settings.aktools_url)),
            request_delay=settings.request_delay_ms / 1000,
            crypto_delay=settings.crypto_delay_ms / 1000,
        )

        instruments = portfolio.query_all()
        rate_targets = rate_sheet.query_all()
        logger.info(
            f"Loaded {len(instruments)} instruments and {len(rate_targets)} exchange-rate rows"
        )

        result = orchestrator.run(instruments, rate_targets)

        portfolio.update([record.to_sheet_record() for record in result.prices])
        rate_sheet.update([record.to_sheet_record() for record in result.rates])

    logger.info(
        f"Execution successful: {len(result.prices)} prices, "
        f"{len(result.rates)} exchange rates, {len(result.failed)} failed"
    )
    return result


def main(settings: Optional[Settings] = None) -> None:
    """Console entry point. Failures are logged, never raised."""
    try:
        settings = settings or Settings.from_env()
        configure_logging(level=settings.log_level, serialize=settings.log_json)
        run(settings)
    except Exception:
        logger.exception("Execution failed")


if __name__ == "__main__":
    main()
