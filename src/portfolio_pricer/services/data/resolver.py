"""
Ordered fallback price resolution.

Each asset type maps to a declared chain of price sources. The chain is walked
in order and the first found quote wins; later sources are never called.
Each source is tried exactly once per resolution; transport retries happen
inside the fetcher, not here.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from portfolio_pricer.adapters.data_sources.aktools import (
    FundEtfCategorySinaSource,
    FundEtfSpotEmSource,
    FundLofSpotEmSource,
    FundOpenFundInfoSource,
    StockHkHistMinSource,
    StockUsHistMinSource,
    StockZhASpotSource,
)
from portfolio_pricer.adapters.data_sources.base import PriceSource
from portfolio_pricer.adapters.data_sources.coingecko import CoinGeckoSource
from portfolio_pricer.adapters.data_sources.danjuan import DanjuanFundNavSource
from portfolio_pricer.adapters.data_sources.iex import IexQuoteSource
from portfolio_pricer.core.config import Settings
from portfolio_pricer.services.data.snapshot_cache import SnapshotCache
from portfolio_pricer.services.data.timed_fetch import TimedFetcher
from portfolio_pricer.services.data.types import AssetType, PriceQuote


def last_path_segment(code: str) -> str:
    """Ticker part of a dotted code, e.g. NASDAQ.AAPL -> AAPL."""
    return code.split(".")[-1]


@dataclass(frozen=True)
class ChainLink:
    """One step of a fallback chain: a source and how to present the code to it."""
    source: PriceSource
    transform: Optional[Callable[[str], str]] = None

    def lookup(self, code: str) -> PriceQuote:
        key = self.transform(code) if self.transform else code
        return self.source.lookup(key)


class FallbackResolver:
    """Resolves a price by walking the asset type's declared source chain."""

    def __init__(self, chains: Dict[AssetType, Sequence[ChainLink]]):
        """
        Initialize resolver.

        Args:
            chains: Ordered chain of links per asset type
        """
        self.chains = {asset_type: list(links) for asset_type, links in chains.items()}

    def chain_for(self, asset_type: AssetType) -> List[ChainLink]:
        return self.chains.get(asset_type, [])

    def resolve(self, asset_type: Optional[AssetType], code: str) -> PriceQuote:
        """
        Resolve the latest price for an instrument.

        Args:
            asset_type: Asset type; None or an unmapped type yields not found
            code: Instrument code as written in the sheet

        Returns:
            First found quote from the chain, or PriceQuote.missing()
        """
        if asset_type is None:
            logger.warning(f"No price chain for unknown asset type (code={code})")
            return PriceQuote.missing()

        chain = self.chain_for(asset_type)
        for position, link in enumerate(chain, start=1):
            quote = link.lookup(code)
            if quote.found:
                logger.debug(
                    f"Resolved {code} via {link.source.name} "
                    f"({position}/{len(chain)}): {quote.value}"
                )
                return quote

        logger.debug(f"All {len(chain)} sources exhausted for {asset_type.name} {code}")
        return PriceQuote.missing()


def build_default_chains(
    fetcher: TimedFetcher,
    cache: SnapshotCache,
    settings: Settings
) -> Dict[AssetType, List[ChainLink]]:
    """
    Build the standard provider chains.

    Args:
        fetcher: Shared timed fetcher
        cache: Shared snapshot cache for listing providers
        settings: Gateway URL and third-party credentials

    Returns:
        Chain of links per asset type, in fallback order
    """
    gateway = settings.aktools_url

    return {
        AssetType.CRYPTO: [
            ChainLink(CoinGeckoSource(fetcher, api_key=settings.coingecko_api_key)),
        ],
        AssetType.HK_EQUITY: [
            ChainLink(StockHkHistMinSource(fetcher, gateway)),
        ],
        AssetType.US_EQUITY: [
            ChainLink(IexQuoteSource(fetcher, token=settings.iex_token), last_path_segment),
            ChainLink(StockUsHistMinSource(fetcher, gateway)),
        ],
        AssetType.CN_EQUITY: [
            ChainLink(StockZhASpotSource(fetcher, cache, gateway)),
        ],
        AssetType.FUND: [
            ChainLink(FundEtfCategorySinaSource(fetcher, cache, "ETF基金", gateway)),
            ChainLink(FundEtfCategorySinaSource(fetcher, cache, "LOF基金", gateway)),
            ChainLink(FundEtfCategorySinaSource(fetcher, cache, "封闭式基金", gateway)),
            ChainLink(FundEtfSpotEmSource(fetcher, cache, gateway)),
            ChainLink(FundLofSpotEmSource(fetcher, cache, gateway)),
            ChainLink(FundOpenFundInfoSource(fetcher, gateway)),
            ChainLink(DanjuanFundNavSource(fetcher)),
        ],
    }


def build_resolver(
    fetcher: TimedFetcher,
    cache: SnapshotCache,
    settings: Settings
) -> FallbackResolver:
    """Resolver wired with the standard provider chains."""
    return FallbackResolver(build_default_chains(fetcher, cache, settings))
