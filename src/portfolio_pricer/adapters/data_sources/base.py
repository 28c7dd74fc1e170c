"""Base price source adapter interface.

Every provider adapter answers one question: given an instrument code, what
is its latest price? Adapters never raise for provider trouble; transport
failures, malformed payloads and missing rows all become a missing quote.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from loguru import logger

from portfolio_pricer.core.errors import NotFoundError, TransportError
from portfolio_pricer.services.data.snapshot_cache import SnapshotCache
from portfolio_pricer.services.data.timed_fetch import TimedFetcher
from portfolio_pricer.services.data.types import PriceQuote

# Payload shapes we cannot read are treated like a missing row
MALFORMED_PAYLOAD_ERRORS = (ValueError, KeyError, TypeError, IndexError, AttributeError)


class PriceSource(ABC):
    """Base class for all price source adapters."""

    def __init__(self, fetcher: TimedFetcher):
        self.fetcher = fetcher

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable provider name, used for logging and cache slots."""
        pass

    @abstractmethod
    def fetch_price(self, code: str) -> Any:
        """
        Fetch the raw latest price for a code.

        Args:
            code: Instrument code as the provider expects it

        Returns:
            Raw price value from the payload

        Raises:
            NotFoundError: If the provider has no row for the code
            TransportError: If the request failed after retries
        """
        pass

    def lookup(self, code: str) -> PriceQuote:
        """
        Look up the latest price for a code.

        Args:
            code: Instrument code

        Returns:
            Found quote, or PriceQuote.missing() on any provider failure
        """
        try:
            raw = self.fetch_price(code)
        except NotFoundError as e:
            logger.debug(f"{self.name}: no data for {code} ({e})")
            return PriceQuote.missing()
        except TransportError as e:
            logger.debug(f"{self.name}: request failed for {code}: {e}")
            return PriceQuote.missing()
        except MALFORMED_PAYLOAD_ERRORS as e:
            logger.debug(f"{self.name}: malformed response for {code}: {e!r}")
            return PriceQuote.missing()

        quote = PriceQuote.of(raw)
        if not quote.found:
            logger.debug(f"{self.name}: unusable price {raw!r} for {code}")
        return quote


class BulkSnapshotSource(PriceSource):
    """
    Source that downloads a whole market listing and scans it locally.

    The listing is kept in the snapshot cache for the cache TTL, so only the
    first lookup per TTL window costs a network call. Rows are matched on the
    code column either exactly or by substring (fund listings carry exchange
    prefixes such as "sh510300").
    """

    CODE_FIELD = "代码"
    PRICE_FIELD = "最新价"

    # "exact" or "contains"
    match = "exact"

    def __init__(self, fetcher: TimedFetcher, cache: SnapshotCache):
        super().__init__(fetcher)
        self.cache = cache

    @abstractmethod
    def snapshot_request(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        """Return (url, params) for the full listing."""
        pass

    def normalize_code(self, code: str) -> str:
        """Convert an instrument code to the form used in the listing."""
        return code.strip()

    def snapshot(self) -> pd.DataFrame:
        """Return the cached listing, downloading it on a cache miss."""
        cached = self.cache.get(self.name)
        if cached is not None:
            return cached

        url, params = self.snapshot_request()
        response = self.fetcher.fetch(url, params=params)
        frame = pd.DataFrame(response.json())
        self.cache.put(self.name, frame)
        logger.debug(f"{self.name}: cached snapshot with {len(frame)} rows")
        return frame

    def fetch_price(self, code: str) -> Any:
        frame = self.snapshot()
        key = self.normalize_code(code)
        if frame.empty:
            raise NotFoundError(f"{self.name} snapshot is empty")

        codes = frame[self.CODE_FIELD].astype(str)
        if self.match == "contains":
            mask = codes.str.contains(key, regex=False)
        else:
            mask = codes == key

        rows = frame[mask]
        if rows.empty:
            raise NotFoundError(f"{key} not in {self.name} snapshot")
        return rows.iloc[0][self.PRICE_FIELD]
