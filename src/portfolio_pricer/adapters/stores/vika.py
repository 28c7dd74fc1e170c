"""
Vika datasheet record store.

Thin client over the Vika Fusion REST API:
- GET   /datasheets/{id}/records   paged read (pageNum / pageSize)
- PATCH /datasheets/{id}/records   update, at most 10 records per call

Fields are addressed by name. Record ids are echoed back unchanged.
"""

from typing import Any, Dict, List, Optional, Sequence

import requests
from loguru import logger

from portfolio_pricer.core.errors import StoreError
from portfolio_pricer.services.data.types import SheetRecord


MAX_PAGE_SIZE = 1000
MAX_UPDATE_BATCH = 10


def chunk(items: Sequence[Any], size: int) -> List[List[Any]]:
    """Split items into consecutive lists of at most size elements."""
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class VikaSheetStore:
    """One Vika datasheet."""

    BASE_URL = "https://api.vika.cn/fusion/v1"

    def __init__(
        self,
        token: str,
        datasheet_id: str,
        view_id: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize store.

        Args:
            token: Vika API token
            datasheet_id: Datasheet id ("dst...")
            view_id: Optional view id restricting the rows read
            base_url: Fusion API base URL
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        if not token:
            raise ValueError("Vika API token required. Set VIKA_TOKEN environment variable.")

        self.datasheet_id = datasheet_id
        self.view_id = view_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.session.close()
        return False

    @property
    def records_url(self) -> str:
        return f"{self.base_url}/datasheets/{self.datasheet_id}/records"

    def query_all(self, page_size: int = MAX_PAGE_SIZE) -> List[SheetRecord]:
        """
        Read every record of the datasheet.

        Args:
            page_size: Records per page (max 1000)

        Returns:
            All records, in sheet order

        Raises:
            StoreError: If the store is unreachable or rejects the request
        """
        records: List[SheetRecord] = []
        page_num = 1

        while True:
            params: Dict[str, Any] = {
                "pageNum": page_num,
                "pageSize": min(page_size, MAX_PAGE_SIZE),
                "fieldKey": "name",
            }
            if self.view_id:
                params["viewId"] = self.view_id

            data = self._request("GET", self.records_url, params=params)
            page = data.get("records") or []
            records.extend(
                SheetRecord(record_id=item["recordId"], fields=item.get("fields") or {})
                for item in page
            )

            total = data.get("total", len(records))
            if not page or len(records) >= total:
                break
            page_num += 1

        logger.debug(f"Read {len(records)} records from {self.datasheet_id}")
        return records

    def update(self, records: Sequence[SheetRecord], chunk_size: int = MAX_UPDATE_BATCH) -> int:
        """
        Update records in chunks the store accepts.

        Args:
            records: Records to write; record ids must exist in the sheet
            chunk_size: Records per request (capped at 10)

        Returns:
            Number of records written

        Raises:
            StoreError: On the first rejected chunk; earlier chunks stay written
        """
        written = 0
        for batch in chunk(records, min(chunk_size, MAX_UPDATE_BATCH)):
            self._request(
                "PATCH",
                self.records_url,
                json={
                    "records": [record.to_payload() for record in batch],
                    "fieldKey": "name",
                },
            )
            written += len(batch)

        logger.info(f"Updated {written} records in {self.datasheet_id}")
        return written

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreError(f"Vika {method} {self.datasheet_id} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success", False):
            message = body.get("message") or response.text[:200]
            raise StoreError(
                f"Vika {method} {self.datasheet_id} rejected "
                f"(HTTP {response.status_code}): {message}",
                status=body.get("code", response.status_code),
            )
        return body.get("data") or {}
