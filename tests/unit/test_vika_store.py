"""Unit tests for the Vika datasheet store."""
import pytest
from unittest.mock import Mock
import requests

from portfolio_pricer.adapters.stores.vika import VikaSheetStore, chunk
from portfolio_pricer.core.errors import StoreError
from portfolio_pricer.services.data.types import SheetRecord


def _page(records, total, success=True):
    return {
        "success": success,
        "code": 200,
        "message": "SUCCESS",
        "data": {"total": total, "pageNum": 1, "pageSize": len(records), "records": records},
    }


@pytest.fixture
def session():
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def store(session):
    return VikaSheetStore(token="uskTEST", datasheet_id="dstTEST", view_id="viwTEST", session=session)


class TestChunk:
    """Test batch splitting."""

    def test_splits_preserving_order(self):
        """Test 23 items split into 10/10/3."""
        batches = chunk(list(range(23)), 10)
        assert [len(b) for b in batches] == [10, 10, 3]
        assert sum(batches, []) == list(range(23))

    def test_empty_input(self):
        """Test no items yield no batches."""
        assert chunk([], 10) == []

    def test_rejects_non_positive_size(self):
        """Test size must be positive."""
        with pytest.raises(ValueError):
            chunk([1, 2], 0)


class TestVikaSheetStoreInit:
    """Test store construction."""

    def test_requires_token(self, session):
        """Test missing token is rejected."""
        with pytest.raises(ValueError, match="VIKA_TOKEN"):
            VikaSheetStore(token="", datasheet_id="dstTEST", session=session)

    def test_sets_bearer_auth(self, store, session):
        """Test token is sent as a bearer header."""
        assert session.headers["Authorization"] == "Bearer uskTEST"
        assert store.records_url == "https://api.vika.cn/fusion/v1/datasheets/dstTEST/records"

    def test_context_closes_session(self, store, session):
        """Test leaving the context closes the session."""
        with store:
            pass
        session.close.assert_called_once()


class TestQueryAll:
    """Test paged reads."""

    def test_single_page(self, store, session, make_response):
        """Test records are parsed with ids and fields."""
        # ARRANGE
        session.request.return_value = make_response(_page([
            {"recordId": "rec1", "fields": {"code": "bitcoin", "Type": "加密货币"}},
            {"recordId": "rec2"},
        ], total=2))

        # ACT
        records = store.query_all()

        # ASSERT
        assert records == [
            SheetRecord("rec1", {"code": "bitcoin", "Type": "加密货币"}),
            SheetRecord("rec2", {}),
        ]
        method, url = session.request.call_args.args
        assert method == "GET"
        assert session.request.call_args.kwargs["params"] == {
            "pageNum": 1,
            "pageSize": 1000,
            "fieldKey": "name",
            "viewId": "viwTEST",
        }

    def test_follows_pages_until_total(self, store, session, make_response):
        """Test pages are requested until the total is reached."""
        # ARRANGE
        session.request.side_effect = [
            make_response(_page([{"recordId": f"rec{i}"} for i in range(2)], total=5)),
            make_response(_page([{"recordId": f"rec{i}"} for i in range(2, 4)], total=5)),
            make_response(_page([{"recordId": "rec4"}], total=5)),
        ]

        # ACT
        records = store.query_all(page_size=2)

        # ASSERT
        assert [r.record_id for r in records] == [f"rec{i}" for i in range(5)]
        pages = [call.kwargs["params"]["pageNum"] for call in session.request.call_args_list]
        assert pages == [1, 2, 3]

    def test_stops_on_empty_page(self, store, session, make_response):
        """Test an empty page ends the read even if total says more."""
        # ARRANGE
        session.request.side_effect = [
            make_response(_page([{"recordId": "rec0"}], total=10)),
            make_response(_page([], total=10)),
        ]

        # ACT
        records = store.query_all(page_size=1)

        # ASSERT
        assert len(records) == 1
        assert session.request.call_count == 2

    def test_omits_view_when_unset(self, session, make_response):
        """Test viewId is only sent when configured."""
        # ARRANGE
        session.request.return_value = make_response(_page([], total=0))
        store = VikaSheetStore(token="uskTEST", datasheet_id="dstRATE", session=session)

        # ACT
        store.query_all()

        # ASSERT
        assert "viewId" not in session.request.call_args.kwargs["params"]


class TestUpdate:
    """Test chunked writes."""

    def test_23_records_written_in_three_calls(self, store, session, make_response):
        """Test updates go out in chunks of 10, 10 and 3 with ids preserved."""
        # ARRANGE
        session.request.return_value = make_response({"success": True, "code": 200, "data": {}})
        records = [SheetRecord(f"rec{i}", {"new_price": float(i)}) for i in range(23)]

        # ACT
        written = store.update(records)

        # ASSERT
        assert written == 23
        assert session.request.call_count == 3
        bodies = [call.kwargs["json"] for call in session.request.call_args_list]
        assert [len(b["records"]) for b in bodies] == [10, 10, 3]
        sent_ids = [r["recordId"] for b in bodies for r in b["records"]]
        assert sent_ids == [f"rec{i}" for i in range(23)]
        assert bodies[2]["records"][0] == {"recordId": "rec20", "fields": {"new_price": 20.0}}
        assert all(b["fieldKey"] == "name" for b in bodies)
        assert all(call.args[0] == "PATCH" for call in session.request.call_args_list)

    def test_chunk_size_is_capped(self, store, session, make_response):
        """Test chunks never exceed the store limit."""
        # ARRANGE
        session.request.return_value = make_response({"success": True, "data": {}})

        # ACT
        store.update([SheetRecord(f"rec{i}", {}) for i in range(12)], chunk_size=50)

        # ASSERT
        assert session.request.call_count == 2

    def test_nothing_to_write(self, store, session):
        """Test an empty update issues no requests."""
        assert store.update([]) == 0
        session.request.assert_not_called()


class TestErrors:
    """Test store failures."""

    def test_http_error_raises_store_error(self, store, session, make_response):
        """Test HTTP errors surface with their status."""
        # ARRANGE
        session.request.return_value = make_response(
            {"success": False, "code": 401, "message": "Unauthorized"}, status_code=401
        )

        # ACT & ASSERT
        with pytest.raises(StoreError, match="Unauthorized") as exc_info:
            store.query_all()
        assert exc_info.value.status == 401

    def test_unsuccessful_body_raises_store_error(self, store, session, make_response):
        """Test success=false on HTTP 200 is a failure."""
        # ARRANGE
        session.request.return_value = make_response(
            {"success": False, "code": 429, "message": "rate limited"}
        )

        # ACT & ASSERT
        with pytest.raises(StoreError) as exc_info:
            store.update([SheetRecord("rec1", {})])
        assert exc_info.value.status == 429

    def test_connection_error_raises_store_error(self, store, session):
        """Test network failures become StoreError."""
        # ARRANGE
        session.request.side_effect = requests.ConnectionError("unreachable")

        # ACT & ASSERT
        with pytest.raises(StoreError, match="unreachable"):
            store.query_all()

    def test_failed_chunk_stops_update(self, store, session, make_response):
        """Test earlier chunks stay written and later ones are not sent."""
        # ARRANGE
        session.request.side_effect = [
            make_response({"success": True, "data": {}}),
            make_response({"success": False, "code": 500, "message": "boom"}, status_code=500),
        ]
        records = [SheetRecord(f"rec{i}", {}) for i in range(25)]

        # ACT & ASSERT
        with pytest.raises(StoreError):
            store.update(records)
        assert session.request.call_count == 2
