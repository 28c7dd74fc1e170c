"""Unit tests for the batch pricing run."""
import pytest
from unittest.mock import Mock, call

from portfolio_pricer.core.errors import NormalizationError
from portfolio_pricer.services.batch import BatchOrchestrator, BatchResult
from portfolio_pricer.services.data.exchange_rates import ExchangeRateTable
from portfolio_pricer.services.data.types import (
    AssetType,
    PriceQuote,
    RateRecord,
    ResultRecord,
    SheetRecord,
)


RATES = {"美元": 7.123, "港币": 0.911}


@pytest.fixture
def normalizer():
    normalizer = Mock()
    normalizer.resolve.return_value = ExchangeRateTable(RATES)
    return normalizer


@pytest.fixture
def resolver():
    prices = {"bitcoin": 66500.0, "00700": 380.4, "510300": 3.912}
    resolver = Mock()
    resolver.resolve.side_effect = lambda asset_type, code: PriceQuote.of(prices.get(code))
    return resolver


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def orchestrator(resolver, normalizer, sleep):
    return BatchOrchestrator(resolver, normalizer, request_delay=1.0, crypto_delay=3.0, sleep=sleep)


class TestBatchRun:
    """Test a full run over both sheets."""

    def test_prices_every_instrument_in_order(self, orchestrator, resolver, instrument_records, rate_records):
        """Test instruments are resolved one by one in sheet order."""
        # ACT
        result = orchestrator.run(instrument_records, rate_records)

        # ASSERT
        assert resolver.resolve.call_args_list == [
            call(AssetType.CRYPTO, "bitcoin"),
            call(AssetType.HK_EQUITY, "00700"),
            call(AssetType.FUND, "510300"),
        ]
        assert [r.instrument_id for r in result.prices] == ["rec1", "rec2", "rec3"]
        assert result.failed == []

    def test_applies_currency_multiplier(self, orchestrator, instrument_records, rate_records):
        """Test each price carries its quote currency's multiplier."""
        # ACT
        result = orchestrator.run(instrument_records, rate_records)

        # ASSERT
        by_id = {r.instrument_id: r for r in result.prices}
        assert by_id["rec1"] == ResultRecord("rec1", 66500.0, 7.123)
        assert by_id["rec2"].applied_multiplier == 0.911
        assert by_id["rec3"].applied_multiplier == 1.0
        assert by_id["rec2"].normalized_value == pytest.approx(380.4 * 0.911)

    def test_result_sheet_fields(self, orchestrator, instrument_records, rate_records):
        """Test price records are written with raw price and multiplier."""
        # ACT
        result = orchestrator.run(instrument_records, rate_records)

        # ASSERT
        assert result.prices[0].to_sheet_record() == SheetRecord(
            "rec1", {"new_price": 66500.0, "new_exchange_price": 7.123}
        )

    def test_rate_records_for_known_targets(self, orchestrator, rate_records):
        """Test each exchange-rate row gets its multiplier, CNY included."""
        # ACT
        result = orchestrator.run([], rate_records)

        # ASSERT
        assert result.rates == [
            RateRecord("rate1", 7.123),
            RateRecord("rate2", 0.911),
            RateRecord("rate3", 1.0),
        ]
        assert result.rates[0].to_sheet_record().fields == {"汇率（对人民币）": 7.123}

    def test_rate_rows_without_tag_are_ignored(self, orchestrator, normalizer):
        """Test untitled or unconfigured rate rows produce no record."""
        # ARRANGE
        rows = [SheetRecord("rate1", {}), SheetRecord("rate2", {"标题": "日元"})]

        # ACT
        result = orchestrator.run([], rows)

        # ASSERT
        assert result.rates == []
        targets = normalizer.resolve.call_args.args[0]
        assert [t.id for t in targets] == ["rate2"]

    def test_failed_lookup_is_skipped(self, orchestrator, rate_records):
        """Test an unresolved instrument is reported and not written."""
        # ARRANGE
        records = [
            SheetRecord("rec1", {"code": "delisted", "Type": "A股股票", "exchange_name": "人民币"}),
            SheetRecord("rec2", {"code": "00700", "Type": "港股股票", "exchange_name": "港币"}),
        ]

        # ACT
        result = orchestrator.run(records, rate_records)

        # ASSERT
        assert result.failed == ["rec1"]
        assert [r.instrument_id for r in result.prices] == ["rec2"]

    @pytest.mark.parametrize("missing", ["code", "Type", "exchange_name"])
    def test_record_missing_field_is_skipped(self, orchestrator, resolver, rate_records, missing):
        """Test records without a required column are never looked up."""
        # ARRANGE
        fields = {"code": "00700", "Type": "港股股票", "exchange_name": "港币"}
        del fields[missing]

        # ACT
        result = orchestrator.run([SheetRecord("rec1", fields)], rate_records)

        # ASSERT
        resolver.resolve.assert_not_called()
        assert result.prices == []
        assert result.failed == []

    def test_unknown_currency_uses_one(self, orchestrator, rate_records):
        """Test a currency with no configured rate is priced unconverted."""
        # ARRANGE
        records = [SheetRecord("rec1", {"code": "510300", "Type": "基金ETF", "exchange_name": "日元"})]

        # ACT
        result = orchestrator.run(records, rate_records)

        # ASSERT
        assert result.prices[0].applied_multiplier == 1.0


class TestNormalizationFailure:
    """Test the all-or-nothing exchange-rate gate."""

    def test_no_lookups_and_empty_result(self, orchestrator, resolver, normalizer, instrument_records, rate_records):
        """Test a failed rate table aborts before any instrument is priced."""
        # ARRANGE
        normalizer.resolve.side_effect = NormalizationError(["泰铢"])

        # ACT
        result = orchestrator.run(instrument_records, rate_records)

        # ASSERT
        assert result == BatchResult()
        assert result.empty
        resolver.resolve.assert_not_called()


class TestRateLimiting:
    """Test delays between lookups."""

    def test_delay_before_each_lookup(self, orchestrator, sleep, instrument_records, rate_records):
        """Test the fixed delay precedes every lookup and crypto waits longer."""
        # ACT
        orchestrator.run(instrument_records, rate_records)

        # ASSERT
        assert sleep.call_args_list == [call(1.0), call(3.0), call(1.0), call(1.0)]

    def test_skipped_records_do_not_wait(self, orchestrator, sleep, rate_records):
        """Test incomplete records are skipped without delay."""
        orchestrator.run([SheetRecord("rec1", {"code": "x"})], rate_records)
        sleep.assert_not_called()

    def test_delay_precedes_resolution(self, resolver, normalizer, instrument_records, rate_records):
        """Test sleep happens before the resolver is called."""
        # ARRANGE
        events = []
        resolver.resolve.side_effect = lambda asset_type, code: events.append(("resolve", code)) or PriceQuote.missing()
        orchestrator = BatchOrchestrator(
            resolver, normalizer, request_delay=0.5, crypto_delay=0,
            sleep=lambda seconds: events.append(("sleep", seconds))
        )

        # ACT
        orchestrator.run(instrument_records[1:2], rate_records)

        # ASSERT
        assert events == [("sleep", 0.5), ("resolve", "00700")]
