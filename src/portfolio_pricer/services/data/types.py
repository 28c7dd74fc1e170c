"""
Common types for price resolution.

Instruments and exchange-rate targets are read from the record store once per
run and never mutated. A PriceQuote is either found with a positive value or
missing; there is no sentinel price.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AssetType(Enum):
    """Asset type tag, as written in the portfolio sheet's Type column."""
    CRYPTO = "加密货币"
    HK_EQUITY = "港股股票"
    US_EQUITY = "美股股票"
    CN_EQUITY = "A股股票"
    FUND = "基金ETF"

    @classmethod
    def from_tag(cls, tag: str) -> Optional["AssetType"]:
        """Map a sheet tag to an AssetType, or None if the tag is unknown."""
        try:
            return cls(tag.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class PriceQuote:
    """Outcome of a single price lookup."""
    value: float = 0.0
    found: bool = False

    @classmethod
    def of(cls, value: Any) -> "PriceQuote":
        """
        Build a quote from a raw provider value.

        Anything that is not a finite positive number is a missing quote.
        """
        try:
            price = float(value)
        except (TypeError, ValueError):
            return cls.missing()
        if math.isnan(price) or math.isinf(price) or price <= 0:
            return cls.missing()
        return cls(value=price, found=True)

    @classmethod
    def missing(cls) -> "PriceQuote":
        return cls(value=0.0, found=False)


@dataclass(frozen=True)
class SheetRecord:
    """Raw record as stored in the sheet; record_id is echoed back on update."""
    record_id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {"recordId": self.record_id, "fields": dict(self.fields)}


@dataclass(frozen=True)
class Instrument:
    """One portfolio position to be priced."""
    id: str
    code: str
    asset_type_tag: str
    quote_currency_tag: str

    # Sheet column names
    CODE_FIELD = "code"
    TYPE_FIELD = "Type"
    CURRENCY_FIELD = "exchange_name"

    @property
    def asset_type(self) -> Optional[AssetType]:
        return AssetType.from_tag(self.asset_type_tag)

    @classmethod
    def missing_fields(cls, record: SheetRecord) -> List[str]:
        """Names of required columns that are empty in the record."""
        return [
            name for name in (cls.CODE_FIELD, cls.TYPE_FIELD, cls.CURRENCY_FIELD)
            if not record.fields.get(name)
        ]

    @classmethod
    def from_record(cls, record: SheetRecord) -> Optional["Instrument"]:
        """Parse a sheet record; returns None when a required column is empty."""
        if cls.missing_fields(record):
            return None
        return cls(
            id=record.record_id,
            code=str(record.fields[cls.CODE_FIELD]).strip(),
            asset_type_tag=str(record.fields[cls.TYPE_FIELD]).strip(),
            quote_currency_tag=str(record.fields[cls.CURRENCY_FIELD]).strip(),
        )


@dataclass(frozen=True)
class ExchangeRateTarget:
    """One row of the exchange-rate sheet, keyed by currency tag."""
    id: str
    currency_tag: str

    TAG_FIELD = "标题"

    @classmethod
    def from_record(cls, record: SheetRecord) -> Optional["ExchangeRateTarget"]:
        tag = record.fields.get(cls.TAG_FIELD)
        if not tag:
            return None
        return cls(id=record.record_id, currency_tag=str(tag).strip())


@dataclass(frozen=True)
class ResultRecord:
    """A successfully priced instrument."""
    instrument_id: str
    resolved_price: float
    applied_multiplier: float

    PRICE_FIELD = "new_price"
    MULTIPLIER_FIELD = "new_exchange_price"

    @property
    def normalized_value(self) -> float:
        """Price expressed in the reporting currency."""
        return self.resolved_price * self.applied_multiplier

    def to_sheet_record(self) -> SheetRecord:
        return SheetRecord(
            record_id=self.instrument_id,
            fields={
                self.PRICE_FIELD: self.resolved_price,
                self.MULTIPLIER_FIELD: self.applied_multiplier,
            },
        )


@dataclass(frozen=True)
class RateRecord:
    """A resolved multiplier for one exchange-rate target."""
    target_id: str
    multiplier: float

    RATE_FIELD = "汇率（对人民币）"

    def to_sheet_record(self) -> SheetRecord:
        return SheetRecord(
            record_id=self.target_id,
            fields={self.RATE_FIELD: self.multiplier},
        )
