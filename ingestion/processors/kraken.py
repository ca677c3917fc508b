"""
Kraken ledger processor.

One payload is one row of a Kraken ledgers.csv export:

    txid, refid, time, type, subtype, aclass, asset, amount, fee, balance

Ledger rows are account-scoped, so no wallet filtering applies. The
sign of amount gives the direction; the stored amount is its magnitude.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.clock import to_utc
from ingestion.processors.base import BaseProcessor, non_zero
from ingestion.types import (
    Money,
    ProcessingContext,
    TransactionType,
    UniversalTransaction,
)


KRAKEN_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

ASSET_ALIASES = {
    "XXBT": "BTC",
    "XBT": "BTC",
    "XETH": "ETH",
    "XXRP": "XRP",
    "XLTC": "LTC",
    "XXDG": "DOGE",
    "XDG": "DOGE",
    "ZUSD": "USD",
    "ZEUR": "EUR",
    "ZGBP": "GBP",
    "ZCAD": "CAD",
}

LEDGER_TYPES = {
    "deposit": TransactionType.DEPOSIT,
    "withdrawal": TransactionType.WITHDRAWAL,
    "trade": TransactionType.TRADE,
    "spend": TransactionType.TRADE,
    "receive": TransactionType.TRADE,
    "staking": TransactionType.STAKING,
    "transfer": TransactionType.TRANSFER,
}


def normalize_asset(asset: str) -> str:
    """XXBT -> BTC, ETH.S -> ETH."""
    base = asset.split(".", 1)[0].upper()
    return ASSET_ALIASES.get(base, base)


class KrakenLedgerRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    txid: str = Field(min_length=1)
    refid: str = ""
    time: datetime
    type: str = Field(min_length=1)
    subtype: str = ""
    asset: str = Field(min_length=1)
    amount: Decimal
    fee: Decimal = Decimal(0)
    balance: Optional[Decimal] = None

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return datetime.strptime(value.strip(), KRAKEN_TIME_FORMAT)
            except ValueError:
                return value
        return value

    @field_validator("fee", mode="before")
    @classmethod
    def _blank_fee(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return "0"
        return value

    @field_validator("balance", mode="before")
    @classmethod
    def _blank_balance(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class KrakenLedgerProcessor(BaseProcessor[KrakenLedgerRow]):
    """Kraken ledger rows to universal transactions."""

    provider_name = "kraken"
    schema = KrakenLedgerRow

    def _transform(self, model: KrakenLedgerRow, context: ProcessingContext) -> List[UniversalTransaction]:
        currency = normalize_asset(model.asset)
        tx_type = LEDGER_TYPES.get(model.type.lower(), TransactionType.OTHER)

        return [
            UniversalTransaction(
                id=f"{self.provider_name}:{model.txid}",
                source=context.source_name,
                type=tx_type,
                amount=Money(currency, abs(model.amount)),
                fee=non_zero(currency, model.fee),
                timestamp=to_utc(model.time),
                metadata={
                    "refid": model.refid,
                    "ledger_type": model.type,
                    "subtype": model.subtype,
                    "direction": "in" if model.amount >= 0 else "out",
                    "asset": model.asset,
                },
            )
        ]
