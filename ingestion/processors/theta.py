"""
Theta Explorer payload processor.

Each payload is one /accounttx entry:

    {"hash": "0x..", "type": 2, "block_height": "123", "timestamp": "1700000000",
     "data": {"fee": {"thetawei": "0", "tfuelwei": "..."},
              "inputs": [{"address": "0x..", "coins": {"thetawei": "..", "tfuelwei": ".."}}],
              "outputs": [{"address": "0x..", "coins": {...}}]}}

Send transactions carry two currencies. One universal transaction is
produced per currency with a non-zero amount for the tracked wallet.
Other transaction types (coinbase, staking, contract calls) are skipped.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ingestion.processors.base import BaseProcessor, non_zero
from ingestion.types import (
    Money,
    ProcessingContext,
    TransactionType,
    UniversalTransaction,
)


logger = logging.getLogger(__name__)


WEI_PER_TOKEN = Decimal(10) ** 18

SEND_TX_TYPE = 2

# payload coin field -> currency
CURRENCIES = (("thetawei", "THETA"), ("tfuelwei", "TFUEL"))


class ThetaCoins(BaseModel):
    thetawei: Decimal = Field(default=Decimal(0), ge=0)
    tfuelwei: Decimal = Field(default=Decimal(0), ge=0)


class ThetaAccountCoins(BaseModel):
    address: str = Field(min_length=1)
    coins: ThetaCoins = ThetaCoins()


class ThetaTxData(BaseModel):
    model_config = ConfigDict(extra="allow")

    fee: Optional[ThetaCoins] = None
    inputs: List[ThetaAccountCoins] = []
    outputs: List[ThetaAccountCoins] = []


class ThetaTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    hash: str = Field(min_length=1)
    type: int
    block_height: Optional[int] = None
    timestamp: int
    data: ThetaTxData = ThetaTxData()


class ThetaExplorerProcessor(BaseProcessor[ThetaTransaction]):
    """Theta send transactions to universal transactions."""

    provider_name = "theta-explorer"
    schema = ThetaTransaction

    def _transform(self, model: ThetaTransaction, context: ProcessingContext) -> List[UniversalTransaction]:
        if model.type != SEND_TX_TYPE:
            logger.debug(f"[{self.provider_name}] {model.hash} has type {model.type}, skipped")
            return []

        wallets = {address.lower() for address in context.wallet_addresses}
        inputs = model.data.inputs
        outputs = model.data.outputs

        outgoing = any(entry.address.lower() in wallets for entry in inputs)
        incoming = any(entry.address.lower() in wallets for entry in outputs)
        if not (outgoing or incoming):
            return []

        if outgoing and incoming:
            tx_type = TransactionType.TRANSFER
            selected = outputs
        elif outgoing:
            tx_type = TransactionType.WITHDRAWAL
            selected = [entry for entry in outputs if entry.address.lower() not in wallets]
        else:
            tx_type = TransactionType.DEPOSIT
            selected = [entry for entry in outputs if entry.address.lower() in wallets]

        fee = None
        if outgoing and model.data.fee is not None:
            fee = non_zero("TFUEL", model.data.fee.tfuelwei / WEI_PER_TOKEN)

        from_address = inputs[0].address.lower() if inputs else None
        to_address = outputs[0].address.lower() if outputs else None
        timestamp = datetime.fromtimestamp(model.timestamp, tz=timezone.utc)

        transactions = []
        for field_name, currency in CURRENCIES:
            amount = sum(
                (getattr(entry.coins, field_name) for entry in selected),
                Decimal(0),
            ) / WEI_PER_TOKEN
            if amount == 0:
                continue
            transactions.append(
                UniversalTransaction(
                    id=f"{context.source_name}:{model.hash.lower()}:{currency}",
                    source=context.source_name,
                    type=tx_type,
                    amount=Money(currency, amount),
                    # fee belongs to the transaction once, on the first currency
                    fee=fee if not transactions else None,
                    from_address=from_address,
                    to_address=to_address,
                    timestamp=timestamp,
                    metadata={"hash": model.hash, "block_height": model.block_height},
                )
            )

        if not transactions and fee is not None:
            transactions.append(
                UniversalTransaction(
                    id=f"{context.source_name}:{model.hash.lower()}:fee",
                    source=context.source_name,
                    type=TransactionType.FEE,
                    amount=Money("TFUEL", Decimal(0)),
                    fee=fee,
                    from_address=from_address,
                    to_address=to_address,
                    timestamp=timestamp,
                    metadata={"hash": model.hash, "block_height": model.block_height},
                )
            )
        return transactions
