"""
Etherscan-compatible payload processor.

Input is one bundle per transaction hash, as produced by the Etherscan
and Blockscout clients:

    {"hash": "0x..", "normal": [txlist entries], "internal": [txlistinternal entries]}

Normal entries come first, then internal ones, each in source order.
Values are in wei. The gas fee of a normal entry is charged to the
sender, so it only appears on transactions sent by a tracked wallet.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ingestion.processors.base import BaseProcessor, non_zero
from ingestion.types import (
    Money,
    ProcessingContext,
    TransactionStatus,
    TransactionType,
    UniversalTransaction,
)


logger = logging.getLogger(__name__)


WEI_PER_ETHER = Decimal(10) ** 18

NATIVE_CURRENCIES = {
    "ethereum": "ETH",
    "polygon": "POL",
}


class EtherscanEntry(BaseModel):
    """A txlist / txlistinternal row. Numbers arrive as strings."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    hash: str = Field(min_length=1)
    blockNumber: int
    timeStamp: int
    from_address: str = Field(alias="from")
    to: Optional[str] = None
    value: Decimal = Field(ge=0)
    gasUsed: Decimal = Decimal(0)
    gasPrice: Decimal = Decimal(0)
    isError: str = "0"
    contractAddress: Optional[str] = None


class EtherscanBundle(BaseModel):
    model_config = ConfigDict(extra="allow")

    hash: str = Field(min_length=1)
    normal: List[EtherscanEntry] = []
    internal: List[EtherscanEntry] = []

    @model_validator(mode="after")
    def _has_entries(self) -> "EtherscanBundle":
        if not self.normal and not self.internal:
            raise ValueError("bundle has no normal or internal entries")
        return self


class EtherscanProcessor(BaseProcessor[EtherscanBundle]):
    """Etherscan bundles to universal transactions."""

    provider_name = "etherscan"
    schema = EtherscanBundle

    def _transform(self, model: EtherscanBundle, context: ProcessingContext) -> List[UniversalTransaction]:
        wallets = {address.lower() for address in context.wallet_addresses}
        currency = NATIVE_CURRENCIES.get(context.source_name, "ETH")

        transactions = []
        for kind, entries in (("normal", model.normal), ("internal", model.internal)):
            for index, entry in enumerate(entries):
                tx = self._entry_to_transaction(entry, kind, index, model.hash, wallets, currency, context)
                if tx is not None:
                    transactions.append(tx)

        if not transactions:
            logger.debug(f"[{self.provider_name}] {model.hash} does not touch a tracked wallet")
        return transactions

    def _entry_to_transaction(
        self,
        entry: EtherscanEntry,
        kind: str,
        index: int,
        bundle_hash: str,
        wallets: set[str],
        currency: str,
        context: ProcessingContext,
    ) -> Optional[UniversalTransaction]:
        sender = entry.from_address.lower()
        recipient = (entry.to or entry.contractAddress or "").lower() or None

        outgoing = sender in wallets
        incoming = recipient is not None and recipient in wallets
        if not (outgoing or incoming):
            return None

        value = entry.value / WEI_PER_ETHER
        fee = None
        if kind == "normal" and outgoing:
            fee = non_zero(currency, entry.gasUsed * entry.gasPrice / WEI_PER_ETHER)

        if outgoing and incoming:
            tx_type = TransactionType.TRANSFER
        elif outgoing:
            tx_type = TransactionType.FEE if value == 0 else TransactionType.WITHDRAWAL
        else:
            tx_type = TransactionType.DEPOSIT

        return UniversalTransaction(
            id=f"{context.source_name}:{bundle_hash.lower()}:{kind}:{index}",
            source=context.source_name,
            type=tx_type,
            amount=Money(currency, value),
            fee=fee,
            from_address=sender,
            to_address=recipient,
            timestamp=datetime.fromtimestamp(entry.timeStamp, tz=timezone.utc),
            status=TransactionStatus.FAILED if entry.isError == "1" else TransactionStatus.SUCCESS,
            metadata={
                "hash": entry.hash,
                "block_number": entry.blockNumber,
                "entry_kind": kind,
            },
        )
