"""
Processor Tests.

Covers payload validation, transformation into universal transactions
and table-based dispatch.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ingestion.exceptions import ProcessorContractError, ValidationError
from ingestion.processors import (
    BlockscoutProcessor,
    EtherscanProcessor,
    KrakenLedgerProcessor,
    ProcessorFactory,
    ThetaExplorerProcessor,
)
from ingestion.types import (
    Money,
    ProcessingContext,
    TransactionStatus,
    TransactionType,
)
from providers.exceptions import (
    CatalogFrozenError,
    DuplicateProviderError,
    UnknownProviderError,
)


WALLET = "0x00000000000000000000000000000000000000aa"
OTHER = "0x00000000000000000000000000000000000000bb"
THIRD = "0x00000000000000000000000000000000000000cc"
ONE_ETHER = str(10 ** 18)


def context(source_name: str = "ethereum", *wallets: str) -> ProcessingContext:
    return ProcessingContext(
        source_name=source_name,
        wallet_addresses=frozenset(wallets or (WALLET,)),
    )


def entry(sender=WALLET, to=OTHER, value=ONE_ETHER, **overrides):
    data = {
        "hash": "0xABC",
        "blockNumber": "100",
        "timeStamp": "1700000000",
        "from": sender,
        "to": to,
        "value": value,
        "gasUsed": "21000",
        "gasPrice": "1000000000",
        "isError": "0",
    }
    data.update(overrides)
    return data


def bundle(normal=(), internal=()):
    return {"hash": "0xabc", "normal": list(normal), "internal": list(internal)}


# =============================================================================
# ETHERSCAN
# =============================================================================

class TestEtherscanProcessor:

    @pytest.fixture
    def processor(self):
        return EtherscanProcessor()

    def test_outgoing_is_withdrawal_with_fee(self, processor):
        [tx] = processor.transform(bundle(normal=[entry()]), context())

        assert tx.type == TransactionType.WITHDRAWAL
        assert tx.amount == Money("ETH", Decimal(1))
        assert tx.fee == Money("ETH", Decimal("0.000021"))
        assert tx.from_address == WALLET
        assert tx.to_address == OTHER
        assert tx.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert tx.status == TransactionStatus.SUCCESS
        assert tx.id == "ethereum:0xabc:normal:0"
        assert tx.metadata == {"hash": "0xABC", "block_number": 100, "entry_kind": "normal"}

    def test_incoming_is_deposit_without_fee(self, processor):
        [tx] = processor.transform(bundle(normal=[entry(sender=OTHER, to=WALLET)]), context())

        assert tx.type == TransactionType.DEPOSIT
        assert tx.fee is None

    def test_self_transfer(self, processor):
        [tx] = processor.transform(bundle(normal=[entry(to=WALLET)]), context())

        assert tx.type == TransactionType.TRANSFER

    def test_zero_value_outgoing_is_fee(self, processor):
        [tx] = processor.transform(bundle(normal=[entry(value="0")]), context())

        assert tx.type == TransactionType.FEE
        assert tx.amount.is_zero()
        assert tx.fee is not None

    def test_failed_entry(self, processor):
        [tx] = processor.transform(bundle(normal=[entry(isError="1")]), context())

        assert tx.status == TransactionStatus.FAILED

    def test_wallet_match_is_case_insensitive(self, processor):
        payload = bundle(normal=[entry(sender=WALLET.upper().replace("0X", "0x"))])

        assert len(processor.transform(payload, context())) == 1

    def test_unrelated_entries_skipped(self, processor):
        payload = bundle(normal=[entry(sender=OTHER, to=THIRD)])

        assert processor.transform(payload, context()) == []

    def test_internal_entries_follow_normal(self, processor):
        payload = bundle(
            normal=[entry(value="0")],
            internal=[entry(sender=OTHER, to=WALLET, value=str(2 * 10 ** 18))],
        )

        normal_tx, internal_tx = processor.transform(payload, context())

        assert normal_tx.id == "ethereum:0xabc:normal:0"
        assert internal_tx.id == "ethereum:0xabc:internal:0"
        assert internal_tx.type == TransactionType.DEPOSIT
        assert internal_tx.amount == Money("ETH", Decimal(2))
        assert internal_tx.fee is None

    def test_contract_creation_uses_contract_address(self, processor):
        payload = bundle(normal=[entry(to="", contractAddress=OTHER)])

        [tx] = processor.transform(payload, context())

        assert tx.to_address == OTHER

    def test_native_currency_follows_source(self, processor):
        [tx] = processor.transform(bundle(normal=[entry()]), context("polygon"))

        assert tx.amount.currency == "POL"
        assert tx.source == "polygon"

    def test_same_transaction_gets_one_id_across_providers(self):
        """A failover from Etherscan to Blockscout must not produce a second transaction."""
        factory = ProcessorFactory.with_defaults()
        payload = bundle(normal=[entry()], internal=[entry(sender=OTHER, to=WALLET)])

        via_etherscan = factory.dispatch("etherscan", payload, context())
        via_blockscout = factory.dispatch("blockscout", payload, context())

        assert [tx.id for tx in via_etherscan] == ["ethereum:0xabc:normal:0", "ethereum:0xabc:internal:0"]
        assert [tx.id for tx in via_blockscout] == [tx.id for tx in via_etherscan]
        assert via_blockscout == via_etherscan

    def test_validation_reports_field_paths(self, processor):
        bad = entry()
        del bad["from"]
        bad["value"] = "-1"

        result = processor.validate(bundle(normal=[bad]))

        assert not result.valid
        assert "normal.0.from: Field required" in result.errors
        assert any(error.startswith("normal.0.value:") for error in result.errors)

    def test_empty_bundle_invalid(self, processor):
        result = processor.validate(bundle())

        assert not result.valid
        assert result.errors[0].startswith("payload:")

    def test_transform_on_invalid_payload(self, processor):
        with pytest.raises(ProcessorContractError):
            processor.transform({"hash": "0x1"}, context())


# =============================================================================
# THETA
# =============================================================================

def theta_payload(inputs, outputs, tx_type=2, fee_tfuelwei="300000000000000000"):
    return {
        "hash": "0xTHETA",
        "type": tx_type,
        "block_height": "500",
        "timestamp": "1700000000",
        "data": {
            "fee": {"thetawei": "0", "tfuelwei": fee_tfuelwei},
            "inputs": [{"address": a, "coins": c} for a, c in inputs],
            "outputs": [{"address": a, "coins": c} for a, c in outputs],
        },
    }


def coins(theta=0, tfuel=0):
    return {"thetawei": str(theta * 10 ** 18), "tfuelwei": str(tfuel * 10 ** 18)}


class TestThetaExplorerProcessor:

    @pytest.fixture
    def processor(self):
        return ThetaExplorerProcessor()

    def test_one_transaction_per_currency(self, processor):
        payload = theta_payload(
            inputs=[(WALLET, coins(10, 5))],
            outputs=[(OTHER, coins(10, 5))],
        )

        theta_tx, tfuel_tx = processor.transform(payload, context("theta"))

        assert theta_tx.id == "theta:0xtheta:THETA"
        assert tfuel_tx.id == "theta:0xtheta:TFUEL"
        assert theta_tx.type == TransactionType.WITHDRAWAL
        assert theta_tx.amount == Money("THETA", Decimal(10))
        assert tfuel_tx.amount == Money("TFUEL", Decimal(5))
        assert theta_tx.fee == Money("TFUEL", Decimal("0.3"))
        assert tfuel_tx.fee is None
        assert theta_tx.metadata["block_height"] == 500

    def test_deposit_counts_only_tracked_outputs(self, processor):
        payload = theta_payload(
            inputs=[(OTHER, coins(3))],
            outputs=[(WALLET, coins(2)), (THIRD, coins(1))],
        )

        [tx] = processor.transform(payload, context("theta"))

        assert tx.type == TransactionType.DEPOSIT
        assert tx.amount == Money("THETA", Decimal(2))
        assert tx.fee is None

    def test_transfer_between_tracked_wallets(self, processor):
        payload = theta_payload(
            inputs=[(WALLET, coins(0, 4))],
            outputs=[(OTHER, coins(0, 4))],
        )

        [tx] = processor.transform(payload, context("theta", WALLET, OTHER))

        assert tx.type == TransactionType.TRANSFER
        assert tx.amount == Money("TFUEL", Decimal(4))

    def test_fee_only_send(self, processor):
        payload = theta_payload(
            inputs=[(WALLET, coins())],
            outputs=[(OTHER, coins())],
        )

        [tx] = processor.transform(payload, context("theta"))

        assert tx.type == TransactionType.FEE
        assert tx.id == "theta:0xtheta:fee"
        assert tx.fee == Money("TFUEL", Decimal("0.3"))

    def test_non_send_types_skipped(self, processor):
        payload = theta_payload(inputs=[], outputs=[(WALLET, coins(1))], tx_type=0)

        assert processor.validate(payload).valid
        assert processor.transform(payload, context("theta")) == []

    def test_missing_timestamp_invalid(self, processor):
        payload = theta_payload(inputs=[], outputs=[])
        del payload["timestamp"]

        result = processor.validate(payload)

        assert result.errors == ("timestamp: Field required",)


# =============================================================================
# KRAKEN
# =============================================================================

def ledger_row(**overrides):
    row = {
        "txid": "LTX-1",
        "refid": "REF-1",
        "time": "2024-03-01 12:30:00",
        "type": "withdrawal",
        "subtype": "",
        "aclass": "currency",
        "asset": "XXBT",
        "amount": "-0.5000000000",
        "fee": "0.0005000000",
        "balance": "1.2500000000",
    }
    row.update(overrides)
    return row


class TestKrakenLedgerProcessor:

    @pytest.fixture
    def processor(self):
        return KrakenLedgerProcessor()

    def test_withdrawal(self, processor):
        [tx] = processor.transform(ledger_row(), context("kraken"))

        assert tx.id == "kraken:LTX-1"
        assert tx.type == TransactionType.WITHDRAWAL
        assert tx.amount == Money("BTC", Decimal("0.5"))
        assert tx.fee == Money("BTC", Decimal("0.0005"))
        assert tx.timestamp == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert tx.metadata["direction"] == "out"
        assert tx.metadata["asset"] == "XXBT"

    def test_staking_suffix_stripped(self, processor):
        [tx] = processor.transform(
            ledger_row(type="staking", asset="ETH.S", amount="0.01", fee=""),
            context("kraken"),
        )

        assert tx.type == TransactionType.STAKING
        assert tx.amount.currency == "ETH"
        assert tx.fee is None
        assert tx.metadata["direction"] == "in"

    def test_unknown_ledger_type(self, processor):
        [tx] = processor.transform(ledger_row(type="adjustment"), context("kraken"))

        assert tx.type == TransactionType.OTHER

    def test_wallets_not_required(self, processor):
        ctx = ProcessingContext(source_name="kraken")

        assert len(processor.transform(ledger_row(), ctx)) == 1

    def test_bad_time_invalid(self, processor):
        result = processor.validate(ledger_row(time="01/03/2024"))

        assert not result.valid
        assert result.errors[0].startswith("time:")

    def test_blank_balance_allowed(self, processor):
        assert processor.validate(ledger_row(balance="")).valid


# =============================================================================
# FACTORY
# =============================================================================

class TestProcessorFactory:

    def test_defaults(self):
        factory = ProcessorFactory.with_defaults()

        assert factory.supported_providers() == ["blockscout", "etherscan", "kraken", "theta-explorer"]
        assert isinstance(factory.create("etherscan"), EtherscanProcessor)

    def test_instances_cached(self):
        factory = ProcessorFactory.with_defaults()

        assert factory.create("kraken") is factory.create("kraken")

    def test_unknown_provider(self):
        factory = ProcessorFactory.with_defaults()

        with pytest.raises(UnknownProviderError) as exc_info:
            factory.create("mystery")

        assert "etherscan" in exc_info.value.available

    def test_frozen(self):
        factory = ProcessorFactory.with_defaults()

        with pytest.raises(CatalogFrozenError):
            factory.register("custom", EtherscanProcessor)

    def test_duplicate(self):
        factory = ProcessorFactory()
        factory.register("etherscan", EtherscanProcessor)

        with pytest.raises(DuplicateProviderError):
            factory.register("etherscan", BlockscoutProcessor)

    def test_dispatch(self):
        factory = ProcessorFactory.with_defaults()

        transactions = factory.dispatch("etherscan", bundle(normal=[entry()]), context())

        assert [tx.id for tx in transactions] == ["ethereum:0xabc:normal:0"]

    def test_dispatch_invalid_payload(self):
        factory = ProcessorFactory.with_defaults()

        with pytest.raises(ValidationError) as exc_info:
            factory.dispatch("kraken", ledger_row(txid=""), context("kraken"))

        assert exc_info.value.provider_name == "kraken"
        assert exc_info.value.errors[0].startswith("txid:")
