"""
Blockscout payload processor.

Blockscout serves the Etherscan-compatible account API, so bundles have
the same shape. Only the provider name differs. Transaction ids are keyed
by source, so a transaction fetched through either provider gets the
same id.
"""

from ingestion.processors.etherscan import EtherscanBundle, EtherscanProcessor


class BlockscoutProcessor(EtherscanProcessor):
    provider_name = "blockscout"
    schema = EtherscanBundle
