"""
Blockscout API Client - Etherscan-compatible explorer, no API key.

Serves as the keyless fallback behind Etherscan. Payloads have the same
shape, so the Etherscan bundle format applies unchanged.
"""

from providers.clients.etherscan import EtherscanCompatibleClient


class BlockscoutApiClient(EtherscanCompatibleClient):
    """Blockscout instance for one chain (the base URL selects the chain)."""

    # Blockscout answers large pages slowly; smaller pages keep requests under the timeout
    PAGE_SIZE = 500
