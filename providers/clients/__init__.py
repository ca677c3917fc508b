"""
API client implementations.
"""

from providers.clients.blockscout import BlockscoutApiClient
from providers.clients.etherscan import EtherscanApiClient, EtherscanCompatibleClient
from providers.clients.theta_explorer import ThetaExplorerApiClient

__all__ = [
    "EtherscanCompatibleClient",
    "EtherscanApiClient",
    "BlockscoutApiClient",
    "ThetaExplorerApiClient",
]
