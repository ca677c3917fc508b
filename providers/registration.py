"""
Explicit provider registration.

register_default_providers() is called once at startup (see
providers.catalog.get_default_catalog). Importing this module has no
side effects.
"""

from providers.catalog import ProviderCatalog
from providers.clients import (
    BlockscoutApiClient,
    EtherscanApiClient,
    ThetaExplorerApiClient,
)
from providers.models import OperationType, ProviderDescriptor, RateLimitConfig


EVM_CAPABILITIES = frozenset({
    OperationType.GET_RAW_ADDRESS_TRANSACTIONS,
    OperationType.GET_RAW_ADDRESS_BALANCE,
    OperationType.GET_RAW_TOKEN_BALANCES,
})

ETHERSCAN_V2_URL = "https://api.etherscan.io/v2/api"

# source -> Blockscout instance
BLOCKSCOUT_URLS = {
    "ethereum": "https://eth.blockscout.com/api",
    "polygon": "https://polygon.blockscout.com/api",
}


def register_default_providers(catalog: ProviderCatalog) -> None:
    """Register every compiled-in provider."""
    for source, blockscout_url in BLOCKSCOUT_URLS.items():
        catalog.register(
            ProviderDescriptor(
                source=source,
                name="etherscan",
                display_name="Etherscan",
                capabilities=EVM_CAPABILITIES,
                default_rate_limit=RateLimitConfig(
                    requests_per_second=5,
                    burst_limit=5,
                    requests_per_hour=4000,
                ),
                base_url=ETHERSCAN_V2_URL,
                priority=1,
                requires_api_key=True,
                api_key_env="ETHERSCAN_API_KEY",
                timeout_seconds=15.0,
            ),
            EtherscanApiClient,
        )
        catalog.register(
            ProviderDescriptor(
                source=source,
                name="blockscout",
                display_name="Blockscout",
                capabilities=EVM_CAPABILITIES,
                default_rate_limit=RateLimitConfig(
                    requests_per_second=2,
                    burst_limit=3,
                    requests_per_minute=100,
                ),
                base_url=blockscout_url,
                priority=2,
                requires_api_key=False,
                timeout_seconds=30.0,
            ),
            BlockscoutApiClient,
        )

    catalog.register(
        ProviderDescriptor(
            source="theta",
            name="theta-explorer",
            display_name="Theta Explorer API",
            capabilities=frozenset({
                OperationType.GET_RAW_ADDRESS_TRANSACTIONS,
                OperationType.GET_RAW_ADDRESS_BALANCE,
            }),
            default_rate_limit=RateLimitConfig(
                requests_per_second=1,
                burst_limit=10,
                requests_per_minute=60,
                requests_per_hour=3600,
            ),
            base_url="https://explorer-api.thetatoken.org/api",
            priority=1,
            requires_api_key=False,
            timeout_seconds=10.0,
            retries=3,
        ),
        ThetaExplorerApiClient,
    )
