"""
Ingestion - Service Configuration.
"""

import os
from dataclasses import dataclass
from typing import Optional

from providers.config import load_environment
from providers.exceptions import ConfigurationError


@dataclass
class IngestionServiceConfig:
    """Configuration for the ingestion service."""

    # Cap on error messages kept in a ProcessResult; failures are still counted
    max_error_messages: int = 100

    # Size of import windows; None fetches the whole range at once.
    # Ignored for sources whose providers do not filter by time.
    window_days: Optional[int] = None

    # Network used when registering blockchain providers
    network: str = "mainnet"

    def __post_init__(self) -> None:
        if self.max_error_messages < 0:
            raise ConfigurationError(
                "max_error_messages must be >= 0",
                config_key="max_error_messages",
            )
        if self.window_days is not None and self.window_days <= 0:
            raise ConfigurationError(
                "window_days must be positive",
                config_key="window_days",
            )

    @classmethod
    def from_env(cls) -> "IngestionServiceConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - INGESTION_MAX_ERROR_MESSAGES
        - INGESTION_WINDOW_DAYS
        - INGESTION_NETWORK
        """
        load_environment()
        config = cls()

        if os.getenv("INGESTION_MAX_ERROR_MESSAGES"):
            config.max_error_messages = int(os.getenv("INGESTION_MAX_ERROR_MESSAGES"))
        if os.getenv("INGESTION_WINDOW_DAYS"):
            config.window_days = int(os.getenv("INGESTION_WINDOW_DAYS"))
        if os.getenv("INGESTION_NETWORK"):
            config.network = os.getenv("INGESTION_NETWORK")

        config.__post_init__()
        return config
