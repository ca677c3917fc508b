"""
Provider Configuration.

============================================================
RESPONSIBILITY
============================================================
Turns per-source provider settings into plain structured input for the
provider manager.

- Per provider: enabled flag, API key, rate limit override, priority
- Overrides are merged over each descriptor's compiled-in defaults
- API keys fall back to environment variables (.env via python-dotenv)

============================================================
FILE FORMAT (YAML or JSON)
============================================================
ethereum:
  default_enabled: [etherscan, blockscout]
  overrides:
    etherscan:
      api_key: "..."
      rate_limit:
        requests_per_second: 3
        burst_limit: 3
    blockscout:
      enabled: false

============================================================
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

from providers.exceptions import ConfigurationError
from providers.models import ProviderDescriptor, RateLimitConfig


logger = logging.getLogger(__name__)

_env_loaded = False


def load_environment() -> None:
    """Load .env into the process environment once."""
    global _env_loaded
    if not _env_loaded:
        load_dotenv()
        _env_loaded = True


# ============================================================
# PER-PROVIDER SETTINGS
# ============================================================

@dataclass(frozen=True)
class ProviderSettings:
    """Settings for one provider of one source."""
    enabled: Optional[bool] = None
    api_key: Optional[str] = None
    rate_limit: Optional[dict[str, Any]] = None
    priority: Optional[int] = None
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderSettings":
        allowed = {"enabled", "api_key", "rate_limit", "priority", "timeout_seconds"}
        unknown = set(data) - allowed
        if unknown:
            raise ConfigurationError(
                f"Unknown provider settings: {sorted(unknown)}",
                config_key=",".join(sorted(unknown)),
            )
        return cls(
            enabled=data.get("enabled"),
            api_key=data.get("api_key"),
            rate_limit=data.get("rate_limit"),
            priority=data.get("priority"),
            timeout_seconds=data.get("timeout_seconds"),
        )


@dataclass(frozen=True)
class SourceConfig:
    """Provider settings of one blockchain or exchange."""
    default_enabled: Optional[tuple[str, ...]] = None
    overrides: dict[str, ProviderSettings] = field(default_factory=dict)

    def is_enabled(self, provider_name: str) -> bool:
        settings = self.overrides.get(provider_name)
        if settings is not None and settings.enabled is not None:
            return settings.enabled
        if self.default_enabled is None:
            return True
        return provider_name in self.default_enabled

    def settings_for(self, provider_name: str) -> ProviderSettings:
        return self.overrides.get(provider_name, ProviderSettings())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceConfig":
        default_enabled = data.get("default_enabled")
        overrides = {
            name: ProviderSettings.from_dict(settings or {})
            for name, settings in (data.get("overrides") or {}).items()
        }
        return cls(
            default_enabled=tuple(default_enabled) if default_enabled is not None else None,
            overrides=overrides,
        )


# ============================================================
# EXPLORER CONFIG
# ============================================================

@dataclass(frozen=True)
class ExplorerConfig:
    """Provider settings for every source."""
    sources: dict[str, SourceConfig] = field(default_factory=dict)

    def for_source(self, source: str) -> SourceConfig:
        return self.sources.get(source, SourceConfig())

    def api_key_for(self, descriptor: ProviderDescriptor) -> Optional[str]:
        """Configured key, else the descriptor's environment variable."""
        settings = self.for_source(descriptor.source).settings_for(descriptor.name)
        return settings.api_key or os.getenv(descriptor.env_var) or None

    def credentials_for(
        self,
        descriptors: list[ProviderDescriptor],
    ) -> dict[str, Optional[str]]:
        return {d.name: self.api_key_for(d) for d in descriptors}

    def rate_limit_for(self, descriptor: ProviderDescriptor) -> RateLimitConfig:
        """Descriptor default with the configured override merged over it."""
        settings = self.for_source(descriptor.source).settings_for(descriptor.name)
        try:
            return descriptor.default_rate_limit.merged(settings.rate_limit)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid rate limit override: {e}",
                config_key=f"{descriptor.source}.overrides.{descriptor.name}.rate_limit",
                provider_name=descriptor.name,
                source=descriptor.source,
            ) from e

    # ---------------------------------------------------------
    # Loading
    # ---------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ExplorerConfig":
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError("Provider config must be a mapping of sources")
        return cls(sources={
            source: SourceConfig.from_dict(source_data or {})
            for source, source_data in data.items()
        })

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ExplorerConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        logger.info(f"Loaded provider config from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ExplorerConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"Loaded provider config from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path, None]) -> "ExplorerConfig":
        """Load by extension; a missing path yields an empty config."""
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            logger.warning(f"Provider config {path} not found, using defaults")
            return cls()
        if path.suffix.lower() == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)


# ============================================================
# MANAGER CONFIG
# ============================================================

@dataclass(frozen=True)
class ProviderManagerConfig:
    """
    Resilience tuning for the provider manager.

    parallel_failover is a placeholder switch for racing providers
    concurrently. Only sequential failover is implemented; enabling the
    switch is rejected rather than silently ignored.
    """
    failure_threshold: int = 5
    base_cooldown_seconds: float = 30.0
    max_cooldown_seconds: float = 600.0
    backoff_multiplier: float = 2.0
    request_timeout_seconds: Optional[float] = None
    max_wait_seconds: float = 30.0
    parallel_failover: bool = False

    def __post_init__(self) -> None:
        if self.parallel_failover:
            raise ConfigurationError(
                "parallel_failover is not supported; providers are tried sequentially",
                config_key="parallel_failover",
            )
        if self.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be >= 1", config_key="failure_threshold")
        if self.max_wait_seconds < 0:
            raise ConfigurationError("max_wait_seconds must be >= 0", config_key="max_wait_seconds")

    @classmethod
    def from_env(cls) -> "ProviderManagerConfig":
        """
        Load from environment variables.

        Environment variables:
        - PROVIDER_FAILURE_THRESHOLD
        - PROVIDER_COOLDOWN_SECONDS
        - PROVIDER_MAX_COOLDOWN_SECONDS
        - PROVIDER_REQUEST_TIMEOUT_SECONDS
        - PROVIDER_MAX_WAIT_SECONDS
        """
        load_environment()
        timeout = os.getenv("PROVIDER_REQUEST_TIMEOUT_SECONDS")
        return cls(
            failure_threshold=int(os.getenv("PROVIDER_FAILURE_THRESHOLD", "5")),
            base_cooldown_seconds=float(os.getenv("PROVIDER_COOLDOWN_SECONDS", "30")),
            max_cooldown_seconds=float(os.getenv("PROVIDER_MAX_COOLDOWN_SECONDS", "600")),
            request_timeout_seconds=float(timeout) if timeout else None,
            max_wait_seconds=float(os.getenv("PROVIDER_MAX_WAIT_SECONDS", "30")),
        )
