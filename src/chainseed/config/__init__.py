"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryablePayloadError, RetryPolicy
from .ledger import KNOWN_NETWORKS, LedgerConfig, NetworkEndpoints, get_ledger_config
from .logging import configure_logging
from .provisioning import ProvisioningConfig, get_provisioning_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "KNOWN_NETWORKS",
    "ConfigurationError",
    "LedgerConfig",
    "MissingConfigurationError",
    "NetworkEndpoints",
    "ProvisioningConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "RetryablePayloadError",
    "StorageConfig",
    "configure_logging",
    "get_ledger_config",
    "get_provisioning_config",
    "get_storage_config",
    "require_env_vars",
]
