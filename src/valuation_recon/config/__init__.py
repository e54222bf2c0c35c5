"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_float, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .reconciliation import ReconciliationConfig, get_reconciliation_config
from .storage import DatabaseConfig, data_dir, get_database_config
from .valuation_provider import ValuationProviderConfig, get_valuation_provider_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "ValuationProviderConfig",
    "configure_logging",
    "data_dir",
    "get_database_config",
    "get_reconciliation_config",
    "get_valuation_provider_config",
    "optional_float",
    "require_env_vars",
]
