"""Application configuration helpers."""

from __future__ import annotations

from .audit import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_EXCLUDED_SERVER_NAMES,
    DEFAULT_EXPORT_SKEW,
    DEFAULT_HISTORY_SKEW,
    DEFAULT_IGNORED_ENTITY_IDS,
    AuditConfig,
    get_audit_config,
)
from .env import env_int, env_list, optional_env_var, require_env_vars
from .errors import ConfigurationError, InvalidServerAddressError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .replica import (
    RegistryConfig,
    get_registry_config,
    normalize_server_address,
    replica_resilience_config,
)
from .storage import OutputConfig, get_output_config

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_EXCLUDED_SERVER_NAMES",
    "DEFAULT_EXPORT_SKEW",
    "DEFAULT_HISTORY_SKEW",
    "DEFAULT_IGNORED_ENTITY_IDS",
    "AuditConfig",
    "ConfigurationError",
    "InvalidServerAddressError",
    "MissingConfigurationError",
    "OutputConfig",
    "RateLimit",
    "RegistryConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "env_int",
    "env_list",
    "get_audit_config",
    "get_output_config",
    "get_registry_config",
    "normalize_server_address",
    "optional_env_var",
    "replica_resilience_config",
    "require_env_vars",
]
