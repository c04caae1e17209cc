"""Configuration, cache and run context."""

from settings.cache import (
    CACHE_FILENAME,
    read_cached_next_reference_id,
    remove_cache,
    write_cached_next_reference_id,
)
from settings.config import (
    BreadlogConfig,
    ConfigError,
    LogMacro,
    RustConfig,
    load_config,
)
from settings.context import Context

__all__ = [
    "CACHE_FILENAME",
    "BreadlogConfig",
    "ConfigError",
    "Context",
    "LogMacro",
    "RustConfig",
    "load_config",
    "read_cached_next_reference_id",
    "remove_cache",
    "write_cached_next_reference_id",
]
