"""Per-invocation state shared by the check and generate commands."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from settings.cache import read_cached_next_reference_id
from settings.config import BreadlogConfig, load_config

logger = logging.getLogger(__name__)


@dataclass
class Context:
    """Loaded configuration plus the run flags.

    ``cached_next_reference_id`` is only populated when caching is enabled
    and the run isn't in check mode.
    """

    config: BreadlogConfig
    config_dir: Path
    check_mode: bool = False
    stop_event: threading.Event = field(default_factory=threading.Event)
    cached_next_reference_id: int | None = None

    @classmethod
    def from_file(cls, config_path: Path, *, check_mode: bool = False) -> Context:
        """Load the config at ``config_path`` and read the cache beside it.

        Raises:
            ConfigError: If the configuration cannot be loaded.
        """
        config = load_config(config_path)
        config_dir = config_path.resolve().parent

        cached = None
        if config.cache and not check_mode:
            cached = read_cached_next_reference_id(config_dir)

        logger.debug("Loaded configuration from %s", config_path)
        return cls(
            config=config,
            config_dir=config_dir,
            check_mode=check_mode,
            cached_next_reference_id=cached,
        )

    @property
    def source_dir(self) -> Path:
        return self.config.source_dir

    def stop_requested(self) -> bool:
        return self.stop_event.is_set()


__all__ = ["Context"]
