"""Persisted next reference ID (``Breadlog.lock``)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, Field

from parse.models import MAX_REFERENCE_ID

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CACHE_FILENAME = "Breadlog.lock"
CACHE_BANNER = (
    "# This file is automatically @generated by Breadlog.\n"
    "# It is not intended for manual editing.\n"
)


class CacheRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    next_reference_id: int = Field(ge=0, le=MAX_REFERENCE_ID)


def cache_path(config_dir: Path) -> Path:
    return config_dir / CACHE_FILENAME


def read_cached_next_reference_id(config_dir: Path) -> int | None:
    """Return the cached next reference ID, or None on a miss.

    A missing file is a miss. An unreadable or malformed file is logged and
    also treated as a miss.
    """
    path = cache_path(config_dir)
    if not path.is_file():
        return None

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        record = CacheRecord.model_validate(data)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.warning("Failed to read cache file %s: %s", path, exc)
        return None
    except ValueError as exc:
        logger.warning("Ignoring malformed cache file %s: %s", path, exc)
        return None

    return record.next_reference_id


def write_cached_next_reference_id(config_dir: Path, next_reference_id: int) -> bool:
    """Write the cache file; failures are logged and reported as False."""
    path = cache_path(config_dir)
    try:
        record = CacheRecord(next_reference_id=next_reference_id)
    except ValueError as exc:
        logger.error("Not caching next reference ID %d: %s", next_reference_id, exc)
        return False
    body = yaml.safe_dump(record.model_dump(), default_flow_style=False)

    try:
        path.write_text(CACHE_BANNER + body, encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to write cache file %s: %s", path, exc)
        return False

    logger.debug("Wrote %s (next_reference_id=%d)", path, next_reference_id)
    return True


def remove_cache(config_dir: Path) -> None:
    path = cache_path(config_dir)
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.error("Failed to remove cache file %s: %s", path, exc)


__all__ = [
    "CACHE_FILENAME",
    "CacheRecord",
    "cache_path",
    "read_cached_next_reference_id",
    "remove_cache",
    "write_cached_next_reference_id",
]
