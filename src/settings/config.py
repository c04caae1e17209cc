from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from parse.references import accepted_macro_names
from scan.files import DEFAULT_EXTENSIONS


class LogMacro(BaseModel):
    """A logging macro whose call sites carry references."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    module: str = Field(description="Module declaring the macro (e.g., 'log')")
    name: str = Field(description="Macro name without the '!' (e.g., 'info')")

    @field_validator("module")
    @classmethod
    def validate_module(cls, v: str) -> str:
        return v.strip()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip().removesuffix("!")
        if not v:
            msg = "log macro name must be non-empty"
            raise ValueError(msg)
        return v


class RustConfig(BaseModel):
    """Rust-specific settings."""

    model_config = ConfigDict(extra="forbid")

    log_macros: list[LogMacro] = Field(
        min_length=1,
        description="Macros treated as log statements",
    )
    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="File extensions scanned for Rust code",
    )
    structured: bool = Field(
        default=False,
        description="Store references as a 'ref' key-value argument",
    )

    def macro_names(self) -> frozenset[str]:
        return accepted_macro_names((m.module, m.name) for m in self.log_macros)


class BreadlogConfig(BaseModel):
    """Configuration loaded from the YAML file given with --config."""

    model_config = ConfigDict(extra="forbid")

    source_dir: Path = Field(
        description="Root of the source tree (relative to the config file)",
    )
    rust: RustConfig = Field(description="Rust language settings")
    cache: bool = Field(
        default=True,
        description="Cache the next reference ID next to the config file",
    )
    workers: int = Field(
        default=4,
        ge=1,
        description="Number of files processed concurrently",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns (relative to source_dir) for files to skip",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )

    @field_validator("source_dir", mode="before")
    @classmethod
    def validate_source_dir(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            msg = "source_dir must be a non-empty path"
            raise ValueError(msg)
        return v


class ConfigError(Exception):
    """Raised when the config file cannot be read, parsed or validated."""


def load_config(config_path: Path) -> BreadlogConfig:
    """Load and validate a YAML configuration file.

    A relative ``source_dir`` is resolved against the directory holding
    the configuration file.

    Raises:
        ConfigError: If the file is unreadable, isn't valid YAML, or doesn't
            match the schema.
    """
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        msg = f"Failed to read configuration file {config_path}: {e}"
        raise ConfigError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {config_path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"Invalid config in {config_path}: expected a mapping at top level"
        raise ConfigError(msg)

    try:
        config = BreadlogConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e

    if not config.source_dir.is_absolute():
        source_dir = (config_path.parent / config.source_dir).resolve()
        config = config.model_copy(update={"source_dir": source_dir})

    return config


__all__ = [
    "BreadlogConfig",
    "ConfigError",
    "LogMacro",
    "RustConfig",
    "load_config",
]
