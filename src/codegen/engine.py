"""Run processors over a source tree: the check and generate commands."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from codegen.allocator import ReferenceAllocator
from codegen.processors import (
    CountMissingProcessor,
    InsertReferencesProcessor,
    NextReferenceIdProcessor,
    ProcessorParams,
    ReferenceProcessor,
)
from parse.references import find_references
from scan.files import SourceDiscoveryError, find_source_files
from settings.cache import remove_cache, write_cached_next_reference_id

if TYPE_CHECKING:
    from pathlib import Path

    from settings.context import Context

logger = logging.getLogger(__name__)

MapT = TypeVar("MapT")
ReduceT = TypeVar("ReduceT")


class CodegenError(Exception):
    """Base class for errors that abort a check or generate run."""


class CodeDiscoveryError(CodegenError):
    """The source directory could not be searched."""


class NoSourceFilesError(CodegenError):
    """The source directory holds no matching files."""


class RunCancelledError(CodegenError):
    """The stop event was set before the run finished."""


@dataclass(frozen=True)
class PassResult:
    """Reduced processor output plus files that could not be read."""

    result: object | None
    skipped: tuple[Path, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CheckResult:
    missing: int

    @property
    def success(self) -> bool:
        return self.missing == 0


@dataclass(frozen=True)
class GenerateResult:
    success: bool
    inserted: int
    next_reference_id: int | None


def discover_files(context: Context) -> list[Path]:
    """Return the files to process.

    Raises:
        CodeDiscoveryError: If the source directory can't be searched.
        NoSourceFilesError: If no file matches.
    """
    config = context.config
    try:
        files = find_source_files(
            config.source_dir,
            extensions=config.rust.extensions,
            exclude_patterns=config.exclude,
            nested_gitignore=config.nested_gitignore,
        )
    except SourceDiscoveryError as exc:
        msg = f"Code discovery error: {exc}"
        raise CodeDiscoveryError(msg) from exc

    if not files:
        msg = f"No files found in {config.source_dir}"
        raise NoSourceFilesError(msg)

    logger.info("Found %d file(s)", len(files))
    return files


def _batches(files: list[Path], size: int) -> list[list[Path]]:
    return [files[i : i + size] for i in range(0, len(files), size)]


def _check_stop(context: Context) -> None:
    if context.stop_requested():
        msg = "Run cancelled"
        raise RunCancelledError(msg)


def process_references(
    context: Context,
    files: list[Path],
    processor: ReferenceProcessor[MapT, ReduceT],
    params: ProcessorParams | None = None,
) -> PassResult:
    """Map ``processor`` over ``files`` in concurrent batches, then reduce.

    The stop event is checked before and after each batch and once more
    before reducing; a file already being processed runs to completion.

    Raises:
        RunCancelledError: If the stop event is set.
    """
    params = params if params is not None else ProcessorParams()
    macro_names = context.config.rust.macro_names()
    structured = context.config.rust.structured

    def process_file(path: Path) -> tuple[Path, MapT | None, bool]:
        try:
            contents = path.read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", path, exc)
            return path, None, False

        entries = find_references(contents, macro_names, structured=structured)
        return path, processor.map(path, contents, params, entries), True

    results: list[MapT] = []
    skipped: list[Path] = []
    workers = context.config.workers

    with ThreadPoolExecutor(max_workers=workers) as executor:
        for batch in _batches(files, workers):
            _check_stop(context)
            for path, result, readable in executor.map(process_file, batch):
                if not readable:
                    skipped.append(path)
                elif result is not None:
                    results.append(result)
            _check_stop(context)

    _check_stop(context)
    return PassResult(result=processor.reduce(results), skipped=tuple(skipped))


def check_references(context: Context) -> CheckResult:
    """Count call sites without a usable reference; never touches files."""
    files = discover_files(context)
    outcome = process_references(context, files, CountMissingProcessor())
    missing = outcome.result.missing if outcome.result is not None else 0
    if missing:
        logger.error("One or more missing references were found")
    return CheckResult(missing=missing)


def _resolve_start_id(context: Context, files: list[Path]) -> int | None:
    """Return the first ID to hand out, or None when nothing is missing."""
    if context.config.cache and context.cached_next_reference_id is not None:
        logger.info("Using cached next reference ID")
        return context.cached_next_reference_id

    logger.info("Performing first pass to determine next reference ID")
    outcome = process_references(context, files, NextReferenceIdProcessor())
    scan = outcome.result
    if scan.missing == 0:
        logger.info("No missing references - nothing to do")
        return None
    return scan.next_reference_id


def generate_code(context: Context) -> GenerateResult:
    """Insert a unique reference into every call site lacking one.

    Raises:
        CodegenError: On discovery failure or cancellation.
    """
    files = discover_files(context)
    start_id = _resolve_start_id(context, files)
    if start_id is None:
        return GenerateResult(success=True, inserted=0, next_reference_id=None)

    logger.info("Next reference ID: %d", start_id)
    allocator = ReferenceAllocator(start_id)
    try:
        outcome = process_references(
            context,
            files,
            InsertReferencesProcessor(),
            ProcessorParams(allocator=allocator),
        )
    except RunCancelledError:
        if context.config.cache:
            remove_cache(context.config_dir)
        raise

    result = outcome.result
    logger.info("Num. inserted reference(s): %d", result.inserted)

    next_id = allocator.next_value
    if context.config.cache:
        write_cached_next_reference_id(context.config_dir, next_id)

    return GenerateResult(
        success=not result.failure and not outcome.skipped,
        inserted=result.inserted,
        next_reference_id=next_id,
    )


__all__ = [
    "CheckResult",
    "CodeDiscoveryError",
    "CodegenError",
    "GenerateResult",
    "NoSourceFilesError",
    "PassResult",
    "RunCancelledError",
    "check_references",
    "discover_files",
    "generate_code",
    "process_references",
]
