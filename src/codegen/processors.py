"""Map/reduce processors run over the log references of every source file.

``map`` sees one file at a time and may run on any worker thread; ``reduce``
runs once on the calling thread with every non-None map result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar

from codegen.allocator import ReferenceAllocator, ReferenceIdOverflowError
from codegen.rewrite import AtomicRewrite

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from parse.models import LogReferenceEntry

logger = logging.getLogger(__name__)

START_REFERENCE_ID = 1

MapT = TypeVar("MapT")
ReduceT = TypeVar("ReduceT")


@dataclass(frozen=True)
class ProcessorParams:
    """Inputs shared by every map call of one pass."""

    allocator: ReferenceAllocator | None = None


class ReferenceProcessor(Protocol[MapT, ReduceT]):
    def map(
        self,
        path: Path,
        contents: bytes,
        params: ProcessorParams,
        entries: Sequence[LogReferenceEntry],
    ) -> MapT | None: ...

    def reduce(self, results: Sequence[MapT]) -> ReduceT | None: ...


@dataclass(frozen=True)
class NextReferenceIdMap:
    max_reference: int | None
    missing: int


@dataclass(frozen=True)
class NextReferenceIdResult:
    next_reference_id: int
    missing: int


class NextReferenceIdProcessor:
    """Find the first unused reference ID and count missing references."""

    def map(
        self,
        path: Path,
        contents: bytes,
        params: ProcessorParams,
        entries: Sequence[LogReferenceEntry],
    ) -> NextReferenceIdMap | None:
        if not entries:
            return None
        existing = [e.reference for e in entries if e.reference is not None]
        return NextReferenceIdMap(
            max_reference=max(existing, default=None),
            missing=len(entries) - len(existing),
        )

    def reduce(self, results: Sequence[NextReferenceIdMap]) -> NextReferenceIdResult:
        existing = [r.max_reference for r in results if r.max_reference is not None]
        next_id = max(existing) + 1 if existing else START_REFERENCE_ID
        return NextReferenceIdResult(
            next_reference_id=next_id,
            missing=sum(r.missing for r in results),
        )


@dataclass(frozen=True)
class CountMissingResult:
    missing: int


class CountMissingProcessor:
    """Report every log call site that has no usable reference."""

    def map(
        self,
        path: Path,
        contents: bytes,
        params: ProcessorParams,
        entries: Sequence[LogReferenceEntry],
    ) -> CountMissingResult | None:
        if not entries:
            return None

        missing = 0
        for entry in entries:
            if entry.exists():
                continue
            missing += 1
            logger.warning(
                "Missing reference in file %s, line %d, column %d",
                path,
                entry.position.line,
                entry.position.column,
            )

        if missing:
            logger.info("Total missing references in %s: %d", path, missing)
        return CountMissingResult(missing=missing)

    def reduce(self, results: Sequence[CountMissingResult]) -> CountMissingResult:
        total = sum(r.missing for r in results)
        logger.info("Total missing references (all files): %d", total)
        return CountMissingResult(missing=total)


@dataclass(frozen=True)
class InsertReferencesResult:
    failure: bool
    inserted: int


class InsertReferencesProcessor:
    """Write a fresh reference into every call site that lacks one."""

    def map(
        self,
        path: Path,
        contents: bytes,
        params: ProcessorParams,
        entries: Sequence[LogReferenceEntry],
    ) -> InsertReferencesResult:
        pending = [e for e in entries if not e.exists()]
        if not pending:
            return InsertReferencesResult(failure=False, inserted=0)

        failure = False
        targets = []
        for entry in pending:
            if entry.usable_reference_position():
                targets.append(entry)
                continue
            failure = True
            logger.error(
                "Unusable ref value in file %s, line %d, column %d; not replacing it",
                path,
                entry.position.line,
                entry.position.column,
            )

        if not targets:
            return InsertReferencesResult(failure=failure, inserted=0)

        if params.allocator is None:
            logger.error("No reference allocator; cannot insert into %s", path)
            return InsertReferencesResult(failure=True, inserted=0)

        offsets = [e.position.offset for e in targets]
        if any(b < a for a, b in zip(offsets, offsets[1:])):
            logger.error("Insertion positions out of order in %s; file skipped", path)
            return InsertReferencesResult(failure=True, inserted=0)
        if offsets[-1] > len(contents):
            logger.error("Insertion position past end of %s; file skipped", path)
            return InsertReferencesResult(failure=True, inserted=0)

        result = self._rewrite(path, contents, targets, params.allocator)
        if failure and not result.failure:
            return InsertReferencesResult(failure=True, inserted=result.inserted)
        return result

    def _rewrite(
        self,
        path: Path,
        contents: bytes,
        targets: list[LogReferenceEntry],
        allocator: ReferenceAllocator,
    ) -> InsertReferencesResult:
        count = 0
        try:
            with AtomicRewrite(path) as rewrite:
                cursor = 0
                for entry in targets:
                    offset = entry.position.offset
                    rewrite.write(contents[cursor:offset])
                    reference_id = allocator.fetch_and_increment()
                    rewrite.write(
                        entry.insertable_reference_string(reference_id).encode("utf-8")
                    )
                    cursor = offset
                    count += 1
                rewrite.write(contents[cursor:])
                rewrite.commit()
        except ReferenceIdOverflowError as exc:
            logger.error("Cannot annotate %s: %s", path, exc)
            return InsertReferencesResult(failure=True, inserted=0)
        except OSError as exc:
            logger.error("Failed to rewrite %s: %s", path, exc)
            return InsertReferencesResult(failure=True, inserted=count)

        logger.debug("Inserted %d reference(s) into %s", count, path)
        return InsertReferencesResult(failure=False, inserted=count)

    def reduce(
        self, results: Sequence[InsertReferencesResult]
    ) -> InsertReferencesResult:
        return InsertReferencesResult(
            failure=any(r.failure for r in results),
            inserted=sum(r.inserted for r in results),
        )


__all__ = [
    "START_REFERENCE_ID",
    "CountMissingProcessor",
    "CountMissingResult",
    "InsertReferencesProcessor",
    "InsertReferencesResult",
    "NextReferenceIdMap",
    "NextReferenceIdProcessor",
    "NextReferenceIdResult",
    "ProcessorParams",
    "ReferenceProcessor",
]
