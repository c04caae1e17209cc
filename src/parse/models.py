"""Log reference models shared by the extractor and the code generator."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# Largest id representable in an annotation (u32).
MAX_REFERENCE_ID = 4_294_967_295

_LOG_REF_PATTERN = re.compile(r"^\[ref: ([0-9]{1,10})\]")


class LogRefKind(str, Enum):
    """Where a reference lives at a call site."""

    UNKNOWN = "unknown"
    STRING = "string"
    STRUCTURED_PRE_EXISTING = "structured_pre_existing"
    STRUCTURED_NEW = "structured_new"


@dataclass(frozen=True)
class CodePosition:
    """Position in source text.

    ``offset`` is the 0-based byte offset, ``line`` and ``column`` are
    1-based (columns count bytes).
    """

    offset: int
    line: int
    column: int


def parse_reference_id(text: str) -> int | None:
    """Parse an unsigned reference id, or return None if it is not one."""
    if not text.isascii() or not text.isdigit():
        return None
    value = int(text)
    if value > MAX_REFERENCE_ID:
        return None
    return value


@dataclass(frozen=True)
class LogReferenceEntry:
    """A log call site and the reference found (or missing) there."""

    position: CodePosition
    reference: int | None
    macro_name: str
    kind: LogRefKind = LogRefKind.STRING
    insertion_prefix: str | None = None
    insertion_suffix: str | None = None

    @staticmethod
    def extract_reference(log_literal: str) -> int | None:
        """Return the id of a leading ``[ref: 1234]`` in a log message literal."""
        match = _LOG_REF_PATTERN.match(log_literal)
        if match is None:
            return None
        return parse_reference_id(match.group(1))

    def exists(self) -> bool:
        return self.reference is not None

    def usable_reference_position(self) -> bool:
        """Return False when a structured ``ref`` key exists but its value isn't usable.

        Such a slot is present in the source yet must not be treated as an
        existing reference, nor overwritten by insertion.
        """
        return not (
            self.kind == LogRefKind.STRUCTURED_PRE_EXISTING and not self.exists()
        )

    def insertable_reference_string(self, reference_id: int) -> str:
        """Return the text to insert at ``position`` for ``reference_id``."""
        if self.insertion_prefix is None and self.insertion_suffix is None:
            return f"[ref: {reference_id}] "

        prefix = self.insertion_prefix or ""
        suffix = self.insertion_suffix or ""
        return f"{prefix}{reference_id}{suffix}"


__all__ = [
    "MAX_REFERENCE_ID",
    "CodePosition",
    "LogRefKind",
    "LogReferenceEntry",
    "parse_reference_id",
]
