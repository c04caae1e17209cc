"""Log reference extraction for Rust source files."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from parse.directives import (
    RUST_COMMENT_PATTERN,
    ignore_directive_active,
    no_kvp_directive_active,
)
from parse.models import CodePosition, LogRefKind, LogReferenceEntry, parse_reference_id
from parse.treesitter_macros import parse_macro_calls

if TYPE_CHECKING:
    from collections.abc import Iterable

    from parse.treesitter_macros import MacroCall, SourceSpan

logger = logging.getLogger(__name__)

REF_KVP_KEY = "ref"
STRUCTURED_PREFIX = f"{REF_KVP_KEY} = "
STRUCTURED_SUFFIX_ONLY = "; "
STRUCTURED_SUFFIX_MORE = ", "


def accepted_macro_names(log_macros: Iterable[tuple[str, str]]) -> frozenset[str]:
    """Names a call may be written with: ``name`` or ``module::name``."""
    names: set[str] = set()
    for module, name in log_macros:
        names.add(name)
        if module:
            names.add(f"{module}::{name}")
    return frozenset(names)


def _position(span: SourceSpan) -> CodePosition:
    return CodePosition(offset=span.start, line=span.line, column=span.column)


def _unqualified(name: str) -> str:
    return name.rsplit("::", 1)[-1]


def _line_offsets(code: str) -> list[int]:
    offsets = [0]
    for line in code.split("\n")[:-1]:
        offsets.append(offsets[-1] + len(line) + 1)
    return offsets


def _string_entry(call: MacroCall) -> LogReferenceEntry | None:
    if call.message is None or call.message_text is None:
        return None
    return LogReferenceEntry(
        position=_position(call.message),
        reference=LogReferenceEntry.extract_reference(call.message_text),
        macro_name=_unqualified(call.name),
        kind=LogRefKind.STRING,
    )


def _structured_entry(call: MacroCall) -> LogReferenceEntry | None:
    if call.message is None:
        return None

    for argument in call.key_values:
        if argument.key != REF_KVP_KEY:
            continue
        slot = argument.value if argument.value is not None else argument.span
        return LogReferenceEntry(
            position=_position(slot),
            reference=parse_reference_id(argument.value_text.strip()),
            macro_name=_unqualified(call.name),
            kind=LogRefKind.STRUCTURED_PRE_EXISTING,
        )

    suffix = STRUCTURED_SUFFIX_MORE if call.key_values else STRUCTURED_SUFFIX_ONLY
    return LogReferenceEntry(
        position=_position(call.key_value_insert),
        reference=None,
        macro_name=_unqualified(call.name),
        kind=LogRefKind.STRUCTURED_NEW,
        insertion_prefix=STRUCTURED_PREFIX,
        insertion_suffix=suffix,
    )


def find_references(
    source: bytes,
    macro_names: frozenset[str],
    *,
    structured: bool = False,
    comment_pattern: re.Pattern[str] = RUST_COMMENT_PATTERN,
) -> list[LogReferenceEntry]:
    """Extract log reference entries from Rust source, in source order.

    Args:
        source: Raw file contents.
        macro_names: Accepted call names (see ``accepted_macro_names``).
        structured: Keep references in a ``ref = N`` key-value argument
            instead of the message text.
        comment_pattern: Pattern capturing comment text for directives.

    Returns:
        One entry per configured log call that isn't ignored and has a
        message literal. Undecodable input yields no entries.
    """
    try:
        code = source.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Source is not valid UTF-8, skipping: %s", exc)
        return []

    line_offsets = _line_offsets(code)
    entries: list[LogReferenceEntry] = []

    for call in parse_macro_calls(source).calls:
        if call.name not in macro_names:
            continue

        subject = line_offsets[call.name_span.line - 1]
        if ignore_directive_active(code, subject, comment_pattern):
            logger.debug(
                "Ignoring %s! at line %d (directive)", call.name, call.name_span.line
            )
            continue

        if not structured or no_kvp_directive_active(code, subject, comment_pattern):
            entry = _string_entry(call)
        else:
            entry = _structured_entry(call)

        if entry is not None:
            entries.append(entry)

    return entries


__all__ = [
    "REF_KVP_KEY",
    "accepted_macro_names",
    "find_references",
]
