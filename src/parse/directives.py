"""Comment directives that change how a log call site is processed."""

from __future__ import annotations

import re

IGNORE_DIRECTIVE = "breadlog:ignore"
NO_KVP_DIRECTIVE = "breadlog:no-kvp"

# Captures the text of ``// ...`` and ``/* ... */`` comments.
RUST_COMMENT_PATTERN = re.compile(r"//(.+)|/\*(.+)\*/")


def directive_active(
    code: str,
    subject_offset: int,
    directive_name: str,
    comment_pattern: re.Pattern[str] = RUST_COMMENT_PATTERN,
) -> bool:
    """Return True if a comment directive applies to the line at ``subject_offset``.

    The line containing ``subject_offset`` is skipped, then preceding lines
    are walked backwards. Blank lines are passed over; the first non-blank
    line must be a comment (per ``comment_pattern``) whose captured text,
    trimmed and lower-cased, is ``directive_name``. Any other line ends the
    search. Every capture group of ``comment_pattern`` is tried in turn.
    """
    wanted = directive_name.lower()
    line_start = code.rfind("\n", 0, subject_offset) + 1
    preceding = code[:line_start].split("\n")[:-1]

    for raw_line in reversed(preceding):
        line = raw_line.strip()
        if not line:
            continue

        match = comment_pattern.search(line)
        if match is None:
            return False
        return any(
            group is not None and group.lower().strip() == wanted
            for group in match.groups()
        )

    return False


def ignore_directive_active(
    code: str,
    subject_offset: int,
    comment_pattern: re.Pattern[str] = RUST_COMMENT_PATTERN,
) -> bool:
    """``breadlog:ignore``: drop the call site entirely."""
    return directive_active(code, subject_offset, IGNORE_DIRECTIVE, comment_pattern)


def no_kvp_directive_active(
    code: str,
    subject_offset: int,
    comment_pattern: re.Pattern[str] = RUST_COMMENT_PATTERN,
) -> bool:
    """``breadlog:no-kvp``: keep the reference in the message even in structured mode."""
    return directive_active(code, subject_offset, NO_KVP_DIRECTIVE, comment_pattern)


__all__ = [
    "IGNORE_DIRECTIVE",
    "NO_KVP_DIRECTIVE",
    "RUST_COMMENT_PATTERN",
    "directive_active",
    "ignore_directive_active",
    "no_kvp_directive_active",
]
