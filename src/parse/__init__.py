"""Parsing utilities for locating log references in Rust source."""

from parse.directives import (
    IGNORE_DIRECTIVE,
    NO_KVP_DIRECTIVE,
    RUST_COMMENT_PATTERN,
    directive_active,
)
from parse.models import CodePosition, LogRefKind, LogReferenceEntry
from parse.references import accepted_macro_names, find_references
from parse.treesitter_macros import MacroCall, parse_macro_calls

__all__ = [
    "IGNORE_DIRECTIVE",
    "NO_KVP_DIRECTIVE",
    "RUST_COMMENT_PATTERN",
    "CodePosition",
    "LogRefKind",
    "LogReferenceEntry",
    "MacroCall",
    "accepted_macro_names",
    "directive_active",
    "find_references",
    "parse_macro_calls",
]
