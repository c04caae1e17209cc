"""Tree-sitter based macro call extraction for Rust files.

Tree-sitter supplies the structure we must never get wrong: string literals
(including escapes and raw strings), line and block comments, and balanced
token trees. Macro arguments are opaque token trees to the Rust grammar, so
each argument list is tokenized shallowly here to find top-level argument
boundaries, a leading ``target:`` argument, ``key = value`` arguments before
the ``;`` terminator and the first string-literal (message) argument.
"""

from __future__ import annotations

import threading
from bisect import bisect_right
from dataclasses import dataclass

from tree_sitter import Language, Node, Parser
from tree_sitter_rust import language as get_rust_language

_LOCAL = threading.local()

_STRING_TYPES = frozenset({"string_literal", "raw_string_literal"})
_COMMENT_TYPES = frozenset({"line_comment", "block_comment"})
_TREE_TYPES = frozenset({"token_tree", "token_repetition"})

_OPENERS = (b"(", b"[", b"{")
_CLOSERS = (b")", b"]", b"}")
_PUNCTUATION = frozenset(b",;:=!.?&*+-/%^|<>@#$~")
_WHITESPACE = frozenset(b" \t\r\n\x0b\x0c")
_WORD_BYTES = frozenset(
    b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_"
)


def _get_parser() -> Parser:
    """Return this thread's Tree-sitter parser for Rust.

    Parsers are not safe to share between threads, so each worker gets its own.
    """
    parser = getattr(_LOCAL, "parser", None)
    if parser is None:
        parser = Parser(Language(get_rust_language()))
        _LOCAL.parser = parser
    return parser


@dataclass(frozen=True)
class SourceSpan:
    """Byte span with the 1-based line/column of its start."""

    start: int
    end: int
    line: int
    column: int


@dataclass(frozen=True)
class KeyValueArgument:
    """A ``key = value`` argument preceding the ``;`` of a logging macro."""

    key: str
    span: SourceSpan
    value: SourceSpan | None
    value_text: str


@dataclass(frozen=True)
class MacroCall:
    """A ``name!(...)`` or ``path::name!(...)`` call."""

    name: str
    name_span: SourceSpan
    arguments_span: SourceSpan
    target: SourceSpan | None
    key_values: tuple[KeyValueArgument, ...]
    key_value_insert: SourceSpan
    message: SourceSpan | None
    message_text: str | None


@dataclass(frozen=True)
class ParsedSource:
    span: SourceSpan
    calls: tuple[MacroCall, ...]


@dataclass(frozen=True)
class _Token:
    kind: str
    start: int
    end: int
    text: bytes
    node: Node | None = None


@dataclass(frozen=True)
class _Segment:
    tokens: tuple[_Token, ...]
    terminator: bytes | None


class _LineIndex:
    def __init__(self, source: bytes) -> None:
        self._starts = [0]
        pos = source.find(b"\n")
        while pos != -1:
            self._starts.append(pos + 1)
            pos = source.find(b"\n", pos + 1)

    def span(self, start: int, end: int) -> SourceSpan:
        row = bisect_right(self._starts, start) - 1
        return SourceSpan(
            start=start,
            end=end,
            line=row + 1,
            column=start - self._starts[row] + 1,
        )


def _decode(data: bytes) -> str:
    return data.decode("utf8", errors="replace")


def _gap_tokens(source: bytes, start: int, end: int) -> list[_Token]:
    """Tokenize text between named nodes: words and single punctuation bytes."""
    tokens: list[_Token] = []
    pos = start
    while pos < end:
        byte = source[pos]
        if byte in _WHITESPACE:
            pos += 1
            continue
        if byte in _WORD_BYTES:
            word_end = pos + 1
            while word_end < end and source[word_end] in _WORD_BYTES:
                word_end += 1
            tokens.append(_Token("word", pos, word_end, source[pos:word_end]))
            pos = word_end
            continue
        kind = "punct" if byte in _PUNCTUATION else "atom"
        tokens.append(_Token(kind, pos, pos + 1, source[pos : pos + 1]))
        pos += 1
    return tokens


def _tree_tokens(source: bytes, tree: Node) -> list[_Token]:
    """Return the top-level tokens of a token tree, comments dropped."""
    start = tree.start_byte
    end = tree.end_byte
    if tree.type == "token_tree":
        if source[start : start + 1] in _OPENERS:
            start += 1
        if end > start and source[end - 1 : end] in _CLOSERS:
            end -= 1

    tokens: list[_Token] = []
    cursor = start
    for child in tree.children:
        if not child.is_named or child.start_byte == child.end_byte:
            continue
        if child.start_byte < cursor or child.end_byte > end:
            continue
        tokens.extend(_gap_tokens(source, cursor, child.start_byte))
        cursor = child.end_byte
        if child.type in _COMMENT_TYPES:
            continue
        if child.type in _STRING_TYPES:
            kind = "string"
        elif child.type in _TREE_TYPES:
            kind = "tree"
        elif child.type == "identifier":
            kind = "word"
        else:
            kind = "atom"
        tokens.append(
            _Token(
                kind,
                child.start_byte,
                child.end_byte,
                source[child.start_byte : child.end_byte],
                child,
            )
        )
    tokens.extend(_gap_tokens(source, cursor, end))
    return tokens


def _is_punct(token: _Token, text: bytes) -> bool:
    return token.kind == "punct" and token.text == text


def _split_arguments(tokens: list[_Token]) -> list[_Segment]:
    segments: list[_Segment] = []
    current: list[_Token] = []
    for token in tokens:
        if _is_punct(token, b",") or _is_punct(token, b";"):
            segments.append(_Segment(tuple(current), token.text))
            current = []
        else:
            current.append(token)
    if current:
        segments.append(_Segment(tuple(current), None))
    return segments


def _is_target_argument(segment: _Segment) -> bool:
    tokens = segment.tokens
    if segment.terminator != b"," or len(tokens) < 3:
        return False
    if tokens[0].kind != "word" or tokens[0].text != b"target":
        return False
    return _is_punct(tokens[1], b":") and not _is_punct(tokens[2], b":")


def _find_assignment(tokens: tuple[_Token, ...]) -> int | None:
    """Index of the ``=`` separating key from value, ignoring ``==``/``=>``/``<=``."""
    for index, token in enumerate(tokens):
        if not _is_punct(token, b"="):
            continue
        previous = tokens[index - 1] if index > 0 else None
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if (
            previous is not None
            and previous.kind == "punct"
            and previous.end == token.start
            and previous.text in (b"=", b"!", b"<", b">")
        ):
            continue
        if (
            following is not None
            and following.kind == "punct"
            and following.start == token.end
            and following.text in (b"=", b">")
        ):
            continue
        return index
    return None


def _key_name(token: _Token) -> str:
    if token.kind == "string":
        return _decode(token.text).strip('"')
    return _decode(token.text)


def _key_value_argument(
    source: bytes, lines: _LineIndex, segment: _Segment
) -> KeyValueArgument | None:
    tokens = segment.tokens
    if not tokens:
        return None

    span = lines.span(tokens[0].start, tokens[-1].end)
    assignment = _find_assignment(tokens)
    if assignment is None or assignment + 1 >= len(tokens):
        return KeyValueArgument(
            key=_key_name(tokens[0]), span=span, value=None, value_text=""
        )

    value_start = tokens[assignment + 1].start
    value_end = tokens[-1].end
    return KeyValueArgument(
        key=_key_name(tokens[0]),
        span=span,
        value=lines.span(value_start, value_end),
        value_text=_decode(source[value_start:value_end]),
    )


def _literal_inner(token: _Token) -> tuple[int, int] | None:
    """Byte range of a string literal's content, quotes and prefix excluded."""
    first_quote = token.text.find(b'"')
    last_quote = token.text.rfind(b'"')
    if first_quote == -1 or last_quote <= first_quote:
        return None
    prefix = token.text[:first_quote].rstrip(b"#")
    if prefix not in (b"", b"r"):
        return None
    return token.start + first_quote + 1, token.start + last_quote


def _build_call(
    source: bytes,
    lines: _LineIndex,
    name: str,
    name_start: int,
    name_end: int,
    tree: Node,
) -> MacroCall:
    segments = _split_arguments(_tree_tokens(source, tree))

    index = 0
    target: SourceSpan | None = None
    if segments and _is_target_argument(segments[0]):
        first = segments[0].tokens
        target = lines.span(first[0].start, first[-1].end)
        index = 1

    # Key-value arguments must follow ``target:`` when it is present.
    if target is None:
        insert_offset = tree.start_byte + 1
    elif index < len(segments) and segments[index].tokens:
        insert_offset = segments[index].tokens[0].start
    else:
        insert_offset = target.end

    key_values: list[KeyValueArgument] = []
    message_index = index
    terminator = next(
        (
            position
            for position in range(index, len(segments))
            if segments[position].terminator == b";"
        ),
        None,
    )
    if terminator is not None:
        for segment in segments[index : terminator + 1]:
            argument = _key_value_argument(source, lines, segment)
            if argument is not None:
                key_values.append(argument)
        message_index = terminator + 1

    message: SourceSpan | None = None
    message_text: str | None = None
    if message_index < len(segments) and segments[message_index].tokens:
        first_token = segments[message_index].tokens[0]
        inner = _literal_inner(first_token) if first_token.kind == "string" else None
        if inner is not None:
            message = lines.span(inner[0], inner[1])
            message_text = _decode(source[inner[0] : inner[1]])

    return MacroCall(
        name=name,
        name_span=lines.span(name_start, name_end),
        arguments_span=lines.span(tree.start_byte, tree.end_byte),
        target=target,
        key_values=tuple(key_values),
        key_value_insert=lines.span(insert_offset, insert_offset),
        message=message,
        message_text=message_text,
    )


def _embedded_calls(
    source: bytes, lines: _LineIndex, tree: Node, out_calls: list[MacroCall]
) -> None:
    """Collect ``path::name!(...)`` calls written inside a token tree."""
    tokens = _tree_tokens(source, tree)
    for index, token in enumerate(tokens):
        if token.kind != "tree" or token.node is None:
            continue

        if token.node.type == "token_tree" and index >= 2:
            bang = tokens[index - 1]
            head = index - 2
            if _is_punct(bang, b"!") and tokens[head].kind == "word":
                while (
                    head >= 3
                    and _is_punct(tokens[head - 1], b":")
                    and _is_punct(tokens[head - 2], b":")
                    and tokens[head - 3].kind == "word"
                ):
                    head -= 3
                if not token.node.has_error:
                    name = "".join(
                        _decode(part.text) for part in tokens[head : index - 1]
                    )
                    out_calls.append(
                        _build_call(
                            source,
                            lines,
                            name,
                            tokens[head].start,
                            tokens[index - 2].end,
                            token.node,
                        )
                    )

        _embedded_calls(source, lines, token.node, out_calls)


def _invocation_call(
    source: bytes, lines: _LineIndex, node: Node
) -> MacroCall | None:
    if node.has_error:
        return None
    macro_node = node.child_by_field_name("macro")
    tree = next((child for child in node.children if child.type == "token_tree"), None)
    if macro_node is None or tree is None:
        return None
    name = "".join(_decode(source[macro_node.start_byte : macro_node.end_byte]).split())
    return _build_call(
        source, lines, name, macro_node.start_byte, macro_node.end_byte, tree
    )


def parse_macro_calls(source: bytes) -> ParsedSource:
    """Find every macro call in Rust source, in source order.

    Calls inside string literals and comments are never reported. Calls
    nested in other macros' arguments or in ``macro_rules!`` bodies are.
    A call whose own syntax contains a parse error is skipped.
    """
    lines = _LineIndex(source)
    tree = _get_parser().parse(source)

    calls: list[MacroCall] = []
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == "token_tree":
            _embedded_calls(source, lines, node, calls)
            continue
        if node.type == "macro_invocation":
            call = _invocation_call(source, lines, node)
            if call is not None:
                calls.append(call)
        stack.extend(reversed(node.children))

    calls.sort(key=lambda call: call.name_span.start)
    return ParsedSource(span=lines.span(0, len(source)), calls=tuple(calls))


__all__ = [
    "KeyValueArgument",
    "MacroCall",
    "ParsedSource",
    "SourceSpan",
    "parse_macro_calls",
]
