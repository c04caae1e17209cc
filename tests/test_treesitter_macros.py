from __future__ import annotations

from parse.treesitter_macros import parse_macro_calls


def _calls(code: str):
    return parse_macro_calls(code.encode("utf-8")).calls


def test_finds_simple_call_with_message() -> None:
    code = 'fn main() {\n    info!("hello {}", x);\n}\n'
    (call,) = _calls(code)

    assert call.name == "info"
    assert call.message_text == "hello {}"
    assert call.message is not None
    assert call.message.start == code.encode().index(b"hello")
    assert (call.message.line, call.message.column) == (2, 12)
    assert call.target is None
    assert call.key_values == ()


def test_qualified_macro_name_is_joined() -> None:
    (call,) = _calls('fn f() { log::warn!("w"); }\n')

    assert call.name == "log::warn"
    assert call.name_span.start == 9


def test_calls_in_comments_and_strings_are_ignored() -> None:
    code = (
        "fn f() {\n"
        '    // info!("commented");\n'
        '    /* info!("block"); */\n'
        '    let s = "info!(\\"quoted\\")";\n'
        "}\n"
    )

    assert _calls(code) == ()


def test_nested_calls_are_reported_in_source_order() -> None:
    code = 'fn f() { let v = vec![debug!("inner")]; info!("outer"); }\n'
    names = [call.name for call in _calls(code)]

    assert names == ["vec", "debug", "info"]
    inner = _calls(code)[1]
    assert inner.message_text == "inner"


def test_target_argument_moves_key_value_insert_point() -> None:
    code = 'fn f() { info!(target: "app", "msg"); }\n'
    (call,) = _calls(code)

    assert call.target is not None
    assert call.message_text == "msg"
    assert call.key_value_insert.start == code.encode().index(b'"msg"')


def test_insert_point_without_target_is_after_paren() -> None:
    code = 'fn f() { info!("msg"); }\n'
    (call,) = _calls(code)

    assert call.key_value_insert.start == code.index("(", code.index("info")) + 1


def test_key_values_before_semicolon() -> None:
    code = 'fn f() { info!(a = 1, b = "x"; "msg {}", a); }\n'
    (call,) = _calls(code)

    assert [kv.key for kv in call.key_values] == ["a", "b"]
    assert call.key_values[0].value_text == "1"
    assert call.key_values[1].value_text == '"x"'
    assert call.message_text == "msg {}"


def test_comparison_is_not_an_assignment() -> None:
    code = 'fn f() { info!(a == 1; "msg"); }\n'
    (call,) = _calls(code)

    assert call.key_values[0].key == "a"
    assert call.key_values[0].value is None


def test_raw_string_message() -> None:
    code = 'fn f() { info!(r#"raw "quoted""#); }\n'
    (call,) = _calls(code)

    assert call.message_text == 'raw "quoted"'


def test_byte_string_is_not_a_message() -> None:
    (call,) = _calls('fn f() { info!(b"bytes"); }\n')

    assert call.message is None


def test_non_literal_first_argument_has_no_message() -> None:
    (call,) = _calls('fn f() { info!(x, "later"); }\n')

    assert call.message is None
    assert call.message_text is None


def test_multibyte_text_keeps_byte_offsets() -> None:
    code = 'fn f() { let _ = "é"; info!("ü {}", 1); }\n'
    (call,) = _calls(code)

    data = code.encode("utf-8")
    assert call.message is not None
    assert data[call.message.start : call.message.end] == "ü {}".encode()


def test_escaped_backslash_before_quote_in_string() -> None:
    inside = r'fn f() { let s = "\\\"info!(\"x\");"; }' + "\n"
    after = r'fn f() { let s = "\\"; info!("x"); }' + "\n"

    assert _calls(inside) == ()
    (call,) = _calls(after)
    assert call.name == "info"
    assert call.message_text == "x"


def test_key_value_with_nested_literal_stays_one_argument() -> None:
    code = 'fn f() { info!(a = "x;y,z".replace(";", ","), b = 2; "m {}", 1); }\n'
    (call,) = _calls(code)

    assert [kv.key for kv in call.key_values] == ["a", "b"]
    assert call.key_values[0].value_text == '"x;y,z".replace(";", ",")'
    assert call.key_values[1].value_text == "2"
    assert call.message_text == "m {}"
    assert call.key_value_insert.start == code.index("a =")
