from __future__ import annotations

import logging
import os
import stat
from typing import TYPE_CHECKING

import pytest

from codegen.allocator import ReferenceAllocator
from codegen.processors import (
    CountMissingProcessor,
    CountMissingResult,
    InsertReferencesProcessor,
    InsertReferencesResult,
    NextReferenceIdMap,
    NextReferenceIdProcessor,
    ProcessorParams,
)
from parse.models import MAX_REFERENCE_ID, CodePosition, LogReferenceEntry
from parse.references import accepted_macro_names, find_references

if TYPE_CHECKING:
    from pathlib import Path

MACROS = accepted_macro_names([("log", "info")])

SOURCE = (
    "fn main() {\n"
    '    info!("first");\n'
    '    info!("[ref: 4] second");\n'
    '    info!("third {}", x);\n'
    "}\n"
)


def _write(tmp_path: Path, text: str = SOURCE) -> tuple[Path, bytes]:
    path = tmp_path / "main.rs"
    data = text.encode("utf-8")
    path.write_bytes(data)
    return path, data


def _entries(data: bytes, *, structured: bool = False) -> list[LogReferenceEntry]:
    return find_references(data, MACROS, structured=structured)


def test_next_reference_id_map_and_reduce(tmp_path: Path) -> None:
    path, data = _write(tmp_path)
    processor = NextReferenceIdProcessor()

    mapped = processor.map(path, data, ProcessorParams(), _entries(data))

    assert mapped == NextReferenceIdMap(max_reference=4, missing=2)
    result = processor.reduce([mapped, NextReferenceIdMap(10, 1)])
    assert result.next_reference_id == 11
    assert result.missing == 3


def test_next_reference_id_defaults_to_one() -> None:
    result = NextReferenceIdProcessor().reduce([NextReferenceIdMap(None, 2)])

    assert result.next_reference_id == 1
    assert result.missing == 2


def test_count_missing_logs_each_site(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path, data = _write(tmp_path)
    processor = CountMissingProcessor()

    with caplog.at_level(logging.INFO):
        mapped = processor.map(path, data, ProcessorParams(), _entries(data))
        total = processor.reduce([mapped, CountMissingResult(missing=3)])

    assert mapped == CountMissingResult(missing=2)
    assert total == CountMissingResult(missing=5)
    assert f"Missing reference in file {path}, line 2, column 12" in caplog.text
    assert f"Missing reference in file {path}, line 4, column 12" in caplog.text
    assert f"Total missing references in {path}: 2" in caplog.text
    assert "Total missing references (all files): 5" in caplog.text


def test_insert_references_rewrites_in_source_order(tmp_path: Path) -> None:
    path, data = _write(tmp_path)
    allocator = ReferenceAllocator(10)

    result = InsertReferencesProcessor().map(
        path, data, ProcessorParams(allocator=allocator), _entries(data)
    )

    assert result == InsertReferencesResult(failure=False, inserted=2)
    assert allocator.next_value == 12
    assert path.read_text(encoding="utf-8") == (
        "fn main() {\n"
        '    info!("[ref: 10] first");\n'
        '    info!("[ref: 4] second");\n'
        '    info!("[ref: 11] third {}", x);\n'
        "}\n"
    )
    assert [p.name for p in tmp_path.iterdir()] == ["main.rs"]


def test_insert_references_structured(tmp_path: Path) -> None:
    path, data = _write(
        tmp_path,
        'fn main() {\n    info!("a");\n    info!(user = 5; "b");\n}\n',
    )

    result = InsertReferencesProcessor().map(
        path,
        data,
        ProcessorParams(allocator=ReferenceAllocator(1)),
        _entries(data, structured=True),
    )

    assert result == InsertReferencesResult(failure=False, inserted=2)
    assert path.read_text(encoding="utf-8") == (
        'fn main() {\n    info!(ref = 1; "a");\n    info!(ref = 2, user = 5; "b");\n}\n'
    )


def test_insert_references_noop_when_all_present(tmp_path: Path) -> None:
    path, data = _write(tmp_path, 'fn main() { info!("[ref: 1] a"); }\n')
    processor = InsertReferencesProcessor()

    noop = processor.map(path, data, ProcessorParams(), _entries(data))
    missing_allocator = processor.map(
        path, SOURCE.encode("utf-8"), ProcessorParams(), _entries(SOURCE.encode())
    )

    assert noop == InsertReferencesResult(failure=False, inserted=0)
    assert missing_allocator == InsertReferencesResult(failure=True, inserted=0)
    assert noop != missing_allocator
    assert path.read_bytes() == data


def test_insert_references_structured_value_with_nested_literal(
    tmp_path: Path,
) -> None:
    path, data = _write(
        tmp_path,
        'fn f() { info!(a = "x;y,z".replace(";", ","), b = 2; "m {}", 1); }\n',
    )

    result = InsertReferencesProcessor().map(
        path,
        data,
        ProcessorParams(allocator=ReferenceAllocator(1)),
        _entries(data, structured=True),
    )

    assert result == InsertReferencesResult(failure=False, inserted=1)
    assert path.read_text(encoding="utf-8") == (
        'fn f() { info!(ref = 1, a = "x;y,z".replace(";", ","), b = 2; "m {}", 1); }\n'
    )


def test_insert_references_without_allocator_fails(tmp_path: Path) -> None:
    path, data = _write(tmp_path)

    result = InsertReferencesProcessor().map(
        path, data, ProcessorParams(), _entries(data)
    )

    assert result == InsertReferencesResult(failure=True, inserted=0)
    assert path.read_bytes() == data


def test_insert_references_out_of_order_aborts_file(tmp_path: Path) -> None:
    path, data = _write(tmp_path)
    entries = [
        LogReferenceEntry(CodePosition(40, 3, 12), None, "info"),
        LogReferenceEntry(CodePosition(20, 2, 12), None, "info"),
    ]
    allocator = ReferenceAllocator(1)

    result = InsertReferencesProcessor().map(
        path, data, ProcessorParams(allocator=allocator), entries
    )

    assert result == InsertReferencesResult(failure=True, inserted=0)
    assert allocator.next_value == 1
    assert path.read_bytes() == data


def test_insert_references_skips_unusable_structured_value(tmp_path: Path) -> None:
    path, data = _write(
        tmp_path,
        'fn main() {\n    info!(ref = x; "a");\n    info!("b");\n}\n',
    )

    result = InsertReferencesProcessor().map(
        path,
        data,
        ProcessorParams(allocator=ReferenceAllocator(3)),
        _entries(data, structured=True),
    )

    assert result == InsertReferencesResult(failure=True, inserted=1)
    assert path.read_text(encoding="utf-8") == (
        'fn main() {\n    info!(ref = x; "a");\n    info!(ref = 3; "b");\n}\n'
    )


def test_insert_references_overflow_leaves_file_untouched(tmp_path: Path) -> None:
    path, data = _write(tmp_path)

    result = InsertReferencesProcessor().map(
        path,
        data,
        ProcessorParams(allocator=ReferenceAllocator(MAX_REFERENCE_ID)),
        _entries(data),
    )

    assert result == InsertReferencesResult(failure=True, inserted=0)
    assert path.read_bytes() == data
    assert [p.name for p in tmp_path.iterdir()] == ["main.rs"]


def test_insert_references_missing_directory_fails(tmp_path: Path) -> None:
    data = SOURCE.encode("utf-8")
    path = tmp_path / "gone" / "main.rs"

    result = InsertReferencesProcessor().map(
        path, data, ProcessorParams(allocator=ReferenceAllocator(1)), _entries(data)
    )

    assert result == InsertReferencesResult(failure=True, inserted=0)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits only.")
def test_insert_references_preserves_mode(tmp_path: Path) -> None:
    path, data = _write(tmp_path)
    path.chmod(0o640)

    InsertReferencesProcessor().map(
        path, data, ProcessorParams(allocator=ReferenceAllocator(1)), _entries(data)
    )

    assert stat.S_IMODE(path.stat().st_mode) == 0o640


def test_insert_references_reduce() -> None:
    result = InsertReferencesProcessor().reduce(
        [
            InsertReferencesResult(failure=False, inserted=2),
            InsertReferencesResult(failure=True, inserted=1),
        ]
    )

    assert result == InsertReferencesResult(failure=True, inserted=3)
