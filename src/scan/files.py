"""File scanning utilities for locating source files to annotate."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Collection
    from pathlib import Path

DEFAULT_EXTENSIONS = ("rs",)


class SourceDiscoveryError(Exception):
    """Raised when the source directory cannot be searched."""


def _should_include_file(
    path: Path,
    directory: Path,
    extensions: Collection[str],
    gitignore_matches: Callable[[str], bool] | None,
    exclude_patterns: list[str] | None,
) -> bool:
    """Check if a file should be included based on all filtering rules."""
    if path.suffix.lstrip(".") not in extensions:
        return False

    if not path.is_file() or path.is_symlink():
        return False

    if not _is_within_root(path, directory):
        return False

    try:
        rel_path = path.relative_to(directory)
    except ValueError:
        return False

    if gitignore_matches is not None and gitignore_matches(str(path)):
        return False

    rel_path_str = rel_path.as_posix()
    has_excluded_match = exclude_patterns and any(
        fnmatch(rel_path_str, pat) for pat in exclude_patterns
    )
    return not has_excluded_match


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _iter_gitignore_files(root: Path) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    gitignore_paths = [root / ".gitignore"]
    gitignore_paths.extend(root.rglob(".gitignore"))
    unique_paths = {
        path
        for path in gitignore_paths
        if path.is_file() and not path.is_symlink() and _is_within_root(path, root)
    }
    return sorted(unique_paths, key=lambda p: p.relative_to(root).as_posix())


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def find_source_files(
    directory: Path,
    *,
    extensions: Collection[str] = DEFAULT_EXTENSIONS,
    exclude_patterns: list[str] | None = None,
    nested_gitignore: bool = False,
) -> list[Path]:
    """Find all source files with a configured extension, respecting .gitignore.

    Args:
        directory: Directory to search
        extensions: File extensions to keep, without the leading dot
        exclude_patterns: Optional list of fnmatch patterns; files matching
            any pattern (relative to ``directory``) are excluded
        nested_gitignore: Compose every .gitignore below ``directory``
            instead of only the root one

    Returns:
        Paths sorted lexicographically by relative path.

    Raises:
        SourceDiscoveryError: If ``directory`` is missing or not a directory.
    """
    if not directory.exists():
        msg = f"Source directory does not exist: {directory}"
        raise SourceDiscoveryError(msg)
    if not directory.is_dir():
        msg = f"Configured source path is not a directory: {directory}"
        raise SourceDiscoveryError(msg)

    normalized_extensions = frozenset(ext.lstrip(".") for ext in extensions)
    try:
        gitignore_matches = _build_gitignore_matcher(
            directory,
            nested_gitignore=nested_gitignore,
        )
        matched_files = [
            path
            for path in directory.rglob("*")
            if _should_include_file(
                path,
                directory,
                normalized_extensions,
                gitignore_matches,
                exclude_patterns,
            )
        ]
    except OSError as exc:
        msg = f"Failed to search source directory {directory}: {exc}"
        raise SourceDiscoveryError(msg) from exc

    matched_files.sort(key=lambda p: p.relative_to(directory).as_posix())
    return matched_files


__all__ = ["SourceDiscoveryError", "_should_include_file", "find_source_files"]
