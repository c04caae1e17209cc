"""Atomic replacement of a file's contents via a scratch file."""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path


class AtomicRewrite:
    """Buffer new contents in a scratch file beside ``target`` and swap it in.

    Usage::

        with AtomicRewrite(path) as out:
            out.write(b"...")
            out.commit()

    Leaving the block without ``commit()`` (or with an exception) removes
    the scratch file and leaves ``target`` untouched.
    """

    def __init__(self, target: Path) -> None:
        self.target = target
        self._scratch: Path | None = None
        self._file = None
        self.committed = False

    def __enter__(self) -> AtomicRewrite:
        fd, name = tempfile.mkstemp(
            prefix=f".{self.target.name}.",
            suffix=".breadlog",
            dir=self.target.parent,
        )
        self._scratch = Path(name)
        self._file = os.fdopen(fd, "wb")
        return self

    def write(self, data: bytes) -> None:
        if self._file is None:
            msg = "AtomicRewrite used outside of its context"
            raise RuntimeError(msg)
        self._file.write(data)

    def commit(self) -> None:
        """Flush the scratch file and rename it over the target.

        Raises:
            OSError: If flushing, copying permissions or renaming fails.
        """
        if self._file is None or self._scratch is None:
            msg = "AtomicRewrite used outside of its context"
            raise RuntimeError(msg)
        self._file.flush()
        os.fsync(self._file.fileno())
        self._file.close()
        self._file = None
        shutil.copymode(self.target, self._scratch)
        os.replace(self._scratch, self.target)
        self.committed = True

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        if not self.committed and self._scratch is not None:
            with contextlib.suppress(OSError):
                self._scratch.unlink()


__all__ = ["AtomicRewrite"]
