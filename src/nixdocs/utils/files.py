"""Utility helpers for working with files."""

from __future__ import annotations

import zlib
from pathlib import Path
from typing import Iterator


def iter_source_paths(root: Path, *, suffix: str, exclude: str | None = None) -> Iterator[Path]:
    """Yield files under ``root`` with the given suffix, skipping excluded paths.

    ``exclude`` is matched as a plain substring of the path below ``root``, so
    a marker of ``"test"`` also drops paths such as ``pkgs/attestor/default.nix``.
    """
    for path in sorted(root.rglob(f"*{suffix}")):
        if exclude and exclude in path.relative_to(root).as_posix():
            continue
        if path.is_file():
            yield path


def compute_crc32(data: bytes) -> int:
    """Content hash used as the comment cache key."""
    return zlib.crc32(data) & 0xFFFFFFFF


def read_and_hash(path: Path) -> tuple[int, Path, str]:
    """Read a source file and return ``(hash, path, text)``.

    Raises ``OSError`` or ``UnicodeDecodeError`` when the file can't be used.
    """
    raw = path.read_bytes()
    return compute_crc32(raw), path, raw.decode("utf-8")
