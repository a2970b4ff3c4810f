"""Exception types raised while building and loading documentation sources."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class NixDocsError(Exception):
    """Base class for every recoverable nixdocs failure."""


class CacheDirError(NixDocsError):
    """No cache directory could be determined. Fatal for the CLI."""


class FileAccessError(NixDocsError):
    """Reading or writing a file or directory failed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to access {path}: {reason}")
        self.path = path


class SerializeError(NixDocsError):
    """A source could not be encoded into its binary cache form."""


class DeserializeError(NixDocsError):
    """A cache blob is corrupt or was written by an incompatible version."""


class ExternalToolError(NixDocsError):
    """An external nix command is missing or exited unsuccessfully."""

    def __init__(self, command: Sequence[str], reason: str) -> None:
        super().__init__(f"Command {command[0]!r} failed: {reason}")
        self.command = list(command)
        self.reason = reason


class ParseError(NixDocsError):
    """Upstream JSON or XML output could not be parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to parse {source}: {reason}")
        self.source = source


class MalformedTreeError(NixDocsError):
    """A syntax tree node did not have the shape of a named function binding."""
