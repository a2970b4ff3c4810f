"""Application configuration defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from nixdocs.errors import CacheDirError, ExternalToolError
from nixdocs.ingestion import materializers
from nixdocs.models import SourceKind

LOGGER = logging.getLogger(__name__)

APP_NAME = "nixdocs"


def _get_default_cache_dir() -> Path:
    """``$XDG_CACHE_HOME/nixdocs``, falling back to ``~/.cache/nixdocs``."""
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    # relative XDG base directories are invalid and ignored
    if xdg_cache and Path(xdg_cache).is_absolute():
        return Path(xdg_cache) / APP_NAME
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise CacheDirError("Failed to get a cache directory") from exc
    return home / ".cache" / APP_NAME


def _default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


_CACHE_FILES = {
    SourceKind.NIXPKGS_COMMENTS: "comments.bin",
    SourceKind.NIXOS_OPTIONS: "options_nixos_database.bin",
    SourceKind.HM_OPTIONS: "options_hm_database.bin",
    SourceKind.ND_OPTIONS: "options_nd_database.bin",
    SourceKind.NIXPKGS_TREE: "nixpkgs_tree.bin",
    SourceKind.NIXPKGS_DOC: "nixpkgs_doc_database.bin",
}


@dataclass(frozen=True, slots=True)
class CachePaths:
    """Where each source's cache blob and the version stamp live."""

    root: Path

    @property
    def version_stamp(self) -> Path:
        return self.root / "last_version.txt"

    def for_kind(self, kind: SourceKind) -> Path:
        return self.root / _CACHE_FILES[kind]


@dataclass(slots=True)
class AppConfig:
    cache_dir: Path | None = None
    nixpkgs_root: Path | None = None
    workers: int = field(default_factory=_default_workers)
    suffix: str = ".nix"
    exclude: str | None = "test"

    def resolve_cache_dir(self) -> Path:
        """Return the cache directory, creating it when needed.

        Raises ``CacheDirError`` when no directory can be determined or created.
        """
        if self.cache_dir is None:
            self.cache_dir = _get_default_cache_dir()
        try:
            Path(self.cache_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheDirError(f"Failed to create cache directory {self.cache_dir}: {exc}") from exc
        return Path(self.cache_dir)

    def cache_paths(self) -> CachePaths:
        return CachePaths(self.resolve_cache_dir())

    def resolve_nixpkgs_root(self) -> Path:
        """Ask nix where ``<nixpkgs>`` lives, once per run."""
        if self.nixpkgs_root is None:
            try:
                self.nixpkgs_root = materializers.nixpkgs_root()
            except ExternalToolError as exc:
                LOGGER.warning("Could not locate <nixpkgs> (%s), using the current directory", exc)
                self.nixpkgs_root = Path.cwd()
        return Path(self.nixpkgs_root)
