"""Cache lifecycle: decide what to rebuild, what to load, and assemble the aggregate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from nixdocs import __version__
from nixdocs.config import AppConfig, CachePaths
from nixdocs.errors import NixDocsError
from nixdocs.index.base import DocSource
from nixdocs.index.comments import CommentsDatabase
from nixdocs.index.manual import XmlFuncDocDatabase
from nixdocs.index.options import OptionsDatabase
from nixdocs.index.search import AggregateDocSource
from nixdocs.index.storage import CachedSource, read_version_stamp, write_version_stamp
from nixdocs.index.tree import NixpkgsTreeDatabase
from nixdocs.ingestion.materializers import OptionsFlavor
from nixdocs.models import SourceKind

LOGGER = logging.getLogger(__name__)

# Rebuilt whenever the comment index changes; order is also result order.
EXPENSIVE_SOURCES = (
    SourceKind.HM_OPTIONS,
    SourceKind.ND_OPTIONS,
    SourceKind.NIXOS_OPTIONS,
    SourceKind.NIXPKGS_TREE,
    SourceKind.NIXPKGS_DOC,
)

# Missing caches for these are normal on machines without the channel.
OPTIONAL_SOURCES = frozenset({SourceKind.HM_OPTIONS, SourceKind.ND_OPTIONS})

_FLAVORS = {
    SourceKind.NIXOS_OPTIONS: OptionsFlavor.NIXOS,
    SourceKind.HM_OPTIONS: OptionsFlavor.HOME_MANAGER,
    SourceKind.ND_OPTIONS: OptionsFlavor.NIX_DARWIN,
}

TIPS = {
    SourceKind.HM_OPTIONS: (
        "Tip: If you installed home-manager through configuration.nix, add its channel with "
        "'nix-channel --add https://github.com/nix-community/home-manager/archive/master.tar.gz "
        "home-manager && nix-channel --update'"
    ),
    SourceKind.ND_OPTIONS: "Tip: Ensure darwin is set in your NIX_PATH",
}


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("Failed to remove stale cache %s: %s", path, exc)


class CacheState(str, Enum):
    FRESH = "fresh"
    INVALID = "invalid"
    VALID = "valid"


@dataclass(slots=True)
class IndexStats:
    state: CacheState = CacheState.FRESH
    comments_changed: bool = False
    built: List[SourceKind] = field(default_factory=list)
    loaded: List[SourceKind] = field(default_factory=list)
    failed: List[SourceKind] = field(default_factory=list)


class Indexer:
    """Builds or reloads every documentation source for one run.

    First run and version upgrades rebuild everything. Otherwise the comment
    index is updated incrementally, and only a change there (or ``force``)
    triggers a rebuild of the other sources; they are loaded from disk
    instead. Failing sources are logged and left out.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        selected: Optional[Iterable[SourceKind]] = None,
        version: str = __version__,
    ) -> None:
        self.config = config
        self.selected = frozenset(selected) if selected is not None else frozenset(SourceKind)
        self.version = version

    def cache_state(self, paths: CachePaths) -> CacheState:
        stamp = read_version_stamp(paths.version_stamp)
        if stamp is None:
            return CacheState.FRESH
        if stamp != self.version:
            LOGGER.info("Cache written by nixdocs %s, rebuilding for %s", stamp, self.version)
            return CacheState.INVALID
        return CacheState.VALID

    def _comment_options(self) -> Dict[str, object]:
        return {
            "root": self.config.resolve_nixpkgs_root(),
            "workers": self.config.workers,
            "suffix": self.config.suffix,
            "exclude": self.config.exclude,
        }

    def new_source(self, kind: SourceKind) -> CachedSource:
        if kind is SourceKind.NIXPKGS_COMMENTS:
            return CommentsDatabase(**self._comment_options())
        if kind in _FLAVORS:
            return OptionsDatabase(_FLAVORS[kind])
        if kind is SourceKind.NIXPKGS_TREE:
            return NixpkgsTreeDatabase()
        return XmlFuncDocDatabase()

    def load_source(self, kind: SourceKind, path: Path) -> CachedSource:
        if kind is SourceKind.NIXPKGS_COMMENTS:
            return CommentsDatabase.load_file(path, **self._comment_options())
        if kind in _FLAVORS:
            return OptionsDatabase.load_file(path, flavor=_FLAVORS[kind])
        if kind is SourceKind.NIXPKGS_TREE:
            return NixpkgsTreeDatabase.load_file(path)
        return XmlFuncDocDatabase.load_file(path)

    def _add(self, aggregate: AggregateDocSource, kind: SourceKind, source: DocSource) -> None:
        if kind in self.selected:
            aggregate.add_source(source)

    def _update_comments(
        self, paths: CachePaths, state: CacheState, aggregate: AggregateDocSource, stats: IndexStats
    ) -> bool:
        kind = SourceKind.NIXPKGS_COMMENTS
        path = paths.for_kind(kind)

        database: Optional[CachedSource] = None
        if state is CacheState.VALID and path.exists():
            try:
                database = self.load_source(kind, path)
            except NixDocsError as exc:
                LOGGER.warning("Failed to load %s cache, rebuilding: %s", kind.label, exc)
        from_scratch = database is None
        if from_scratch:
            LOGGER.info("Building %s cache...", kind.label)
            database = self.new_source(kind)

        try:
            changed = database.update()
        except NixDocsError as exc:
            LOGGER.error("Failed to update %s: %s", kind.label, exc)
            if from_scratch:
                _discard(path)
            stats.failed.append(kind)
            return False

        if changed or from_scratch:
            try:
                database.save(path)
            except NixDocsError as exc:
                LOGGER.warning("Failed to save %s cache: %s", kind.label, exc)

        (stats.built if from_scratch else stats.loaded).append(kind)
        self._add(aggregate, kind, database)
        return changed

    def _build(self, kind: SourceKind, paths: CachePaths) -> Optional[CachedSource]:
        """Rebuild one source. On failure its cache file is removed, the stamp
        written afterwards must not vouch for a blob from an older run."""
        LOGGER.info("Building %s cache...", kind.label)
        path = paths.for_kind(kind)
        source = self.new_source(kind)
        try:
            source.update()
        except NixDocsError as exc:
            LOGGER.error("Failed to update %s: %s", kind.label, exc)
            if kind in TIPS:
                LOGGER.error(TIPS[kind])
            _discard(path)
            return None
        try:
            source.save(path)
        except NixDocsError as exc:
            LOGGER.error("Failed to save %s cache: %s", kind.label, exc)
            _discard(path)
            return None
        return source

    def _load(self, kind: SourceKind, paths: CachePaths) -> Optional[CachedSource]:
        path = paths.for_kind(kind)
        if not path.exists():
            if kind in OPTIONAL_SOURCES:
                LOGGER.debug("No %s cache at %s", kind.label, path)
            else:
                LOGGER.warning("Failed to load %s cache file: %s does not exist", kind.label, path)
            return None
        try:
            return self.load_source(kind, path)
        except NixDocsError as exc:
            LOGGER.error("Failed to load %s: %s", kind.label, exc)
            return None

    def build(self, *, force: bool = False) -> tuple[AggregateDocSource, IndexStats]:
        """Return an aggregate over every selected source that could be made ready."""
        paths = self.config.cache_paths()
        state = self.cache_state(paths)
        stats = IndexStats(state=state)
        aggregate = AggregateDocSource(workers=self.config.workers)

        stats.comments_changed = self._update_comments(paths, state, aggregate, stats)

        if state is not CacheState.VALID or force or stats.comments_changed:
            # unselected sources are rebuilt too so the stamp covers every cache
            for kind in EXPENSIVE_SOURCES:
                source = self._build(kind, paths)
                if source is None:
                    stats.failed.append(kind)
                    continue
                stats.built.append(kind)
                self._add(aggregate, kind, source)
            try:
                write_version_stamp(paths.version_stamp, self.version)
            except NixDocsError as exc:
                LOGGER.warning("Failed to write version stamp: %s", exc)
        else:
            for kind in EXPENSIVE_SOURCES:
                if kind not in self.selected:
                    continue
                source = self._load(kind, paths)
                if source is None:
                    stats.failed.append(kind)
                    continue
                stats.loaded.append(kind)
                self._add(aggregate, kind, source)

        return aggregate, stats
