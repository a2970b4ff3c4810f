"""Search across every loaded documentation source."""

from __future__ import annotations

import logging
from typing import Callable, List

from nixdocs.index.base import DocSource
from nixdocs.models import DocEntry, SearchResults, SourceKind
from nixdocs.utils.matching import Lowercase, fold
from nixdocs.utils.pool import parallel_map

LOGGER = logging.getLogger(__name__)


class AggregateDocSource:
    """Fans queries out to its sources and concatenates what they return.

    Results keep registration order and are not deduplicated, a name may
    legitimately exist both as an option and as a documented function.
    """

    def __init__(self, *, workers: int = 4) -> None:
        self.workers = workers
        self._sources: List[DocSource] = []

    def add_source(self, source: DocSource) -> None:
        self._sources.append(source)

    @property
    def sources(self) -> List[DocSource]:
        return list(self._sources)

    @property
    def kinds(self) -> List[SourceKind]:
        return [source.kind for source in self._sources]

    def __len__(self) -> int:
        return len(self._sources)

    def _fan_out(self, call: Callable[[DocSource], list]) -> list:
        merged: list = []
        for part in parallel_map(call, self._sources, workers=self.workers):
            merged.extend(part)
        return merged

    def all_keys(self) -> List[str]:
        return self._fan_out(lambda source: source.all_keys())

    def search(self, query: Lowercase) -> List[DocEntry]:
        return self._fan_out(lambda source: source.search(query))

    def search_liberal(self, query: Lowercase) -> List[DocEntry]:
        return self._fan_out(lambda source: source.search_liberal(query))


class Searcher:
    """High-level query API used by the command line."""

    def __init__(self, aggregate: AggregateDocSource) -> None:
        self.aggregate = aggregate

    def search(self, query: str, *, strict: bool = False) -> SearchResults:
        needle = fold(query)
        if strict:
            entries = self.aggregate.search(needle)
        else:
            entries = self.aggregate.search_liberal(needle)
        LOGGER.debug("%d matches for %r across %d sources", len(entries), query, len(self.aggregate))
        return SearchResults.partition(entries)
