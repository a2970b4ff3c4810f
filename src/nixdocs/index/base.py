"""The capability set shared by every documentation source."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from nixdocs.models import DocEntry, SourceKind
from nixdocs.utils.matching import Lowercase


@runtime_checkable
class DocSource(Protocol):
    """A searchable index over one kind of documentation.

    ``search`` matches keys by prefix, ``search_liberal`` by substring; both
    expect a query already passed through :func:`nixdocs.utils.matching.fold`.
    ``update`` refreshes the index from upstream and reports whether anything
    changed. It either completes or leaves the previous index in place.
    """

    @property
    def kind(self) -> SourceKind: ...

    def all_keys(self) -> List[str]: ...

    def search(self, query: Lowercase) -> List[DocEntry]: ...

    def search_liberal(self, query: Lowercase) -> List[DocEntry]: ...

    def update(self) -> bool: ...
