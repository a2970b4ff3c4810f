"""Attribute paths reachable in the top two levels of nixpkgs."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from nixdocs.errors import ParseError
from nixdocs.index.storage import CachedSource
from nixdocs.ingestion.materializers import nixpkgs_tree_json
from nixdocs.models import DocEntry, SourceKind
from nixdocs.utils.matching import Lowercase, contains_fold, starts_with_fold

LOGGER = logging.getLogger(__name__)


def flatten_tree(tree: Mapping[str, Any], prefix: str = "") -> List[str]:
    """Turn ``{"lib": {"strings": {}}}`` into ``["lib", "lib.strings"]``."""
    keys: List[str] = []
    for name, children in tree.items():
        if not isinstance(children, Mapping):
            raise ParseError("nixpkgs tree", f"{prefix}{name} is not an attribute set")
        path = f"{prefix}{name}"
        keys.append(path)
        keys.extend(flatten_tree(children, f"{path}."))
    return keys


def parse_tree_document(raw: str) -> List[str]:
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError("nixpkgs tree", str(exc)) from exc
    if not isinstance(document, dict):
        raise ParseError("nixpkgs tree", "top level is not an object")
    return flatten_tree(document)


class NixpkgsTreeDatabase(CachedSource):
    """Package namespace paths. Hits carry no documentation, only the name."""

    kind = SourceKind.NIXPKGS_TREE

    def __init__(self, keys: Optional[List[str]] = None) -> None:
        self.keys: List[str] = keys or []

    def all_keys(self) -> List[str]:
        return list(self.keys)

    def search(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, key)
            for key in self.keys
            if starts_with_fold(key.encode("utf-8"), query)
        ]

    def search_liberal(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, key)
            for key in self.keys
            if contains_fold(key.encode("utf-8"), query)
        ]

    def update(self) -> bool:
        keys = parse_tree_document(nixpkgs_tree_json())
        old, self.keys = self.keys, keys
        LOGGER.debug("Loaded %d nixpkgs attribute paths", len(keys))
        return set(old) != set(keys)

    def to_state(self) -> Dict[str, Any]:
        return {"keys": list(self.keys)}

    @classmethod
    def from_state(cls, state: Dict[str, Any], **options: Any) -> NixpkgsTreeDatabase:
        keys = state["keys"]
        if not all(isinstance(key, str) for key in keys):
            raise ValueError("tree keys must be strings")
        return cls(list(keys))
