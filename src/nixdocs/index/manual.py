"""Function reference pages from the nixpkgs manual."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from nixdocs.index.storage import CachedSource
from nixdocs.ingestion.manual_xml import parse_manual_directory
from nixdocs.ingestion.materializers import function_docs_dir
from nixdocs.models import DocEntry, SourceKind, XmlFuncDocumentation
from nixdocs.utils.matching import Lowercase, contains_fold, starts_with_fold

LOGGER = logging.getLogger(__name__)


class XmlFuncDocDatabase(CachedSource):
    kind = SourceKind.NIXPKGS_DOC

    def __init__(self, functions: Optional[Dict[str, XmlFuncDocumentation]] = None) -> None:
        self.functions: Dict[str, XmlFuncDocumentation] = functions or {}

    def all_keys(self) -> List[str]:
        return list(self.functions)

    def search(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, doc)
            for name, doc in self.functions.items()
            if starts_with_fold(name.encode("utf-8"), query)
        ]

    def search_liberal(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, doc)
            for name, doc in self.functions.items()
            if contains_fold(name.encode("utf-8"), query)
        ]

    def update(self) -> bool:
        functions = {doc.name: doc for doc in parse_manual_directory(function_docs_dir())}
        old, self.functions = self.functions, functions
        LOGGER.debug("Loaded %d manual functions", len(functions))
        return set(old) != set(functions)

    def to_state(self) -> Dict[str, Any]:
        return {
            "functions": [
                {
                    "name": doc.name,
                    "description": doc.description,
                    "fn_type": doc.fn_type,
                    "args": [list(arg) for arg in doc.args],
                    "example": doc.example,
                }
                for doc in self.functions.values()
            ]
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], **options: Any) -> XmlFuncDocDatabase:
        functions = {}
        for raw in state["functions"]:
            doc = XmlFuncDocumentation(
                name=raw["name"],
                description=raw["description"],
                fn_type=raw["fn_type"],
                args=tuple((name, desc) for name, desc in raw["args"]),
                example=raw["example"],
            )
            functions[doc.name] = doc
        return cls(functions)
