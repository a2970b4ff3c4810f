"""Comment-documented functions across the nixpkgs source tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from nixdocs.errors import FileAccessError
from nixdocs.index.storage import CachedSource
from nixdocs.ingestion.comments import extract_definitions
from nixdocs.models import CommentDocumentation, DocEntry, SourceKind
from nixdocs.utils.files import iter_source_paths, read_and_hash
from nixdocs.utils.matching import Lowercase, contains_fold, starts_with_fold
from nixdocs.utils.pool import parallel_map

LOGGER = logging.getLogger(__name__)

HashedFile = Tuple[int, Path, str]


class CommentsDatabase(CachedSource):
    """Definitions keyed by the CRC32 of the file they were found in.

    A hash in ``hash_to_defs`` means that exact file content has been fully
    processed, so unchanged files are never parsed twice.
    """

    kind = SourceKind.NIXPKGS_COMMENTS

    def __init__(
        self,
        root: Path,
        *,
        workers: int = 4,
        suffix: str = ".nix",
        exclude: Optional[str] = "test",
        hash_to_defs: Optional[Dict[int, List[CommentDocumentation]]] = None,
    ) -> None:
        self.root = Path(root)
        self.workers = workers
        self.suffix = suffix
        self.exclude = exclude
        self.hash_to_defs: Dict[int, List[CommentDocumentation]] = hash_to_defs or {}

    def _definitions(self) -> Iterator[CommentDocumentation]:
        for definitions in self.hash_to_defs.values():
            yield from definitions

    def all_keys(self) -> List[str]:
        return [definition.key for definition in self._definitions()]

    def search(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, definition)
            for definition in self._definitions()
            if definition.comments and starts_with_fold(definition.key.encode("utf-8"), query)
        ]

    def search_liberal(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, definition)
            for definition in self._definitions()
            if definition.comments and contains_fold(definition.key.encode("utf-8"), query)
        ]

    def is_in_cache(self, content_hash: int) -> bool:
        return content_hash in self.hash_to_defs

    def _hash_file(self, path: Path) -> Optional[HashedFile]:
        try:
            return read_and_hash(path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Skipped %s: %s", path, exc)
            return None

    def _extract(self, item: HashedFile) -> Tuple[int, List[CommentDocumentation]]:
        content_hash, path, content = item
        return content_hash, extract_definitions(content, path)

    def update(self) -> bool:
        """Parse files whose content hash hasn't been seen yet.

        Returns ``False`` when every file was already cached.
        """
        if not self.root.is_dir():
            raise FileAccessError(self.root, "nixpkgs root is not a directory")

        paths = list(iter_source_paths(self.root, suffix=self.suffix, exclude=self.exclude))
        hashed = parallel_map(self._hash_file, paths, workers=self.workers)

        pending: Dict[int, HashedFile] = {}
        for item in hashed:
            if item is None or self.is_in_cache(item[0]):
                continue
            pending.setdefault(item[0], item)

        if not pending:
            LOGGER.debug("All %d files already cached", len(paths))
            return False

        LOGGER.info("Parsing %d new or changed files", len(pending))
        new_defs = parallel_map(self._extract, list(pending.values()), workers=self.workers)
        for content_hash, definitions in new_defs:
            self.hash_to_defs[content_hash] = definitions
        return True

    def to_state(self) -> Dict[str, Any]:
        return {
            "hash_to_defs": {
                content_hash: [
                    {
                        "key": definition.key,
                        "comments": list(definition.comments),
                        "path": str(definition.path) if definition.path else None,
                    }
                    for definition in definitions
                ]
                for content_hash, definitions in self.hash_to_defs.items()
            }
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], **options: Any) -> CommentsDatabase:
        hash_to_defs = {
            int(content_hash): [
                CommentDocumentation(
                    key=raw["key"],
                    comments=tuple(raw["comments"]),
                    path=Path(raw["path"]) if raw["path"] else None,
                )
                for raw in definitions
            ]
            for content_hash, definitions in state["hash_to_defs"].items()
        }
        return cls(hash_to_defs=hash_to_defs, **options)
