"""Core nixdocs data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union


class SourceKind(str, Enum):
    """Every documentation source nixdocs knows about.

    The value doubles as the name accepted by ``--source`` on the command line.
    """

    HM_OPTIONS = "hm_options"
    ND_OPTIONS = "nd_options"
    NIXOS_OPTIONS = "nixos_options"
    NIXPKGS_DOC = "nixpkgs_doc"
    NIXPKGS_TREE = "nixpkgs_tree"
    NIXPKGS_COMMENTS = "nixpkgs_comments"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    SourceKind.HM_OPTIONS: "Home Manager Options",
    SourceKind.ND_OPTIONS: "Nix-Darwin Options",
    SourceKind.NIXOS_OPTIONS: "NixOS Options",
    SourceKind.NIXPKGS_DOC: "Nixpkgs Documentation",
    SourceKind.NIXPKGS_TREE: "Nixpkgs Tree",
    SourceKind.NIXPKGS_COMMENTS: "Nixpkgs Comments",
}


@dataclass(frozen=True, slots=True)
class CommentDocumentation:
    """A named function binding and the comments written right above it."""

    key: str
    comments: Tuple[str, ...] = ()
    path: Optional[Path] = None

    def with_path(self, path: Path) -> CommentDocumentation:
        return replace(self, path=path)

    @property
    def name(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class OptionDocumentation:
    """One entry of an ``options.json`` document."""

    location: Tuple[str, ...]
    option_type: str
    description: str = ""
    read_only: bool = False

    @property
    def name(self) -> str:
        return ".".join(self.location)


@dataclass(frozen=True, slots=True)
class XmlFuncDocumentation:
    """A function reference section from the nixpkgs manual."""

    name: str
    description: str
    fn_type: Optional[str] = None
    args: Tuple[Tuple[str, str], ...] = ()
    example: Optional[str] = None


Payload = Union[CommentDocumentation, OptionDocumentation, XmlFuncDocumentation, str]


@dataclass(frozen=True, slots=True)
class DocEntry:
    """A search hit tagged with the source it came from.

    Package tree hits carry the bare attribute path as payload.
    """

    kind: SourceKind
    payload: Payload

    @property
    def name(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return self.payload.name

    @property
    def is_key_only(self) -> bool:
        return self.kind is SourceKind.NIXPKGS_TREE

    @property
    def source(self) -> str:
        return self.kind.label


@dataclass(slots=True)
class SearchResults:
    """Search hits split the way the command line presents them."""

    documented: List[DocEntry] = field(default_factory=list)
    key_only: List[DocEntry] = field(default_factory=list)

    @classmethod
    def partition(cls, entries: List[DocEntry]) -> SearchResults:
        results = cls()
        for entry in entries:
            if entry.is_key_only:
                results.key_only.append(entry)
            else:
                results.documented.append(entry)
        return results

    def __len__(self) -> int:
        return len(self.documented) + len(self.key_only)
