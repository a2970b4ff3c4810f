"""Thin adapter over the tree-sitter Nix grammar.

Everything that knows about grammar node names lives here, the comment
extractor only sees :class:`SyntaxKind` values.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Iterator, Optional, Protocol, Sequence

import tree_sitter_nix
from tree_sitter import Language, Parser, Tree

NIX_LANGUAGE = Language(tree_sitter_nix.language())

_local = threading.local()


class SyntaxNode(Protocol):
    """The part of ``tree_sitter.Node`` the extractor relies on."""

    @property
    def type(self) -> str: ...

    @property
    def parent(self) -> Optional[SyntaxNode]: ...

    @property
    def prev_sibling(self) -> Optional[SyntaxNode]: ...

    @property
    def children(self) -> Sequence[SyntaxNode]: ...

    @property
    def is_extra(self) -> bool: ...

    @property
    def text(self) -> Optional[bytes]: ...

    def child_by_field_name(self, name: str) -> Optional[SyntaxNode]: ...


class SyntaxKind(Enum):
    COMMENT = "comment"
    IDENT = "ident"
    ATTRPATH = "attrpath"
    ASSIGN = "assign"
    ATTRSET = "attrset"
    BINDING = "binding"
    LAMBDA = "lambda"
    OTHER = "other"


_KINDS = {
    "comment": SyntaxKind.COMMENT,
    "identifier": SyntaxKind.IDENT,
    "attrpath": SyntaxKind.ATTRPATH,
    "=": SyntaxKind.ASSIGN,
    "attrset_expression": SyntaxKind.ATTRSET,
    "rec_attrset_expression": SyntaxKind.ATTRSET,
    "binding": SyntaxKind.BINDING,
    "function_expression": SyntaxKind.LAMBDA,
}


def classify(node: SyntaxNode) -> SyntaxKind:
    return _KINDS.get(node.type, SyntaxKind.OTHER)


def is_trivia(node: SyntaxNode) -> bool:
    """Extras other than comments carry no meaning for documentation."""
    return node.is_extra and classify(node) is not SyntaxKind.COMMENT


def node_text(node: SyntaxNode) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")


def _parser() -> Parser:
    # tree-sitter parsers are not safe to share between threads
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser(NIX_LANGUAGE)
        _local.parser = parser
    return parser


def parse_nix(source: str) -> Tree:
    return _parser().parse(source.encode("utf-8"))


def preorder(root: SyntaxNode) -> Iterator[SyntaxNode]:
    """Yield every node of the tree, parents before children."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))
