"""Attach free-floating comments to the function bindings they document.

Given::

    {
      # Concatenate a list of strings
      concatStrings = list: ...;
    }

the comment is a sibling of the ``binding`` node, not a child of it, so the
extractor walks backwards from the lambda through the ``=`` token and the
attribute path, climbing to the parent whenever a level runs out.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from nixdocs.errors import MalformedTreeError, ParseError
from nixdocs.ingestion.syntax import (
    SyntaxKind,
    SyntaxNode,
    classify,
    is_trivia,
    node_text,
    parse_nix,
    preorder,
)
from nixdocs.models import CommentDocumentation

LOGGER = logging.getLogger(__name__)

_TRANSPARENT = (SyntaxKind.ATTRPATH, SyntaxKind.ASSIGN)


def find_comments(node: SyntaxNode) -> Optional[List[str]]:
    """Collect the comments preceding ``node`` in source order.

    Returns ``None`` when the walk climbs past the root without hitting a
    node that ends the comment run.
    """
    current = node
    comments: List[str] = []

    while True:
        previous = current.prev_sibling
        while previous is None:
            parent = current.parent
            if parent is None:
                return None
            current = parent
            previous = current.prev_sibling
        current = previous

        kind = classify(current)
        if kind is SyntaxKind.COMMENT:
            comments.append(node_text(current))
        elif kind in _TRANSPARENT or is_trivia(current):
            continue
        else:
            break

    # collected bottom-up
    comments.reverse()
    return comments


def _binding_parts(binding: SyntaxNode) -> Tuple[str, SyntaxNode]:
    attrpath = binding.child_by_field_name("attrpath")
    value = binding.child_by_field_name("expression")
    if attrpath is None or value is None:
        raise MalformedTreeError("binding has no attribute path or value")

    first = next((child for child in attrpath.children if not child.is_extra), None)
    if first is None or classify(first) is not SyntaxKind.IDENT:
        raise MalformedTreeError("binding name is not a plain identifier")
    if classify(value) is not SyntaxKind.LAMBDA:
        raise MalformedTreeError("binding value is not a function")
    return node_text(first), value


def visit_binding(binding: SyntaxNode) -> Optional[CommentDocumentation]:
    """Build a definition for ``name = arg: ...;`` or ``None`` for any other shape."""
    try:
        name, value = _binding_parts(binding)
    except MalformedTreeError:
        return None

    comments = find_comments(value) or []
    return CommentDocumentation(key=name, comments=tuple(comments))


def visit_attrset(attrset: SyntaxNode) -> List[CommentDocumentation]:
    """Definitions for the direct bindings of one attribute set."""
    definitions: List[CommentDocumentation] = []
    for child in attrset.children:
        if child.type != "binding_set":
            continue
        for entry in child.children:
            if classify(entry) is not SyntaxKind.BINDING:
                continue
            definition = visit_binding(entry)
            if definition is not None:
                definitions.append(definition)
    return definitions


def walk_tree(root: SyntaxNode) -> List[CommentDocumentation]:
    """Visit every attribute set in the tree, nested ones included."""
    definitions: List[CommentDocumentation] = []
    for node in preorder(root):
        if classify(node) is SyntaxKind.ATTRSET:
            definitions.extend(visit_attrset(node))
    return definitions


def extract_definitions(
    source: str, path: Path | None = None, *, strict: bool = False
) -> List[CommentDocumentation]:
    """Parse a Nix file and return its documented (and undocumented) functions.

    A file with syntax errors is still walked, bindings the parser recovered
    are kept. With ``strict`` it raises ``ParseError`` instead.
    """
    tree = parse_nix(source)
    root = tree.root_node
    if root.has_error:
        where = str(path) if path else "<nix source>"
        if strict:
            raise ParseError(where, "syntax error")
        LOGGER.warning("Syntax errors in %s, indexing the parts that parsed", where)

    definitions = walk_tree(root)
    if path is not None:
        definitions = [definition.with_path(path) for definition in definitions]
    LOGGER.debug("Found %d definitions in %s", len(definitions), path)
    return definitions
