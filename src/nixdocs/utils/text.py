"""Text helpers for presenting raw comments."""

from __future__ import annotations

from typing import Iterable


def cleanup_comment(comment: str) -> str:
    """Strip the ``#``, ``/*`` and ``*/`` delimiters from a raw comment."""
    text = comment.lstrip("#")
    while text.startswith("/*"):
        text = text[2:]
    while text.endswith("*/"):
        text = text[:-2]
    return text


def join_comments(comments: Iterable[str]) -> str:
    return "\n".join(cleanup_comment(comment) for comment in comments)
