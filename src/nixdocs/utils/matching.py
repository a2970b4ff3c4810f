"""ASCII case-insensitive matching over raw bytes.

Only ASCII letters are folded. Bytes outside the ASCII range are compared
verbatim, so ``"Ä"`` never matches ``"ä"``.
"""

from __future__ import annotations

from typing import NewType

Lowercase = NewType("Lowercase", bytes)


def fold(query: str) -> Lowercase:
    """Fold a query once so it can be compared against many keys."""
    return Lowercase(query.encode("utf-8").lower())


def starts_with_fold(haystack: bytes, needle: Lowercase) -> bool:
    if len(haystack) < len(needle):
        return False
    return haystack[: len(needle)].lower() == needle


def contains_fold(haystack: bytes, needle: Lowercase) -> bool:
    if len(haystack) < len(needle):
        return False
    return needle in haystack.lower()
