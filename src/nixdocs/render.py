"""Rich rendering of search hits."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from rich.text import Text

from nixdocs.models import (
    CommentDocumentation,
    DocEntry,
    OptionDocumentation,
    XmlFuncDocumentation,
)
from nixdocs.utils.text import join_comments

SEPARATOR = "────────────────────"
SHOW_MAX_LEN = 50


def _display_path(path: Optional[Path], root: Optional[Path]) -> str:
    if path is None:
        return ""
    if root is not None:
        try:
            return str(path.relative_to(root))
        except ValueError:
            pass
    return str(path)


def render_comment(doc: CommentDocumentation, root: Optional[Path] = None) -> Text:
    text = Text("# ")
    text.append(doc.key, style="bold blue")
    text.append(f" ({_display_path(doc.path, root)})", style="white")
    text.append("\n")
    text.append(join_comments(doc.comments))
    text.append("\n")
    return text


def render_option(doc: OptionDocumentation) -> Text:
    text = Text("# ")
    text.append(doc.name, style="bold blue")
    text.append(f"\n{doc.description}\ntype: {doc.option_type}\n")
    return text


def render_function(doc: XmlFuncDocumentation) -> Text:
    text = Text("# ")
    if doc.fn_type:
        text.append(doc.name, style="bold blue")
        text.append(" (")
        text.append(doc.fn_type, style="cyan")
        text.append(")")
    else:
        text.append(doc.name, style="blue")
    text.append(f"\n{doc.description}\n")

    if doc.args:
        text.append("\nArguments:\n")
        for name, description in doc.args:
            text.append("  ")
            text.append(name, style="green")
            text.append(f": {description}\n")
    if doc.example is not None:
        text.append("\nExample:\n")
        for line in doc.example.splitlines():
            text.append(f"  {line}\n", style="white")
    return text


def render_entry(entry: DocEntry, root: Optional[Path] = None) -> Text:
    """Documentation block for one hit: source label, separator, body."""
    payload = entry.payload
    if isinstance(payload, CommentDocumentation):
        body = render_comment(payload, root)
    elif isinstance(payload, OptionDocumentation):
        body = render_option(payload)
    elif isinstance(payload, XmlFuncDocumentation):
        body = render_function(payload)
    else:
        body = Text(f"{payload}\n")

    block = Text(entry.source, style="white")
    block.append("\n")
    block.append(SEPARATOR, style="green")
    block.append("\n")
    block.append_text(body)
    return block


def render_key_only(entries: Sequence[DocEntry], limit: int = SHOW_MAX_LEN) -> Text:
    """Compact one-line summary of name-only hits."""
    text = Text("Here's what I found in nixpkgs:", style="bold")
    for entry in entries[:limit]:
        text.append(" ")
        text.append(entry.name, style="white")
    if len(entries) > limit:
        text.append(f" and {len(entries) - limit} more.")
    text.append("\n")
    return text
