"""Command line interface for nixdocs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from nixdocs.config import AppConfig
from nixdocs.errors import CacheDirError
from nixdocs.index.indexer import Indexer
from nixdocs.index.search import Searcher
from nixdocs.models import SourceKind
from nixdocs.render import render_entry, render_key_only

console = Console()
app = typer.Typer(help="nixdocs - search nixpkgs, NixOS and Home Manager documentation")

ALL_SOURCES = ",".join(kind.value for kind in SourceKind)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _parse_sources(value: str) -> List[SourceKind]:
    sources = []
    for name in value.split(","):
        name = name.strip()
        if not name:
            continue
        try:
            sources.append(SourceKind(name))
        except ValueError:
            raise typer.BadParameter(
                f"Unknown source {name!r}, expected one of: {ALL_SOURCES}"
            ) from None
    return sources


def _build_index(config: AppConfig, sources: List[SourceKind], update_cache: bool):
    indexer = Indexer(config, selected=sources)
    try:
        return indexer.build(force=update_cache)
    except CacheDirError as exc:
        console.print(Text(str(exc), style="red"))
        raise typer.Exit(code=1) from exc


@app.command()
def search(
    query: str = typer.Argument(..., help="Query to search for"),
    strict: bool = typer.Option(False, "--strict", "-s", help="Match entries strictly (prefix only)"),
    update_cache: bool = typer.Option(False, "--update-cache", "-u", help="Force update cache"),
    source: str = typer.Option(ALL_SOURCES, "--source", help="Restrict search to chosen sources"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Directory holding the caches"),
    nixpkgs: Path = typer.Option(None, "--nixpkgs", help="nixpkgs checkout to scan for comments"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search every selected documentation source."""
    _setup_logging(verbose)
    sources = _parse_sources(source)
    config = AppConfig(cache_dir=cache_dir, nixpkgs_root=nixpkgs)

    aggregate, _ = _build_index(config, sources, update_cache)
    results = Searcher(aggregate).search(query, strict=strict)
    if not len(results):
        console.print("[yellow]No matches found.[/yellow]")
        return

    if results.key_only:
        console.print(render_key_only(results.key_only))

    root = config.nixpkgs_root
    for entry in results.documented:
        console.print(render_entry(entry, root))


@app.command()
def keys(
    source: str = typer.Option(ALL_SOURCES, "--source", help="Restrict to chosen sources"),
    show: bool = typer.Option(False, "--list", help="Print every key instead of counts"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Directory holding the caches"),
    nixpkgs: Path = typer.Option(None, "--nixpkgs", help="nixpkgs checkout to scan for comments"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show what each source has indexed."""
    _setup_logging(verbose)
    sources = _parse_sources(source)
    config = AppConfig(cache_dir=cache_dir, nixpkgs_root=nixpkgs)

    aggregate, stats = _build_index(config, sources, False)
    if show:
        for key in aggregate.all_keys():
            console.print(key, markup=False, highlight=False)
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Source")
    table.add_column("Keys", justify="right")
    for indexed in aggregate.sources:
        table.add_row(indexed.kind.label, str(len(indexed.all_keys())))
    console.print(table)
    if stats.failed:
        failed = ", ".join(kind.label for kind in stats.failed)
        console.print(f"[yellow]Unavailable: {failed}[/yellow]")
