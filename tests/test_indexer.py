"""Tests for the cache lifecycle driver."""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path

import pytest

from nixdocs.config import AppConfig
from nixdocs.errors import ExternalToolError
from nixdocs.index.indexer import EXPENSIVE_SOURCES, CacheState, Indexer, IndexStats
from nixdocs.ingestion.materializers import OptionsFlavor
from nixdocs.models import SourceKind

STRINGS_NIX = """{ lib }:
{
  # Concatenate a list of strings.
  concatStrings = list: lib.foldl' (a: b: a + b) "" list;
}
"""

FUNCTION_XML = """<section>
  <section>
    <title><function>lib.strings.concatStrings</function></title>
    <para>Concatenate a list of strings.</para>
  </section>
</section>
"""

ALL_KINDS_IN_ORDER = [SourceKind.NIXPKGS_COMMENTS, *EXPENSIVE_SOURCES]


class FakeUpstream:
    """Stands in for the nix tooling and counts how often each document is built."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: Counter = Counter()
        self.broken: set = set()
        self.docs_dir = root / "function-docs"
        self.docs_dir.mkdir(parents=True)
        (self.docs_dir / "strings.xml").write_text(FUNCTION_XML)

    def options_json_path(self, flavor: OptionsFlavor) -> Path:
        self.calls[flavor.value] += 1
        if flavor in self.broken:
            raise ExternalToolError(["nix-build"], f"cannot build {flavor.value} options")
        name = f"{flavor.value}.example.enable"
        path = self.root / f"{flavor.value}-options.json"
        path.write_text(
            json.dumps({name: {"loc": name.split("."), "type": "boolean", "description": "Demo."}})
        )
        return path

    def function_docs_dir(self) -> Path:
        self.calls["doc"] += 1
        return self.docs_dir

    def nixpkgs_tree_json(self) -> str:
        self.calls["tree"] += 1
        return json.dumps({"hello": {}, "lib": {"strings": {}}})


@pytest.fixture
def upstream(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeUpstream:
    fake = FakeUpstream(tmp_path / "upstream")
    monkeypatch.setattr("nixdocs.index.options.options_json_path", fake.options_json_path)
    monkeypatch.setattr("nixdocs.index.manual.function_docs_dir", fake.function_docs_dir)
    monkeypatch.setattr("nixdocs.index.tree.nixpkgs_tree_json", fake.nixpkgs_tree_json)
    return fake


@pytest.fixture
def nixpkgs(tmp_path: Path) -> Path:
    root = tmp_path / "nixpkgs"
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "strings.nix").write_text(STRINGS_NIX)
    return root


@pytest.fixture
def config(tmp_path: Path, nixpkgs: Path) -> AppConfig:
    return AppConfig(cache_dir=tmp_path / "cache", nixpkgs_root=nixpkgs, workers=2)


class TestIndexStats:
    """Test IndexStats defaults."""

    def test_init_defaults(self) -> None:
        """Test default initialization."""
        stats = IndexStats()
        assert stats.state is CacheState.FRESH
        assert stats.comments_changed is False
        assert stats.built == []
        assert stats.loaded == []
        assert stats.failed == []


class TestCacheState:
    """Test version stamp classification."""

    def test_states(self, config: AppConfig) -> None:
        """Missing, foreign and matching stamps map to the three states."""
        paths = config.cache_paths()
        indexer = Indexer(config, version="1.0.0")

        assert indexer.cache_state(paths) is CacheState.FRESH
        paths.version_stamp.write_text("0.9.0")
        assert indexer.cache_state(paths) is CacheState.INVALID
        paths.version_stamp.write_text("1.0.0")
        assert indexer.cache_state(paths) is CacheState.VALID


class TestBuild:
    """Test Indexer.build across consecutive runs."""

    def test_first_run_builds_everything(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """A fresh cache directory triggers a full rebuild and a version stamp."""
        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.state is CacheState.FRESH
        assert stats.comments_changed is True
        assert stats.built == ALL_KINDS_IN_ORDER
        assert stats.failed == []
        assert aggregate.kinds == ALL_KINDS_IN_ORDER

        paths = config.cache_paths()
        assert paths.version_stamp.read_text() == "1.0.0"
        for kind in SourceKind:
            assert paths.for_kind(kind).exists()

    def test_valid_cache_is_loaded(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """An unchanged tree reloads every cache without invoking nix."""
        Indexer(config, version="1.0.0").build()
        calls = Counter(upstream.calls)

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.state is CacheState.VALID
        assert stats.comments_changed is False
        assert stats.built == []
        assert stats.loaded == ALL_KINDS_IN_ORDER
        assert upstream.calls == calls
        assert "lib.strings.concatStrings" in aggregate.all_keys()
        assert "concatStrings" in aggregate.all_keys()

    def test_comment_change_rebuilds(
        self, config: AppConfig, upstream: FakeUpstream, nixpkgs: Path
    ) -> None:
        """Any new or edited source file refreshes the expensive sources."""
        Indexer(config, version="1.0.0").build()
        (nixpkgs / "lib" / "lists.nix").write_text("{\n  # Identity.\n  id = x: x;\n}\n")

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.state is CacheState.VALID
        assert stats.comments_changed is True
        assert stats.loaded == [SourceKind.NIXPKGS_COMMENTS]
        assert stats.built == list(EXPENSIVE_SOURCES)
        assert upstream.calls["tree"] == 2
        assert "id" in aggregate.all_keys()

    def test_force_rebuilds(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """--update-cache rebuilds even when nothing changed."""
        Indexer(config, version="1.0.0").build()

        _, stats = Indexer(config, version="1.0.0").build(force=True)

        assert stats.comments_changed is False
        assert stats.built == list(EXPENSIVE_SOURCES)
        assert upstream.calls["nixos"] == 2

    def test_version_change_rebuilds_from_scratch(
        self, config: AppConfig, upstream: FakeUpstream
    ) -> None:
        """Caches stamped by another version are discarded, comments included."""
        Indexer(config, version="0.9.0").build()

        _, stats = Indexer(config, version="1.0.0").build()

        assert stats.state is CacheState.INVALID
        assert stats.built == ALL_KINDS_IN_ORDER
        assert config.cache_paths().version_stamp.read_text() == "1.0.0"

    def test_failing_source_is_omitted(
        self, config: AppConfig, upstream: FakeUpstream, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A source that can't be built is logged with its tip and left out."""
        upstream.broken.add(OptionsFlavor.HOME_MANAGER)
        caplog.set_level(logging.INFO)

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.failed == [SourceKind.HM_OPTIONS]
        assert SourceKind.HM_OPTIONS not in aggregate.kinds
        assert SourceKind.NIXOS_OPTIONS in aggregate.kinds
        assert "Failed to update Home Manager Options" in caplog.text
        assert "Tip: If you installed home-manager" in caplog.text
        assert not config.cache_paths().for_kind(SourceKind.HM_OPTIONS).exists()

    def test_missing_optional_cache_is_quiet(
        self, config: AppConfig, upstream: FakeUpstream, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A missing Home Manager cache on reload is only a debug message."""
        upstream.broken.add(OptionsFlavor.HOME_MANAGER)
        Indexer(config, version="1.0.0").build()
        caplog.clear()
        caplog.set_level(logging.DEBUG)

        _, stats = Indexer(config, version="1.0.0").build()

        assert stats.failed == [SourceKind.HM_OPTIONS]
        warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert warnings == []

    def test_missing_required_cache_warns(
        self, config: AppConfig, upstream: FakeUpstream, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A missing NixOS cache on reload is reported."""
        Indexer(config, version="1.0.0").build()
        config.cache_paths().for_kind(SourceKind.NIXOS_OPTIONS).unlink()
        caplog.set_level(logging.WARNING)

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.failed == [SourceKind.NIXOS_OPTIONS]
        assert SourceKind.NIXOS_OPTIONS not in aggregate.kinds
        assert "Failed to load NixOS Options cache file" in caplog.text

    def test_corrupt_cache_is_omitted(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """Undecodable blobs drop only their own source."""
        Indexer(config, version="1.0.0").build()
        config.cache_paths().for_kind(SourceKind.NIXPKGS_TREE).write_bytes(b"\xc1\xc1")

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.failed == [SourceKind.NIXPKGS_TREE]
        assert len(aggregate) == 5

    def test_corrupt_comment_cache_is_rebuilt(
        self, config: AppConfig, upstream: FakeUpstream
    ) -> None:
        """The comment index is recomputed when its blob can't be read."""
        Indexer(config, version="1.0.0").build()
        config.cache_paths().for_kind(SourceKind.NIXPKGS_COMMENTS).write_bytes(b"garbage")

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.built == ALL_KINDS_IN_ORDER
        assert "concatStrings" in aggregate.all_keys()

    def test_missing_nixpkgs_root(
        self, tmp_path: Path, upstream: FakeUpstream
    ) -> None:
        """Without a nixpkgs tree the other sources still work."""
        config = AppConfig(cache_dir=tmp_path / "cache", nixpkgs_root=tmp_path / "absent", workers=2)

        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert stats.failed == [SourceKind.NIXPKGS_COMMENTS]
        assert aggregate.kinds == list(EXPENSIVE_SOURCES)

    def test_failed_rebuild_drops_old_cache(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """A source that fails after an upgrade can't leave its old blob behind."""
        Indexer(config, version="0.9.0").build()
        hm_cache = config.cache_paths().for_kind(SourceKind.HM_OPTIONS)
        assert hm_cache.exists()
        upstream.broken.add(OptionsFlavor.HOME_MANAGER)

        Indexer(config, version="1.0.0").build()
        aggregate, stats = Indexer(config, version="1.0.0").build()

        assert not hm_cache.exists()
        assert stats.state is CacheState.VALID
        assert SourceKind.HM_OPTIONS in stats.failed
        assert SourceKind.HM_OPTIONS not in aggregate.kinds

    def test_failed_comment_rebuild_drops_old_cache(
        self, tmp_path: Path, config: AppConfig, upstream: FakeUpstream
    ) -> None:
        """The comment blob from an older version is removed when rebuilding it fails."""
        Indexer(config, version="0.9.0").build()
        comments_cache = config.cache_paths().for_kind(SourceKind.NIXPKGS_COMMENTS)
        assert comments_cache.exists()
        unreachable = AppConfig(
            cache_dir=config.cache_dir, nixpkgs_root=tmp_path / "absent", workers=2
        )

        _, stats = Indexer(unreachable, version="1.0.0").build()

        assert stats.failed == [SourceKind.NIXPKGS_COMMENTS]
        assert not comments_cache.exists()

        _, stats = Indexer(config, version="1.0.0").build()

        assert stats.state is CacheState.VALID
        assert stats.built[0] is SourceKind.NIXPKGS_COMMENTS

    def test_selected_subset(self, config: AppConfig, upstream: FakeUpstream) -> None:
        """Only chosen sources are searched, but every cache is kept current."""
        aggregate, _ = Indexer(
            config, selected=[SourceKind.NIXOS_OPTIONS], version="1.0.0"
        ).build()

        assert aggregate.kinds == [SourceKind.NIXOS_OPTIONS]
        assert config.cache_paths().for_kind(SourceKind.HM_OPTIONS).exists()

        aggregate, stats = Indexer(
            config, selected=[SourceKind.NIXPKGS_DOC], version="1.0.0"
        ).build()

        assert aggregate.kinds == [SourceKind.NIXPKGS_DOC]
        assert stats.loaded == [SourceKind.NIXPKGS_COMMENTS, SourceKind.NIXPKGS_DOC]
