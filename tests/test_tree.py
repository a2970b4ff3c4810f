"""Tests for the nixpkgs package tree source."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from nixdocs.errors import ExternalToolError, ParseError
from nixdocs.index.tree import NixpkgsTreeDatabase, flatten_tree, parse_tree_document
from nixdocs.models import SourceKind
from nixdocs.utils.matching import fold

TREE = {
    "hello": {},
    "lib": {"strings": {}, "lists": {}},
    "python3Packages": {"requests": {}},
}


class TestFlattenTree:
    """Test attribute path flattening."""

    def test_two_levels(self) -> None:
        assert flatten_tree(TREE) == [
            "hello",
            "lib",
            "lib.strings",
            "lib.lists",
            "python3Packages",
            "python3Packages.requests",
        ]

    def test_empty(self) -> None:
        assert flatten_tree({}) == []

    def test_non_mapping_leaf(self) -> None:
        with pytest.raises(ParseError):
            flatten_tree({"hello": 1})

    def test_document_must_be_object(self) -> None:
        with pytest.raises(ParseError):
            parse_tree_document("[]")
        with pytest.raises(ParseError):
            parse_tree_document("{")


class TestNixpkgsTreeDatabase:
    """Test NixpkgsTreeDatabase update and search."""

    def test_update(self) -> None:
        database = NixpkgsTreeDatabase()

        with patch("nixdocs.index.tree.nixpkgs_tree_json", return_value=json.dumps(TREE)):
            assert database.update() is True
            assert database.update() is False

        assert len(database.all_keys()) == 6

    def test_tool_failure_keeps_keys(self) -> None:
        database = NixpkgsTreeDatabase(["hello"])

        with patch(
            "nixdocs.index.tree.nixpkgs_tree_json",
            side_effect=ExternalToolError(["nix-instantiate"], "boom"),
        ):
            with pytest.raises(ExternalToolError):
                database.update()

        assert database.all_keys() == ["hello"]

    def test_hits_are_key_only(self) -> None:
        database = NixpkgsTreeDatabase(flatten_tree(TREE))

        hits = database.search(fold("LIB."))

        assert [hit.name for hit in hits] == ["lib.strings", "lib.lists"]
        assert all(hit.kind is SourceKind.NIXPKGS_TREE and hit.is_key_only for hit in hits)

    def test_liberal(self) -> None:
        database = NixpkgsTreeDatabase(flatten_tree(TREE))

        assert [hit.name for hit in database.search_liberal(fold("request"))] == [
            "python3Packages.requests"
        ]
        assert database.search(fold("request")) == []
