"""Module system options read from ``options.json`` documents."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from nixdocs.errors import FileAccessError, ParseError
from nixdocs.index.storage import CachedSource
from nixdocs.ingestion.materializers import OptionsFlavor, options_json_path
from nixdocs.models import DocEntry, OptionDocumentation, SourceKind
from nixdocs.utils.matching import Lowercase, contains_fold, starts_with_fold

LOGGER = logging.getLogger(__name__)

_FLAVOR_KINDS = {
    OptionsFlavor.NIXOS: SourceKind.NIXOS_OPTIONS,
    OptionsFlavor.HOME_MANAGER: SourceKind.HM_OPTIONS,
    OptionsFlavor.NIX_DARWIN: SourceKind.ND_OPTIONS,
}


def _description(raw: Any) -> str:
    # newer module systems emit {"_type": "mdDoc", "text": "..."}
    if isinstance(raw, Mapping):
        return str(raw.get("text", ""))
    return "" if raw is None else str(raw)


def parse_option(name: str, raw: Any) -> OptionDocumentation:
    if not isinstance(raw, Mapping):
        raise ParseError(name, "option entry is not an object")
    try:
        location = raw["loc"]
        option_type = raw["type"]
    except KeyError as exc:
        raise ParseError(name, f"missing field {exc.args[0]!r}") from exc
    if not isinstance(location, list) or not all(isinstance(part, str) for part in location):
        raise ParseError(name, "'loc' is not a list of strings")

    return OptionDocumentation(
        location=tuple(location),
        option_type=str(option_type),
        description=_description(raw.get("description")),
        read_only=bool(raw.get("readOnly", False)),
    )


def parse_options_document(data: bytes, source: str = "options.json") -> Dict[str, OptionDocumentation]:
    try:
        document = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(source, str(exc)) from exc
    if not isinstance(document, dict):
        raise ParseError(source, "top level is not an object")

    options: Dict[str, OptionDocumentation] = {}
    for name, raw in document.items():
        option = parse_option(name, raw)
        options[option.name] = option
    return options


def load_options_file(path: Path) -> Dict[str, OptionDocumentation]:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise FileAccessError(path, str(exc)) from exc
    return parse_options_document(data, str(path))


class OptionsDatabase(CachedSource):
    """Options of one module system, replaced wholesale on every update."""

    def __init__(
        self,
        flavor: OptionsFlavor,
        options: Optional[Dict[str, OptionDocumentation]] = None,
    ) -> None:
        self.flavor = OptionsFlavor(flavor)
        self.options: Dict[str, OptionDocumentation] = options or {}

    @property
    def kind(self) -> SourceKind:
        return _FLAVOR_KINDS[self.flavor]

    def all_keys(self) -> List[str]:
        return list(self.options)

    def search(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, option)
            for key, option in self.options.items()
            if starts_with_fold(key.encode("utf-8"), query)
        ]

    def search_liberal(self, query: Lowercase) -> List[DocEntry]:
        return [
            DocEntry(self.kind, option)
            for key, option in self.options.items()
            if contains_fold(key.encode("utf-8"), query)
        ]

    def update(self) -> bool:
        options = load_options_file(options_json_path(self.flavor))
        old, self.options = self.options, options
        LOGGER.debug("Loaded %d %s options", len(options), self.flavor.value)
        return set(old) != set(options)

    def to_state(self) -> Dict[str, Any]:
        return {
            "flavor": self.flavor.value,
            "options": [
                {
                    "loc": list(option.location),
                    "type": option.option_type,
                    "description": option.description,
                    "readOnly": option.read_only,
                }
                for option in self.options.values()
            ],
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], **options: Any) -> OptionsDatabase:
        documents = [
            OptionDocumentation(
                location=tuple(raw["loc"]),
                option_type=raw["type"],
                description=raw["description"],
                read_only=raw["readOnly"],
            )
            for raw in state["options"]
        ]
        database = cls(OptionsFlavor(state["flavor"]), {doc.name: doc for doc in documents})
        expected = options.get("flavor")
        if expected is not None and OptionsFlavor(expected) is not database.flavor:
            raise ValueError(
                f"cache holds {database.flavor.value} options, not {OptionsFlavor(expected).value}"
            )
        return database
