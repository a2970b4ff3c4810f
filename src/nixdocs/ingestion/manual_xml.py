"""Function reference extraction from the nixpkgs DocBook manual."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

from nixdocs.errors import FileAccessError, ParseError
from nixdocs.models import XmlFuncDocumentation
from nixdocs.utils.files import iter_source_paths

LOGGER = logging.getLogger(__name__)


def _local_name(element: ET.Element) -> str:
    # DocBook 5 documents are namespaced: "{http://docbook.org/ns/docbook}para"
    return element.tag.rpartition("}")[2] if isinstance(element.tag, str) else ""


def is_tag(element: Optional[ET.Element], name: str) -> bool:
    return element is not None and _local_name(element) == name


def _first_child(element: Optional[ET.Element]) -> Optional[ET.Element]:
    if element is None:
        return None
    return next(iter(element), None)


def _find(element: ET.Element, name: str) -> Optional[ET.Element]:
    """First descendant-or-self with the given local name."""
    return next((node for node in element.iter() if is_tag(node, name)), None)


def is_function_section(element: ET.Element) -> bool:
    title = _first_child(element)
    return (
        is_tag(element, "section")
        and is_tag(title, "title")
        and is_tag(_first_child(title), "function")
    )


def _function_type(section: ET.Element) -> Optional[str]:
    for node in section.iter():
        if is_tag(node, "subtitle") and is_tag(_first_child(node), "literal"):
            return _first_child(node).text
    return None


def _arguments(section: ET.Element) -> tuple[tuple[str, str], ...]:
    variables = _find(section, "variablelist")
    if variables is None:
        return ()
    args = []
    for entry in variables:
        name = _find(entry, "varname")
        desc = _find(entry, "para")
        if name is None or desc is None or name.text is None or desc.text is None:
            continue
        args.append((name.text, desc.text))
    return tuple(args)


def _example(section: ET.Element) -> Optional[str]:
    example = _find(section, "example")
    if example is None:
        return None
    listing = _find(example, "programlisting")
    if listing is None:
        return None
    return "".join(listing.itertext())


def parse_function_section(section: ET.Element) -> Optional[XmlFuncDocumentation]:
    """Extract one function's documentation, ``None`` if name or description is missing."""
    name = _first_child(_first_child(section))
    para = _find(section, "para")
    if name is None or name.text is None or para is None or para.text is None:
        return None

    return XmlFuncDocumentation(
        name=name.text,
        description=para.text,
        fn_type=_function_type(section),
        args=_arguments(section),
        example=_example(section),
    )


def parse_manual_document(content: str | bytes, source: str = "<xml>") -> List[XmlFuncDocumentation]:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ParseError(source, str(exc)) from exc

    functions = []
    for element in root.iter():
        if not is_function_section(element):
            continue
        doc = parse_function_section(element)
        if doc is not None:
            functions.append(doc)
    return functions


def parse_manual_directory(directory: Path) -> List[XmlFuncDocumentation]:
    """Read every ``.xml`` page below ``directory``.

    Any unreadable or malformed page aborts the whole run.
    """
    if not directory.is_dir():
        raise FileAccessError(directory, "not a directory")

    functions: List[XmlFuncDocumentation] = []
    for path in iter_source_paths(directory, suffix=".xml"):
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise FileAccessError(path, str(exc)) from exc
        functions.extend(parse_manual_document(content, str(path)))
    LOGGER.debug("Parsed %d function sections from %s", len(functions), directory)
    return functions
