"""Binary persistence for documentation sources and the cache version stamp."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import msgpack
from msgpack.exceptions import UnpackException

from nixdocs.errors import DeserializeError, FileAccessError, SerializeError

LOGGER = logging.getLogger(__name__)

S = TypeVar("S", bound="CachedSource")


class CachedSource:
    """Mixin giving a source ``load``/``save`` over msgpack blobs.

    The blob layout mirrors ``to_state`` exactly and carries no schema
    version; stale caches are discarded through the version stamp instead.
    """

    def to_state(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_state(cls: Type[S], state: Dict[str, Any], **options: Any) -> S:
        raise NotImplementedError

    @classmethod
    def load(cls: Type[S], data: bytes, **options: Any) -> S:
        try:
            state = msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (UnpackException, ValueError, TypeError) as exc:
            raise DeserializeError(f"Failed to deserialize {cls.__name__}: {exc}") from exc
        if not isinstance(state, dict):
            raise DeserializeError(f"Failed to deserialize {cls.__name__}: unexpected layout")
        try:
            return cls.from_state(state, **options)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DeserializeError(f"Failed to deserialize {cls.__name__}: {exc!r}") from exc

    @classmethod
    def load_file(cls: Type[S], path: Path, **options: Any) -> S:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise FileAccessError(path, str(exc)) from exc
        return cls.load(data, **options)

    def dumps(self) -> bytes:
        try:
            return msgpack.packb(self.to_state(), use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as exc:
            raise SerializeError(f"Failed to serialize {type(self).__name__}: {exc}") from exc

    def save(self, path: Path) -> None:
        data = self.dumps()
        try:
            Path(path).write_bytes(data)
        except OSError as exc:
            raise FileAccessError(path, str(exc)) from exc
        LOGGER.debug("Wrote %d bytes to %s", len(data), path)


def read_version_stamp(path: Path) -> Optional[str]:
    """Version that wrote the caches, ``None`` on first run."""
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("Unreadable version stamp %s: %s", path, exc)
        return None


def write_version_stamp(path: Path, version: str) -> None:
    try:
        Path(path).write_text(version, encoding="utf-8")
    except OSError as exc:
        raise FileAccessError(path, str(exc)) from exc
