"""Byte loaders for resources that are not inlined in the document.

A byte loader is any callable taking the resource URI and returning its
bytes; it raises on failure. The reader never does I/O itself.
"""

import logging
import os
from pathlib import Path
from typing import Protocol, Union, runtime_checkable
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)


class ByteLoaderError(OSError):
    """Raised when a byte loader cannot produce the bytes of a URI."""
    pass


@runtime_checkable
class ByteLoader(Protocol):
    """Synchronous ``uri -> bytes`` resolver, called once per unresolved reference."""

    def __call__(self, uri: str) -> bytes:
        ...


class FileSystemByteLoader:
    """Resolve relative URIs against a base directory.

    Absolute URIs with a scheme (``http:``, ``https:`` ...) are rejected; a
    ``file:`` URI is accepted when it points inside ``base_dir``.
    """

    def __init__(self, base_dir: Union[str, os.PathLike]):
        self.base_dir = Path(base_dir).resolve()

    def resolve(self, uri: str) -> Path:
        parts = urlsplit(uri)
        if parts.scheme and parts.scheme != "file":
            raise ByteLoaderError(f"Cannot load '{uri}': unsupported URI scheme '{parts.scheme}'")
        path = (self.base_dir / unquote(parts.path)).resolve()
        if path != self.base_dir and self.base_dir not in path.parents:
            raise ByteLoaderError(f"Cannot load '{uri}': resolves outside {self.base_dir}")
        return path

    def __call__(self, uri: str) -> bytes:
        path = self.resolve(uri)
        logger.debug("Loading %s from %s", uri, path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise ByteLoaderError(f"Cannot load '{uri}': {e.strerror or e}") from e
