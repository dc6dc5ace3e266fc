from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO, Protocol

from flask import current_app

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def write(self, content: bytes, path: str, mime_type: str | None, meta: dict[str, str]) -> str: ...

    def read_stream(self, path: str) -> BinaryIO: ...

    def delete(self, path: str) -> None: ...

    def iter_paths(self, prefix: str) -> Iterator[str]: ...


class FileSystemBlobStore:
    """Stores blobs below a root folder (by default ``<instance>/storage``).

    Paths handed in are relative POSIX paths; anything that would escape the
    root is rejected.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _absolute(self, path: str) -> Path:
        absolute = (self.root / path).resolve()
        root = self.root.resolve()
        if absolute != root and root not in absolute.parents:
            raise ValueError(f"Caminho de armazenamento invalido: {path}")
        return absolute

    def write(self, content: bytes, path: str, mime_type: str | None, meta: dict[str, str]) -> str:
        absolute = self._absolute(path)
        absolute.parent.mkdir(parents=True, exist_ok=True)
        absolute.write_bytes(content)
        logger.debug("Blob gravado em %s (%s bytes, %s) meta=%s", path, len(content), mime_type, meta)
        return absolute.relative_to(self.root.resolve()).as_posix()

    def read_stream(self, path: str) -> BinaryIO:
        absolute = self._absolute(path)
        if not absolute.is_file():
            raise FileNotFoundError(path)
        return absolute.open("rb")

    def delete(self, path: str) -> None:
        absolute = self._absolute(path)
        if absolute.is_file():
            absolute.unlink()

    def iter_paths(self, prefix: str) -> Iterator[str]:
        base = self._absolute(prefix)
        if not base.exists():
            return
        root = self.root.resolve()
        for item in sorted(base.rglob("*")):
            if item.is_file():
                yield item.relative_to(root).as_posix()


def default_storage_root() -> Path:
    configured = (current_app.config.get("STORAGE_ROOT") or "").strip()
    if configured:
        return Path(configured)
    return Path(current_app.instance_path) / "storage"


def blob_store() -> BlobStore:
    store = current_app.extensions.get("blob_store")
    if store is None:
        store = FileSystemBlobStore(default_storage_root())
        current_app.extensions["blob_store"] = store
    return store
