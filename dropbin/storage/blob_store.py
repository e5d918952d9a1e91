from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol


logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when the blob store cannot complete an operation."""


class BlobNotFoundError(BlobStoreError):
    """Raised when no blob exists at the requested path."""


@dataclass(frozen=True)
class BlobInfo:
    path: str
    size: int
    modified_at: datetime


class BlobStore(Protocol):
    """Bytes keyed by a relative, slash-separated storage path."""

    def put(self, path: str, data: bytes, content_type: str) -> None: ...

    def get(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...

    def list(self, prefix: str = "") -> Iterator[BlobInfo]: ...


class LocalBlobStore:
    """
    Filesystem-backed blob store.

    Every storage path maps to a file below ``root``. Content types are not
    persisted here; the paste record carries the mimetype.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if not path or relative.is_absolute() or ".." in relative.parts:
            raise BlobStoreError(f"Invalid storage path {path!r}.")
        return self._root.joinpath(*relative.parts)

    def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        tmp = target.with_name(f".{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, target)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write blob {path!r}: {exc}") from exc

        logger.debug(
            "Blob stored",
            extra={"event": "blob_put", "storage_path": path},
        )

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"Blob {path!r} not found.") from exc
        except OSError as exc:
            raise BlobStoreError(f"Failed to read blob {path!r}: {exc}") from exc

    def delete(self, path: str) -> None:
        """Remove a blob. Removing a missing blob is not an error."""
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete blob {path!r}: {exc}") from exc

    def list(self, prefix: str = "") -> Iterator[BlobInfo]:
        base = self._root.joinpath(*PurePosixPath(prefix).parts) if prefix else self._root
        if not base.is_dir():
            return
        for file_path in sorted(base.rglob("*")):
            if not file_path.is_file() or file_path.name.startswith("."):
                continue
            stat = file_path.stat()
            yield BlobInfo(
                path=file_path.relative_to(self._root).as_posix(),
                size=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )
