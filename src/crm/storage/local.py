"""
Local Filesystem Upload Store

Default upload backend. Files land under ARTIFACT_STORAGE_PATH using the
deal upload key layout; URLs are file:// URIs.
"""

from __future__ import annotations

import mimetypes
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union

from .base import ArtifactMetadata, ArtifactStore, StorageBackend


class LocalFilesystemArtifactStore(ArtifactStore):
    """
    Local filesystem implementation of ArtifactStore.

        {base_path}/
        └── deals/{deal_id}/{category}/{timestamp_ms}-{name}

    Environment Variables:
        ARTIFACT_STORAGE_PATH: Base path for storage (default: ./uploads)
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        *,
        create_dirs: bool = True,
    ):
        if base_path is None:
            base_path = os.getenv("ARTIFACT_STORAGE_PATH", "./uploads")

        self._base_path = Path(base_path).resolve()

        if create_dirs:
            self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> StorageBackend:
        return StorageBackend.LOCAL

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _resolve_path(self, key: str) -> Path:
        return self._base_path / self.normalize_key(key)

    def _path_to_uri(self, path: Path) -> str:
        return f"file://{path.resolve()}"

    def put(
        self,
        key: str,
        data: Union[bytes, BinaryIO],
        *,
        filename: Optional[str] = None,
        mime_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> ArtifactMetadata:
        """Write an upload to disk."""
        path = self._resolve_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        content = self.read_bytes(data)
        with open(path, "wb") as f:
            f.write(content)

        if filename is None:
            filename = path.name

        if mime_type == "application/octet-stream":
            guessed, _ = mimetypes.guess_type(filename)
            if guessed:
                mime_type = guessed

        return ArtifactMetadata(
            storage_key=self.normalize_key(key),
            storage_uri=self._path_to_uri(path),
            storage_backend=StorageBackend.LOCAL,
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(content),
            sha256=self.compute_sha256(content),
            created_at=datetime.now(timezone.utc),
            metadata=metadata or {},
        )

    def get(self, key: str) -> bytes:
        path = self._resolve_path(key)
        if not path.is_file():
            raise FileNotFoundError(f"Upload not found: {key}")
        with open(path, "rb") as f:
            return f.read()

    def delete(self, key: str) -> bool:
        path = self._resolve_path(key)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def exists(self, key: str) -> bool:
        return self._resolve_path(key).is_file()

    def get_url(self, key: str, *, expires_in: int = 3600) -> str:
        """
        file:// URI for the upload.

        expires_in is ignored; local files do not expire.
        """
        path = self._resolve_path(key)
        if not path.is_file():
            raise FileNotFoundError(f"Upload not found: {key}")
        return self._path_to_uri(path)

    def get_metadata(self, key: str) -> ArtifactMetadata:
        path = self._resolve_path(key)
        if not path.is_file():
            raise FileNotFoundError(f"Upload not found: {key}")

        stat = path.stat()
        mime_type, _ = mimetypes.guess_type(path.name)

        return ArtifactMetadata(
            storage_key=self.normalize_key(key),
            storage_uri=self._path_to_uri(path),
            storage_backend=StorageBackend.LOCAL,
            filename=path.name,
            mime_type=mime_type or "application/octet-stream",
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
