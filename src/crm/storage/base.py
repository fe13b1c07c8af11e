"""
Upload Store Abstract Base Class

Defines the interface for the file stores that hold deal photos,
receipts, signatures and documents. Deals only ever keep the storage key
(or a passthrough URL); URLs are minted on read.
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Dict, Optional, Union

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StorageBackend(str, Enum):
    """Supported storage backend types."""

    LOCAL = "local"
    S3 = "s3"


@dataclass
class ArtifactMetadata:
    """Metadata for a stored upload, returned by all backends."""

    storage_key: str
    storage_uri: str
    storage_backend: StorageBackend

    filename: str
    mime_type: str
    size_bytes: int
    sha256: Optional[str] = None

    created_at: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_key": self.storage_key,
            "storage_uri": self.storage_uri,
            "storage_backend": self.storage_backend.value,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "sha256": self.sha256,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "metadata": self.metadata,
        }


def sanitize_filename(name: str) -> str:
    """Replace everything outside [a-zA-Z0-9.-] with underscores."""
    return _UNSAFE_NAME_CHARS.sub("_", name or "file")


def build_upload_key(
    deal_id: str,
    category: str,
    filename: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Storage key for a deal upload.

    Format: deals/{deal_id}/{category}/{timestamp_ms}-{sanitized_name}
    """
    now = now or datetime.now(timezone.utc)
    timestamp_ms = int(now.timestamp() * 1000)
    return f"deals/{deal_id}/{category}/{timestamp_ms}-{sanitize_filename(filename)}"


def is_passthrough_url(value: str) -> bool:
    """Inline data URLs and absolute web URLs are served as-is."""
    lowered = value.lower()
    return lowered.startswith(("data:", "http://", "https://"))


class ArtifactStore(ABC):
    """
    Abstract base class for upload storage backends.

    Storage Key Convention:
        deals/{deal_id}/
        ├── inspection/
        ├── receipts/
        ├── documents/
        ├── signatures/
        └── completion/
    """

    @property
    @abstractmethod
    def backend_type(self) -> StorageBackend:
        ...

    @abstractmethod
    def put(
        self,
        key: str,
        data: Union[bytes, BinaryIO],
        *,
        filename: Optional[str] = None,
        mime_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> ArtifactMetadata:
        """
        Store an upload.

        Args:
            key: Storage key (see build_upload_key)
            data: Binary content or file-like object
            filename: Original filename (defaults to key basename)
            mime_type: MIME type of the content
            metadata: Additional metadata to store
        """
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        Retrieve upload content.

        Raises:
            FileNotFoundError: If the upload doesn't exist
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """True if deleted, False if not found."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def get_url(self, key: str, *, expires_in: int = 3600) -> str:
        """
        Signed (or local) URL for an upload.

        Raises:
            FileNotFoundError: If the upload doesn't exist
        """
        ...

    @abstractmethod
    def get_metadata(self, key: str) -> ArtifactMetadata:
        ...

    # =========================================================================
    # Utility Methods (non-abstract, common to all backends)
    # =========================================================================

    def compute_sha256(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def read_bytes(data: Union[bytes, BinaryIO]) -> bytes:
        if isinstance(data, bytes):
            return data
        if hasattr(data, "seek"):
            data.seek(0)
        return data.read()

    def normalize_key(self, key: str) -> str:
        """
        Normalize a storage key.

        - Converts backslashes to forward slashes
        - Removes leading/trailing slashes
        - Collapses multiple slashes
        - Rejects parent-directory segments
        """
        key = key.replace("\\", "/").strip("/")
        while "//" in key:
            key = key.replace("//", "/")
        if any(part == ".." for part in key.split("/")):
            raise ValueError(f"Storage key may not contain '..': {key}")
        return key

    def signed_url(self, value: Optional[str], *, expires_in: int = 3600) -> Optional[str]:
        """
        URL for a stored value: passthrough URLs unchanged, keys signed,
        missing or unknown keys as None.
        """
        if not value:
            return None
        if is_passthrough_url(value):
            return value
        try:
            return self.get_url(value, expires_in=expires_in)
        except FileNotFoundError:
            return None
