"""
ArtifactStore Factory

Creates the upload store from configuration. Local filesystem is the
default; S3 needs ARTIFACT_STORAGE_BACKEND=s3 and a bucket.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .base import ArtifactStore
from .local import LocalFilesystemArtifactStore

logger = logging.getLogger(__name__)

# Global singleton instance
_default_store: Optional[ArtifactStore] = None


def get_artifact_store(
    backend: Optional[str] = None,
    *,
    force_new: bool = False,
    **kwargs,
) -> ArtifactStore:
    """
    Get an ArtifactStore instance.

    Args:
        backend: "local" or "s3". Defaults to ARTIFACT_STORAGE_BACKEND,
                 then "local".
        force_new: Create a new instance instead of returning the singleton.
        **kwargs: Backend-specific options (base_path; bucket, prefix,
                  endpoint_url, region, client).

    Examples:
        store = get_artifact_store()
        store = get_artifact_store("local", base_path="/tmp/uploads")
        store = get_artifact_store("s3", bucket="roofcrm-uploads")
    """
    global _default_store

    if backend is None:
        backend = os.getenv("ARTIFACT_STORAGE_BACKEND", "local")

    backend = backend.lower()
    if backend not in ("local", "s3"):
        raise ValueError(f"Unknown storage backend '{backend}' (expected 'local' or 's3')")

    if not force_new and not kwargs:
        if _default_store is None:
            _default_store = _create_store(backend)
        return _default_store

    return _create_store(backend, **kwargs)


def _create_store(backend: str, **kwargs) -> ArtifactStore:
    if backend == "s3":
        from .s3 import S3ArtifactStore

        store = S3ArtifactStore(
            bucket=kwargs.get("bucket"),
            prefix=kwargs.get("prefix"),
            endpoint_url=kwargs.get("endpoint_url"),
            region=kwargs.get("region"),
            client=kwargs.get("client"),
        )
        logger.info(f"Created S3ArtifactStore for bucket {store.bucket}")
        return store

    store = LocalFilesystemArtifactStore(
        base_path=kwargs.get("base_path"),
        create_dirs=kwargs.get("create_dirs", True),
    )
    logger.info(f"Created LocalFilesystemArtifactStore at {store.base_path}")
    return store


def reset_default_store() -> None:
    """Reset the default store singleton."""
    global _default_store
    _default_store = None
