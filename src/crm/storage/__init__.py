# Upload storage for deal photos, receipts, signatures and documents.
#
# - LocalFilesystemArtifactStore (default)
# - S3ArtifactStore (ARTIFACT_STORAGE_BACKEND=s3)

from .base import (
    ArtifactMetadata,
    ArtifactStore,
    StorageBackend,
    build_upload_key,
    is_passthrough_url,
    sanitize_filename,
)
from .local import LocalFilesystemArtifactStore
from .factory import get_artifact_store, reset_default_store

__all__ = [
    "ArtifactStore",
    "ArtifactMetadata",
    "StorageBackend",
    "LocalFilesystemArtifactStore",
    "build_upload_key",
    "is_passthrough_url",
    "sanitize_filename",
    "get_artifact_store",
    "reset_default_store",
]
