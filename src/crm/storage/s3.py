"""
S3 Upload Store

S3-compatible backend (AWS S3, MinIO) for deployments where uploads must
outlive the API host. Reads are served through presigned URLs.
"""

from __future__ import annotations

import mimetypes
import os
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Optional, Union

import boto3
from botocore.exceptions import ClientError

from .base import ArtifactMetadata, ArtifactStore, StorageBackend

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_missing(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in _MISSING_CODES


class S3ArtifactStore(ArtifactStore):
    """
    S3-compatible storage implementation of ArtifactStore.

    Environment Variables:
        AWS_S3_BUCKET: S3 bucket name (required)
        AWS_S3_PREFIX: Optional key prefix for all uploads
        AWS_S3_ENDPOINT_URL: Custom endpoint for MinIO/localstack
        AWS_REGION: AWS region (default: us-east-1)

    Storage URI Format:
        s3://{bucket}/{key}
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            bucket: S3 bucket name. If not provided, uses AWS_S3_BUCKET.
            prefix: Key prefix for all uploads.
            endpoint_url: Custom endpoint for S3-compatible services.
            region: AWS region.
            client: Pre-configured boto3 S3 client (for testing).
        """
        self._bucket = bucket or os.getenv("AWS_S3_BUCKET")
        if not self._bucket:
            raise ValueError(
                "S3 bucket name required. Set AWS_S3_BUCKET environment variable "
                "or pass bucket parameter."
            )

        prefix = prefix if prefix is not None else os.getenv("AWS_S3_PREFIX", "")
        self._prefix = prefix.strip("/")
        if self._prefix:
            self._prefix += "/"

        self._endpoint_url = endpoint_url or os.getenv("AWS_S3_ENDPOINT_URL")
        self._region = region or os.getenv("AWS_REGION", "us-east-1")
        self._client = client or self._create_client()

    def _create_client(self):
        client_kwargs = {"region_name": self._region}
        if self._endpoint_url:
            client_kwargs["endpoint_url"] = self._endpoint_url
        return boto3.client("s3", **client_kwargs)

    @property
    def backend_type(self) -> StorageBackend:
        return StorageBackend.S3

    @property
    def bucket(self) -> str:
        return self._bucket

    def _resolve_key(self, key: str) -> str:
        return f"{self._prefix}{self.normalize_key(key)}"

    def _key_to_uri(self, key: str) -> str:
        return f"s3://{self._bucket}/{self._resolve_key(key)}"

    def put(
        self,
        key: str,
        data: Union[bytes, BinaryIO],
        *,
        filename: Optional[str] = None,
        mime_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> ArtifactMetadata:
        """Upload to S3."""
        content = self.read_bytes(data)
        sha256 = self.compute_sha256(content)

        if filename is None:
            filename = key.split("/")[-1]

        if mime_type == "application/octet-stream":
            guessed, _ = mimetypes.guess_type(filename)
            if guessed:
                mime_type = guessed

        s3_metadata = dict(metadata or {})
        s3_metadata["sha256"] = sha256
        s3_metadata["original-filename"] = filename

        self._client.put_object(
            Bucket=self._bucket,
            Key=self._resolve_key(key),
            Body=content,
            ContentType=mime_type,
            Metadata=s3_metadata,
        )

        return ArtifactMetadata(
            storage_key=self.normalize_key(key),
            storage_uri=self._key_to_uri(key),
            storage_backend=StorageBackend.S3,
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(content),
            sha256=sha256,
            created_at=datetime.now(tz=timezone.utc),
            metadata=metadata or {},
        )

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=self._resolve_key(key))
        except ClientError as e:
            if _is_missing(e):
                raise FileNotFoundError(f"Upload not found: {key}")
            raise
        return response["Body"].read()

    def delete(self, key: str) -> bool:
        if not self.exists(key):
            return False
        self._client.delete_object(Bucket=self._bucket, Key=self._resolve_key(key))
        return True

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=self._resolve_key(key))
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise

    def get_url(self, key: str, *, expires_in: int = 3600) -> str:
        """Presigned GET URL, valid for `expires_in` seconds."""
        if not self.exists(key):
            raise FileNotFoundError(f"Upload not found: {key}")

        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": self._resolve_key(key)},
            ExpiresIn=expires_in,
        )

    def get_metadata(self, key: str) -> ArtifactMetadata:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=self._resolve_key(key))
        except ClientError as e:
            if _is_missing(e):
                raise FileNotFoundError(f"Upload not found: {key}")
            raise

        s3_metadata = response.get("Metadata", {})
        return ArtifactMetadata(
            storage_key=self.normalize_key(key),
            storage_uri=self._key_to_uri(key),
            storage_backend=StorageBackend.S3,
            filename=s3_metadata.get("original-filename", key.split("/")[-1]),
            mime_type=response.get("ContentType", "application/octet-stream"),
            size_bytes=response["ContentLength"],
            sha256=s3_metadata.get("sha256"),
            created_at=response.get("LastModified"),
            metadata={k: v for k, v in s3_metadata.items() if k not in ("sha256", "original-filename")},
        )
