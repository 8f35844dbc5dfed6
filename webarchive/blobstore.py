"""
Content-addressed object storage backends.

Both stores expose exists/get/put/delete keyed by a plain hex digest. ``put``
and ``delete`` are idempotent; deleting a missing key is not an error, any
other delete failure is raised to the caller.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import BlobStoreError, NotFound

logger = structlog.get_logger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore:
    def __init__(self, bucket: str, prefix: str = "", region: Optional[str] = None, client=None):
        if not bucket:
            raise ValueError("an S3 bucket name is required")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        if client is None:
            cfg = BotoConfig(retries={"max_attempts": 8, "mode": "standard"})
            session_args = {}
            if region:
                session_args["region_name"] = region
            client = boto3.client("s3", config=cfg, **session_args)
        self.s3 = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def exists(self, key: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket, Key=self._key(key))
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise BlobStoreError(f"head {key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"head {key}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=self._key(key))
            return obj["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise NotFound("blob", key)
            raise BlobStoreError(f"get {key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"get {key}: {e}") from e

    def put(self, key: str, data: bytes) -> None:
        try:
            self.s3.put_object(Bucket=self.bucket, Key=self._key(key), Body=data)
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"put {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=self._key(key))
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"delete {key}: {e}") from e


class FileBlobStore:
    """Blob store backed by a local directory, one file per key."""

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"invalid blob key: {key!r}")
        return self.root / key

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            raise NotFound("blob", key)
        except OSError as e:
            raise BlobStoreError(f"get {key}: {e}") from e

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        # write to a temp file and rename so readers never see a partial blob
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as e:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise BlobStoreError(f"put {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BlobStoreError(f"delete {key}: {e}") from e


def create_blob_store(config: Dict[str, Any]):
    """Build the blob store named by the ``blobstore`` config section."""
    backend = (config.get("backend") or "file").lower()
    if backend == "s3":
        return S3BlobStore(
            bucket=str(config.get("bucket") or ""),
            prefix=str(config.get("prefix") or ""),
            region=config.get("region"),
        )
    if backend == "file":
        return FileBlobStore(config.get("path", "./blobs"))
    raise ValueError(f"unknown blobstore backend: {backend}")
