"""Object store backends for published storybooks.

Keys are forward-slash relative paths (``commits/<sha>/index.html``).  Every
write is a full overwrite, so repeating an upload is always safe.

Backends:

* ``S3ObjectStore`` — an S3 (or S3-compatible) bucket via boto3.  boto3
  clients are thread-safe, so one store serves the whole upload pool.
* ``LocalObjectStore`` — a directory on disk, for dry runs, local previews
  and tests.  Writes are atomic replace.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import boto3
from botocore.exceptions import ClientError

from storybook_publisher.models.storage import StoredObject

if TYPE_CHECKING:
    from storybook_publisher.config import PublisherConfig

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
_TEMP_PREFIX = ".sbp-tmp-"


class ObjectNotFoundError(LookupError):
    """Raised when a requested key does not exist in the store."""


def validate_key(key: str) -> str:
    """Reject keys that are empty, absolute, or escape the store root."""
    if not key or key.startswith("/") or "\\" in key:
        raise ValueError(f"Invalid object key: {key!r}")
    if any(part in ("", ".", "..") for part in key.split("/")):
        raise ValueError(f"Invalid object key: {key!r}")
    return key


def guess_content_type(name: str) -> str:
    return mimetypes.guess_type(name)[0] or DEFAULT_CONTENT_TYPE


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object store backends.

    Implementations must be safe to call from several threads at once.
    """

    def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Write *data* at *key*, replacing any existing object."""
        ...

    def upload_file(
        self, path: Path, key: str, content_type: str | None = None
    ) -> StoredObject:
        """Upload a local file to *key*, replacing any existing object."""
        ...

    def list(self, prefix: str) -> list[StoredObject]:
        """Return every object whose key starts with *prefix*."""
        ...

    def get(self, key: str) -> bytes:
        """Return the bytes at *key*; raise ``ObjectNotFoundError`` if absent."""
        ...


# ---------------------------------------------------------------------------
# Local directory backend
# ---------------------------------------------------------------------------


class LocalObjectStore:
    """Directory-backed object store.

    Layout: ``{base_path}/{key}``.  ``created_at`` is the file's
    modification time, which a rewrite refreshes, like an object store
    assigning a new generation on overwrite.

    Parameters
    ----------
    base_path:
        Root directory of the store; created if missing.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _object_path(self, key: str) -> Path:
        return self._base.joinpath(*validate_key(key).split("/"))

    def _describe(self, key: str, path: Path) -> StoredObject:
        stat = path.stat()
        return StoredObject(
            key=key,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def put(self, key: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> StoredObject:
        path = self._object_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return self._describe(key, path)

    def upload_file(
        self, path: Path, key: str, content_type: str | None = None
    ) -> StoredObject:
        return self.put(
            key,
            Path(path).read_bytes(),
            content_type or guess_content_type(Path(path).name),
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self, prefix: str) -> list[StoredObject]:
        directory = prefix.rpartition("/")[0]
        start = self._base.joinpath(*directory.split("/")) if directory else self._base
        if not start.is_dir():
            return []
        found: list[StoredObject] = []
        for path in sorted(start.rglob("*")):
            if not path.is_file() or path.name.startswith(_TEMP_PREFIX):
                continue
            key = path.relative_to(self._base).as_posix()
            if key.startswith(prefix):
                found.append(self._describe(key, path))
        return found

    def get(self, key: str) -> bytes:
        path = self._object_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise ObjectNotFoundError(f"Object not found: {key}") from None

    def exists(self, key: str) -> bool:
        return self._object_path(key).is_file()


# ---------------------------------------------------------------------------
# S3 backend
# ---------------------------------------------------------------------------


class S3ObjectStore:
    """S3 bucket backend.

    Credentials come from boto3's default provider chain.

    Parameters
    ----------
    bucket:
        Bucket name.
    region:
        Optional AWS region.
    endpoint_url:
        Optional endpoint for S3-compatible services.
    client:
        Preconfigured boto3 S3 client; one is created if not provided.
    """

    def __init__(
        self,
        bucket: str,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.bucket = bucket
        self._client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )
        logger.debug("Using S3 bucket %s", bucket)

    def put(self, key: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> StoredObject:
        self._client.put_object(
            Bucket=self.bucket,
            Key=validate_key(key),
            Body=data,
            ContentType=content_type,
        )
        return StoredObject(
            key=key, created_at=datetime.now(timezone.utc), size=len(data)
        )

    def upload_file(
        self, path: Path, key: str, content_type: str | None = None
    ) -> StoredObject:
        path = Path(path)
        self._client.upload_file(
            str(path),
            self.bucket,
            validate_key(key),
            ExtraArgs={"ContentType": content_type or guess_content_type(path.name)},
        )
        return StoredObject(
            key=key,
            created_at=datetime.now(timezone.utc),
            size=path.stat().st_size,
        )

    def list(self, prefix: str) -> list[StoredObject]:
        paginator = self._client.get_paginator("list_objects_v2")
        found: list[StoredObject] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                found.append(
                    StoredObject(
                        key=item["Key"],
                        created_at=item["LastModified"],
                        size=item.get("Size", 0),
                    )
                )
        return found

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=validate_key(key))
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise ObjectNotFoundError(f"Object not found: {key}") from exc
            raise
        return response["Body"].read()


def open_store(config: PublisherConfig) -> ObjectStore:
    """Return the store the configuration points at."""
    if config.local_store_path is not None:
        return LocalObjectStore(config.local_store_path)
    return S3ObjectStore(
        config.bucket,
        region=config.s3_region,
        endpoint_url=config.s3_endpoint_url,
    )
