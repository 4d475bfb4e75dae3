"""Blob storage backends used by the file store."""

from __future__ import annotations

import hashlib
import hmac
import io
import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import islice
from typing import Optional
from urllib.parse import quote
from uuid import UUID, uuid4

from minio import Minio

from .auth import SECRET_KEY

# purpose: centralize blob reads and writes behind a put/delete/sign/list interface
# status: active

logger = logging.getLogger(__name__)

SIGNED_URL_TTL = 3600
LISTING_CAP = 1000

_MINIO_CLIENT: Optional[Minio] = None


@dataclass(frozen=True)
class BlobInfo:
    name: str
    size: int
    # UTC; None when the backend does not report it
    modified: Optional[datetime] = None


class BlobStore:
    """Interface shared by the local and S3-compatible backends."""

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def sign(self, key: str, expires_in: int = SIGNED_URL_TTL) -> str:
        raise NotImplementedError

    def list(self, limit: int = LISTING_CAP) -> list[BlobInfo]:
        raise NotImplementedError


def build_storage_name(owner_id: UUID | str, original_name: str) -> str:
    """Return ``{owner}/{token}.{ext}``, unique per call and grouped by owner."""

    _, ext = os.path.splitext(os.path.basename(original_name or ""))
    ext = re.sub(r"[^A-Za-z0-9]", "", ext)
    suffix = f".{ext}" if ext else ""
    return f"{owner_id}/{uuid4().hex}{suffix}"


def _signature(key: str, expires: int) -> str:
    message = f"{key}:{expires}".encode()
    return hmac.new(SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(key: str, expires: int, signature: str) -> bool:
    """Check a locally signed URL; expired or tampered links fail."""

    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_signature(key, expires), signature)


class LocalBlobStore(BlobStore):
    def __init__(self, root: str, base_url: str = ""):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, *key.split("/")))
        if os.path.commonpath([self.root, path]) != self.root or path == self.root:
            raise ValueError(f"invalid storage key {key!r}")
        return path

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        path = self.path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        # keys are never overwritten
        with open(path, "xb") as handle:
            handle.write(data)

    def delete(self, key: str) -> None:
        try:
            os.remove(self.path_for(key))
        except FileNotFoundError:
            logger.info("Blob %s already absent", key)

    def sign(self, key: str, expires_in: int = SIGNED_URL_TTL) -> str:
        self.path_for(key)
        expires = int(time.time()) + expires_in
        return (
            f"{self.base_url}/api/files/blob/{quote(key, safe='/')}"
            f"?expires={expires}&signature={_signature(key, expires)}"
        )

    def list(self, limit: int = LISTING_CAP) -> list[BlobInfo]:
        def walk():
            for dirpath, _, filenames in os.walk(self.root):
                for name in sorted(filenames):
                    full = os.path.join(dirpath, name)
                    key = os.path.relpath(full, self.root).replace(os.sep, "/")
                    yield BlobInfo(
                        name=key,
                        size=os.path.getsize(full),
                        modified=datetime.fromtimestamp(os.path.getmtime(full), tz=timezone.utc),
                    )

        return list(islice(walk(), limit))


class MinioBlobStore(BlobStore):
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        self.client.put_object(
            self.bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    def delete(self, key: str) -> None:
        self.client.remove_object(self.bucket, key)

    def sign(self, key: str, expires_in: int = SIGNED_URL_TTL) -> str:
        return self.client.presigned_get_object(self.bucket, key, expires=timedelta(seconds=expires_in))

    def list(self, limit: int = LISTING_CAP) -> list[BlobInfo]:
        objects = self.client.list_objects(self.bucket, recursive=True)
        return [
            BlobInfo(name=obj.object_name, size=obj.size or 0, modified=obj.last_modified)
            for obj in islice(objects, limit)
        ]


def _ensure_minio_client() -> Optional[Minio]:
    """Initialize and return a MinIO client when configuration is present."""

    global _MINIO_CLIENT
    endpoint = os.getenv("MINIO_ENDPOINT", "").strip()
    access_key = os.getenv("MINIO_ACCESS_KEY")
    secret_key = os.getenv("MINIO_SECRET_KEY")
    bucket = os.getenv("MINIO_BUCKET", "uploads")
    if not endpoint or not access_key or not secret_key:
        return None
    if _MINIO_CLIENT is None:
        secure = endpoint.startswith("https")
        client = Minio(
            re.sub(r"^https?://", "", endpoint),
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
        _MINIO_CLIENT = client
    return _MINIO_CLIENT


def get_blob_store() -> BlobStore:
    """Return the configured backend: MinIO when credentials are set, else local disk."""

    client = _ensure_minio_client()
    if client is not None:
        return MinioBlobStore(client, os.getenv("MINIO_BUCKET", "uploads"))
    return LocalBlobStore(
        os.getenv("UPLOAD_DIR", "uploaded_files"),
        base_url=os.getenv("PUBLIC_BASE_URL", ""),
    )
