"""File blob and metadata lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..auth import Principal
from ..errors import DependencyFailure, NotFound
from ..rbac import ensure_owner_or_admin
from ..storage import BlobStore, LISTING_CAP, SIGNED_URL_TTL, build_storage_name

# purpose: keep blobs and File rows bound together through upload, download and delete
# status: active
# depends_on: sharehub.storage, sharehub.models.File

logger = logging.getLogger(__name__)

PUBLIC_PAGE_SIZE = 50
ORPHAN_GRACE_SECONDS = 3600


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass
class UploadResult:
    files: list[models.File] = field(default_factory=list)
    failed: int = 0


def upload_files(
    db: Session,
    blobs: BlobStore,
    incoming: list[IncomingFile],
    owner_id: UUID,
    *,
    is_public: bool = True,
) -> UploadResult:
    """Store each file independently, blob first then metadata.

    A per-file failure skips that file; the batch only fails when nothing
    was stored.
    """

    result = UploadResult()
    for item in incoming:
        storage_name = build_storage_name(owner_id, item.filename)
        try:
            blobs.put(storage_name, item.data, item.content_type)
        except Exception:
            logger.exception("Blob write failed for %s", item.filename)
            result.failed += 1
            continue

        record = models.File(
            original_name=item.filename,
            storage_name=storage_name,
            file_size=len(item.data),
            mime_type=item.content_type,
            uploaded_by=owner_id,
            is_public=is_public,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Metadata insert failed for %s", item.filename)
            result.failed += 1
            _discard_blob(blobs, storage_name)
            continue
        result.files.append(record)

    if not result.files:
        raise DependencyFailure("All file uploads failed")
    return result


def _discard_blob(blobs: BlobStore, storage_name: str) -> None:
    try:
        blobs.delete(storage_name)
    except Exception:
        logger.exception("Could not remove blob %s; left for reclamation", storage_name)


def list_public(db: Session, limit: int = PUBLIC_PAGE_SIZE) -> list[models.File]:
    return (
        db.query(models.File)
        .options(joinedload(models.File.owner))
        .filter(models.File.is_public.is_(True))
        .order_by(models.File.created_at.desc())
        .limit(limit)
        .all()
    )


def list_owned(db: Session, owner_id: UUID) -> list[models.File]:
    return (
        db.query(models.File)
        .options(joinedload(models.File.owner))
        .filter(models.File.uploaded_by == owner_id)
        .order_by(models.File.created_at.desc())
        .all()
    )


def get_file(db: Session, file_id: UUID) -> models.File:
    record = db.get(models.File, file_id)
    if record is None:
        raise NotFound("File not found")
    return record


def issue_download(
    db: Session,
    blobs: BlobStore,
    file_id: UUID,
    principal: Principal,
) -> tuple[str, str]:
    """Return ``(signed_url, original_name)`` and count the download."""

    record = get_file(db, file_id)
    if not record.is_public:
        ensure_owner_or_admin(db, principal, record.uploaded_by)

    try:
        url = blobs.sign(record.storage_name, expires_in=SIGNED_URL_TTL)
    except Exception:
        logger.exception("Signing failed for %s", record.storage_name)
        raise DependencyFailure("Failed to generate download URL")

    # single UPDATE so concurrent downloads cannot lose increments
    db.query(models.File).filter(models.File.id == record.id).update(
        {models.File.download_count: models.File.download_count + 1},
        synchronize_session=False,
    )
    db.commit()
    return url, record.original_name


def delete_file(db: Session, blobs: BlobStore, file_id: UUID) -> None:
    """Remove the blob, then the metadata row.

    Blob failures are logged and tolerated, the row is still removed so no
    metadata ever points at nothing. A failed row delete is raised.
    """

    record = get_file(db, file_id)
    storage_name = record.storage_name
    try:
        blobs.delete(storage_name)
    except Exception:
        logger.exception("Storage deletion failed for %s; blob orphaned", storage_name)

    try:
        db.delete(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Metadata deletion failed for file %s", file_id)
        raise DependencyFailure("Failed to delete file")


def remove_owner_blobs(db: Session, blobs: BlobStore, owner_id: UUID) -> int:
    """Best-effort removal of every blob owned by ``owner_id``; returns the failure count."""

    names = [
        name
        for (name,) in db.query(models.File.storage_name).filter(models.File.uploaded_by == owner_id)
    ]
    failures = 0
    for name in names:
        try:
            blobs.delete(name)
        except Exception:
            failures += 1
            logger.exception("Storage deletion failed for %s", name)
    return failures


def reclaim_orphaned_blobs(
    db: Session,
    blobs: BlobStore,
    limit: int = LISTING_CAP,
    min_age: float = ORPHAN_GRACE_SECONDS,
) -> list[str]:
    """Delete blobs that no File row references.

    Blobs modified within the last ``min_age`` seconds are left alone: an
    upload writes its blob before the File row commits, and a young blob may
    still be waiting for that row. Blobs with no reported modification time
    are never reclaimed.
    """

    cutoff = datetime.now(timezone.utc) - timedelta(seconds=min_age)
    known = {name for (name,) in db.query(models.File.storage_name)}
    reclaimed = []
    for blob in blobs.list(limit=limit):
        if blob.name in known:
            continue
        if blob.modified is None or blob.modified > cutoff:
            logger.debug("Skipping recent blob %s", blob.name)
            continue
        try:
            blobs.delete(blob.name)
        except Exception:
            logger.exception("Could not reclaim blob %s", blob.name)
            continue
        reclaimed.append(blob.name)
    if reclaimed:
        logger.info("Reclaimed %d orphaned blob(s)", len(reclaimed))
    return reclaimed
