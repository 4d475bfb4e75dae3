import os
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..auth import Principal, get_current_principal
from ..database import get_db
from ..errors import Forbidden, InvalidArgument, NotFound, PayloadTooLarge
from ..rbac import require_admin
from ..services import file_store
from ..storage import BlobStore, LocalBlobStore, get_blob_store, verify_signature
from .. import models, schemas

MAX_FILES_PER_UPLOAD = 10
MAX_FILE_SIZE = 100 * 1024 * 1024

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("", response_model=schemas.FileList)
async def list_files(db: Session = Depends(get_db)):
    return {"files": file_store.list_public(db)}


@router.get("/mine", response_model=schemas.FileList)
async def list_my_files(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"files": file_store.list_owned(db, principal.id)}


@router.post("/upload", response_model=schemas.UploadOut)
async def upload_files(
    files: Optional[List[UploadFile]] = File(None),
    is_public: bool = Form(True),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(get_current_principal),
):
    if not files:
        raise InvalidArgument("No files provided")
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise InvalidArgument(f"At most {MAX_FILES_PER_UPLOAD} files per upload")

    incoming = []
    for upload in files:
        if upload.size is not None and upload.size > MAX_FILE_SIZE:
            raise PayloadTooLarge(f"{upload.filename} exceeds the 100MB limit")
        data = await upload.read()
        if len(data) > MAX_FILE_SIZE:
            raise PayloadTooLarge(f"{upload.filename} exceeds the 100MB limit")
        incoming.append(
            file_store.IncomingFile(
                filename=upload.filename or "upload",
                data=data,
                content_type=upload.content_type or "application/octet-stream",
            )
        )

    result = file_store.upload_files(db, blobs, incoming, principal.id, is_public=is_public)
    return {
        "files": result.files,
        "message": f"{len(result.files)} file(s) uploaded successfully",
        "failed": result.failed,
    }


@router.get("/blob/{storage_name:path}")
async def serve_signed_blob(
    storage_name: str,
    expires: int,
    signature: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    if not isinstance(blobs, LocalBlobStore):
        raise NotFound("File not found")
    if not verify_signature(storage_name, expires, signature):
        raise Forbidden("Invalid or expired download link")
    record = db.query(models.File).filter(models.File.storage_name == storage_name).first()
    if record is None:
        raise NotFound("File not found")
    try:
        path = blobs.path_for(storage_name)
    except ValueError:
        raise NotFound("File not found")
    if not os.path.exists(path):
        raise NotFound("File not found")
    return FileResponse(path, media_type=record.mime_type, filename=record.original_name)


@router.get("/{file_id}/download", response_model=schemas.DownloadOut)
async def download_file(
    file_id: UUID,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(get_current_principal),
):
    url, name = file_store.issue_download(db, blobs, file_id, principal)
    return {"downloadUrl": url, "fileName": name}


@router.delete("/{file_id}", response_model=schemas.DeleteOut)
async def delete_file(
    file_id: UUID,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(require_admin),
):
    file_store.delete_file(db, blobs, file_id)
    return {"success": True, "message": "File deleted successfully"}
