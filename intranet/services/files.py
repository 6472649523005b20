"""
Uploaded files: allow-listed types, on-disk storage and metadata.

Stored names are random (``uuid4().hex`` plus the original extension), so
the same content uploaded twice is stored twice.
"""

import os
import uuid
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..exceptions import AppError, FileTooLargeError, InvalidFileTypeError, NotFoundError
from ..pagination import Pagination, paginate
from ..storage import LocalFileStorage

logger = structlog.get_logger(__name__)

ALLOWED_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed",
}


def validate_file_type(extension: str, mime_type: Optional[str]) -> bool:
    """True when the extension is allowed and the MIME type matches it."""
    expected = ALLOWED_TYPES.get((extension or "").lower())
    if expected is None or not mime_type:
        return False
    return mime_type.lower() == expected


def validate_file_size(size_bytes: int, max_bytes: int) -> bool:
    return 0 < size_bytes <= max_bytes


def _base_query(db: Session):
    return db.query(models.UploadedFile).options(joinedload(models.UploadedFile.uploader))


def get_file(db: Session, file_id: int) -> models.UploadedFile:
    record = _base_query(db).filter(models.UploadedFile.id == file_id).first()
    if record is None:
        raise NotFoundError("File")
    return record


def list_files(
    db: Session,
    pagination: Pagination,
    category: Optional[str] = None,
    file_type: Optional[str] = None,
    uploaded_by: Optional[int] = None,
):
    query = _base_query(db)
    if category:
        query = query.filter(models.UploadedFile.category == category)
    if file_type:
        query = query.filter(models.UploadedFile.file_type == file_type)
    if uploaded_by is not None:
        query = query.filter(models.UploadedFile.uploaded_by == uploaded_by)
    query = query.order_by(models.UploadedFile.uploaded_at.desc(), models.UploadedFile.id.desc())
    return paginate(query, pagination)


def upload_file(
    db: Session,
    storage: LocalFileStorage,
    *,
    file_name: str,
    content_type: Optional[str],
    source: BinaryIO,
    uploader: models.User,
    max_bytes: int,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> models.UploadedFile:
    """Validate, store on disk and record an upload.

    Raises
    ------
    InvalidFileTypeError
        If the extension is not allow-listed or the MIME type does not match.
    FileTooLargeError
        If the stream is larger than ``max_bytes``.
    AppError
        ``NO_FILE`` when the upload is empty.
    """
    original_name = os.path.basename(file_name or "")
    extension = Path(original_name).suffix.lower()
    if not validate_file_type(extension, content_type):
        raise InvalidFileTypeError(
            "File type is not allowed",
            details={"extension": extension, "contentType": content_type},
        )

    stored_name = f"{uuid.uuid4().hex}{extension}"
    size = storage.save(stored_name, source, max_bytes)
    if not validate_file_size(size, max_bytes):
        storage.delete(stored_name)
        if size == 0:
            raise AppError("No file uploaded", code="NO_FILE")
        raise FileTooLargeError("File exceeds the upload size limit", details={"maxSizeBytes": max_bytes})

    record = models.UploadedFile(
        file_name=original_name,
        stored_file_name=stored_name,
        file_type=content_type.lower(),
        file_extension=extension,
        file_size_bytes=size,
        uploaded_by=uploader.id,
        description=description,
        category=category or None,
    )
    db.add(record)
    try:
        db.commit()
    except Exception:
        db.rollback()
        storage.delete(stored_name)
        raise

    logger.info("file_uploaded", file_id=record.id, size_bytes=size, uploader_id=uploader.id)
    return get_file(db, record.id)


def update_metadata(
    db: Session, file_id: int, changes: schemas.FileMetadataUpdate
) -> models.UploadedFile:
    record = get_file(db, file_id)
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(record, field, value or None)
    db.commit()
    return get_file(db, file_id)


def delete_file(db: Session, storage: LocalFileStorage, file_id: int) -> None:
    record = get_file(db, file_id)
    storage.delete(record.stored_file_name)
    db.delete(record)
    db.commit()
    logger.info("file_deleted", file_id=file_id)


def list_categories(db: Session) -> List[str]:
    rows = (
        db.query(models.UploadedFile.category)
        .filter(models.UploadedFile.category.isnot(None), models.UploadedFile.category != "")
        .distinct()
        .order_by(models.UploadedFile.category)
        .all()
    )
    return [row[0] for row in rows]


def download(db: Session, storage: LocalFileStorage, file_id: int) -> Tuple[models.UploadedFile, Path]:
    """Resolve a file for streaming and count the download."""
    record = get_file(db, file_id)
    if not storage.exists(record.stored_file_name):
        logger.warning("file_missing_on_disk", file_id=file_id, stored_name=record.stored_file_name)
        raise NotFoundError("File")

    record.download_count = (record.download_count or 0) + 1
    db.commit()
    return record, storage.path_for(record.stored_file_name)
