from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import get_settings
from ..deps import get_current_user, get_db, get_pagination, get_storage, require_admin
from ..pagination import Pagination, page_payload
from ..services import files as file_service
from ..storage import LocalFileStorage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/categories", response_model=schemas.FileCategories)
def list_categories(
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Distinct, sorted list of categories in use.
    """
    return {"categories": file_service.list_categories(db)}


@router.get("", response_model=schemas.Page[schemas.FileOut])
def list_files(
    category: Optional[str] = None,
    file_type: Optional[str] = Query(None, alias="fileType"),
    uploaded_by: Optional[int] = Query(None, alias="uploadedBy"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    List uploaded files, newest first, with optional filters.
    """
    items, total = file_service.list_files(
        db, pagination, category=category, file_type=file_type, uploaded_by=uploaded_by
    )
    return page_payload(items, total, pagination)


@router.post("", response_model=schemas.FileOut, status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    description: Optional[str] = Form(None, max_length=500),
    category: Optional[str] = Form(None, max_length=50),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    admin: models.User = Depends(require_admin),
):
    """
    Upload a file. *(Admin)*

    Parameters
    ----------
    file : UploadFile
        Multipart file part. Extension and MIME type must match the
        allow-list.
    description : str, optional
        Free text, up to 500 characters.
    category : str, optional
        Grouping label, up to 50 characters.

    Raises
    ------
    InvalidFileTypeError
        - 400 ``INVALID_FILE_TYPE`` for extensions/MIME types not allowed.
    FileTooLargeError
        - 400 ``FILE_TOO_LARGE`` above the configured size limit.
    AppError
        - 400 ``NO_FILE`` for an empty upload.
    """
    return file_service.upload_file(
        db,
        storage,
        file_name=file.filename,
        content_type=file.content_type,
        source=file.file,
        uploader=admin,
        max_bytes=get_settings().max_upload_bytes,
        description=description,
        category=category,
    )


@router.get("/{file_id}", response_model=schemas.FileOut)
def get_file(
    file_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Retrieve file metadata by ID.
    """
    return file_service.get_file(db, file_id)


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    _: models.User = Depends(get_current_user),
):
    """
    Stream the file under its original name and count the download.

    Raises
    ------
    NotFoundError
        - 404 if the record or the file on disk is missing.
    """
    record, path = file_service.download(db, storage, file_id)
    return FileResponse(path, media_type=record.file_type, filename=record.file_name)


@router.put("/{file_id}", response_model=schemas.FileOut)
def update_file_metadata(
    file_id: int,
    changes: schemas.FileMetadataUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Update description and/or category. *(Admin)*
    """
    return file_service.update_metadata(db, file_id, changes)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    _: models.User = Depends(require_admin),
):
    """
    Delete a file from disk and its record. *(Admin)*
    """
    file_service.delete_file(db, storage, file_id)
