"""Document upload and file management endpoints.

Handles upload, listing and deletion of documents in the file search store.
"""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile

from src.api.dependencies import get_repository, get_store, get_upload_pipeline
from src.db.repository import MetadataRepository
from src.models.schemas import (
    ERROR_RESPONSES,
    DeleteFileResponse,
    ErrorResponse,
    FileInfo,
    FileListResponse,
    UploadResponse,
)
from src.services.upload import UploadPipeline
from src.store.holder import StoreHolder

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["files"],
    responses={
        **ERROR_RESPONSES,
        499: {"model": ErrorResponse, "description": "Client disconnected during the import"},
    },
)


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> UploadResponse:
    """Upload a document and import it into the document store.

    Responds only once the import has finished and the file is recorded.

    Args:
        request: Used to notice a client disconnect while the import runs.
        file: The uploaded document (multipart/form-data).

    Returns:
        UploadResponse with file name, id and the new file total.

    Raises:
        400: Missing file, unsupported extension, or duplicate name.
        500: Document store or database failure.
    """
    content = await file.read() if file is not None else None
    filename = file.filename if file is not None else None

    result = await pipeline.upload(
        filename,
        content,
        is_cancelled=request.is_disconnected,
    )

    return UploadResponse(
        success=True,
        file_name=result.filename,
        total_files=result.total_files,
        file_id=result.file_id,
    )


@router.get("/files", response_model=FileListResponse)
async def list_files(
    repository: MetadataRepository = Depends(get_repository),
    store: StoreHolder = Depends(get_store),
) -> FileListResponse:
    """List uploaded files, newest first, with the active store name."""
    records = await repository.list_files()

    return FileListResponse(
        count=len(records),
        files=[
            FileInfo(
                id=record.id,
                file_name=record.filename,
                file_size=record.filesize,
                uploaded_at=record.uploaded_at,
            )
            for record in records
        ],
        store_name=store.handle.name if store.handle else None,
    )


@router.delete("/files/{file_id}", response_model=DeleteFileResponse)
async def delete_file(
    file_id: str,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> DeleteFileResponse:
    """Delete a file from the document store and from the file records.

    Raises:
        404: Unknown file id.
        500: Store removal failed; the file record is kept.
    """
    result = await pipeline.delete_file(file_id)

    return DeleteFileResponse(
        success=True,
        file_name=result.filename,
        total_files=result.total_files,
    )
