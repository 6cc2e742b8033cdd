from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from typing import List, Optional
from antraege.config import settings
from antraege.errors import AppError, ValidationError
from antraege.schemas.attachment import (
    AllowedTypesResponse,
    DeleteFilesRequest,
    DeleteFilesResponse,
    UploadResponse,
)
from antraege.services.antrag_files import (
    ALLOWED_ANTRAG_FILE_TYPES,
    delete_antrag_files,
    get_allowed_file_extensions,
    read_antrag_uploads,
    upload_antrag_files,
)
from antraege.services.blob_storage import BlobStorage, get_blob_storage
from antraege.validation import messages
from antraege.validation.file_schemas import FILE_SIZE_LIMITS
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.get("/allowed-types", response_model=AllowedTypesResponse)
async def get_allowed_types():
    """Limits and file types accepted for Antrag attachments."""
    return AllowedTypesResponse(
        mimeTypes=list(ALLOWED_ANTRAG_FILE_TYPES),
        extensions=get_allowed_file_extensions(),
        maxFileSize=FILE_SIZE_LIMITS.ANTRAG,
        maxTotalSize=FILE_SIZE_LIMITS.ANTRAG_TOTAL,
        maxFileCount=FILE_SIZE_LIMITS.ANTRAG_COUNT
    )


@router.post("", response_model=UploadResponse)
async def upload_files(
    files: Optional[List[UploadFile]] = File(None),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """
    Upload a batch of Antrag attachments.

    Args:
        files: Multipart files
        storage: Blob storage

    Returns:
        Stored file URLs in upload order
    """
    try:
        batch = await read_antrag_uploads(files)
        urls = await upload_antrag_files(
            batch,
            settings.upload_max_retries,
            settings.upload_retry_delay_ms,
            storage=storage
        )

        logger.info("Uploaded Antrag attachments", file_count=len(urls))

        return UploadResponse(fileUrls=urls)

    except (ValidationError, AppError):
        raise
    except Exception as e:
        logger.error("Failed to upload attachments", error=str(e))
        raise HTTPException(
            status_code=500,
            detail=messages.files_upload_failed()
        )


@router.post("/delete", response_model=DeleteFilesResponse)
async def delete_files(
    request: DeleteFilesRequest,
    storage: BlobStorage = Depends(get_blob_storage)
):
    """
    Delete previously uploaded attachments.

    The outcome is reported in the body; a failed deletion is not an HTTP error.
    """
    outcome = await delete_antrag_files(
        request.urls,
        settings.upload_max_retries,
        settings.upload_retry_delay_ms,
        storage=storage
    )

    logger.info(
        "Deleted Antrag attachments",
        requested=len(request.urls),
        deleted=len(outcome.deleted_urls),
        success=outcome.success
    )

    return DeleteFilesResponse(success=outcome.success, deletedUrls=outcome.deleted_urls)
