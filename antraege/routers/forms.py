from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from typing import List, Optional
from antraege.config import settings
from antraege.database import get_db
from antraege.errors import AppError, ValidationError
from antraege.models.antrag import Antrag
from antraege.schemas.antrag import (
    AntragCreate,
    AntragDeleteResponse,
    AntragResponse,
    AntragSaveResponse,
)
from antraege.schemas.attachment import DeleteFilesResponse
from antraege.services.antrag_files import delete_antrag_files, read_antrag_uploads, upload_antrag_files
from antraege.services.blob_storage import BlobStorage, get_blob_storage
from antraege.validation import messages
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/antraege", tags=["antraege"])


def _field_errors(error: PydanticValidationError) -> dict:
    field_errors = {}
    for item in error.errors():
        field = str(item["loc"][0]) if item.get("loc") else "form"
        if item.get("type") == "missing" or field in ("title", "summary", "first_name", "last_name"):
            field_errors.setdefault(field, messages.required(field))
        else:
            field_errors.setdefault(field, item.get("msg", "Ungültiger Wert"))
    return field_errors


@router.post("", response_model=AntragSaveResponse)
async def create_antrag(
    title: str = Form(""),
    summary: str = Form(""),
    firstName: str = Form(""),
    lastName: str = Form(""),
    email: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """
    Submit an Antrag with optional attachments.

    Attachments are uploaded first; if the Antrag cannot be saved afterwards
    they are deleted again.

    Returns:
        Antrag ID, status and stored attachment URLs
    """
    try:
        antrag_data = AntragCreate(
            title=title.strip(),
            summary=summary.strip(),
            first_name=firstName.strip(),
            last_name=lastName.strip(),
            email=email.strip()
        )
        for field in ("title", "summary", "first_name", "last_name"):
            if not getattr(antrag_data, field):
                raise ValidationError({field: messages.required(field)})
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e))

    batch = await read_antrag_uploads(files)
    file_urls = await upload_antrag_files(
        batch,
        settings.upload_max_retries,
        settings.upload_retry_delay_ms,
        storage=storage
    )

    try:
        antrag = Antrag(
            title=antrag_data.title,
            summary=antrag_data.summary,
            first_name=antrag_data.first_name,
            last_name=antrag_data.last_name,
            email=antrag_data.email,
            file_urls=file_urls
        )
        db.add(antrag)
        db.flush()
        antrag_id = antrag.id
        db.commit()

    except Exception as e:
        db.rollback()
        logger.error("Failed to save Antrag", error=str(e), file_count=len(file_urls))

        outcome = await delete_antrag_files(
            file_urls,
            settings.upload_max_retries,
            settings.upload_retry_delay_ms,
            storage=storage
        )
        if not outcome.success:
            logger.error("Orphaned Antrag attachments after failed save", urls=file_urls)

        raise AppError.database("Der Antrag konnte nicht gespeichert werden. Bitte versuchen Sie es später erneut.")

    logger.info(
        "Antrag saved successfully",
        antrag_id=antrag_id,
        file_count=len(file_urls)
    )

    return AntragSaveResponse(antragId=antrag_id, status="saved", fileUrls=file_urls)


@router.get("/{antrag_id}", response_model=AntragResponse)
async def get_antrag(antrag_id: int, db: Session = Depends(get_db)):
    """Fetch a stored Antrag."""
    antrag = db.query(Antrag).filter(Antrag.id == antrag_id).first()
    if not antrag:
        raise HTTPException(status_code=404, detail=f"Antrag {antrag_id} not found")
    return antrag


@router.delete("/{antrag_id}", response_model=AntragDeleteResponse)
async def delete_antrag(
    antrag_id: int,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """
    Delete an Antrag and its attachments.

    Args:
        antrag_id: The ID of the Antrag to delete
        db: Database session
        storage: Blob storage

    Returns:
        Success message and the attachment deletion outcome
    """
    try:
        antrag = db.query(Antrag).filter(Antrag.id == antrag_id).first()
        if not antrag:
            raise HTTPException(status_code=404, detail=f"Antrag {antrag_id} not found")

        outcome = await delete_antrag_files(
            list(antrag.file_urls or []),
            settings.upload_max_retries,
            settings.upload_retry_delay_ms,
            storage=storage
        )
        if not outcome.success:
            # Continue with database deletion even if blob deletion fails
            logger.warning(
                "Failed to delete attachments for Antrag",
                antrag_id=antrag_id,
                urls=antrag.file_urls
            )

        db.delete(antrag)
        db.commit()

        logger.info("Antrag deleted successfully", antrag_id=antrag_id)

        return AntragDeleteResponse(
            message="Antrag deleted successfully",
            antragId=antrag_id,
            files=DeleteFilesResponse(success=outcome.success, deletedUrls=outcome.deleted_urls)
        )

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error("Failed to delete Antrag", error=str(e), antrag_id=antrag_id)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete Antrag: {str(e)}"
        )
