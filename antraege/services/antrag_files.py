"""
Attachment handling for Anträge.

Files of one batch are validated together, uploaded one after another with
exponential-backoff retry, and rolled back (deleted again) when any file of
the batch cannot be stored.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence
from fastapi import UploadFile
import structlog
from antraege.config import settings
from antraege.errors import AppError, ValidationError
from antraege.services.blob_storage import BlobStorage, get_blob_storage
from antraege.validation import messages
from antraege.validation.file_schemas import (
    FILE_EXTENSIONS,
    FILE_SIZE_LIMITS,
    FILE_TYPES,
    MB,
    validate_files,
)

logger = structlog.get_logger()

ALLOWED_ANTRAG_FILE_TYPES = FILE_TYPES.ANTRAG

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class AntragFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    async def from_upload(cls, upload: UploadFile) -> "AntragFile":
        # Never buffer more than one byte past the per-file limit
        content = await upload.read(FILE_SIZE_LIMITS.ANTRAG + 1)
        return cls(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            content=content
        )


@dataclass
class UploadInfo:
    """What the multipart headers tell about an upload before it is read."""

    filename: str
    content_type: str
    size: int

    @classmethod
    def from_upload(cls, upload: UploadFile) -> "UploadInfo":
        return cls(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            size=upload.size or 0
        )


@dataclass
class DeletionOutcome:
    success: bool
    deleted_urls: List[str] = field(default_factory=list)


def get_allowed_file_extensions() -> str:
    """Comma-separated list of allowed extensions for display."""
    return ", ".join(FILE_EXTENSIONS.ANTRAG)


def sanitize_file_name(filename: str) -> str:
    return re.sub(r"\s+", "-", filename)


def build_blob_pathname(batch_timestamp: int, index: int, filename: str) -> str:
    return f"{settings.antrag_upload_prefix}/{batch_timestamp}-{index}-{sanitize_file_name(filename)}"


def _backoff_seconds(retry_delay: int, attempt: int) -> float:
    # retry_delay is in milliseconds; attempt is the 0-based index of the failed try
    return retry_delay * (2 ** attempt) / 1000


def validate_antrag_files(files: Optional[Sequence[AntragFile]]) -> None:
    """
    Validate a batch of Antrag attachments.

    Count, per-file size and type go through the shared validate_files
    routine; the total size of the batch is checked here.

    Args:
        files: Files to validate

    Raises:
        ValidationError: If the batch breaks any limit
    """
    if not files:
        return

    result = validate_files(
        files,
        FILE_SIZE_LIMITS.ANTRAG_COUNT,
        FILE_SIZE_LIMITS.ANTRAG,
        FILE_TYPES.ANTRAG,
        allowed_label=get_allowed_file_extensions()
    )
    if not result.is_valid:
        errors = result.errors or []
        raise ValidationError({
            "files": errors[0] if errors else messages.required("files")
        })

    total_size = sum(file.size for file in files)
    if total_size > FILE_SIZE_LIMITS.ANTRAG_TOTAL:
        raise ValidationError({
            "files": messages.file_size_exceeds("files", FILE_SIZE_LIMITS.ANTRAG_TOTAL / MB)
        })


async def read_antrag_uploads(uploads: Optional[Sequence[UploadFile]]) -> List[AntragFile]:
    """
    Turn multipart uploads into AntragFiles.

    The batch is validated against the part sizes reported by the multipart
    parser first, so oversized batches are rejected before anything is read.

    Raises:
        ValidationError: If the reported sizes, count or types break a limit
    """
    uploads = list(uploads or [])
    validate_antrag_files([UploadInfo.from_upload(upload) for upload in uploads])
    return [await AntragFile.from_upload(upload) for upload in uploads]


async def _cleanup_uploaded(urls: List[str], storage: BlobStorage, sleep: Sleep, reason: str) -> None:
    """Best-effort rollback; failures are logged and never raised."""
    if not urls:
        return

    logger.info("Cleaning up uploaded Antrag files", reason=reason, url_count=len(urls))
    try:
        outcome = await delete_antrag_files(urls, storage=storage, sleep=sleep)
    except Exception as e:
        logger.error(
            "antrag_files.cleanup_failed",
            reason=reason,
            urls=urls,
            error=str(e)
        )
        return

    if not outcome.success:
        logger.error(
            "antrag_files.cleanup_incomplete",
            reason=reason,
            urls=urls,
            deleted_urls=outcome.deleted_urls
        )


async def upload_antrag_files(
    files: Optional[Sequence[AntragFile]],
    max_retries: int = 3,
    retry_delay: int = 1000,
    *,
    storage: Optional[BlobStorage] = None,
    batch_timestamp: Optional[int] = None,
    sleep: Sleep = asyncio.sleep
) -> List[str]:
    """
    Upload Antrag attachments with retry and rollback.

    Files are stored one at a time in input order. A file that still fails
    after max_retries retries makes the whole batch fail: the files stored so
    far are deleted again before the error is raised.

    Args:
        files: Files to upload
        max_retries: Retries per file after the first attempt
        retry_delay: Base delay in milliseconds, doubled after every failed attempt
        storage: Blob store, defaults to the configured S3 storage
        batch_timestamp: Milliseconds since epoch used in the blob paths
        sleep: Awaitable sleep taking seconds

    Returns:
        URLs of the stored files in input order

    Raises:
        ValidationError: If the files are invalid; nothing is uploaded
        FileUploadError: If any file could not be stored
    """
    validate_antrag_files(files)

    if not files:
        return []

    if batch_timestamp is None:
        batch_timestamp = int(time.time() * 1000)

    uploaded_urls: List[str] = []
    total = len(files)

    try:
        storage = storage or get_blob_storage()

        for index, file in enumerate(files):
            pathname = build_blob_pathname(batch_timestamp, index, file.filename)
            attempt = 0

            while True:
                try:
                    if attempt > 0:
                        logger.info(
                            "Retrying Antrag file upload",
                            file_number=index + 1,
                            file_count=total,
                            attempt=attempt,
                            max_retries=max_retries
                        )

                    result = await storage.put(
                        pathname,
                        file.content,
                        access="public",
                        content_type=file.content_type,
                        add_random_suffix=False,
                        cache_control_max_age=settings.blob_cache_control_max_age
                    )
                    uploaded_urls.append(result.url)
                    logger.info(
                        "Antrag file uploaded",
                        file_number=index + 1,
                        file_count=total,
                        url=result.url
                    )
                    break

                except Exception as e:
                    logger.error(
                        "Antrag file upload attempt failed",
                        file_number=index + 1,
                        attempt=attempt + 1,
                        max_attempts=max_retries + 1,
                        filename=file.filename,
                        error=str(e)
                    )

                    if attempt >= max_retries:
                        await _cleanup_uploaded(uploaded_urls, storage, sleep, reason="retries_exhausted")
                        raise AppError.file_upload(
                            messages.file_upload_failed(file.filename),
                            details={"filename": file.filename}
                        )

                delay = _backoff_seconds(retry_delay, attempt)
                logger.info("Waiting before retry", delay_ms=int(delay * 1000))
                await sleep(delay)
                attempt += 1

        return uploaded_urls

    except (ValidationError, AppError):
        raise
    except Exception as e:
        await _cleanup_uploaded(uploaded_urls, storage, sleep, reason="unexpected_error")
        logger.error("Unexpected error uploading Antrag files", error=str(e))
        raise AppError.file_upload(messages.files_upload_failed()) from e


async def delete_antrag_files(
    urls: Optional[Sequence[str]],
    max_retries: int = 3,
    retry_delay: int = 1000,
    *,
    storage: Optional[BlobStorage] = None,
    sleep: Sleep = asyncio.sleep
) -> DeletionOutcome:
    """
    Delete Antrag attachments with retry.

    Every attempt deletes all remaining URLs in one request. Storage failures
    are reported through the returned outcome, never raised.

    Args:
        urls: URLs to delete
        max_retries: Retries after the first attempt
        retry_delay: Base delay in milliseconds, doubled after every failed attempt
        storage: Blob store, defaults to the configured S3 storage
        sleep: Awaitable sleep taking seconds

    Returns:
        DeletionOutcome with the success flag and the deleted URLs
    """
    if not urls:
        return DeletionOutcome(success=True, deleted_urls=[])

    try:
        storage = storage or get_blob_storage()
    except Exception as e:
        logger.error("Blob storage unavailable for Antrag file deletion", error=str(e))
        return DeletionOutcome(success=False, deleted_urls=[])

    deleted_urls: List[str] = []
    remaining_urls = list(urls)
    attempt = 0

    logger.info("Deleting Antrag files", url_count=len(remaining_urls))

    while attempt <= max_retries and remaining_urls:
        try:
            if attempt > 0:
                logger.info("Retrying Antrag file deletion", attempt=attempt, max_retries=max_retries)

            await storage.delete(remaining_urls)

            deleted_urls.extend(remaining_urls)
            remaining_urls = []
            logger.info("Antrag files deleted", url_count=len(deleted_urls))
            return DeletionOutcome(success=True, deleted_urls=deleted_urls)

        except Exception as e:
            logger.error(
                "Antrag file deletion attempt failed",
                attempt=attempt + 1,
                max_attempts=max_retries + 1,
                error=str(e)
            )

            if attempt >= max_retries:
                logger.error("Maximum retries exceeded for Antrag file deletion", url_count=len(remaining_urls))
                return DeletionOutcome(success=False, deleted_urls=deleted_urls)

        delay = _backoff_seconds(retry_delay, attempt)
        logger.info("Waiting before retry", delay_ms=int(delay * 1000))
        await sleep(delay)
        attempt += 1

    return DeletionOutcome(success=len(deleted_urls) == len(urls), deleted_urls=deleted_urls)
