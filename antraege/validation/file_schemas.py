from dataclasses import dataclass
from typing import List, Optional, Sequence
from antraege.config import settings
from antraege.validation import messages

MB = 1024 * 1024


class FILE_TYPES:
    """Allowed media types per upload kind."""

    IMAGE = (
        "image/jpeg",
        "image/png",
        "image/gif",
    )
    PDF = ("application/pdf",)
    WORD = (
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
    EXCEL = (
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    ANTRAG = IMAGE + PDF + WORD + EXCEL


class FILE_EXTENSIONS:
    ANTRAG = ("jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "xls", "xlsx")


class FILE_SIZE_LIMITS:
    """Size and count limits in bytes, configured through settings."""

    ANTRAG = settings.antrag_max_file_size_bytes
    ANTRAG_TOTAL = settings.antrag_max_total_size_bytes
    ANTRAG_COUNT = settings.antrag_max_file_count


@dataclass
class FileValidationResult:
    is_valid: bool
    errors: Optional[List[str]] = None


def validate_files(
    files: Sequence,
    max_count: int,
    max_size: int,
    allowed_types: Sequence[str],
    allowed_label: Optional[str] = None,
) -> FileValidationResult:
    """
    Check file count, per-file size and media type.

    Files only need ``filename``, ``content_type`` and ``size`` attributes.
    All problems are collected; callers usually show the first one.

    Args:
        files: Candidate files
        max_count: Maximum number of files
        max_size: Maximum size of a single file in bytes
        allowed_types: Accepted media types
        allowed_label: How the accepted types are named in messages,
            defaults to the media types themselves

    Returns:
        FileValidationResult with the collected error messages
    """
    errors: List[str] = []

    if len(files) > max_count:
        errors.append(messages.too_many_files("files", max_count))

    for file in files:
        if file.size > max_size:
            errors.append(messages.single_file_size_exceeds(file.filename, max_size / MB))

    if allowed_label is None:
        allowed_label = ", ".join(allowed_types)
    for file in files:
        if (file.content_type or "").lower() not in allowed_types:
            errors.append(messages.unsupported_file_type(file.filename, allowed_label))

    if errors:
        return FileValidationResult(is_valid=False, errors=errors)
    return FileValidationResult(is_valid=True)
