"""On-disk storage for uploaded documents and child photos."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from fastapi import UploadFile

from daycare.core.exceptions import ValidationError
from daycare.core.settings import settings

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}

PHOTO_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass
class StoredFile:
    original_filename: str
    stored_filename: str
    path: str
    size: int
    mime_type: str


def upload_root() -> Path:
    return Path(settings.upload_dir)


async def save_upload(
    upload: UploadFile,
    subdir: str,
    allowed_types: dict,
    max_mb: int,
) -> StoredFile:
    """Validate type and size of an upload and write it under the upload directory."""
    mime_type = (upload.content_type or "").lower()
    if mime_type not in allowed_types:
        allowed = ", ".join(sorted({ext.lstrip(".").upper() for ext in allowed_types.values()}))
        raise ValidationError(f"Invalid file type. Allowed: {allowed}")

    contents = await upload.read()
    if not contents:
        raise ValidationError("Uploaded file is empty")
    if len(contents) > max_mb * 1024 * 1024:
        raise ValidationError(f"File too large. Maximum size is {max_mb}MB")

    target_dir = upload_root() / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    suffix = allowed_types[mime_type]
    stored_filename = f"{uuid.uuid4().hex}{suffix}"
    target = target_dir / stored_filename
    target.write_bytes(contents)

    logger.info(f"Stored upload {upload.filename!r} as {target} ({len(contents)} bytes)")
    return StoredFile(
        original_filename=upload.filename or stored_filename,
        stored_filename=stored_filename,
        path=str(target),
        size=len(contents),
        mime_type=mime_type,
    )


def remove_file(path: Optional[str]) -> None:
    """Delete a stored file; a file that is already gone is not an error."""
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove stored file {path}: {e}")


def remove_files(paths: Iterable[Optional[str]]) -> None:
    for path in paths:
        remove_file(path)
