"""Size and content-type checks for files attached to assignments and submissions.

The declared content type of an upload is ignored; libmagic sniffs the first
bytes instead.
"""

from django.conf import settings
from django.core.exceptions import ValidationError
from typing import Any

import magic

HEADER_BYTES = 4096

DOCUMENT_MIME: set[str] = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}
# Speaking and listening work is handed in as recordings.
RECORDING_MIME: set[str] = {"audio/mpeg", "audio/wav", "audio/x-wav", "audio/webm", "video/webm"}
ALLOWED_ATTACHMENT_MIME: set[str] = (
    DOCUMENT_MIME | RECORDING_MIME | {"text/plain", "application/zip", "image/png", "image/jpeg"}
)


def validate_file_size(file_obj: Any, max_mb: int | None = None) -> None:
    """Reject empty files and files above MAX_UPLOAD_MB (or max_mb)."""
    if not file_obj:
        return
    limit = max_mb or getattr(settings, "MAX_UPLOAD_MB", 10)
    if file_obj.size == 0:
        raise ValidationError("File is empty.")
    if file_obj.size > limit * 1024 * 1024:
        raise ValidationError(f"File is larger than {limit} MB.")


def probe_mime(file_obj: Any) -> str | None:
    if not file_obj:
        return None
    position = file_obj.tell()
    header = file_obj.read(HEADER_BYTES)
    file_obj.seek(position)
    return magic.from_buffer(header, mime=True)


def validate_attachment_mime(file_obj: Any) -> None:
    mime = probe_mime(file_obj)
    if mime and mime not in ALLOWED_ATTACHMENT_MIME:
        raise ValidationError(f"Files of type {mime} cannot be attached.")


# Class materials are reading documents only. Older libmagic builds report .docx as zip.
MATERIAL_MIME_BY_EXTENSION: dict[str, set[str]] = {
    "pdf": {"application/pdf"},
    "doc": {"application/msword", "application/CDFV2"},
    "docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document", "application/zip"},
}


def material_extension(file_obj: Any) -> str:
    name = getattr(file_obj, "name", "") or ""
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def validate_material_file(file_obj: Any) -> None:
    """PDF or Word documents only; the extension and the sniffed type must agree."""
    allowed = MATERIAL_MIME_BY_EXTENSION.get(material_extension(file_obj))
    if allowed is None:
        raise ValidationError("Only PDF and Word documents are allowed.")
    mime = probe_mime(file_obj)
    if mime not in allowed:
        raise ValidationError(f"File content ({mime}) does not match its extension.")
