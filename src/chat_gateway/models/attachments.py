"""
Attachment preparation.

Turns raw file bytes into Attachment models: resolves the short format name
from the MIME type or extension, enforces the size and count limits, and
sanitizes file names to the character set the managed cloud backend accepts.
"""

import base64
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..core.errors import AttachmentError
from .request import Attachment

MAX_FILE_SIZE = int(4.5 * 1024 * 1024)
MAX_FILES_PER_REQUEST = 5
MAX_NAME_LENGTH = 200

DOCUMENT_FORMATS: Dict[str, str] = {
    "application/pdf": "pdf",
    "text/plain": "txt",
    "text/html": "html",
    "text/markdown": "md",
    "text/csv": "csv",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
}

IMAGE_FORMATS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/gif": "gif",
    "image/webp": "webp",
}

_SUPPORTED = {**DOCUMENT_FORMATS, **IMAGE_FORMATS}
_EXTENSION_ALIASES = {"jpg": "jpeg", "markdown": "md", "htm": "html"}

_DISALLOWED_NAME_CHARS = re.compile(r"[^a-zA-Z0-9 \-()\[\]]")
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_filename(filename: str, strip_extension: bool = True) -> str:
    """
    Reduce a file name to alphanumerics, single spaces, hyphens,
    parentheses and square brackets, at most 200 characters.
    """
    name = filename
    if strip_extension:
        name = re.sub(r"\.[^/.]+$", "", name)
    name = _WHITESPACE_RUN.sub(" ", name)
    name = _DISALLOWED_NAME_CHARS.sub("", name)
    name = _WHITESPACE_RUN.sub(" ", name).strip()
    if not name:
        name = "document"
    if len(name) > MAX_NAME_LENGTH:
        name = name[:MAX_NAME_LENGTH].strip()
    return name


def resolve_format(filename: str, mime_type: Optional[str] = None) -> Optional[str]:
    """Short format name from the MIME type, falling back to the extension."""
    if mime_type and mime_type in _SUPPORTED:
        return _SUPPORTED[mime_type]

    extension = Path(filename).suffix.lstrip(".").lower()
    extension = _EXTENSION_ALIASES.get(extension, extension)
    if extension in _SUPPORTED.values():
        return extension
    return None


def is_image_format(fmt: str) -> bool:
    return fmt in IMAGE_FORMATS.values()


def prepare_attachment(
    filename: str,
    data: bytes,
    mime_type: Optional[str] = None,
) -> Attachment:
    """
    Validate and encode one file.

    Raises:
        AttachmentError: If the file is too large or of an unsupported format
    """
    if len(data) > MAX_FILE_SIZE:
        raise AttachmentError(
            f'File "{filename}" exceeds the maximum size of 4.5 MB '
            f"({len(data) / 1024 / 1024:.2f} MB)"
        )

    fmt = resolve_format(filename, mime_type)
    if fmt is None:
        raise AttachmentError(
            f'File "{filename}" has an unsupported format. Supported formats: '
            + ", ".join(sorted(set(_SUPPORTED.values()))).upper()
        )

    return Attachment(
        name=sanitize_filename(filename),
        format=fmt,
        base64_bytes=base64.b64encode(data).decode("ascii"),
    )


def prepare_attachments(files: Sequence[tuple]) -> List[Attachment]:
    """
    Validate and encode a batch of (filename, data[, mime_type]) tuples.

    Raises:
        AttachmentError: If there are too many files or any file is invalid
    """
    if len(files) > MAX_FILES_PER_REQUEST:
        raise AttachmentError(
            f"Too many files. Maximum {MAX_FILES_PER_REQUEST} files per request "
            f"({len(files)} provided)"
        )
    return [prepare_attachment(*entry) for entry in files]
