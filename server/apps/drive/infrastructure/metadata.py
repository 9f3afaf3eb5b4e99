"""Metadata helpers for uploaded payloads."""

import mimetypes
from pathlib import Path
from typing import Final

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type of an upload.

    The type declared by the client wins; otherwise it is guessed from
    the filename extension.

    Args:
        filename: Original filename with extension.
        declared: Content type sent with the upload, if any.

    Returns:
        MIME type string, ``application/octet-stream`` when unknown.
    """
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or _DEFAULT_MIME_TYPE


def storage_basename(storage_path: str) -> str:
    """Extract the last component of a storage key.

    Example: 'files/7/report.pdf' -> 'report.pdf'
    """
    return Path(storage_path).name
