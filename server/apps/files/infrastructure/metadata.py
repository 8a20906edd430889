"""Metadata helpers: checksums, MIME types and URL checks."""

import hashlib
import mimetypes
from typing import Final
from urllib.parse import urlsplit

from django.conf import settings

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from a file name.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def mime_type_from_header(content_type: str | None, filename: str) -> str:
    """Pick the MIME type announced by an upstream server.

    Args:
        content_type: Raw ``Content-Type`` header, may carry parameters.
        filename: Fallback name used for guessing.

    Returns:
        Bare MIME type without parameters.
    """
    if content_type:
        bare = content_type.split(';', 1)[0].strip()
        if bare:
            return bare.lower()
    return detect_mime_type(filename)


def calculate_checksum(data: bytes) -> str:
    """Calculate the MD5 checksum clients send along with raw uploads.

    Args:
        data: Uploaded bytes.

    Returns:
        Hex-encoded MD5 digest.
    """
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def checksums_match(expected: str, actual: str) -> bool:
    """Compare two hex digests ignoring case and surrounding spaces."""
    return expected.strip().lower() == actual.lower()


def is_allowed_url(url: str) -> bool:
    """Check that a URL is absolute and uses an allowed scheme.

    Args:
        url: URL supplied by the caller.

    Returns:
        True if the scheme is in ``ALLOWED_URL_SCHEMES`` and a host is set.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return False

    allowed = getattr(settings, 'ALLOWED_URL_SCHEMES', ('http', 'https'))
    return parts.scheme.lower() in allowed and bool(parts.netloc)

