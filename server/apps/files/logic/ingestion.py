"""Content ingestion: from an upload request to stored content + metadata.

Transaction safety: content is written to storage first, then the file
row is inserted. If the insert fails, the blob is deleted again before
the error propagates, so no orphaned content is left behind.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import IO, Any

import httpx
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.base import File as DjangoFile
from django.utils.crypto import get_random_string

from server.apps.files.exceptions import (
    ContentIntegrityError,
    InternalError,
    RequestValidationError,
)
from server.apps.files.infrastructure.fetch import fetch_url
from server.apps.files.infrastructure.metadata import (
    calculate_checksum,
    checksums_match,
    detect_mime_type,
    is_allowed_url,
    mime_type_from_header,
)
from server.apps.files.infrastructure.storage import get_content_storage
from server.apps.files.logic.access_policy import (
    require_can_upload_files,
    require_can_upload_urls,
    require_namespace_access,
    require_upload_size,
    url_content_ceiling,
)
from server.apps.files.logic.file_operations import FileDraft, insert_file
from server.apps.files.logic.identifiers import allocate_local_name
from server.apps.files.logic.namespace_operations import resolve_namespace
from server.apps.files.models import File

# User type for Django's dynamic user model
_User = Any

UPLOAD_TYPE_FILE = 'file'
UPLOAD_TYPE_URL = 'url'

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadAttributes:
    """User-facing metadata shared by both upload kinds."""

    name: str = ''
    namespace: str = ''
    tags: tuple[str, ...] = ()
    groups: tuple[str, ...] = ()


def _file_name(attributes: UploadAttributes) -> str:
    if attributes.name:
        return attributes.name
    return get_random_string(getattr(settings, 'RANDOM_FILE_NAME_LENGTH', 20))


def _store_and_insert(
    user: _User,
    attributes: UploadAttributes,
    content: IO[bytes] | DjangoFile,
    size_bytes: int,
    mime_type: str,
) -> File:
    namespace = resolve_namespace(attributes.namespace, user, create_missing=True)
    require_namespace_access(namespace, user, write=True)

    local_name = allocate_local_name()
    storage = get_content_storage()

    # Step 1: Write content to storage first
    try:
        saved_name = storage.store(local_name, content)
    except Exception as exc:
        logger.exception('Failed to store upload content: %s', local_name)
        raise InternalError('could not store file content') from exc

    # Step 2: Create database record, removing the blob if that fails
    draft = FileDraft(
        name=attributes.name,
        local_name=saved_name,
        size_bytes=size_bytes,
        mime_type=mime_type,
        namespace=namespace,
        tags=attributes.tags,
        groups=attributes.groups,
    )
    try:
        return insert_file(draft, user)
    except Exception:
        logger.exception(
            'Metadata insert failed, rolling back content: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise


def ingest_bytes(
    user: _User,
    data: bytes,
    checksum: str,
    attributes: UploadAttributes,
) -> File:
    """Store raw uploaded bytes as a new file.

    Args:
        user: Uploader.
        data: File content.
        checksum: MD5 hex digest computed by the client.
        attributes: Name, namespace, tags and groups.

    Returns:
        Created File instance.

    Raises:
        PermissionDeniedError: If the role may not upload this file.
        ContentIntegrityError: If ``checksum`` does not match ``data``.
    """
    require_can_upload_files(user)
    require_upload_size(user, len(data))

    actual = calculate_checksum(data)
    if not checksums_match(checksum, actual):
        logger.warning(
            'Checksum mismatch for upload by %s: expected %s, got %s',
            user.username,
            checksum,
            actual,
        )
        raise ContentIntegrityError(checksum, actual)

    name = _file_name(attributes)
    attributes = replace(attributes, name=name)
    return _store_and_insert(
        user,
        attributes,
        ContentFile(data),
        size_bytes=len(data),
        mime_type=detect_mime_type(name),
    )


def ingest_url(
    user: _User,
    url: str,
    attributes: UploadAttributes,
    *,
    client: httpx.Client | None = None,
    cancel_event: threading.Event | None = None,
) -> File:
    """Download remote content and store it as a new file.

    The body is fetched completely (within the role's ceiling) before
    anything is written to storage; a cancelled or failed fetch leaves
    neither content nor a file row behind.

    Args:
        user: Uploader.
        url: Remote http(s) URL.
        attributes: Name, namespace, tags and groups.
        client: Optional httpx client, mainly for tests.
        cancel_event: Set by the caller to abort the download.

    Returns:
        Created File instance.

    Raises:
        PermissionDeniedError: If the role may not upload URLs.
        RequestValidationError: If the URL is missing or not http(s).
        UpstreamFetchError: If the download fails or is too large.
    """
    require_can_upload_urls(user)
    if not url or not is_allowed_url(url):
        raise RequestValidationError('missing or malformed url')

    fetched = fetch_url(
        url,
        url_content_ceiling(user),
        client=client,
        cancel_event=cancel_event,
    )
    with fetched.stream:
        name = _file_name(attributes)
        attributes = replace(attributes, name=name)
        return _store_and_insert(
            user,
            attributes,
            DjangoFile(fetched.stream),
            size_bytes=fetched.size_bytes,
            mime_type=mime_type_from_header(fetched.content_type, name),
        )
