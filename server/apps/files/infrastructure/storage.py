"""Content store backed by S3-compatible storage."""

import logging
from typing import IO, Any, final

from django.core.files.storage import default_storage
from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class ContentStorage(S3Storage):
    """S3 storage for file content blobs, keyed by local name.

    ``file_overwrite`` is off in settings, so an existing key is never
    replaced; django-storages stores under a fresh key instead.
    """

    def store(self, local_name: str, content: Any) -> str:
        """Write a blob under ``local_name``.

        Args:
            local_name: Key allocated for the new file.
            content: File-like object with the content.

        Returns:
            Key the blob was stored under.
        """
        saved_name = self.save(local_name, content)
        if saved_name != local_name:
            logger.warning(
                'Content key %s already taken, stored as %s',
                local_name,
                saved_name,
            )
        logger.info('Content blob written: %s', saved_name)
        return saved_name

    def rollback_upload(self, name: str) -> None:
        """Remove a blob whose file row was never committed.

        A failure leaves an orphaned blob. It is logged, not raised,
        because the caller is already reporting the original error.
        """
        if not remove_content(name, storage=self):
            logger.error('Orphaned blob after failed upload: %s', name)


def get_content_storage() -> ContentStorage:
    """Get the configured default storage backend.

    Returns:
        ContentStorage instance with the configured S3 options.
    """
    return default_storage  # type: ignore[return-value]


def remove_content(name: str, storage: ContentStorage | None = None) -> bool:
    """Remove the blob of a deleted file.

    Metadata deletion is authoritative, so failures here are logged
    and reported through the return value only.

    Args:
        name: Local name of the blob.
        storage: Store to use instead of the default one.

    Returns:
        True if the blob was removed (or was already gone).
    """
    storage = storage or get_content_storage()
    try:
        if not storage.exists(name):
            logger.warning(
                'Content blob not found (already deleted?): %s',
                name,
            )
            return True
        storage.delete(name)
    except Exception:
        logger.exception('Failed to remove content blob (orphaned): %s', name)
        return False
    logger.info('Content blob removed: %s', name)
    return True


def open_content(name: str) -> IO[bytes]:
    """Open a content blob for reading.

    Args:
        name: Local name of the blob.

    Returns:
        Readable binary stream; the caller closes it.
    """
    return get_content_storage().open(name, 'rb')
