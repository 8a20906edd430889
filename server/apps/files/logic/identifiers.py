"""Allocation of local storage names and public slugs."""

import logging
from collections.abc import Callable

from django.conf import settings
from django.utils.crypto import get_random_string

from server.apps.files.exceptions import AllocationExhaustedError, ConflictError
from server.apps.files.models import File

logger = logging.getLogger(__name__)


def _local_name_taken(local_name: str) -> bool:
    return File.all_objects.filter(local_name=local_name).exists()


def allocate_local_name(
    is_taken: Callable[[str], bool] = _local_name_taken,
) -> str:
    """Draw a random local name not used by any file row.

    Collisions are retried up to ``LOCAL_NAME_ATTEMPTS`` times; the
    unique constraint on ``File.local_name`` settles races between
    workers.

    Args:
        is_taken: Existence check against the store.

    Returns:
        Unused local name.

    Raises:
        AllocationExhaustedError: If every attempt collided.
    """
    length = getattr(settings, 'LOCAL_NAME_LENGTH', 40)
    attempts = getattr(settings, 'LOCAL_NAME_ATTEMPTS', 5)

    for attempt in range(1, attempts + 1):
        local_name = get_random_string(length)
        if not is_taken(local_name):
            return local_name
        logger.warning(
            'Local name collision found. Trying again (%d/%d)',
            attempt,
            attempts,
        )

    logger.error('Local name allocation exhausted after %d attempts', attempts)
    raise AllocationExhaustedError(attempts)


def allocate_public_slug(
    requested: str | None = None,
    *,
    file_id: int | None = None,
) -> str:
    """Pick the public slug for a file.

    A requested slug is used verbatim and never substituted.

    Args:
        requested: Slug asked for by the caller.
        file_id: File being published; its own slug is not a collision.

    Returns:
        Slug to store.

    Raises:
        ConflictError: If another file already holds the slug.
    """
    slug = (requested or '').strip()
    if not slug:
        slug = get_random_string(getattr(settings, 'PUBLIC_SLUG_LENGTH', 25))

    holders = File.all_objects.filter(public_slug=slug)
    if file_id is not None:
        holders = holders.exclude(pk=file_id)
    if holders.exists():
        logger.info('Public slug already taken: %s', slug)
        raise ConflictError('public name already in use')
    return slug
