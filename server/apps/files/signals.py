"""Signal handlers for files app."""

import logging

from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.files.infrastructure.storage import remove_content
from server.apps.files.models import File

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=File)
def delete_content_from_storage(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Delete the content blob when a File row is removed for good.

    Covers hard deletes from the admin, the ORM and the purge command.
    Soft-deleted files usually lost their blob already, in which case
    this is a no-op.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.local_name:
        return

    logger.info(
        'Removing content after file row delete: %s',
        instance.local_name,
    )
    remove_content(instance.local_name)
