"""Management command to purge soft-deleted files."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import DatabaseError
from django.utils import timezone

from server.apps.files.models import File

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Hard delete files soft-deleted longer than the retention period."""

    help = 'Permanently remove deleted files past the retention period'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max files to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        retention_days = getattr(settings, 'DELETED_FILE_RETENTION_DAYS', 30)

        cutoff = timezone.now() - timedelta(days=retention_days)

        self.stdout.write(
            f'Looking for files deleted before {cutoff} '
            f'(older than {retention_days} days)',
        )

        old_files = File.all_objects.filter(
            deleted_at__isnull=False,
            deleted_at__lte=cutoff,
        ).select_related('owner').order_by('deleted_at')[:batch_size]

        count = 0
        failed = 0

        for file_instance in old_files:
            if dry_run:
                self.stdout.write(
                    f'Would purge: {file_instance.name} '
                    f'(user: {file_instance.owner.username}, '
                    f'deleted: {file_instance.deleted_at})',
                )
                count += 1
                continue

            file_id = file_instance.id
            try:
                file_instance.delete()
            except DatabaseError as exc:
                self.stderr.write(f'Failed to purge {file_id}: {exc}')
                logger.exception('Failed to purge deleted file: %d', file_id)
                failed += 1
                continue

            count += 1
            logger.info(
                'Purged deleted file: %s (ID: %d)',
                file_instance.name,
                file_id,
            )

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} deleted files'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} deleted files, {failed} failed',
                ),
            )
