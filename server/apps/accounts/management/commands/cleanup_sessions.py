"""Management command to remove expired login sessions."""

from typing import Any

from django.core.management.base import BaseCommand

from server.apps.accounts.logic.session_manager import cleanup_stale_sessions


class Command(BaseCommand):
    """Delete login sessions inactive for longer than the timeout."""

    help = 'Remove expired login sessions'

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command."""
        removed = cleanup_stale_sessions()
        self.stdout.write(
            self.style.SUCCESS(f'Removed {removed} expired sessions'),
        )
