"""Database models for roles, accounts and login sessions."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_ROLE_NAME_MAX_LENGTH: Final = 64
_TOKEN_MAX_LENGTH: Final = 64


@final
class Role(models.Model):
    """Set of capabilities and size ceilings shared by many users.

    A ``NULL`` ceiling means the role is not limited.
    """

    name = models.CharField(
        max_length=_ROLE_NAME_MAX_LENGTH,
        unique=True,
    )

    can_upload_files = models.BooleanField(default=False)
    can_upload_urls = models.BooleanField(default=False)
    can_read_foreign_namespaces = models.BooleanField(default=False)
    can_write_foreign_namespaces = models.BooleanField(default=False)

    max_upload_size = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='Largest raw upload in bytes (empty = unlimited)',
    )

    max_url_content_size = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='Largest remote URL download in bytes (empty = unlimited)',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Role'  # type: ignore[mutable-override]
        verbose_name_plural = 'Roles'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.name

    def has_url_limit(self) -> bool:
        """Whether remote downloads are capped for this role."""
        return self.max_url_content_size is not None


@final
class Account(models.Model):
    """Per-user profile linking a Django user to its role."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='account',
        primary_key=True,
    )

    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        related_name='accounts',
        null=True,
        blank=True,
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Account'  # type: ignore[mutable-override]
        verbose_name_plural = 'Accounts'  # type: ignore[mutable-override]

    @override
    def __str__(self) -> str:
        """String representation."""
        role_name = self.role.name if self.role else '-'
        return f'{self.user.username} ({role_name})'


@final
class LoginSession(models.Model):
    """Bearer-token session of an authenticated user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='login_sessions',
        db_index=True,
    )

    token = models.CharField(
        max_length=_TOKEN_MAX_LENGTH,
        unique=True,
        help_text='Bearer token presented by the client',
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text='Session start time',
    )

    last_activity = models.DateTimeField(
        auto_now=True,
        db_index=True,
        help_text='Last activity timestamp',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Login Session'  # type: ignore[mutable-override]
        verbose_name_plural = 'Login Sessions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-last_activity']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['user', '-last_activity'],
                name='session_user_activity_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username} ({self.token[:8]})'
