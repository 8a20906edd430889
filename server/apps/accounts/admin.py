"""Django admin configuration for accounts app."""

from typing import override

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.accounts.models import Account, LoginSession, Role


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin[Role]):
    """Admin interface for Role model."""

    list_display = [
        'name',
        'can_upload_files',
        'can_upload_urls',
        'can_read_foreign_namespaces',
        'can_write_foreign_namespaces',
        'max_upload_size',
        'max_url_content_size',
    ]

    search_fields = ['name']

    fieldsets = (
        ('Role', {
            'fields': ('name',),
        }),
        ('Capabilities', {
            'fields': (
                'can_upload_files',
                'can_upload_urls',
                'can_read_foreign_namespaces',
                'can_write_foreign_namespaces',
            ),
        }),
        ('Limits', {
            'fields': ('max_upload_size', 'max_url_content_size'),
        }),
    )


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin[Account]):
    """Admin interface for Account model."""

    list_display = ['user', 'role']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email']

    @override
    def get_queryset(self, request: HttpRequest) -> QuerySet[Account]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user', 'role')


@admin.register(LoginSession)
class LoginSessionAdmin(admin.ModelAdmin[LoginSession]):
    """Admin interface for LoginSession model."""

    list_display = [
        'token_short',
        'user',
        'created_at',
        'last_activity',
    ]

    list_filter = [
        'user',
        'created_at',
        'last_activity',
    ]

    search_fields = ['user__username']

    readonly_fields = [
        'token',
        'created_at',
        'last_activity',
    ]

    def token_short(self, obj: LoginSession) -> str:
        """Display truncated token.

        Args:
            obj: LoginSession instance.

        Returns:
            First 8 characters of the token.
        """
        return obj.token[:8]
    token_short.short_description = 'Token'  # type: ignore[attr-defined]

    @override
    def get_queryset(self, request: HttpRequest) -> QuerySet[LoginSession]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user')

    @override
    def has_add_permission(self, request: HttpRequest) -> bool:
        """Sessions are only created by logging in."""
        return False

    @override
    def has_change_permission(
        self,
        request: HttpRequest,
        obj: LoginSession | None = None,
    ) -> bool:
        """Sessions are managed automatically."""
        return False
