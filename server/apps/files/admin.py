"""Django admin configuration for files app."""

from typing import override

from django.contrib import admin
from django.db.models import Count, Q, QuerySet
from django.http import HttpRequest

from server.apps.files.models import File, Group, Namespace, Tag


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


@admin.register(Namespace)
class NamespaceAdmin(admin.ModelAdmin[Namespace]):
    """Admin interface for Namespace model."""

    list_display = ['name', 'owner', 'file_count', 'created_at']
    list_filter = ['created_at']
    search_fields = ['name', 'owner__username']
    readonly_fields = ['created_at']

    def file_count(self, obj: Namespace) -> int:
        """Number of live files in the namespace."""
        return obj.live_file_count  # type: ignore[attr-defined]
    file_count.short_description = 'Files'  # type: ignore[attr-defined]

    @override
    def get_queryset(self, request: HttpRequest) -> QuerySet[Namespace]:
        """Annotate live file counts."""
        return super().get_queryset(request).select_related('owner').annotate(
            live_file_count=Count('files', filter=Q(files__deleted_at__isnull=True)),
        )


class AttributeAdmin(admin.ModelAdmin[Tag | Group]):
    """Shared admin behaviour for tags and groups."""

    list_display = ['name', 'namespace', 'owner', 'file_count', 'created_at']
    list_filter = ['namespace', 'created_at']
    search_fields = ['name', 'namespace__name']
    readonly_fields = ['created_at']

    fieldsets = (
        ('Attribute', {
            'fields': ('name', 'namespace', 'owner'),
        }),
        ('Metadata', {
            'fields': ('created_at',),
        }),
    )

    def file_count(self, obj: Tag | Group) -> int:
        """Count of files carrying this attribute.

        Args:
            obj: Tag or Group instance.

        Returns:
            Number of attached files, deleted ones included.
        """
        return obj.files.count()
    file_count.short_description = 'Files'  # type: ignore[attr-defined]

    @override
    def get_queryset(self, request: HttpRequest) -> QuerySet[Tag | Group]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related(
            'namespace',
            'owner',
        )


admin.site.register(Tag, AttributeAdmin)
admin.site.register(Group, AttributeAdmin)


@admin.register(File)
class FileAdmin(admin.ModelAdmin[File]):
    """Admin interface for File model."""

    list_display = [
        'name',
        'owner',
        'namespace',
        'size_display',
        'mime_type',
        'is_public',
        'created_at',
        'deleted_at',
    ]

    list_filter = [
        'is_public',
        'mime_type',
        'created_at',
        'deleted_at',
    ]

    search_fields = [
        'name',
        'local_name',
        'public_slug',
        'owner__username',
    ]

    readonly_fields = [
        'local_name',
        'size_bytes',
        'mime_type',
        'created_at',
        'modified_at',
        'deleted_at',
    ]

    filter_horizontal = ['tags', 'groups']

    fieldsets = (
        ('File Information', {
            'fields': ('name', 'owner', 'namespace', 'local_name'),
        }),
        ('Metadata', {
            'fields': ('size_bytes', 'mime_type'),
        }),
        ('Publication', {
            'fields': ('is_public', 'public_slug'),
        }),
        ('Attributes', {
            'fields': ('tags', 'groups'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'modified_at', 'deleted_at'),
        }),
    )

    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format.

        Args:
            obj: File instance.

        Returns:
            Formatted size string (e.g., '1.5 MB', '234 KB').
        """
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    @override
    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Include soft-deleted files, optimized with select_related."""
        return File.all_objects.select_related('owner', 'namespace')
