"""Database models for files app."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models
from django.db.models import Q

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_ATTRIBUTE_NAME_MAX_LENGTH: Final = 100
_MIME_TYPE_MAX_LENGTH: Final = 255
_LOCAL_NAME_MAX_LENGTH: Final = 64
_PUBLIC_SLUG_MAX_LENGTH: Final = 128


@final
class Namespace(models.Model):
    """Named scope owning a user's files, tags and groups.

    Namespaces without an owner are shared; the default namespace is
    one of them.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='namespaces',
        null=True,
        blank=True,
        help_text='Empty for shared namespaces',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Namespace'  # type: ignore[mutable-override]
        verbose_name_plural = 'Namespaces'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['owner', 'name'],
                name='namespaces_owner_name_unique',
            ),
            # NULL owners never collide in the constraint above
            models.UniqueConstraint(
                fields=['name'],
                condition=Q(owner__isnull=True),
                name='namespaces_shared_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        if self.owner_id is None:
            return self.name
        return f'{self.owner.username}:{self.name}'

    @property
    def is_shared(self) -> bool:
        """Whether the namespace belongs to nobody in particular."""
        return self.owner_id is None


class Attribute(models.Model):
    """Label scoped to a namespace, attachable to many files."""

    name = models.CharField(max_length=_ATTRIBUTE_NAME_MAX_LENGTH)

    namespace = models.ForeignKey(
        Namespace,
        on_delete=models.CASCADE,
        related_name='%(class)ss',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_%(class)ss',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        abstract = True
        ordering: ClassVar[list[str]] = ['name']

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.namespace.name}:{self.name}'


@final
class Tag(Attribute):
    """User-defined tag, unique by name within its namespace."""

    class Meta(Attribute.Meta):
        """Model metadata."""

        verbose_name = 'Tag'  # type: ignore[mutable-override]
        verbose_name_plural = 'Tags'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['name', 'namespace'],
                name='tags_name_namespace_unique',
            ),
        ]


@final
class Group(Attribute):
    """User-defined group, unique by name within its namespace."""

    class Meta(Attribute.Meta):
        """Model metadata."""

        verbose_name = 'Group'  # type: ignore[mutable-override]
        verbose_name_plural = 'Groups'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['name', 'namespace'],
                name='groups_name_namespace_unique',
            ),
        ]


class LiveFileManager(models.Manager['File']):
    """Manager hiding soft-deleted files."""

    @override
    def get_queryset(self) -> models.QuerySet['File']:
        """Only files that have not been deleted."""
        return super().get_queryset().filter(deleted_at__isnull=True)


@final
class File(models.Model):
    """Uploaded file: metadata row for one content blob.

    The content lives in the content store under ``local_name``; the
    user-facing ``name`` is free text and may repeat inside a namespace.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    local_name = models.CharField(
        max_length=_LOCAL_NAME_MAX_LENGTH,
        unique=True,
        editable=False,
        help_text='Key of the content blob in storage',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    namespace = models.ForeignKey(
        Namespace,
        on_delete=models.PROTECT,
        related_name='files',
    )

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    is_public = models.BooleanField(default=False)

    public_slug = models.CharField(
        max_length=_PUBLIC_SLUG_MAX_LENGTH,
        unique=True,
        null=True,
        blank=True,
        help_text='Token for unauthenticated download, set while public',
    )

    tags = models.ManyToManyField(
        Tag,
        related_name='files',
        blank=True,
    )

    groups = models.ManyToManyField(
        Group,
        related_name='files',
        blank=True,
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
    )

    objects = LiveFileManager()
    all_objects = models.Manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']
        base_manager_name = 'all_objects'

        indexes: ClassVar[list[models.Index]] = [
            # Name lookups inside a namespace
            models.Index(
                fields=['namespace', 'name', 'owner'],
                name='files_ns_name_owner_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.namespace.name}:{self.name}'

    @property
    def is_deleted(self) -> bool:
        """Whether the file was soft-deleted."""
        return self.deleted_at is not None

    def tag_names(self) -> list[str]:
        """Sorted names of attached tags."""
        return sorted(tag.name for tag in self.tags.all())

    def group_names(self) -> list[str]:
        """Sorted names of attached groups."""
        return sorted(group.name for group in self.groups.all())
