"""Business logic for the file lifecycle.

Files move from active (private or public) to deleted; deletion is a
soft delete that frees the public slug and drops the content blob once
the metadata change is committed.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from typing import IO, Any

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.files.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    RequestValidationError,
)
from server.apps.files.infrastructure.storage import (
    open_content,
    remove_content,
)
from server.apps.files.logic.access_policy import (
    can_see_foreign_entries,
    require_namespace_access,
)
from server.apps.files.logic.attribute_operations import (
    normalize_names,
    resolve_or_create,
)
from server.apps.files.logic.identifiers import allocate_public_slug
from server.apps.files.logic.namespace_operations import get_default_namespace
from server.apps.files.models import File, Group, Namespace, Tag

# User type for Django's dynamic user model
_User = Any

# Fields touched by visibility changes
_VISIBILITY_FIELDS = ('is_public', 'public_slug', 'modified_at')  # noqa: WPS226

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileDraft:
    """Everything needed to create a file row for stored content."""

    name: str
    local_name: str
    size_bytes: int
    mime_type: str = ''
    namespace: Namespace | None = None
    tags: Sequence[str] = ()
    groups: Sequence[str] = ()


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish request."""

    conflict: bool
    slug: str | None = None


@dataclass(frozen=True)
class PublicContent:
    """Readable content of a published file."""

    stream: IO[bytes]
    mime_type: str
    name: str
    size_bytes: int


def _save(file_instance: File, *fields: str) -> None:
    try:
        file_instance.save(update_fields=[*fields, 'modified_at'])
    except DatabaseError as exc:
        logger.exception('Failed to save file: ID=%s', file_instance.pk)
        raise InternalError('could not save file') from exc


def insert_file(draft: FileDraft, user: _User) -> File:
    """Create the file row and its tag/group associations.

    Tags and groups are resolved (or created) in the draft's namespace;
    the default namespace is used when the draft has none. Row and
    associations are written in one transaction.

    Args:
        draft: Metadata of the already stored content.
        user: Uploader.

    Returns:
        Created File instance.

    Raises:
        InternalError: If the database rejects the insert.
    """
    namespace = draft.namespace or get_default_namespace()

    try:
        with transaction.atomic():
            tags = resolve_or_create(Tag, draft.tags, namespace, user)
            groups = resolve_or_create(Group, draft.groups, namespace, user)
            file_instance = File.objects.create(
                name=draft.name,
                local_name=draft.local_name,
                owner=user,
                namespace=namespace,
                size_bytes=draft.size_bytes,
                mime_type=draft.mime_type,
            )
            file_instance.tags.set(tags)
            file_instance.groups.set(groups)
    except DatabaseError as exc:
        logger.exception(
            'Failed to insert file record: %s (local name: %s)',
            draft.name,
            draft.local_name,
        )
        raise InternalError('could not save file') from exc

    logger.info(
        'File record created: %s (ID: %d, namespace: %s)',
        file_instance.name,
        file_instance.id,
        namespace.name,
    )
    return file_instance


def rename_file(file_instance: File, new_name: str) -> File:
    """Give a file a new user-facing name.

    Raises:
        RequestValidationError: If the new name is blank.
    """
    new_name = new_name.strip()
    if not new_name:
        raise RequestValidationError('new name must not be empty')

    old_name = file_instance.name
    file_instance.name = new_name
    _save(file_instance, 'name')
    logger.info('File renamed: %s -> %s (ID: %d)', old_name, new_name, file_instance.id)
    return file_instance


def set_visibility(file_instance: File, is_public: bool) -> bool:
    """Make a file public or private.

    Going private clears the slug so it can be reused. Going public
    without a slug allocates a random one.

    Args:
        file_instance: File to change.
        is_public: Requested visibility.

    Returns:
        True if the stored state changed.
    """
    if is_public:
        if file_instance.is_public and file_instance.public_slug:
            return False
        slug = file_instance.public_slug or allocate_public_slug(
            file_id=file_instance.pk,
        )
        file_instance.is_public = True
        file_instance.public_slug = slug
    else:
        if not file_instance.is_public and file_instance.public_slug is None:
            return False
        file_instance.is_public = False
        file_instance.public_slug = None

    _save(file_instance, 'is_public', 'public_slug')
    logger.info(
        'File visibility changed: ID=%d public=%s',
        file_instance.id,
        is_public,
    )
    return True


def _add_attributes(
    file_instance: File,
    model: type[Tag] | type[Group],
    names: Sequence[str],
    user: _User,
) -> bool:
    relation = file_instance.tags if model is Tag else file_instance.groups
    present = {attribute.name for attribute in relation.all()}
    missing = [name for name in normalize_names(names) if name not in present]
    if not missing:
        return False

    try:
        with transaction.atomic():
            attributes = resolve_or_create(
                model,
                missing,
                file_instance.namespace,
                user,
            )
            relation.add(*attributes)
    except DatabaseError as exc:
        logger.exception('Failed to attach attributes to file: ID=%d', file_instance.id)
        raise InternalError('could not save file') from exc

    _save(file_instance)
    logger.info(
        'Added %s %s to file ID=%d',
        model.__name__.lower(),
        missing,
        file_instance.id,
    )
    return True


def _remove_attributes(
    file_instance: File,
    model: type[Tag] | type[Group],
    names: Sequence[str],
) -> bool:
    relation = file_instance.tags if model is Tag else file_instance.groups
    wanted = set(normalize_names(names))
    matched = [
        attribute for attribute in relation.all()
        if attribute.name in wanted
    ]
    if not matched:
        return False

    try:
        relation.remove(*matched)
    except DatabaseError as exc:
        logger.exception('Failed to detach attributes from file: ID=%d', file_instance.id)
        raise InternalError('could not save file') from exc

    _save(file_instance)
    logger.info(
        'Removed %s %s from file ID=%d',
        model.__name__.lower(),
        sorted(attribute.name for attribute in matched),
        file_instance.id,
    )
    return True


def add_tags(file_instance: File, names: Sequence[str], user: _User) -> bool:
    """Attach tags by name; names already attached are skipped.

    Returns:
        True if at least one tag was attached.
    """
    return _add_attributes(file_instance, Tag, names, user)


def remove_tags(file_instance: File, names: Sequence[str]) -> bool:
    """Detach tags by name.

    Returns:
        True if at least one tag was detached.
    """
    return _remove_attributes(file_instance, Tag, names)


def add_groups(file_instance: File, names: Sequence[str], user: _User) -> bool:
    """Attach groups by name; names already attached are skipped."""
    return _add_attributes(file_instance, Group, names, user)


def remove_groups(file_instance: File, names: Sequence[str]) -> bool:
    """Detach groups by name."""
    return _remove_attributes(file_instance, Group, names)


def migrate_namespace(
    file_instance: File,
    namespace: Namespace,
    user: _User,
) -> File:
    """Move a file into another namespace.

    Every attached tag and group is re-resolved (or created) by name in
    the destination and replaces the old association. Either the whole
    move is committed or nothing changes.

    Args:
        file_instance: File to move.
        namespace: Destination namespace.
        user: Owner recorded on attributes created in the destination.

    Returns:
        The moved File.

    Raises:
        InternalError: If the database rejects the move.
    """
    if file_instance.namespace_id == namespace.pk:
        return file_instance

    old_namespace = file_instance.namespace
    tag_names = file_instance.tag_names()
    group_names = file_instance.group_names()

    try:
        with transaction.atomic():
            new_tags = resolve_or_create(Tag, tag_names, namespace, user)
            new_groups = resolve_or_create(Group, group_names, namespace, user)
            file_instance.namespace = namespace
            file_instance.save(update_fields=['namespace', 'modified_at'])
            file_instance.tags.set(new_tags)
            file_instance.groups.set(new_groups)
    except DatabaseError as exc:
        file_instance.namespace = old_namespace
        logger.exception(
            'Failed to move file ID=%d to namespace %s',
            file_instance.id,
            namespace.name,
        )
        raise InternalError('could not move file') from exc

    logger.info(
        'File moved: ID=%d %s -> %s (%d tags, %d groups)',
        file_instance.id,
        old_namespace.name,
        namespace.name,
        len(new_tags),
        len(new_groups),
    )
    return file_instance


def delete_file(file_instance: File) -> None:
    """Soft delete a file and drop its content.

    The public slug is released and ``deleted_at`` set. Content removal
    runs after the transaction commits; the metadata change is
    authoritative even if the blob cannot be removed.

    Args:
        file_instance: File to delete.
    """
    file_instance.is_public = False
    file_instance.public_slug = None
    file_instance.deleted_at = timezone.now()
    _save(file_instance, 'is_public', 'public_slug', 'deleted_at')

    logger.info(
        'File deleted: %s (ID: %d, local name: %s)',
        file_instance.name,
        file_instance.id,
        file_instance.local_name,
    )
    transaction.on_commit(partial(remove_content, file_instance.local_name))


def publish_file(
    file_instance: File,
    requested_slug: str | None = None,
) -> PublishResult:
    """Publish a file under a public slug.

    On a slug collision with another file nothing is saved and the
    instance keeps its previous public state.

    Args:
        file_instance: File to publish.
        requested_slug: Slug wanted by the caller; random if empty.

    Returns:
        PublishResult with ``conflict`` set when the slug is taken.
    """
    try:
        slug = allocate_public_slug(requested_slug, file_id=file_instance.pk)
    except ConflictError:
        return PublishResult(conflict=True)

    previous = (file_instance.is_public, file_instance.public_slug)
    file_instance.is_public = True
    file_instance.public_slug = slug
    try:
        with transaction.atomic():
            file_instance.save(update_fields=list(_VISIBILITY_FIELDS))
    except IntegrityError:
        # Another worker took the slug between the check and the save
        file_instance.is_public, file_instance.public_slug = previous
        logger.info('Public slug taken concurrently: %s', slug)
        return PublishResult(conflict=True)
    except DatabaseError as exc:
        file_instance.is_public, file_instance.public_slug = previous
        logger.exception('Failed to publish file: ID=%d', file_instance.id)
        raise InternalError('could not publish file') from exc

    logger.info('File published: ID=%d slug=%s', file_instance.id, slug)
    return PublishResult(conflict=False, slug=slug)


def find_files(
    name: str,
    namespace: Namespace,
    user: _User,
    file_id: int | None = None,
) -> QuerySet[File]:
    """Live files of ``user`` with this name in ``namespace``.

    Args:
        name: Exact file name.
        namespace: Namespace to search.
        user: Uploader.
        file_id: Optional id narrowing the match to one row.

    Returns:
        QuerySet with namespace, tags and groups preloaded.
    """
    files = File.objects.filter(name=name, namespace=namespace, owner=user)
    if file_id:
        files = files.filter(id=file_id)
    return files.select_related('namespace').prefetch_related('tags', 'groups')


def count_matches(
    name: str,
    namespace: Namespace,
    user: _User,
    file_id: int | None = None,
) -> int:
    """Number of files ``find_files`` would return."""
    return find_files(name, namespace, user, file_id).count()


def get_file_for_update(
    name: str,
    namespace: Namespace,
    user: _User,
    file_id: int | None = None,
) -> File:
    """Resolve the single file a mutating request addresses.

    Raises:
        ConflictError: If the name is ambiguous and no id was given.
        NotFoundError: If nothing matches.
    """
    matches = count_matches(name, namespace, user, file_id)
    if matches > 1 and not file_id:
        raise ConflictError('multiple files with same name')
    if matches == 0:
        raise NotFoundError('File not found')
    return find_files(name, namespace, user, file_id).get()


def list_files(
    namespace: Namespace,
    user: _User,
    *,
    name_contains: str | None = None,
    tags: Sequence[Tag] = (),
    groups: Sequence[Group] = (),
) -> list[File]:
    """Live files in a namespace matching the filters.

    A file qualifies if it has at least one of ``tags`` (when given) and
    at least one of ``groups`` (when given). In a shared namespace only
    the user's own files are listed unless the role may read foreign
    files.

    Args:
        namespace: Namespace to list.
        user: Requesting user, must be allowed to read the namespace.
        name_contains: Optional substring of the file name.
        tags: Tag filter.
        groups: Group filter.

    Returns:
        Matching files, newest first.
    """
    require_namespace_access(namespace, user, write=False)

    files = File.objects.filter(namespace=namespace)
    if not can_see_foreign_entries(namespace, user):
        files = files.filter(owner=user)
    if name_contains:
        files = files.filter(name__contains=name_contains)
    if tags:
        files = files.filter(tags__in=tags)
    if groups:
        files = files.filter(groups__in=groups)

    return list(
        files.distinct()
        .select_related('namespace', 'namespace__owner')
        .prefetch_related('tags', 'groups'),
    )


def summarize_file(file_instance: File, verbosity: int = 0) -> dict[str, Any]:
    """Serialize a file for list responses.

    Verbosity only changes how much is returned, never which files.

    Args:
        file_instance: File to describe.
        verbosity: 0 identity, 1 size and date, 2 attributes,
            3 namespace detail.

    Returns:
        JSON-serializable dictionary.
    """
    summary: dict[str, Any] = {
        'id': file_instance.id,
        'name': file_instance.name,
    }
    if verbosity >= 1:
        summary['size'] = file_instance.size_bytes
        summary['created_at'] = file_instance.created_at.isoformat()
    if verbosity >= 2:
        summary['is_public'] = file_instance.is_public
        summary['public_slug'] = file_instance.public_slug
        summary['attributes'] = {
            'tags': file_instance.tag_names(),
            'groups': file_instance.group_names(),
            'namespace': file_instance.namespace.name,
        }
    if verbosity >= 3:
        namespace = file_instance.namespace
        summary['namespace'] = {
            'id': namespace.id,
            'name': namespace.name,
            'owner': namespace.owner.username if namespace.owner else None,
        }
    return summary


def get_public_file(slug: str) -> File:
    """Find the live public file published under ``slug``.

    Raises:
        NotFoundError: For unknown, revoked or deleted slugs.
    """
    try:
        return File.objects.get(public_slug=slug, is_public=True)
    except File.DoesNotExist as exc:
        raise NotFoundError('public file not found') from exc


def open_public_content(slug: str) -> PublicContent:
    """Open the content of a published file.

    Raises:
        NotFoundError: If the slug is unknown or the file is private.
        InternalError: If the content blob cannot be opened.
    """
    file_instance = get_public_file(slug)
    try:
        stream = open_content(file_instance.local_name)
    except Exception as exc:
        logger.exception(
            'Failed to open content of public file: ID=%d',
            file_instance.id,
        )
        raise InternalError('could not read file content') from exc

    return PublicContent(
        stream=stream,
        mime_type=file_instance.mime_type,
        name=file_instance.name,
        size_bytes=file_instance.size_bytes,
    )
