"""Per-role capability checks."""

import logging
from typing import Any

from server.apps.accounts.models import Account, Role
from server.apps.files.exceptions import PermissionDeniedError
from server.apps.files.models import Group, Namespace, Tag

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_role(user: _User) -> Role | None:
    """Role of ``user``; ``None`` when no account or role is assigned."""
    try:
        account = Account.objects.select_related('role').get(user=user)
    except Account.DoesNotExist:
        return None
    return account.role


def can_upload_files(user: _User) -> bool:
    """Whether the user may upload raw bytes."""
    role = get_role(user)
    return role is not None and role.can_upload_files


def can_upload_urls(user: _User) -> bool:
    """Whether the user may upload by remote URL."""
    role = get_role(user)
    return role is not None and role.can_upload_urls


def url_content_ceiling(user: _User) -> int | None:
    """Largest remote download for the user, ``None`` for no limit."""
    role = get_role(user)
    if role is None:
        return 0
    if not role.has_url_limit():
        return None
    return role.max_url_content_size


def require_can_upload_files(user: _User) -> None:
    """Raise PermissionDeniedError unless raw uploads are allowed."""
    if not can_upload_files(user):
        logger.warning('File upload denied for user %s', user.username)
        raise PermissionDeniedError('not allowed to upload files')


def require_can_upload_urls(user: _User) -> None:
    """Raise PermissionDeniedError unless URL uploads are allowed."""
    if not can_upload_urls(user):
        logger.warning('URL upload denied for user %s', user.username)
        raise PermissionDeniedError('not allowed to upload urls')


def require_upload_size(user: _User, size_bytes: int) -> None:
    """Raise PermissionDeniedError if a raw upload exceeds the role limit.

    Args:
        user: Uploading user.
        size_bytes: Size of the upload.
    """
    role = get_role(user)
    if role is None or role.max_upload_size is None:
        return
    if size_bytes > role.max_upload_size:
        logger.warning(
            'Upload of %d bytes exceeds limit %d for user %s',
            size_bytes,
            role.max_upload_size,
            user.username,
        )
        raise PermissionDeniedError('file too large')


def can_see_foreign_entries(namespace: Namespace, user: _User) -> bool:
    """Whether listings of ``namespace`` include other users' entries.

    Owners see everything in their namespace. In shared namespaces each
    user sees only their own files, tags and groups unless the role may
    read foreign namespaces.
    """
    if namespace.owner_id == user.id:
        return True
    role = get_role(user)
    return role is not None and role.can_read_foreign_namespaces


def can_access_namespace(
    namespace: Namespace,
    user: _User,
    *,
    write: bool,
) -> bool:
    """Whether ``user`` may read (or write) inside ``namespace``.

    Owners and shared namespaces are always accessible; foreign
    namespaces need the matching role capability.
    """
    if namespace.is_shared or namespace.owner_id == user.id:
        return True
    role = get_role(user)
    if role is None:
        return False
    if write:
        return role.can_write_foreign_namespaces
    return role.can_read_foreign_namespaces


def require_namespace_access(
    namespace: Namespace,
    user: _User,
    *,
    write: bool,
) -> None:
    """Raise PermissionDeniedError unless the namespace is accessible."""
    if can_access_namespace(namespace, user, write=write):
        return
    mode = 'Write' if write else 'Read'
    logger.warning(
        '%s access to foreign namespace %s denied for user %s',
        mode,
        namespace,
        user.username,
    )
    raise PermissionDeniedError(
        f'{mode} permission denied for foreign namespaces',
    )


def require_attribute_change(attribute: Tag | Group, user: _User) -> None:
    """Raise PermissionDeniedError unless ``user`` may rename or delete.

    The creator of the attribute and the owner of its namespace may
    change it; anyone else needs the foreign write capability.
    """
    if user.id in {attribute.owner_id, attribute.namespace.owner_id}:
        return
    role = get_role(user)
    if role is not None and role.can_write_foreign_namespaces:
        return
    logger.warning(
        'Change of %s %s denied for user %s',
        type(attribute).__name__.lower(),
        attribute,
        user.username,
    )
    raise PermissionDeniedError(
        f'not allowed to change {type(attribute).__name__.lower()}',
    )
