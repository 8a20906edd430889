"""Business logic for tags and groups.

Tags and groups share one shape (name scoped to a namespace), so every
function takes the model class to work on.
"""

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from server.apps.files.exceptions import (
    ConflictError,
    NotFoundError,
    RequestValidationError,
)
from server.apps.files.logic.access_policy import (
    can_see_foreign_entries,
    require_attribute_change,
)
from server.apps.files.models import Group, Namespace, Tag

# User type for Django's dynamic user model
_User = Any

AttributeT = TypeVar('AttributeT', Tag, Group)

logger = logging.getLogger(__name__)


def normalize_names(names: Iterable[str] | None) -> list[str]:
    """Strip, de-duplicate and sort attribute names.

    Args:
        names: Raw names from a request.

    Returns:
        Sorted unique non-empty names.
    """
    if not names:
        return []
    return sorted({name.strip() for name in names if name and name.strip()})


def resolve_or_create(
    model: type[AttributeT],
    names: Iterable[str] | None,
    namespace: Namespace,
    user: _User,
) -> list[AttributeT]:
    """Resolve names to attributes of ``namespace``, creating missing ones.

    ``get_or_create`` re-fetches the row when a concurrent insert wins
    the unique constraint, so a race never surfaces as an error.

    Args:
        model: Tag or Group.
        names: Names to resolve.
        namespace: Namespace the attributes belong to.
        user: Owner recorded on newly created rows.

    Returns:
        One attribute per distinct name, ordered by name.
    """
    resolved = []
    for name in normalize_names(names):
        attribute, created = model.objects.get_or_create(
            name=name,
            namespace=namespace,
            defaults={'owner': user},
        )
        if created:
            logger.info(
                'Created %s %s in namespace %s',
                model.__name__.lower(),
                name,
                namespace.name,
            )
        resolved.append(attribute)
    return resolved


def resolve_tags(
    names: Iterable[str] | None,
    namespace: Namespace,
    user: _User,
) -> list[Tag]:
    """Resolve or create tags in ``namespace``."""
    return resolve_or_create(Tag, names, namespace, user)


def resolve_groups(
    names: Iterable[str] | None,
    namespace: Namespace,
    user: _User,
) -> list[Group]:
    """Resolve or create groups in ``namespace``."""
    return resolve_or_create(Group, names, namespace, user)


def filter_by_names(
    model: type[AttributeT],
    names: Iterable[str] | None,
    namespace: Namespace,
) -> list[AttributeT]:
    """Look up existing attributes by name without creating any.

    Args:
        model: Tag or Group.
        names: Names to look up.
        namespace: Namespace to search.

    Returns:
        Matching attributes, possibly fewer than requested.
    """
    normalized = normalize_names(names)
    if not normalized:
        return []
    return list(
        model.objects.filter(namespace=namespace, name__in=normalized),
    )


def require_by_names(
    model: type[AttributeT],
    names: Iterable[str] | None,
    namespace: Namespace,
) -> list[AttributeT]:
    """Like ``filter_by_names`` but a non-empty request must match.

    Used for read-side filters, where "no match" must not silently turn
    into "no filter".

    Raises:
        NotFoundError: If names were given and none exists.
    """
    found = filter_by_names(model, names, namespace)
    if normalize_names(names) and not found:
        raise NotFoundError(f'No matching {model.__name__.lower()} found')
    return found


def list_attributes(
    model: type[AttributeT],
    namespace: Namespace,
    user: _User,
) -> list[AttributeT]:
    """Attributes of ``namespace`` with their live file counts.

    In a shared namespace only the user's own attributes are listed
    unless the role may read foreign namespaces.

    Args:
        model: Tag or Group.
        namespace: Namespace to list.
        user: Requesting user, must be allowed to read the namespace.

    Returns:
        Attributes ordered by name, each annotated with ``file_count``.
    """
    attributes = model.objects.filter(namespace=namespace)
    if not can_see_foreign_entries(namespace, user):
        attributes = attributes.filter(owner=user)
    return list(
        attributes.annotate(
            file_count=Count('files', filter=Q(files__deleted_at__isnull=True)),
        ).order_by('name'),
    )


def get_attribute(
    model: type[AttributeT],
    name: str,
    namespace: Namespace,
) -> AttributeT:
    """Look up one attribute by exact name.

    Raises:
        NotFoundError: If the namespace has no such attribute.
    """
    try:
        return model.objects.select_related('namespace').get(
            name=name.strip(),
            namespace=namespace,
        )
    except model.DoesNotExist as exc:
        raise NotFoundError(f'No matching {model.__name__.lower()} found') from exc


def rename_attribute(
    model: type[AttributeT],
    name: str,
    new_name: str,
    namespace: Namespace,
    user: _User,
) -> bool:
    """Rename a tag or group; every file carrying it follows.

    Args:
        model: Tag or Group.
        name: Current name.
        new_name: Name to give it.
        namespace: Namespace of the attribute.
        user: Requesting user.

    Returns:
        True if the name changed.

    Raises:
        RequestValidationError: If the new name is blank.
        NotFoundError: If the attribute does not exist.
        PermissionDeniedError: If the user may not change it.
        ConflictError: If the namespace already has the new name.
    """
    new_name = new_name.strip()
    if not new_name:
        raise RequestValidationError('new name must not be empty')

    attribute = get_attribute(model, name, namespace)
    require_attribute_change(attribute, user)
    if attribute.name == new_name:
        return False

    old_name = attribute.name
    attribute.name = new_name
    try:
        with transaction.atomic():
            attribute.save(update_fields=['name'])
    except IntegrityError as exc:
        attribute.name = old_name
        kind = model.__name__.lower()
        raise ConflictError(f'{kind} already exists: {new_name}') from exc

    logger.info(
        'Renamed %s %s -> %s in namespace %s',
        model.__name__.lower(),
        old_name,
        new_name,
        namespace.name,
    )
    return True


def delete_attribute(
    model: type[AttributeT],
    name: str,
    namespace: Namespace,
    user: _User,
) -> None:
    """Delete a tag or group and detach it from every file.

    Raises:
        NotFoundError: If the attribute does not exist.
        PermissionDeniedError: If the user may not change it.
    """
    attribute = get_attribute(model, name, namespace)
    require_attribute_change(attribute, user)
    attribute.delete()
    logger.info(
        'Deleted %s %s from namespace %s',
        model.__name__.lower(),
        attribute.name,
        namespace.name,
    )
