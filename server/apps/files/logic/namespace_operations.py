"""Business logic for namespaces."""

import logging
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet

from server.apps.files.exceptions import (
    ConflictError,
    NotFoundError,
    RequestValidationError,
)
from server.apps.files.models import Namespace

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def default_namespace_name() -> str:
    """Name of the shared default namespace from settings."""
    return getattr(settings, 'DEFAULT_NAMESPACE_NAME', 'default')


def get_default_namespace(default_name: str | None = None) -> Namespace:
    """Get the shared default namespace, creating it on first use.

    Args:
        default_name: Name to use instead of the configured one.

    Returns:
        The default Namespace.
    """
    name = default_name or default_namespace_name()
    namespace, created = Namespace.objects.get_or_create(
        name=name,
        owner=None,
    )
    if created:
        logger.info('Created default namespace: %s', name)
    return namespace


def resolve_namespace(
    name: str | None,
    user: _User,
    *,
    create_missing: bool = False,
    default_name: str | None = None,
) -> Namespace:
    """Resolve a namespace name as seen by ``user``.

    An empty name or the default name means the shared default
    namespace. Otherwise the user's own namespace wins, then a shared
    one. Lookups fall back to a foreign namespace if exactly one
    matches; with ``create_missing`` the user gets a namespace of their
    own instead.

    Args:
        name: Requested namespace name.
        user: Requesting user.
        create_missing: Create the namespace for ``user`` unless they own
            it or it is shared.
        default_name: Overrides the configured default namespace name.

    Returns:
        Resolved Namespace.

    Raises:
        NotFoundError: If nothing matches and ``create_missing`` is off.
        ConflictError: If several foreign namespaces share the name and
            ``create_missing`` is off.
    """
    default_name = default_name or default_namespace_name()
    name = (name or '').strip()
    if not name or name == default_name:
        return get_default_namespace(default_name)

    candidates = list(
        Namespace.objects.filter(name=name).select_related('owner'),
    )
    own = [ns for ns in candidates if ns.owner_id == user.id]
    if own:
        return own[0]
    shared = [ns for ns in candidates if ns.is_shared]
    if shared:
        return shared[0]
    if create_missing:
        return create_namespace(name, user)
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        raise ConflictError(f'namespace name is ambiguous: {name}')

    raise NotFoundError('namespace not found')


def create_namespace(name: str, user: _User) -> Namespace:
    """Create a namespace owned by ``user``.

    Args:
        name: Namespace name.
        user: Owner.

    Returns:
        Created Namespace.

    Raises:
        RequestValidationError: If the name is empty.
        ConflictError: If the user already owns a namespace of that name.
    """
    name = name.strip()
    if not name:
        raise RequestValidationError('namespace name must not be empty')

    try:
        with transaction.atomic():
            namespace = Namespace.objects.create(name=name, owner=user)
    except IntegrityError as exc:
        raise ConflictError(f'namespace already exists: {name}') from exc

    logger.info('Namespace created: %s (owner: %s)', name, user.username)
    return namespace


def list_namespaces(user: _User) -> QuerySet[Namespace]:
    """Namespaces visible to ``user``: their own plus shared ones.

    Args:
        user: Requesting user.

    Returns:
        QuerySet ordered by name.
    """
    get_default_namespace()
    return Namespace.objects.filter(
        Q(owner=user) | Q(owner__isnull=True),
    ).order_by('name')


def is_owned_by(namespace: Namespace, user: _User) -> bool:
    """Whether ``user`` owns ``namespace``."""
    return namespace.owner_id is not None and namespace.owner_id == user.id
