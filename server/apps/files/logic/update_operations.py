"""Multi-action updates of a single file.

An update request may rename a file, change its visibility, move it to
another namespace and edit its tags and groups in one go. Sub-actions
run in a fixed order and each one commits on its own: when one fails,
the ones before it stay applied.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from server.apps.files.exceptions import RequestValidationError
from server.apps.files.logic import file_operations
from server.apps.files.logic.access_policy import require_namespace_access
from server.apps.files.logic.namespace_operations import resolve_namespace
from server.apps.files.models import File

# User type for Django's dynamic user model
_User = Any

ACTION_UPDATE: Final = 'update'
ACTION_DELETE: Final = 'delete'
ACTIONS: Final = frozenset((ACTION_UPDATE, ACTION_DELETE))

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateResult:
    """Whether any sub-action changed stored state."""

    did_update: bool


def _target(user: _User, request: Mapping[str, Any]) -> File:
    namespace = resolve_namespace(request.get('namespace'), user)
    require_namespace_access(namespace, user, write=True)
    return file_operations.get_file_for_update(
        request['name'],
        namespace,
        user,
        request.get('file_id'),
    )


def _apply_updates(
    file_instance: File,
    user: _User,
    request: Mapping[str, Any],
) -> bool:
    changed = False

    new_name = request.get('new_name')
    if new_name and new_name != file_instance.name:
        file_operations.rename_file(file_instance, new_name)
        changed = True

    is_public = request.get('is_public')
    if is_public is not None:
        changed |= file_operations.set_visibility(file_instance, is_public)

    new_namespace = request.get('new_namespace')
    if new_namespace:
        destination = resolve_namespace(new_namespace, user, create_missing=True)
        require_namespace_access(destination, user, write=True)
        if destination.pk != file_instance.namespace_id:
            file_operations.migrate_namespace(file_instance, destination, user)
            changed = True

    if request.get('add_tags'):
        changed |= file_operations.add_tags(file_instance, request['add_tags'], user)
    if request.get('remove_tags'):
        changed |= file_operations.remove_tags(file_instance, request['remove_tags'])
    if request.get('add_groups'):
        changed |= file_operations.add_groups(
            file_instance,
            request['add_groups'],
            user,
        )
    if request.get('remove_groups'):
        changed |= file_operations.remove_groups(
            file_instance,
            request['remove_groups'],
        )
    return changed


def apply_file_action(
    user: _User,
    action: str,
    request: Mapping[str, Any],
) -> UpdateResult:
    """Apply an ``update`` or ``delete`` action to one file.

    Args:
        user: Requesting user.
        action: ``update`` or ``delete``.
        request: Cleaned ``FileActionRequestForm`` data.

    Returns:
        UpdateResult; ``did_update`` is False when nothing changed.

    Raises:
        RequestValidationError: If the action is unknown.
        ConflictError: If the file name is ambiguous.
        NotFoundError: If the namespace or file does not exist.
        PermissionDeniedError: If the namespace may not be written.
    """
    if action not in ACTIONS:
        raise RequestValidationError(f'invalid action: {action}')

    file_instance = _target(user, request)

    if action == ACTION_DELETE:
        file_operations.delete_file(file_instance)
        return UpdateResult(did_update=True)

    did_update = _apply_updates(file_instance, user, request)
    logger.info(
        'Update of file ID=%d by %s finished (changed: %s)',
        file_instance.id,
        user.username,
        did_update,
    )
    return UpdateResult(did_update=did_update)
