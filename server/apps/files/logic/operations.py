"""Transport-agnostic file operations.

Each operation validates its request with a form, runs the engine and
turns the result, or the engine error, into an ``Outcome`` that a
transport can serialize as-is. Internal failures are logged here in
full and reported to the caller generically.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Final

import httpx
from django import forms
from django.contrib.auth import authenticate

from server.apps.accounts.exceptions import (
    SessionLimitExceededError,
    UnauthorizedError,
)
from server.apps.accounts.logic import session_manager
from server.apps.accounts.logic.authorization import AuthorizationStrategy
from server.apps.files import forms as request_forms
from server.apps.files.exceptions import (
    AllocationExhaustedError,
    ConflictError,
    ContentIntegrityError,
    FileEngineError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    RequestValidationError,
    UpstreamFetchError,
)
from server.apps.files.logic import (
    access_policy,
    attribute_operations,
    file_operations,
    ingestion,
    namespace_operations,
    update_operations,
)
from server.apps.files.models import Group, Tag

# User type for Django's dynamic user model
_User = Any

STATUS_SUCCESS: Final = 'success'
STATUS_ERROR: Final = 'error'

MESSAGE_INTERNAL: Final = 'internal server error'
MESSAGE_INCOMPLETE_CONTENT: Final = "Content wasn't delivered completely"
MESSAGE_INVALID_TOKEN: Final = 'Invalid token'
MESSAGE_UPDATED: Final = 'success'
MESSAGE_NOTHING_TO_DO: Final = 'nothing to do'
MESSAGE_INVALID_CREDENTIALS: Final = 'Invalid credentials'

ATTRIBUTE_LIST: Final = 'list'
ATTRIBUTE_RENAME: Final = 'rename'
ATTRIBUTE_DELETE: Final = 'delete'
_ATTRIBUTE_ACTIONS: Final = frozenset((ATTRIBUTE_LIST, ATTRIBUTE_RENAME, ATTRIBUTE_DELETE))
_ATTRIBUTE_MODELS: Final[dict[str, type[Tag] | type[Group]]] = {
    'tag': Tag,
    'group': Group,
}

# Errors whose message may be shown to the caller
_ERROR_STATUS: Final[tuple[tuple[type[FileEngineError], HTTPStatus], ...]] = (
    (RequestValidationError, HTTPStatus.UNPROCESSABLE_ENTITY),
    (PermissionDeniedError, HTTPStatus.FORBIDDEN),
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (ConflictError, HTTPStatus.CONFLICT),
    (UpstreamFetchError, HTTPStatus.BAD_REQUEST),
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Response of one operation."""

    status: str
    message: str = ''
    payload: Any = None
    http_status: int = HTTPStatus.OK
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.status == STATUS_SUCCESS


def success(payload: Any = None, message: str = '') -> Outcome:
    """Successful outcome."""
    return Outcome(status=STATUS_SUCCESS, message=message, payload=payload)


def failure(
    message: str,
    http_status: int,
    errors: dict[str, list[str]] | None = None,
) -> Outcome:
    """Failed outcome."""
    return Outcome(
        status=STATUS_ERROR,
        message=message,
        http_status=http_status,
        errors=errors or {},
    )


def error_outcome(exc: Exception, operation: str) -> Outcome:
    """Map an error raised by the engine to an outcome.

    Args:
        exc: Raised error.
        operation: Operation name for the log record.

    Returns:
        Failed Outcome with the caller-facing message.
    """
    if isinstance(exc, UnauthorizedError):
        return failure(MESSAGE_INVALID_TOKEN, HTTPStatus.UNAUTHORIZED)
    if isinstance(exc, SessionLimitExceededError):
        return failure(str(exc), HTTPStatus.TOO_MANY_REQUESTS)
    if isinstance(exc, ContentIntegrityError):
        return failure(MESSAGE_INCOMPLETE_CONTENT, HTTPStatus.UNPROCESSABLE_ENTITY)
    if isinstance(exc, RequestValidationError):
        return failure(str(exc), HTTPStatus.UNPROCESSABLE_ENTITY, exc.errors)
    for error_class, http_status in _ERROR_STATUS:
        if isinstance(exc, error_class):
            return failure(str(exc), http_status)

    if isinstance(exc, (AllocationExhaustedError, InternalError)):
        logger.error('%s failed: %s', operation, exc, exc_info=exc)
    else:
        logger.error('Unexpected error in %s', operation, exc_info=exc)
    return failure(MESSAGE_INTERNAL, HTTPStatus.INTERNAL_SERVER_ERROR)


def _clean(
    form_class: type[forms.Form],
    payload: Mapping[str, Any] | None,
) -> dict[str, Any]:
    form = form_class(data=payload or {})
    if not form.is_valid():
        errors = {
            name: [str(message) for message in messages]
            for name, messages in form.errors.items()
        }
        first = next(iter(errors.values()), ['invalid request'])[0]
        raise RequestValidationError(first, errors)
    return form.cleaned_data


def _run(operation: str, call: Callable[[], Outcome]) -> Outcome:
    try:
        return call()
    except Exception as exc:  # noqa: WPS424
        return error_outcome(exc, operation)


def upload(
    user: _User,
    payload: Mapping[str, Any] | None,
    *,
    client: httpx.Client | None = None,
    cancel_event: threading.Event | None = None,
) -> Outcome:
    """Upload raw content or a remote URL.

    Returns:
        Outcome with ``{'file_id': id}`` on success.
    """

    def call() -> Outcome:
        request = _clean(request_forms.UploadRequestForm, payload)
        attributes = ingestion.UploadAttributes(
            name=request['name'],
            namespace=request['namespace'],
            tags=tuple(request['tags']),
            groups=tuple(request['groups']),
        )
        if request['upload_type'] == ingestion.UPLOAD_TYPE_URL:
            file_instance = ingestion.ingest_url(
                user,
                request['url'],
                attributes,
                client=client,
                cancel_event=cancel_event,
            )
        else:
            file_instance = ingestion.ingest_bytes(
                user,
                request['data'],
                request['sum'],
                attributes,
            )
        return success({'file_id': file_instance.id})

    return _run('upload', call)


def list_files(user: _User, payload: Mapping[str, Any] | None) -> Outcome:
    """List files of a namespace filtered by name, tags and groups.

    Returns:
        Outcome with ``{'files': [...]}``; detail depends on ``verbose``.
    """

    def call() -> Outcome:
        request = _clean(request_forms.ListRequestForm, payload)
        namespace = namespace_operations.resolve_namespace(
            request['namespace'],
            user,
        )
        access_policy.require_namespace_access(namespace, user, write=False)
        tags = attribute_operations.require_by_names(
            Tag,
            request['tags'],
            namespace,
        )
        groups = attribute_operations.require_by_names(
            Group,
            request['groups'],
            namespace,
        )
        files = file_operations.list_files(
            namespace,
            user,
            name_contains=request['name'],
            tags=tags,
            groups=groups,
        )
        verbosity = request['verbose']
        return success({
            'files': [
                file_operations.summarize_file(file_instance, verbosity)
                for file_instance in files
            ],
        })

    return _run('list_files', call)


def update_file(
    user: _User,
    action: str,
    payload: Mapping[str, Any] | None,
) -> Outcome:
    """Apply an ``update`` or ``delete`` action to one file.

    An update that changes nothing is reported as an error outcome with
    the "nothing to do" message and HTTP 200.
    """

    def call() -> Outcome:
        request = _clean(request_forms.FileActionRequestForm, payload)
        result = update_operations.apply_file_action(user, action, request)
        if result.did_update:
            return success(message=MESSAGE_UPDATED)
        return failure(MESSAGE_NOTHING_TO_DO, HTTPStatus.OK)

    return _run('update_file', call)


def publish(user: _User, payload: Mapping[str, Any] | None) -> Outcome:
    """Publish a file under a requested or random slug.

    Returns:
        Outcome with ``{'public_name': slug}``, or a 409 outcome when the
        slug belongs to another file.
    """

    def call() -> Outcome:
        request = _clean(request_forms.PublishRequestForm, payload)
        namespace = namespace_operations.resolve_namespace(
            request['namespace'],
            user,
        )
        access_policy.require_namespace_access(namespace, user, write=True)
        file_instance = file_operations.get_file_for_update(
            request['name'],
            namespace,
            user,
            request['file_id'],
        )
        result = file_operations.publish_file(
            file_instance,
            request['public_name'] or None,
        )
        if result.conflict:
            return failure('public name already in use', HTTPStatus.CONFLICT)
        return success({'public_name': result.slug})

    return _run('publish', call)


def fetch_public(slug: str) -> Outcome:
    """Open a published file by slug.

    Returns:
        Outcome whose payload is a ``PublicContent``; the caller closes
        its stream.
    """
    return _run(
        'fetch_public',
        lambda: success(file_operations.open_public_content(slug)),
    )


def create_namespace(user: _User, payload: Mapping[str, Any] | None) -> Outcome:
    """Create a namespace owned by the caller."""

    def call() -> Outcome:
        request = _clean(request_forms.NamespaceRequestForm, payload)
        namespace = namespace_operations.create_namespace(request['name'], user)
        return success({'id': namespace.id, 'name': namespace.name})

    return _run('create_namespace', call)


def list_namespaces(user: _User) -> Outcome:
    """Namespaces visible to the caller."""

    def call() -> Outcome:
        namespaces = namespace_operations.list_namespaces(user)
        return success({
            'namespaces': [
                {'id': namespace.id, 'name': namespace.name, 'shared': namespace.is_shared}
                for namespace in namespaces
            ],
        })

    return _run('list_namespaces', call)


def manage_attribute(
    user: _User,
    attribute: str,
    action: str,
    payload: Mapping[str, Any] | None,
) -> Outcome:
    """List, rename or delete the tags or groups of a namespace.

    Args:
        user: Requesting user.
        attribute: ``tag`` or ``group``.
        action: ``list``, ``rename`` or ``delete``.
        payload: Request with ``namespace``, ``name`` and ``new_name``.

    Returns:
        Outcome with ``{'attributes': [...]}`` for ``list``.
    """

    def call() -> Outcome:
        model = _ATTRIBUTE_MODELS.get(attribute)
        if model is None:
            raise RequestValidationError(f'invalid attribute: {attribute}')
        if action not in _ATTRIBUTE_ACTIONS:
            raise RequestValidationError(f'invalid action: {action}')

        request = _clean(request_forms.AttributeRequestForm, payload)
        namespace = namespace_operations.resolve_namespace(
            request['namespace'],
            user,
        )
        access_policy.require_namespace_access(
            namespace,
            user,
            write=action != ATTRIBUTE_LIST,
        )

        if action == ATTRIBUTE_LIST:
            attributes = attribute_operations.list_attributes(model, namespace, user)
            return success({
                'attributes': [
                    {'name': entry.name, 'files': entry.file_count}
                    for entry in attributes
                ],
            })

        if not request['name']:
            raise RequestValidationError(
                'name is required',
                {'name': ['This field is required.']},
            )
        if action == ATTRIBUTE_RENAME:
            renamed = attribute_operations.rename_attribute(
                model,
                request['name'],
                request['new_name'],
                namespace,
                user,
            )
            if not renamed:
                return failure(MESSAGE_NOTHING_TO_DO, HTTPStatus.OK)
        else:
            attribute_operations.delete_attribute(
                model,
                request['name'],
                namespace,
                user,
            )
        return success(message=MESSAGE_UPDATED)

    return _run('manage_attribute', call)


def login(payload: Mapping[str, Any] | None) -> Outcome:
    """Exchange username and password for a session token.

    Returns:
        Outcome with ``{'token': token}``, 401 for bad credentials or
        429 when the user has too many open sessions.
    """

    def call() -> Outcome:
        request = _clean(request_forms.LoginRequestForm, payload)
        user = authenticate(
            username=request['username'],
            password=request['password'],
        )
        if user is None:
            logger.info('Login failed for %s', request['username'])
            return failure(MESSAGE_INVALID_CREDENTIALS, HTTPStatus.UNAUTHORIZED)
        login_session = session_manager.create_session(user)
        return success({'token': login_session.token})

    return _run('login', call)


def logout(token: str | None) -> Outcome:
    """End the session identified by ``token``."""

    def call() -> Outcome:
        if not token or not session_manager.end_session(token):
            return failure(MESSAGE_INVALID_TOKEN, HTTPStatus.UNAUTHORIZED)
        return success()

    return _run('logout', call)


def run_authorized(
    strategy: AuthorizationStrategy,
    token: str | None,
    operation: Callable[..., Outcome],
    *args: Any,
) -> Outcome:
    """Authorize the caller, then run ``operation`` as that user.

    The acting user is passed as the first argument unless the strategy
    allows anonymous access.

    Args:
        strategy: Pre-check deciding who the caller is.
        token: Bearer token sent by the caller.
        operation: Operation of this module.
        args: Remaining operation arguments.

    Returns:
        Outcome of the operation, or 401 if authorization failed.
    """
    try:
        user = strategy.authorize(token)
    except UnauthorizedError as exc:
        return error_outcome(exc, operation.__name__)
    if user is None:
        return operation(*args)
    return operation(user, *args)
