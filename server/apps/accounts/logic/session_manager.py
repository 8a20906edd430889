"""Login session management.

Sessions are identified by a 64 character bearer token. This module is
the authenticator used by the file operations: a token either maps to
an active user or the request is rejected.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Final

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.accounts.exceptions import (
    SessionLimitExceededError,
    UnauthorizedError,
)
from server.apps.accounts.models import LoginSession

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)

# Token length in bytes (generates 64 hex chars)
_TOKEN_BYTES: Final = 32
TOKEN_LENGTH: Final = _TOKEN_BYTES * 2


def get_session_limit() -> int:
    """Get maximum concurrent sessions per user.

    Returns:
        Session limit from settings or default of 10.
    """
    return getattr(settings, 'SESSION_LIMIT', 10)


def get_session_timeout() -> int:
    """Get session timeout in seconds.

    Returns:
        Timeout in seconds from settings or default of one week.
    """
    return getattr(settings, 'SESSION_TIMEOUT', 7 * 24 * 3600)


def _expiry_cutoff() -> datetime:
    return timezone.now() - timedelta(seconds=get_session_timeout())


def create_session(user: 'User') -> LoginSession:
    """Open a login session and issue its bearer token.

    Expired sessions are dropped first so they do not count against
    ``SESSION_LIMIT``. The user's session rows are locked while counting.

    Args:
        user: User whose credentials were just verified.

    Returns:
        New LoginSession holding the token.

    Raises:
        SessionLimitExceededError: If the user already holds
            ``SESSION_LIMIT`` live sessions.
    """
    cleanup_stale_sessions()
    limit = get_session_limit()

    with transaction.atomic():
        open_sessions = LoginSession.objects.select_for_update().filter(user=user)
        if open_sessions.count() >= limit:
            logger.warning(
                'User %s already holds %d sessions',
                user.username,
                limit,
            )
            raise SessionLimitExceededError(
                f'Maximum concurrent sessions ({limit}) exceeded',
            )
        login_session = LoginSession.objects.create(
            user=user,
            token=secrets.token_hex(_TOKEN_BYTES),
        )

    logger.info('User %s logged in: %s', user.username, login_session.token[:8])
    return login_session


def validate_token(token: str | None) -> 'User':
    """Resolve a bearer token to its user.

    Refreshes the session's last activity on success.

    Args:
        token: Bearer token from the request.

    Returns:
        The session's user.

    Raises:
        UnauthorizedError: If the token is malformed, unknown, expired
            or belongs to an inactive user.
    """
    if not token or len(token) != TOKEN_LENGTH:
        raise UnauthorizedError('Invalid token')

    try:
        session = LoginSession.objects.select_related('user').get(
            token=token,
            last_activity__gte=_expiry_cutoff(),
        )
    except LoginSession.DoesNotExist as exc:
        logger.info('Rejected unknown or expired token: %s', token[:8])
        raise UnauthorizedError('Invalid token') from exc

    if not session.user.is_active:
        logger.warning('Inactive user presented a token: %s', session.user.username)
        raise UnauthorizedError('Invalid token')

    update_session_activity(token)
    return session.user


def update_session_activity(token: str) -> bool:
    """Mark the session as used now.

    Returns:
        False if no session has this token.
    """
    return bool(
        LoginSession.objects.filter(token=token).update(last_activity=timezone.now()),
    )


def end_session(token: str) -> bool:
    """Log out by discarding the session behind ``token``.

    Returns:
        False if no session has this token.
    """
    deleted, _ = LoginSession.objects.filter(token=token).delete()
    if not deleted:
        return False
    logger.info('Logged out session %s', token[:8])
    return True


def cleanup_stale_sessions() -> int:
    """Remove sessions that have been inactive past the timeout.

    Returns:
        Number of sessions cleaned up.
    """
    deleted, _ = LoginSession.objects.filter(
        last_activity__lt=_expiry_cutoff(),
    ).delete()

    if deleted:
        logger.info('Cleaned up %d stale login sessions', deleted)

    return deleted
