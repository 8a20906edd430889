"""Request authorization strategies.

Each operation declares how its caller must be identified. A strategy
runs before the operation and yields the acting user (or ``None`` for
anonymous access).
"""

import logging
from typing import TYPE_CHECKING, Protocol, final

from server.apps.accounts.logic.session_manager import validate_token

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)


class AuthorizationStrategy(Protocol):
    """Pre-check applied before an operation runs."""

    def authorize(self, token: str | None) -> 'User | None':
        """Return the acting user or raise ``UnauthorizedError``."""


@final
class AnonymousAccess:
    """No identification required (public content)."""

    def authorize(self, token: str | None) -> None:
        return None


@final
class SessionRequired:
    """A valid bearer token of an active session is required."""

    def authorize(self, token: str | None) -> 'User':
        user = validate_token(token)
        logger.debug('Request authorized for user %s', user.username)
        return user


ANONYMOUS = AnonymousAccess()
SESSION_REQUIRED = SessionRequired()
