"""
Session provider backed by a fixed access token.

Used by tests (with an httpx mock transport) and by callers that obtain a
bearer token some other way.
"""

from typing import List, Optional, Sequence
import logging

import httpx

from ..errors import AuthenticationError
from .base import SessionProvider
from .microsoft import GraphSession, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


class StaticSessionProvider(SessionProvider):
    """
    Pre-authenticated provider.

    With active=False the first acquire_session() goes through
    create_interactive_session(), which simply hands out the token and
    records the requested scopes; allow_interactive=False makes that step
    fail the way a cancelled login would.
    """

    def __init__(
        self,
        access_token: str = "static-token",
        active: bool = True,
        allow_interactive: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT
    ):
        self.access_token = access_token
        self.active = active
        self.allow_interactive = allow_interactive
        self.transport = transport
        self.timeout = timeout
        self.interactive_requests: List[List[str]] = []

    def _session(self) -> GraphSession:
        return GraphSession(self.access_token, timeout=self.timeout, transport=self.transport)

    def has_active_session(self) -> bool:
        return self.active

    def current_session(self) -> GraphSession:
        if not self.active:
            raise AuthenticationError("No active session")
        return self._session()

    def create_interactive_session(self, scopes: Sequence[str]) -> GraphSession:
        self.interactive_requests.append(list(scopes))
        if not self.allow_interactive:
            raise AuthenticationError("Interactive sign-in was cancelled", "authentication_canceled")
        self.active = True
        return self._session()
