"""
Records and the session capability shared by all mailbox providers.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Sequence, TYPE_CHECKING
from dataclasses import dataclass
from datetime import datetime
import logging

if TYPE_CHECKING:
    from .microsoft import GraphSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Folder:
    """A mail folder as listed by the provider."""
    folder_id: str
    display_name: str


@dataclass(frozen=True)
class Message:
    """A message as returned by a filtered folder query."""
    message_id: str
    subject: Optional[str] = None
    sender_name: Optional[str] = None
    sent_at: Optional[datetime] = None
    parent_folder_id: Optional[str] = None


@dataclass(frozen=True)
class OutputRecord:
    """One search hit, shaped for display and export."""
    sender: Optional[str]
    subject_title: Optional[str]
    date_sent: Optional[datetime]
    folder: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the exported key layout."""
        return {
            'Sender': self.sender,
            'SubjectTitle': self.subject_title,
            'DateSent': self.date_sent.isoformat() if self.date_sent else None,
            'Folder': self.folder
        }


class SessionProvider(ABC):
    """
    Source of authenticated request sessions.

    Implementations wrap whatever identity flow applies (cached tokens,
    interactive browser login, a fixed token in tests). The search
    pipeline only ever sees a GraphSession.
    """

    @abstractmethod
    def has_active_session(self) -> bool:
        """
        Check whether a session can be produced without user interaction.

        Returns:
            True if current_session() will succeed
        """
        pass

    @abstractmethod
    def current_session(self) -> "GraphSession":
        """Return a session built from the already-available credentials."""
        pass

    @abstractmethod
    def create_interactive_session(self, scopes: Sequence[str]) -> "GraphSession":
        """
        Authenticate the user interactively.

        Args:
            scopes: Permission scopes to request, e.g. ("Mail.Read",)

        Returns:
            An authenticated GraphSession

        Raises:
            AuthenticationError: if the login fails or is cancelled
        """
        pass

    def acquire_session(self, scopes: Sequence[str]) -> "GraphSession":
        """Reuse the live session if there is one, otherwise log in interactively."""
        if self.has_active_session():
            logger.debug("Reusing existing session")
            return self.current_session()

        logger.debug(f"No active session, starting interactive login for scopes {list(scopes)}")
        return self.create_interactive_session(scopes)
