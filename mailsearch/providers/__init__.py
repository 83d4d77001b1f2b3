"""
Mailbox providers and session sources.
"""

from .base import Folder, Message, OutputRecord, SessionProvider
from .microsoft import GraphSession, MsalSessionProvider, list_all_folders, list_folder_messages
from .static import StaticSessionProvider

__all__ = [
    'Folder',
    'Message',
    'OutputRecord',
    'SessionProvider',
    'GraphSession',
    'MsalSessionProvider',
    'StaticSessionProvider',
    'list_all_folders',
    'list_folder_messages',
]
