"""
Subject keyword search across every folder of a Microsoft 365 / Outlook mailbox.
"""

from .errors import MailSearchError, ValidationError, AuthenticationError, TransportError
from .providers.base import Folder, Message, OutputRecord, SessionProvider
from .search import search_emails, run_search, SearchResult

__version__ = "0.1.0"

__all__ = [
    'MailSearchError',
    'ValidationError',
    'AuthenticationError',
    'TransportError',
    'Folder',
    'Message',
    'OutputRecord',
    'SessionProvider',
    'search_emails',
    'run_search',
    'SearchResult',
]
