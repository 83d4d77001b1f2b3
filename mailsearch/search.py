"""
Keyword search across every folder of a mailbox.

Builds an OData $filter from the keywords and optional received-date
window, runs it against each folder in turn, re-checks the subjects
locally without regard to case, and shapes the hits as OutputRecords.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Dict, Optional, Sequence, Union

from .errors import ValidationError
from .providers.base import Folder, Message, OutputRecord, SessionProvider
from .providers.microsoft import (
    GRAPH_BASE_URL,
    DEFAULT_SCOPES,
    DEFAULT_MAX_PAGES,
    list_all_folders,
    list_folder_messages,
)

logger = logging.getLogger(__name__)

FILTER_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass
class SearchResult:
    """Records found by a search plus what it took to find them."""
    records: List[OutputRecord] = field(default_factory=list)
    folders_scanned: int = 0
    messages_fetched: int = 0


def escape_keyword(keyword: str) -> str:
    """Double single quotes so the keyword stays inside its OData string literal."""
    return keyword.replace("'", "''")


def build_keyword_filter(keywords: Sequence[str]) -> str:
    return " or ".join(f"contains(subject,'{escape_keyword(k)}')" for k in keywords)


def format_filter_datetime(value: Union[date, datetime]) -> str:
    """
    Render a date or datetime as a UTC timestamp for $filter.

    Dates become midnight UTC. Naive datetimes are taken as UTC; aware
    ones are converted.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime(FILTER_DATETIME_FORMAT)
    return datetime(value.year, value.month, value.day).strftime(FILTER_DATETIME_FORMAT)


def build_date_filter(
    start_date: Optional[Union[date, datetime]] = None,
    end_date: Optional[Union[date, datetime]] = None
) -> Optional[str]:
    """Return the receivedDateTime range clause, or None when no bound is given."""
    if start_date is not None and end_date is not None:
        return (f"receivedDateTime ge {format_filter_datetime(start_date)} "
                f"and receivedDateTime le {format_filter_datetime(end_date)}")
    if start_date is not None:
        return f"receivedDateTime ge {format_filter_datetime(start_date)}"
    if end_date is not None:
        return f"receivedDateTime le {format_filter_datetime(end_date)}"
    return None


def build_filter_expression(
    keywords: Sequence[str],
    start_date: Optional[Union[date, datetime]] = None,
    end_date: Optional[Union[date, datetime]] = None
) -> str:
    """
    Combine the keyword disjunction and the optional date range.

    Example:
        >>> build_filter_expression(["x"], date(2024, 11, 1))
        "(contains(subject,'x')) and receivedDateTime ge 2024-11-01T00:00:00Z"
    """
    keyword_filter = f"({build_keyword_filter(keywords)})"
    date_filter = build_date_filter(start_date, end_date)
    if date_filter:
        return f"{keyword_filter} and {date_filter}"
    return keyword_filter


def subject_matches(subject: Optional[str], keywords: Sequence[str]) -> bool:
    """True if any keyword occurs in the subject, ignoring case. Empty subjects never match."""
    if not subject:
        return False
    lowered = subject.lower()
    return any(k.lower() in lowered for k in keywords)


def validate_keywords(keywords: Union[str, Sequence[str], None]) -> List[str]:
    """
    Normalise the keyword argument to a list, rejecting empty input.

    Keywords are otherwise kept verbatim. Blank or whitespace-only keywords
    are refused: contains(subject,' ') matches nearly every multi-word
    subject, which turns the search into a full mailbox dump.
    """
    if keywords is None:
        raise ValidationError("At least one keyword is required")
    if isinstance(keywords, str):
        keywords = [keywords]

    keyword_list = list(keywords)
    if not keyword_list:
        raise ValidationError("At least one keyword is required")

    for keyword in keyword_list:
        if not isinstance(keyword, str):
            raise ValidationError(f"Keywords must be strings, got {type(keyword).__name__}")
        if not keyword.strip():
            raise ValidationError("Keywords must not be empty or whitespace")
    return keyword_list


def _validate_dates(start_date, end_date) -> None:
    for name, value in (("start_date", start_date), ("end_date", end_date)):
        if value is not None and not isinstance(value, date):
            raise ValidationError(f"{name} must be a date or datetime, got {type(value).__name__}")

    if start_date is not None and end_date is not None:
        # Compare on the rendered UTC timestamps so date and datetime bounds mix
        if format_filter_datetime(start_date) > format_filter_datetime(end_date):
            raise ValidationError("start_date is after end_date")


def build_folder_lookup(folders: Sequence[Folder]) -> Dict[str, str]:
    return {folder.folder_id: folder.display_name for folder in folders}


def project_message(message: Message, folder_lookup: Dict[str, str]) -> OutputRecord:
    """Shape a message for output; an unknown parent folder leaves Folder empty."""
    return OutputRecord(
        sender=message.sender_name,
        subject_title=message.subject,
        date_sent=message.sent_at,
        folder=folder_lookup.get(message.parent_folder_id) if message.parent_folder_id else None
    )


def run_search(
    keywords: Union[str, Sequence[str]],
    start_date: Optional[Union[date, datetime]] = None,
    end_date: Optional[Union[date, datetime]] = None,
    *,
    session_provider: SessionProvider,
    base_url: str = GRAPH_BASE_URL,
    scopes: Sequence[str] = DEFAULT_SCOPES,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES,
    page_size: Optional[int] = None,
    include_hidden_folders: bool = False
) -> SearchResult:
    """
    Search every folder for messages whose subject contains any keyword.

    Args:
        keywords: One or more literal keywords (not patterns)
        start_date: Only messages received at or after this point
        end_date: Only messages received at or before this point
        session_provider: Source of the authenticated session
        base_url: Graph API root
        scopes: Scopes requested if an interactive login is needed
        max_pages: Pagination ceiling per folder listing / folder query
        page_size: Optional $top for message pages
        include_hidden_folders: Also search folders the mailbox hides

    Returns:
        SearchResult with records in folder enumeration order

    Raises:
        ValidationError: bad keywords or dates, before any network call
        AuthenticationError: no session could be obtained
        TransportError: any folder or message page failed; nothing partial is returned
    """
    keyword_list = validate_keywords(keywords)
    _validate_dates(start_date, end_date)

    filter_expression = build_filter_expression(keyword_list, start_date, end_date)
    logger.debug(f"Filter expression: {filter_expression}")

    result = SearchResult()

    with session_provider.acquire_session(scopes) as session:
        folders = list_all_folders(base_url, session, max_pages=max_pages, include_hidden=include_hidden_folders)
        folder_lookup = build_folder_lookup(folders)
        logger.debug(f"Found {len(folders)} folder(s)")

        messages: List[Message] = []
        seen_ids = set()
        for folder in folders:
            folder_messages = list_folder_messages(
                folder.folder_id,
                base_url,
                filter_expression,
                session,
                max_pages=max_pages,
                page_size=page_size
            )
            logger.debug(f"Folder '{folder.display_name}': {len(folder_messages)} message(s) matched the server filter")
            result.folders_scanned += 1
            for message in folder_messages:
                if message.message_id in seen_ids:
                    logger.debug(f"Skipping duplicate message {message.message_id}")
                    continue
                seen_ids.add(message.message_id)
                messages.append(message)

    result.messages_fetched = len(messages)
    result.records = [
        project_message(message, folder_lookup)
        for message in messages
        if subject_matches(message.subject, keyword_list)
    ]
    logger.debug(f"{len(result.records)} of {len(messages)} message(s) passed the subject check")
    logger.info(f"Found {len(result.records)} matching email(s) across {result.folders_scanned} folder(s)")
    return result


def search_emails(
    keywords: Union[str, Sequence[str]],
    start_date: Optional[Union[date, datetime]] = None,
    end_date: Optional[Union[date, datetime]] = None,
    **kwargs
) -> List[OutputRecord]:
    """Search the mailbox and return only the matching records. See run_search()."""
    return run_search(keywords, start_date, end_date, **kwargs).records
