"""
Microsoft 365 / Outlook mailbox access.
Uses Microsoft Graph API for folder and message listing, and MSAL for sign-in.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import List, Dict, Any, Optional, Iterator, Sequence, Callable
from urllib.parse import quote

import httpx
import msal

from ..errors import AuthenticationError, TransportError, STAGE_FOLDERS, STAGE_MESSAGES
from .base import Folder, Message, SessionProvider

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_SCOPES = ("Mail.Read",)
DEFAULT_TIMEOUT = 30.0

# Ceiling on pages followed for a single collection; None or 0 disables it
DEFAULT_MAX_PAGES = 1000

MESSAGE_SELECT_FIELDS = "id,subject,sender,sentDateTime,parentFolderId"
NEXT_LINK_KEY = "@odata.nextLink"


class GraphSession:
    """
    Authenticated request capability for Graph API.

    Wraps an httpx.Client carrying the bearer token. Every failure is
    reported as TransportError tagged with the caller's pipeline stage.
    """

    def __init__(
        self,
        access_token: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json"
            },
            timeout=timeout,
            transport=transport
        )

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, stage: Optional[str] = None) -> Dict[str, Any]:
        """GET a URL and return the decoded JSON object."""
        try:
            response = self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {url}", stage, url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}", stage, url=url) from e

        if response.status_code >= 400:
            error_code, error_message = _graph_error(response)
            raise TransportError(
                f"Graph API error {response.status_code}: {error_message}",
                stage,
                status_code=response.status_code,
                error_code=error_code,
                url=url
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"Response is not valid JSON: {url}", stage, status_code=response.status_code, url=url) from e

        if not isinstance(body, dict):
            raise TransportError(f"Expected a JSON object from {url}, got {type(body).__name__}", stage, url=url)
        return body

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GraphSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _graph_error(response: httpx.Response) -> tuple:
    """Pull (code, message) out of a Graph error body, falling back to the reason phrase."""
    try:
        error = response.json().get("error", {})
    except (ValueError, AttributeError):
        error = {}
    if not isinstance(error, dict):
        error = {}
    return error.get("code"), error.get("message") or response.reason_phrase


def iter_pages(
    session: GraphSession,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    stage: Optional[str] = None,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES
) -> Iterator[Dict[str, Any]]:
    """
    Yield every item of a Graph collection, following @odata.nextLink.

    The first request carries params; continuation links already embed
    them and are requested verbatim. Iteration ends on the first page
    without a next link.
    """
    next_url: Optional[str] = url
    request_params = params
    pages = 0

    while next_url:
        if max_pages and pages >= max_pages:
            raise TransportError(
                f"Gave up after {max_pages} pages; server keeps returning continuation links",
                stage,
                url=next_url
            )

        logger.debug(f"GET {next_url}")
        body = session.get_json(next_url, params=request_params, stage=stage)
        pages += 1

        items = body.get("value")
        if not isinstance(items, list):
            raise TransportError(f"Response from {next_url} has no 'value' array", stage, url=next_url)

        for item in items:
            yield item

        next_url = body.get(NEXT_LINK_KEY)
        if next_url is not None and not isinstance(next_url, str):
            raise TransportError(f"Malformed {NEXT_LINK_KEY} in response from {url}", stage, url=url)
        request_params = None

    logger.debug(f"Fetched {pages} page(s) from {url}")


def _parse_folder(item: Any) -> Folder:
    """Parse a Graph mailFolder resource."""
    if not isinstance(item, dict):
        raise ValueError(f"folder entry is {type(item).__name__}, not an object")
    folder_id = item.get("id")
    if not isinstance(folder_id, str) or not folder_id:
        raise ValueError("folder entry has no id")
    display_name = item.get("displayName")
    if display_name is not None and not isinstance(display_name, str):
        raise ValueError(f"folder {folder_id} has a non-string displayName")
    return Folder(folder_id=folder_id, display_name=display_name or "")


def _parse_message(item: Any) -> Message:
    """Parse a Graph message resource restricted to the selected fields."""
    if not isinstance(item, dict):
        raise ValueError(f"message entry is {type(item).__name__}, not an object")
    message_id = item.get("id")
    if not isinstance(message_id, str) or not message_id:
        raise ValueError("message entry has no id")

    subject = item.get("subject")
    if subject is not None and not isinstance(subject, str):
        raise ValueError(f"message {message_id} has a non-string subject")

    # Drafts have no sender
    sender = item.get("sender") or {}
    if not isinstance(sender, dict):
        raise ValueError(f"message {message_id} has a malformed sender")
    email_address = sender.get("emailAddress") or {}
    if not isinstance(email_address, dict):
        raise ValueError(f"message {message_id} has a malformed sender.emailAddress")
    sender_name = email_address.get("name")

    sent_str = item.get("sentDateTime")
    sent_at = None
    if sent_str:
        if not isinstance(sent_str, str):
            raise ValueError(f"message {message_id} has a non-string sentDateTime")
        sent_at = datetime.fromisoformat(sent_str.replace('Z', '+00:00'))

    return Message(
        message_id=message_id,
        subject=subject,
        sender_name=sender_name,
        sent_at=sent_at,
        parent_folder_id=item.get("parentFolderId")
    )


def iter_folders(
    base_uri: str,
    session: GraphSession,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES,
    include_hidden: bool = False
) -> Iterator[Folder]:
    """Lazily yield every mail folder in the signed-in user's mailbox."""
    url = f"{base_uri.rstrip('/')}/me/mailFolders"
    params = {"includeHiddenFolders": "true"} if include_hidden else None

    for item in iter_pages(session, url, params=params, stage=STAGE_FOLDERS, max_pages=max_pages):
        try:
            folder = _parse_folder(item)
        except ValueError as e:
            raise TransportError(f"Unexpected folder shape: {e}", STAGE_FOLDERS, url=url) from e
        yield folder


def list_all_folders(
    base_uri: str,
    session: GraphSession,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES,
    include_hidden: bool = False
) -> List[Folder]:
    """
    Get all mail folders, in server order.

    Args:
        base_uri: Graph API root, e.g. https://graph.microsoft.com/v1.0
        session: Authenticated session
        max_pages: Pagination ceiling (None or 0 for unbounded)
        include_hidden: Also list folders the mailbox marks hidden

    Returns:
        List of Folder objects

    Raises:
        TransportError: if any page request fails
    """
    return list(iter_folders(base_uri, session, max_pages=max_pages, include_hidden=include_hidden))


def iter_folder_messages(
    folder_id: str,
    base_uri: str,
    filter_expression: str,
    session: GraphSession,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES,
    page_size: Optional[int] = None
) -> Iterator[Message]:
    """Lazily yield the messages of one folder that match a $filter expression."""
    url = f"{base_uri.rstrip('/')}/me/mailFolders/{quote(folder_id, safe='')}/messages"
    params: Dict[str, Any] = {
        "$filter": filter_expression,
        "$select": MESSAGE_SELECT_FIELDS
    }
    if page_size:
        params["$top"] = page_size

    for item in iter_pages(session, url, params=params, stage=STAGE_MESSAGES, max_pages=max_pages):
        try:
            message = _parse_message(item)
        except ValueError as e:
            raise TransportError(f"Unexpected message shape in folder {folder_id}: {e}", STAGE_MESSAGES, url=url) from e
        if message.parent_folder_id and message.parent_folder_id != folder_id:
            logger.warning(f"Message {message.message_id} listed under folder {folder_id} reports parent {message.parent_folder_id}")
        yield message


def list_folder_messages(
    folder_id: str,
    base_uri: str,
    filter_expression: str,
    session: GraphSession,
    max_pages: Optional[int] = DEFAULT_MAX_PAGES,
    page_size: Optional[int] = None
) -> List[Message]:
    """
    Get all messages in a folder matching a server-side filter.

    The expression is sent as the $filter query parameter; httpx takes care
    of URI encoding, quoting inside the expression is the caller's job.

    Raises:
        TransportError: if any page request fails
    """
    return list(iter_folder_messages(
        folder_id, base_uri, filter_expression, session,
        max_pages=max_pages, page_size=page_size
    ))


class MsalSessionProvider(SessionProvider):
    """
    Delegated (signed-in user) access through MSAL.

    Tokens are kept in a JSON token cache file so later runs can reuse the
    account silently; MSAL refreshes expired access tokens on its own.
    """

    def __init__(
        self,
        client_id: str,
        tenant_id: str = "common",
        token_cache_path: Optional[str] = None,
        method: str = "interactive",
        scopes: Sequence[str] = DEFAULT_SCOPES,
        timeout: float = DEFAULT_TIMEOUT,
        device_code_callback: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the provider.

        Args:
            client_id: Application (client) ID of a public client app registration
            tenant_id: Directory tenant, or 'common' / 'consumers' / 'organizations'
            token_cache_path: JSON file for the MSAL token cache (None keeps it in memory)
            method: 'interactive' (browser) or 'device' (device code)
            scopes: Scopes used when looking for a silent session
            timeout: Per-request timeout for Graph calls
            device_code_callback: Receives the device code instructions; defaults to stderr
        """
        if not client_id:
            raise AuthenticationError("No client_id configured; set [auth] client_id or MAIL_SEARCH_CLIENT_ID")
        if method not in ("interactive", "device"):
            raise AuthenticationError(f"Unknown authentication method: {method}")

        self.client_id = client_id
        self.tenant_id = tenant_id or "common"
        self.token_cache_path = token_cache_path
        self.method = method
        self.scopes = list(scopes)
        self.timeout = timeout
        self.device_code_callback = device_code_callback or (lambda message: print(message, file=sys.stderr))
        self._cache = msal.SerializableTokenCache()
        self._msal_app: Optional[Any] = None
        self._access_token: Optional[str] = None
        self._load_cache()

    def _load_cache(self) -> None:
        if self.token_cache_path and os.path.exists(self.token_cache_path):
            with open(self.token_cache_path, 'r') as f:
                self._cache.deserialize(f.read())
            logger.debug(f"Loaded token cache from {self.token_cache_path}")

    def _save_cache(self) -> None:
        if self.token_cache_path and self._cache.has_state_changed:
            with open(self.token_cache_path, 'w') as f:
                f.write(self._cache.serialize())
            logger.debug(f"Saved token cache to {self.token_cache_path}")

    def _get_msal_app(self) -> Any:
        """Get or create MSAL application instance."""
        if self._msal_app is None:
            authority = f"https://login.microsoftonline.com/{self.tenant_id}"
            self._msal_app = msal.PublicClientApplication(
                self.client_id,
                authority=authority,
                token_cache=self._cache
            )
        return self._msal_app

    def has_active_session(self) -> bool:
        """Try to get a token for a cached account without prompting."""
        try:
            app = self._get_msal_app()
            accounts = app.get_accounts()
            if not accounts:
                return False
            result = app.acquire_token_silent(self.scopes, account=accounts[0])
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Could not check for a cached session: {e}") from e

        self._save_cache()
        if result and "access_token" in result:
            self._access_token = result["access_token"]
            return True

        if result:
            logger.debug(f"Silent token acquisition failed: {result.get('error')}")
        return False

    def current_session(self) -> GraphSession:
        if not self._access_token:
            raise AuthenticationError("No active session; sign in first")
        return GraphSession(self._access_token, timeout=self.timeout)

    def create_interactive_session(self, scopes: Sequence[str]) -> GraphSession:
        try:
            app = self._get_msal_app()
            if self.method == "device":
                flow = app.initiate_device_flow(scopes=list(scopes))
                if "user_code" not in flow:
                    raise AuthenticationError(
                        f"Could not start device code flow: {flow.get('error_description', flow.get('error', 'Unknown error'))}",
                        flow.get("error")
                    )
                self.device_code_callback(flow["message"])
                result = app.acquire_token_by_device_flow(flow)
            else:
                result = app.acquire_token_interactive(scopes=list(scopes))
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Interactive sign-in failed: {e}") from e

        self._save_cache()

        if not result or "access_token" not in result:
            result = result or {}
            error = result.get("error_description", result.get("error", "Unknown error"))
            raise AuthenticationError(f"Failed to acquire token: {error}", result.get("error"))

        self._access_token = result["access_token"]
        logger.info("Signed in to Microsoft Graph")
        return GraphSession(self._access_token, timeout=self.timeout)
