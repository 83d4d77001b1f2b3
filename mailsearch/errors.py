"""
Error types raised by the mail search pipeline.

Every error carries the pipeline stage it came from so callers can tell
an authentication failure from a folder or message listing failure
without parsing message text.
"""

from typing import Optional

STAGE_VALIDATION = "validation"
STAGE_AUTHENTICATION = "authentication"
STAGE_FOLDERS = "folders"
STAGE_MESSAGES = "messages"
STAGE_CONFIGURATION = "configuration"


class MailSearchError(Exception):
    """Base exception for mail search errors"""
    def __init__(self, message: str, stage: Optional[str] = None):
        self.message = message
        self.stage = stage
        super().__init__(message)


class ValidationError(MailSearchError):
    """Invalid search parameters, rejected before any network call"""
    def __init__(self, message: str):
        super().__init__(message, STAGE_VALIDATION)


class ConfigurationError(MailSearchError):
    """A configuration value could not be read"""
    def __init__(self, message: str):
        super().__init__(message, STAGE_CONFIGURATION)


class AuthenticationError(MailSearchError):
    """No authenticated session could be obtained"""
    def __init__(self, message: str, error_code: Optional[str] = None):
        self.error_code = error_code
        super().__init__(message, STAGE_AUTHENTICATION)


class TransportError(MailSearchError):
    """A page request failed or returned something that is not a collection page"""
    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        url: Optional[str] = None
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.url = url
        super().__init__(message, stage)
