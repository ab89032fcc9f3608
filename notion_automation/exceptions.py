"""Custom exceptions for the Notion automation workflows."""

from typing import Optional


class NotionAutomationError(Exception):
    """Base exception for all workflow errors."""

    pass


class ConfigurationError(NotionAutomationError):
    """Raised when a required environment variable or config entry is missing."""

    pass


class NotionAPIError(NotionAutomationError):
    """Raised when the Notion API returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class RemoteQueryError(NotionAPIError):
    """Raised when querying a database or listing blocks fails."""

    pass


class PerRecordWriteError(NotionAPIError):
    """Raised when updating a single page fails."""

    def __init__(
        self,
        page_id: str,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.page_id = page_id
        super().__init__(
            f"Failed to update page '{page_id}': {message}",
            status_code=status_code,
            code=code,
        )


class AIGenerationError(NotionAutomationError):
    """Raised when the text-generation call fails or returns no text."""

    pass


class ResponseParseError(NotionAutomationError):
    """Raised when the generated text is empty or not valid JSON."""

    pass


class ResponseShapeError(ResponseParseError):
    """Raised when decoded JSON does not match the expected item schema."""

    pass


class ExternalServiceError(NotionAutomationError):
    """Raised when a third-party lookup (TMDB, OMDb, Maps, Nominatim) fails."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")
