"""
Notion automation workflows.

Batch jobs that read and write a Notion workspace, filling in missing fields
with Gemini and external metadata services.
"""

from .exceptions import (
    NotionAutomationError,
    ConfigurationError,
    NotionAPIError,
    RemoteQueryError,
    PerRecordWriteError,
    AIGenerationError,
    ResponseParseError,
    ResponseShapeError,
    ExternalServiceError,
)

__version__ = "1.0.0"

__all__ = [
    "NotionAutomationError",
    "ConfigurationError",
    "NotionAPIError",
    "RemoteQueryError",
    "PerRecordWriteError",
    "AIGenerationError",
    "ResponseParseError",
    "ResponseShapeError",
    "ExternalServiceError",
]
