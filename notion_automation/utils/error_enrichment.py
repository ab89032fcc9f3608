"""
Error Enrichment module for turning workflow failures into actionable messages.

Fatal errors reach the command-line entry points as exceptions from the
exceptions module, requests, or the standard library. This module maps them
to a short message, an error code and a list of concrete things to check.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..exceptions import (
    AIGenerationError,
    ConfigurationError,
    ExternalServiceError,
    NotionAPIError,
    ResponseParseError,
    ResponseShapeError,
)

UTC = timezone.utc


class ErrorContext:
    """Container for error context information."""

    def __init__(self):
        self.service: Optional[str] = None
        self.operation: Optional[str] = None
        self.resource_id: Optional[str] = None
        self.status_code: Optional[int] = None
        self.additional_info: Dict[str, Any] = {}
        self.timestamp: datetime = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'operation': self.operation,
            'resource_id': self.resource_id,
            'status_code': self.status_code,
            'timestamp': self.timestamp.isoformat(),
            **self.additional_info
        }


class EnrichedError(Exception):
    """Exception carrying an error code, suggestions and context."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        error_code: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        context: Optional[ErrorContext] = None,
        documentation_url: Optional[str] = None
    ):
        super().__init__(message)
        self.original_error = original_error
        self.error_code = error_code
        self.suggestions = suggestions or []
        self.context = context or ErrorContext()
        self.documentation_url = documentation_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': str(self),
            'error_code': self.error_code,
            'suggestions': self.suggestions,
            'context': self.context.to_dict(),
            'documentation_url': self.documentation_url,
            'original_error': str(self.original_error) if self.original_error else None,
        }


class ErrorEnricher:
    """
    Maps workflow errors to actionable messages.

    Lookup order: configuration errors, service-specific entries, generic
    patterns, then a default based on the exception type.
    """

    ERROR_PATTERNS = {
        r'.*timed? ?out.*': {
            'message': 'Request timed out',
            'code': 'REQUEST_TIMEOUT',
            'suggestions': [
                'The service may be slow right now; run the workflow again later',
                'Check your network connection',
            ]
        },
        r'.*(401|unauthorized|api key not valid).*': {
            'message': 'Authentication failed',
            'code': 'AUTH_FAILED',
            'suggestions': [
                'Verify the API token or key in your environment or .env file',
                'Check the token has not been revoked or regenerated',
            ]
        },
        r'.*(403|forbidden|permission.*denied).*': {
            'message': 'Access forbidden',
            'code': 'ACCESS_FORBIDDEN',
            'suggestions': [
                'Check the key has access to this API',
                'Share the page or database with the integration',
            ]
        },
        r'.*(429|rate.*limit|quota|resource.?exhausted).*': {
            'message': 'Rate limit or quota exceeded',
            'code': 'RATE_LIMITED',
            'suggestions': [
                'Wait a few minutes before running the workflow again',
                'Check the usage limits for your API key',
            ]
        },
        r'.*(invalid json|not valid json|failed to parse).*': {
            'message': 'Invalid JSON in response',
            'code': 'INVALID_JSON',
            'suggestions': [
                'Run with LOG_LEVEL=debug to see the raw response',
                'Run the workflow again; model output varies between calls',
            ]
        },
        r'.*(404|not.*found).*': {
            'message': 'Resource not found',
            'code': 'NOT_FOUND',
            'suggestions': [
                'Verify the ID is correct',
                'Check the resource still exists',
            ]
        },
    }

    SERVICE_ERRORS = {
        'notion': {
            'object_not_found': {
                'message': 'Notion page or database not found',
                'code': 'NOTION_NOT_FOUND',
                'suggestions': [
                    'Verify the database or page ID is correct',
                    'Open the page in Notion and add the integration under Connections',
                ],
                'doc_url': 'https://developers.notion.com/reference/errors'
            },
            'validation_error': {
                'message': 'Notion rejected the request body',
                'code': 'NOTION_VALIDATION_ERROR',
                'suggestions': [
                    'Check every property name exists in the database',
                    'Check each property has the expected type (select, multi-select, number...)',
                ],
                'doc_url': 'https://developers.notion.com/reference/errors'
            },
            'unauthorized': {
                'message': 'Notion token is invalid',
                'code': 'NOTION_UNAUTHORIZED',
                'suggestions': [
                    'Verify NOTION_TOKEN is the internal integration secret',
                ]
            },
            'rate_limited': {
                'message': 'Notion rate limit reached',
                'code': 'NOTION_RATE_LIMITED',
                'suggestions': [
                    'Wait a minute and run the workflow again',
                ]
            },
        },
        'gemini': {
            'api key not valid': {
                'message': 'Invalid Gemini API key',
                'code': 'GEMINI_INVALID_KEY',
                'suggestions': [
                    'Verify GEMINI_API_KEY is set and has no extra spaces',
                    'Generate a new key in Google AI Studio if needed',
                ],
                'doc_url': 'https://ai.google.dev/gemini-api/docs/api-key'
            },
            'no text': {
                'message': 'Gemini returned no text',
                'code': 'GEMINI_EMPTY_RESPONSE',
                'suggestions': [
                    'The response may have been blocked by safety filters',
                    'Try a smaller batch or run the workflow again',
                ]
            },
            'should be a': {
                'message': 'Gemini response did not match the expected fields',
                'code': 'GEMINI_SHAPE_MISMATCH',
                'suggestions': [
                    'Run with LOG_LEVEL=debug to inspect the raw response',
                    'Check the prompt template lists every field with its type',
                ]
            },
        },
        'tmdb': {
            'invalid api key': {
                'message': 'Invalid TMDB API key',
                'code': 'TMDB_INVALID_KEY',
                'suggestions': [
                    'Verify TMDB_API_KEY is the v3 API key, not the read access token',
                ],
                'doc_url': 'https://developer.themoviedb.org/docs/authentication-application'
            },
        },
        'google_maps': {
            'request_denied': {
                'message': 'Google Maps request denied',
                'code': 'MAPS_REQUEST_DENIED',
                'suggestions': [
                    'Enable the Directions API for the key in Google Cloud Console',
                    'Check billing is enabled on the project',
                ]
            },
            'not_found': {
                'message': 'Google Maps could not find a waypoint',
                'code': 'MAPS_WAYPOINT_NOT_FOUND',
                'suggestions': [
                    'Check STATION_WAYPOINT and each pub Location are real addresses',
                ]
            },
            'zero_results': {
                'message': 'Google Maps found no walking route',
                'code': 'MAPS_ZERO_RESULTS',
                'suggestions': [
                    'Check the pubs are within walking distance of the station',
                ]
            },
        },
    }

    def enrich_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        **kwargs
    ) -> EnrichedError:
        """
        Enrich an error with actionable information.

        Args:
            error: The original exception
            context: Optional error context
            **kwargs: Additional context information

        Returns:
            EnrichedError with enhanced information
        """
        if context is None:
            context = self.extract_context_from_error(error)

        for key, value in kwargs.items():
            if hasattr(context, key):
                setattr(context, key, value)
            else:
                context.additional_info[key] = value

        if isinstance(error, ConfigurationError):
            return EnrichedError(
                message=f'Configuration error: {error}',
                original_error=error,
                error_code='CONFIGURATION_ERROR',
                suggestions=[
                    'Set the variable in your shell or in a .env file in the working directory',
                    'See the workflow list in README.md for the variables each job needs',
                ],
                context=context
            )

        error_str = str(error).lower()

        if context.service:
            enriched = self._try_service_enrichment(error, error_str, context)
            if enriched:
                return enriched

        enriched = self._try_pattern_enrichment(error, error_str, context)
        if enriched:
            return enriched

        return self._default_enrichment(error, context)

    def _try_service_enrichment(
        self,
        error: Exception,
        error_str: str,
        context: ErrorContext
    ) -> Optional[EnrichedError]:
        service_errors = self.SERVICE_ERRORS.get(context.service.lower())
        if not service_errors:
            return None

        code = (getattr(error, 'code', None) or '').lower()
        for error_key, enrichment in service_errors.items():
            if error_key == code or error_key in error_str:
                return EnrichedError(
                    message=enrichment['message'],
                    original_error=error,
                    error_code=enrichment['code'],
                    suggestions=list(enrichment.get('suggestions', [])),
                    context=context,
                    documentation_url=enrichment.get('doc_url')
                )
        return None

    def _try_pattern_enrichment(
        self,
        error: Exception,
        error_str: str,
        context: ErrorContext
    ) -> Optional[EnrichedError]:
        for pattern, enrichment in self.ERROR_PATTERNS.items():
            if re.match(pattern, error_str, re.IGNORECASE | re.DOTALL):
                suggestions = list(enrichment['suggestions'])
                if context.service:
                    suggestions.append(f'Check {context.service} service status')

                return EnrichedError(
                    message=enrichment['message'],
                    original_error=error,
                    error_code=enrichment['code'],
                    suggestions=suggestions,
                    context=context
                )
        return None

    def _default_enrichment(
        self,
        error: Exception,
        context: ErrorContext
    ) -> EnrichedError:
        suggestions = []

        if isinstance(error, (ConnectionError, TimeoutError)):
            suggestions.append('Check network connectivity')
        elif context.status_code:
            if 400 <= context.status_code < 500:
                suggestions.append('Check request parameters and authentication')
            elif context.status_code >= 500:
                suggestions.append('The service is having problems, try again later')

        suggestions.append('Run with LOG_LEVEL=debug for more details')

        return EnrichedError(
            message=f'An error occurred: {error}',
            original_error=error,
            error_code='GENERIC_ERROR',
            suggestions=suggestions,
            context=context
        )

    def extract_context_from_error(self, error: Exception) -> ErrorContext:
        """
        Derive service and status information from an exception.

        Args:
            error: The exception to extract context from

        Returns:
            ErrorContext with extracted information
        """
        context = ErrorContext()

        if isinstance(error, NotionAPIError):
            context.service = 'notion'
            context.status_code = error.status_code
            context.resource_id = getattr(error, 'page_id', None)
        elif isinstance(error, (AIGenerationError, ResponseShapeError, ResponseParseError)):
            context.service = 'gemini'
        elif isinstance(error, ExternalServiceError):
            context.service = error.service

        response = getattr(error, 'response', None)
        if response is not None and getattr(response, 'status_code', None):
            context.status_code = response.status_code

        return context

    def format_error_for_user(
        self,
        enriched_error: EnrichedError,
        include_technical: bool = False
    ) -> str:
        """
        Format enriched error for terminal display.

        Args:
            enriched_error: The enriched error
            include_technical: Whether to include the original message

        Returns:
            Formatted error message
        """
        lines = [f"❌ {enriched_error}"]

        if enriched_error.error_code:
            lines.append(f"Error Code: {enriched_error.error_code}")

        context = enriched_error.context
        if context.service:
            lines.append(f"Service: {context.service}")
        if context.operation:
            lines.append(f"Operation: {context.operation}")

        if enriched_error.suggestions:
            lines.append("\n💡 Suggestions:")
            for i, suggestion in enumerate(enriched_error.suggestions, 1):
                lines.append(f"  {i}. {suggestion}")

        if enriched_error.documentation_url:
            lines.append(f"\n📚 Documentation: {enriched_error.documentation_url}")

        if include_technical and enriched_error.original_error:
            lines.append("\n🔧 Technical Details:")
            lines.append(f"Original Error: {enriched_error.original_error}")

        return "\n".join(lines)


# Convenience functions
def enrich_error(
    error: Exception,
    service: Optional[str] = None,
    operation: Optional[str] = None,
    **kwargs
) -> EnrichedError:
    """
    Quick function to enrich an error.

    Args:
        error: The exception to enrich
        service: Optional service name overriding the detected one
        operation: Optional operation name
        **kwargs: Additional context

    Returns:
        EnrichedError instance
    """
    enricher = ErrorEnricher()
    context = enricher.extract_context_from_error(error)
    if service:
        context.service = service
    if operation:
        context.operation = operation
    return enricher.enrich_error(error, context, **kwargs)


def format_error(
    error: Exception,
    service: Optional[str] = None,
    operation: Optional[str] = None,
    include_technical: bool = True
) -> str:
    """
    Format an error for terminal display.

    Args:
        error: The exception to format
        service: Optional service name
        operation: Optional operation (usually the workflow name)
        include_technical: Whether to include the original error text

    Returns:
        Formatted error message
    """
    enriched = enrich_error(error, service=service, operation=operation)
    return ErrorEnricher().format_error_for_user(enriched, include_technical)
