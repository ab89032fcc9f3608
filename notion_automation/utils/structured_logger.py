"""
Structured Logger module for workflow observability.

This module provides a structured logging system with run tracking,
context propagation, and text or JSON formatting for the batch jobs.
"""

import json
import logging
import os
import threading
import time
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

UTC = timezone.utc

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LogContext:
    """Thread-safe context storage for logging."""

    def __init__(self):
        self._local = threading.local()

    @property
    def data(self) -> Dict[str, Any]:
        """Get context data for current thread."""
        if not hasattr(self._local, 'data'):
            self._local.data = {}
        return self._local.data

    def set(self, key: str, value: Any):
        self.data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def clear(self):
        self.data.clear()

    def update(self, **kwargs):
        self.data.update(kwargs)


# Global context instance
log_context = LogContext()


class JsonFormatter(logging.Formatter):
    """One JSON object per line with context and extra fields merged in."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(UTC).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
        }

        context_data = log_context.data.copy()
        if context_data:
            log_data['context'] = context_data

        extra_fields = getattr(record, 'extra', {})
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                if key not in log_data:
                    log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """`[timestamp] LEVEL: message {extra}` lines for terminal runs."""

    def format(self, record):
        timestamp = datetime.now(UTC).isoformat()
        extra_fields = getattr(record, 'extra', {})
        meta = ""
        if isinstance(extra_fields, dict) and extra_fields:
            meta = " " + json.dumps(extra_fields, default=str, ensure_ascii=False)
        return f"[{timestamp}] {record.levelname}: {record.getMessage()}{meta}"


class StructuredLogger:
    """
    Logger wrapper with structured output and run tracking.

    Features:
    - Run ID tracking across a whole workflow execution
    - Keyword extra fields on every call
    - Text or JSON output
    - Step timing
    - Error context extraction from HTTP errors
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        json_format: bool = False,
        silent: bool = False,
    ):
        """
        Initialize StructuredLogger.

        Args:
            name: Logger name (typically workflow name)
            level: Logging level
            json_format: Whether to output JSON formatted logs
            silent: Suppress all output
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.json_format = json_format

        # Remove existing handlers to avoid duplicates
        self.logger.handlers = []
        self.logger.disabled = silent

        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(JsonFormatter() if json_format else TextFormatter())
        self.logger.addHandler(handler)

    @contextmanager
    def run_context(self, workflow: str, run_id: Optional[str] = None, **kwargs):
        """
        Context manager wrapping one workflow run.

        Args:
            workflow: Workflow name
            run_id: Optional run ID (generated if not provided)
            **kwargs: Additional context data
        """
        if run_id is None:
            run_id = str(uuid.uuid4())

        previous_context = log_context.data.copy()
        log_context.update(run_id=run_id, workflow=workflow, **kwargs)

        self.info(f"Run started: {workflow}")
        start_time = time.time()

        try:
            yield run_id
        finally:
            self.info(
                f"Run finished: {workflow}",
                duration_seconds=round(time.time() - start_time, 3)
            )
            log_context.clear()
            log_context.update(**previous_context)

    @contextmanager
    def step_context(self, step_name: str, **kwargs):
        """
        Context manager for one named step of a workflow.

        Args:
            step_name: Name of the step
            **kwargs: Additional step context
        """
        previous_step = log_context.get('step')
        log_context.set('step', step_name)
        log_context.update(**kwargs)

        self.debug(f"Step started: {step_name}")
        start_time = time.time()

        try:
            yield
        except Exception as e:
            self.error(
                f"Step failed: {step_name}",
                duration_seconds=round(time.time() - start_time, 3),
                error_type=type(e).__name__,
                error_message=str(e)
            )
            raise
        else:
            self.debug(
                f"Step completed: {step_name}",
                duration_seconds=round(time.time() - start_time, 3)
            )
        finally:
            if previous_step:
                log_context.set('step', previous_step)
            else:
                log_context.data.pop('step', None)

    def log_api_call(self, service: str, endpoint: str, method: str = "GET", **kwargs):
        """Log an outgoing API call at debug level."""
        self.debug(
            f"API call to {service}",
            service=service,
            endpoint=endpoint,
            method=method,
            **kwargs
        )

    def log_api_response(self, service: str, status_code: int, duration: float, **kwargs):
        """Log an API response; non-2xx/3xx responses are warnings."""
        level = logging.DEBUG if 200 <= status_code < 400 else logging.WARNING
        self.log(
            level,
            f"API response from {service}",
            service=service,
            status_code=status_code,
            duration_seconds=round(duration, 3),
            **kwargs
        )

    def log_error_with_context(
        self,
        error: Exception,
        operation: Optional[str] = None,
        **kwargs
    ):
        """
        Log error with full context.

        Args:
            error: The exception
            operation: Optional operation name
            **kwargs: Additional context
        """
        error_data = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            **kwargs
        }

        if operation:
            error_data['operation'] = operation

        status_code = getattr(error, 'status_code', None)
        if status_code is not None:
            error_data['status_code'] = status_code

        response = getattr(error, 'response', None)
        if response is not None:
            if hasattr(response, 'status_code'):
                error_data['status_code'] = response.status_code
            if hasattr(response, 'text'):
                error_data['response_body'] = str(response.text)[:1000]

        if self.logger.isEnabledFor(logging.DEBUG):
            error_data['traceback'] = traceback.format_exc()

        self.error(f"Error in {operation or 'operation'}", **error_data)

    # Standard logging methods with extra field support
    def debug(self, msg: str, **kwargs):
        self.logger.debug(msg, extra={'extra': kwargs})

    def info(self, msg: str, **kwargs):
        self.logger.info(msg, extra={'extra': kwargs})

    def warning(self, msg: str, **kwargs):
        self.logger.warning(msg, extra={'extra': kwargs})

    def error(self, msg: str, **kwargs):
        self.logger.error(msg, extra={'extra': kwargs})

    def log(self, level: int, msg: str, **kwargs):
        self.logger.log(level, msg, extra={'extra': kwargs})

    # Outcome markers used by the batch jobs
    def success(self, msg: str, **kwargs):
        self.info(f"✓ {msg}", **kwargs)

    def skip(self, msg: str, **kwargs):
        self.info(f"⊘ {msg}", **kwargs)

    def alert(self, msg: str, **kwargs):
        self.warning(f"⚠ {msg}", **kwargs)


def get_logger(name: str, level: int = logging.INFO, **kwargs) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name
        level: Logging level
        **kwargs: Additional logger configuration

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name, level, **kwargs)


def get_workflow_logger(workflow_name: str) -> StructuredLogger:
    """
    Get a logger configured from the environment.

    LOG_LEVEL selects the level (default info), LOG_FORMAT=json switches to
    JSON lines and LOG_SILENT=true disables output.
    """
    level_name = (os.environ.get("LOG_LEVEL") or "info").lower()
    return StructuredLogger(
        name=f"notion_automation.{workflow_name}",
        level=LOG_LEVELS.get(level_name, logging.INFO),
        json_format=(os.environ.get("LOG_FORMAT") or "").lower() == "json",
        silent=(os.environ.get("LOG_SILENT") or "").lower() == "true",
    )
