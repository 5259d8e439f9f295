"""
Input validation error classifications.

These exceptions are raised before any plan state is inspected, when the
caller supplied data that cannot describe a valid step or period.
"""

from typing import Any, Optional


class TimelineError(Exception):
    """Base class for every error raised by the timeline engine."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = True


class ValidationError(TimelineError):
    """Caller input is malformed (missing title, start after end, ...)."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class MalformedDataError(TimelineError):
    """A stored record exists but is in an unusable format."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format
