"""
Error classification system for the step timeline engine.

This module provides a structured exception hierarchy for the outcomes of
timeline operations: malformed caller input, interval conflicts, and
lifecycle precondition failures.
"""

from .validation import (
    TimelineError,
    ValidationError,
    MalformedDataError,
)
from .conflicts import ConflictError
from .system_failures import (
    PreconditionError,
    NotFoundError,
    ConfigurationError,
)

__all__ = [
    "TimelineError",
    # Input Errors
    "ValidationError",
    "MalformedDataError",
    # Interval Conflicts
    "ConflictError",
    # Lifecycle and Lookup Failures
    "PreconditionError",
    "NotFoundError",
    "ConfigurationError",
]
