"""
Lifecycle and lookup failure classifications.

These exceptions indicate that the caller's view of the plan is out of sync
with the stored state, or that the engine was set up with bad configuration.
"""

from typing import Optional

from .validation import TimelineError


class PreconditionError(TimelineError):
    """Transition requested from a state that does not allow it."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class NotFoundError(TimelineError):
    """Referenced plan or step does not exist in the store."""

    def __init__(self, message: str, entity: Optional[str] = None,
                 entity_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


class ConfigurationError(TimelineError):
    """Configuration file or overrides failed validation."""

    def __init__(self, message: str, issues: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.issues = issues or []
        self.recoverable = False
