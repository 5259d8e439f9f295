"""
Interval conflict errors.

A conflict is an expected, user-correctable outcome: the proposed interval
overlaps a range already occupied by another step, or starts before the plan.
"""

from datetime import date
from typing import Optional

from .validation import TimelineError


class ConflictError(TimelineError):
    """Proposed step interval collides with another step's occupied range."""

    def __init__(self, message: str, step_id: Optional[str] = None,
                 step_title: Optional[str] = None,
                 range_start: Optional[date] = None,
                 range_end: Optional[date] = None,
                 kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_id = step_id
        self.step_title = step_title
        self.range_start = range_start
        self.range_end = range_end
        self.kind = kind

    @classmethod
    def from_result(cls, result) -> "ConflictError":
        """Build the error from a failed ConflictResult."""
        return cls(
            result.describe(),
            step_id=result.step_id,
            step_title=result.step_title,
            range_start=result.range_start,
            range_end=result.range_end,
            kind=result.kind.value if result.kind else None,
            context={"candidate_start": result.candidate_start,
                     "candidate_end": result.candidate_end},
        )
