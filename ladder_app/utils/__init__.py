"""
Utility functions module.

Time Semantics:
- Interval boundaries are calendar dates; entry timestamps and "now" are datetimes
- "now" is always passed in by the caller; nothing reads the wall clock
- Aware timestamps are reduced to a calendar date in the configured timezone
"""
