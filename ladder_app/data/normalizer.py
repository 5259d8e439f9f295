"""
Record normalization for converting stored rows to timeline models.

Rows may use the camelCase keys of the web API (``stepNumber``,
``activePeriods``, ``toolType``) or snake_case column names. Dates may be
``date``/``datetime`` objects or ISO-8601 strings.
"""

from datetime import date, datetime
from typing import Any, Optional

import structlog

from ..errors import MalformedDataError, ValidationError
from ..timeline.models import Entry, Period, Plan, Step, ToolType

logger = structlog.get_logger(__name__)

FIELD_ALIASES = {
    "step_number": ("step_number", "stepNumber"),
    "plan_id": ("plan_id", "planId", "indsatstrappe_id"),
    "child_id": ("child_id", "childId"),
    "is_completed": ("is_completed", "isCompleted"),
    "completed_at": ("completed_at", "completedAt"),
    "completed_by": ("completed_by", "completedBy"),
    "start_date": ("start_date", "startDate"),
    "end_date": ("end_date", "endDate"),
    "target_end_date": ("target_end_date", "targetEndDate"),
    "target_date": ("target_date", "targetDate"),
    "is_active": ("is_active", "isActive"),
    "periods": ("periods", "activePeriods", "active_periods"),
    "goal": ("goal", "målsætning", "malsaetning"),
    "tool_type": ("tool_type", "toolType"),
    "tool_id": ("tool_id", "toolId"),
    "created_at": ("created_at", "createdAt", "entry_date", "entryDate"),
    "created_by": ("created_by", "createdBy", "activated_by"),
    "title": ("title", "toolTopic"),
}


class RecordNormalizer:
    """
    Normalization pipeline for stored timeline records.

    Each ``normalize_*`` method accepts one raw mapping and returns a model
    instance, raising MalformedDataError for unparseable values and
    ValidationError for values that break a model invariant.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logger

    def _get(self, raw: dict[str, Any], name: str, default: Any = None) -> Any:
        for key in FIELD_ALIASES.get(name, (name,)):
            if key in raw and raw[key] is not None:
                return raw[key]
        return default

    def _require(self, raw: dict[str, Any], name: str, record_type: str) -> Any:
        value = self._get(raw, name)
        if value is None or value == "":
            raise MalformedDataError(
                f"{record_type} record missing required field: {name}",
                raw_data=repr(raw),
                expected_format=name
            )
        return value

    def parse_date(self, value: Any, field: str = "date") -> Optional[date]:
        """Parse a date-only value; datetimes are truncated to their date."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                if len(value) > 10:
                    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
                return date.fromisoformat(value)
            except ValueError as e:
                raise MalformedDataError(
                    f"Invalid {field}: {value!r}",
                    raw_data=value,
                    expected_format="YYYY-MM-DD"
                ) from e
        raise MalformedDataError(
            f"Invalid {field} type: {type(value).__name__}",
            raw_data=repr(value),
            expected_format="YYYY-MM-DD"
        )

    def parse_datetime(self, value: Any, field: str = "timestamp") -> Optional[datetime]:
        """Parse a date+time value; bare dates become midnight."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError as e:
                raise MalformedDataError(
                    f"Invalid {field}: {value!r}",
                    raw_data=value,
                    expected_format="ISO-8601"
                ) from e
        raise MalformedDataError(
            f"Invalid {field} type: {type(value).__name__}",
            raw_data=repr(value),
            expected_format="ISO-8601"
        )

    def normalize_plan(self, raw: dict[str, Any]) -> Plan:
        return Plan(
            id=str(self._require(raw, "id", "Plan")),
            child_id=str(self._require(raw, "child_id", "Plan")),
            title=str(self._get(raw, "title", "")),
            start_date=self.parse_date(self._require(raw, "start_date", "Plan"), "start_date"),
            target_date=self.parse_date(self._get(raw, "target_date"), "target_date"),
            is_active=bool(self._get(raw, "is_active", True)),
            description=self._get(raw, "description"),
        )

    def normalize_period(self, raw: dict[str, Any]) -> Period:
        period_id = self._get(raw, "id")
        created_by = self._get(raw, "created_by")
        return Period(
            start_date=self.parse_date(self._require(raw, "start_date", "Period"), "start_date"),
            end_date=self.parse_date(self._get(raw, "end_date"), "end_date"),
            id=str(period_id) if period_id is not None else None,
            created_by=str(created_by) if created_by is not None else None,
        )

    def normalize_step(self, raw: dict[str, Any]) -> Step:
        step_number = self._require(raw, "step_number", "Step")
        try:
            step_number = int(step_number)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                "Step number must be a positive integer",
                field="step_number",
                value=step_number
            ) from e

        completed_by = self._get(raw, "completed_by")
        return Step(
            id=str(self._require(raw, "id", "Step")),
            plan_id=str(self._require(raw, "plan_id", "Step")),
            step_number=step_number,
            title=str(self._get(raw, "title", "")),
            description=self._get(raw, "description"),
            goal=self._get(raw, "goal"),
            is_completed=bool(self._get(raw, "is_completed", False)),
            completed_at=self.parse_datetime(self._get(raw, "completed_at"), "completed_at"),
            completed_by=str(completed_by) if completed_by is not None else None,
            start_date=self.parse_date(self._get(raw, "start_date"), "start_date"),
            target_end_date=self.parse_date(self._get(raw, "target_end_date"), "target_end_date"),
            periods=tuple(self.normalize_period(p) for p in self._get(raw, "periods", [])),
        )

    def normalize_entry(self, raw: dict[str, Any]) -> Entry:
        tool_type = self._require(raw, "tool_type", "Entry")
        try:
            tool_type = ToolType(tool_type)
        except ValueError as e:
            self.logger.warning(
                "Entry with unknown tool type",
                entry_id=self._get(raw, "id"),
                tool_type=tool_type
            )
            raise MalformedDataError(
                f"Unknown tool type: {tool_type!r}",
                raw_data=repr(raw),
                expected_format="|".join(t.value for t in ToolType)
            ) from e

        tool_id = self._get(raw, "tool_id")
        known = {alias for aliases in FIELD_ALIASES.values() for alias in aliases} | {"id"}
        return Entry(
            id=str(self._require(raw, "id", "Entry")),
            tool_type=tool_type,
            created_at=self.parse_datetime(self._require(raw, "created_at", "Entry"), "created_at"),
            tool_id=str(tool_id) if tool_id is not None else None,
            title=self._get(raw, "title"),
            payload={k: v for k, v in raw.items() if k not in known},
        )
