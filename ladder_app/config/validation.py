"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

KNOWN_SECTIONS = {
    "timeline": {"excluded_tool_types", "infer_start_from_previous_step"},
    "aggregation": {"fallback_include_last_completed"},
    "time": {"timezone"},
    "logging": {"level", "format_json"},
}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ConfigValidationIssue:
    """Represents a configuration validation problem."""
    field: str
    message: str
    value: Any


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_timeline_params(params: dict[str, Any]) -> list[ConfigValidationIssue]:
        """Validate timeline parameters."""
        errors = []

        if "excluded_tool_types" in params:
            value = params["excluded_tool_types"]
            if (not isinstance(value, (list, tuple))
                    or not all(isinstance(item, str) and item for item in value)):
                errors.append(ConfigValidationIssue(
                    field="excluded_tool_types",
                    message="Must be a list of non-empty tool type names",
                    value=value
                ))

        if "infer_start_from_previous_step" in params:
            value = params["infer_start_from_previous_step"]
            if not isinstance(value, bool):
                errors.append(ConfigValidationIssue(
                    field="infer_start_from_previous_step",
                    message="Must be a boolean",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_aggregation_params(params: dict[str, Any]) -> list[ConfigValidationIssue]:
        """Validate aggregation parameters."""
        errors = []

        if "fallback_include_last_completed" in params:
            value = params["fallback_include_last_completed"]
            if not isinstance(value, bool):
                errors.append(ConfigValidationIssue(
                    field="fallback_include_last_completed",
                    message="Must be a boolean",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_time_params(params: dict[str, Any]) -> list[ConfigValidationIssue]:
        """Validate time parameters."""
        errors = []

        if "timezone" in params:
            value = params["timezone"]
            try:
                if value != "UTC":
                    ZoneInfo(value)
            except (ZoneInfoNotFoundError, TypeError, ValueError):
                errors.append(ConfigValidationIssue(
                    field="timezone",
                    message="Must be an IANA timezone name",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ConfigValidationIssue]:
        """Validate logging parameters."""
        errors = []

        if "level" in params:
            value = params["level"]
            if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
                errors.append(ConfigValidationIssue(
                    field="level",
                    message=f"Must be one of {sorted(LOG_LEVELS)}",
                    value=value
                ))

        if "format_json" in params and not isinstance(params["format_json"], bool):
            errors.append(ConfigValidationIssue(
                field="format_json",
                message="Must be a boolean",
                value=params["format_json"]
            ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ConfigValidationIssue]:
        """Validate complete configuration."""
        errors = []

        for section, value in config.items():
            if section not in KNOWN_SECTIONS:
                errors.append(ConfigValidationIssue(
                    field=section,
                    message="Unknown configuration section",
                    value=value
                ))
                continue
            if not isinstance(value, dict):
                errors.append(ConfigValidationIssue(
                    field=section,
                    message="Must be a mapping",
                    value=value
                ))
                continue
            for key in value:
                if key not in KNOWN_SECTIONS[section]:
                    errors.append(ConfigValidationIssue(
                        field=f"{section}.{key}",
                        message="Unknown configuration key",
                        value=value[key]
                    ))

        if isinstance(config.get("timeline"), dict):
            errors.extend(ConfigValidator.validate_timeline_params(config["timeline"]))

        if isinstance(config.get("aggregation"), dict):
            errors.extend(ConfigValidator.validate_aggregation_params(config["aggregation"]))

        if isinstance(config.get("time"), dict):
            errors.extend(ConfigValidator.validate_time_params(config["time"]))

        if isinstance(config.get("logging"), dict):
            errors.extend(ConfigValidator.validate_logging_params(config["logging"]))

        return errors
