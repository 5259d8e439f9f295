"""Default configuration parameters for the step timeline engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TimelineParams:
    """Lifecycle and interval parameters."""
    # Tool types never time-matched to steps (bedtime tracking)
    excluded_tool_types: tuple[str, ...] = ("sengetider",)

    # Completing a step without periods starts its first period the day
    # after the previous step's last period, instead of at the plan start
    infer_start_from_previous_step: bool = True


@dataclass(frozen=True)
class AggregationParams:
    """Entry aggregation parameters."""
    # Untimed steps: also give entries to the most recently completed step
    fallback_include_last_completed: bool = True


@dataclass(frozen=True)
class TimeParams:
    """Time-based parameters."""
    timezone: str = "UTC"              # Used to take the calendar date of aware timestamps


@dataclass(frozen=True)
class LoggingParams:
    """Logging parameters passed to configure_logging."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    timeline: TimelineParams
    aggregation: AggregationParams
    time: TimeParams
    logging: LoggingParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        timeline=TimelineParams(),
        aggregation=AggregationParams(),
        time=TimeParams(),
        logging=LoggingParams(),
    )
