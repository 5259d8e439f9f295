"""
Centralized logging configuration for the step timeline engine.

This module provides standardized logging configuration using structlog
for all components. Lifecycle transitions, conflict decisions and entry
matching strategies are logged as structured audit events through the
helpers below so they can be filtered by ``subsystem``.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_lifecycle_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for step lifecycle and conflict audit events.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for lifecycle transitions
    """
    return get_logger(name).bind(
        subsystem="step_lifecycle",
        audit_trail=True
    )


def get_aggregation_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for entry aggregation decisions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for entry matching
    """
    return get_logger(name).bind(
        subsystem="entry_aggregation",
        audit_trail=False
    )


def log_step_transition(
    logger: FilteringBoundLogger,
    step_id: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a step lifecycle transition with standardized format.

    Args:
        logger: Structlog logger instance
        step_id: ID of the step transitioning
        from_state: Current lifecycle state
        to_state: Target lifecycle state
        trigger: What triggered the transition (complete, uncomplete, ...)
        context: Additional context data
    """
    bound_logger = logger.bind(
        step_id=step_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("step_transition")


def log_conflict_decision(
    logger: FilteringBoundLogger,
    step_id: str,
    passed: bool,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log the outcome of an interval conflict check.

    Args:
        logger: Structlog logger instance
        step_id: ID of the step the candidate interval was proposed for
        passed: Whether the candidate interval is free
        reason: Short reason code (ok, overlap, before_plan_start)
        context: Additional context data
    """
    bound_logger = logger.bind(
        step_id=step_id,
        conflict_result="PASS" if passed else "CONFLICT",
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if passed:
        bound_logger.debug("interval_check")
    else:
        bound_logger.warning("interval_check")


def log_match_strategy(
    logger: FilteringBoundLogger,
    step_id: str,
    step_number: int,
    strategy: str,
    matched: int,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log which matching strategy was chosen for a step and how many entries it took.

    Args:
        logger: Structlog logger instance
        step_id: ID of the step being aggregated
        step_number: Position of the step in its plan
        strategy: Match strategy value
        matched: Number of entries assigned to the step
        context: Additional context data
    """
    bound_logger = logger.bind(
        step_id=step_id,
        step_number=step_number,
        strategy=strategy,
        matched=matched,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.debug("entry_match")
