"""
Observability Infrastructure

Structured logging, correlation tracking and Prometheus metrics for the
launch scheduler and the material ledger.
"""

import contextvars
import logging
import sys
import uuid
from typing import Any

import structlog
from prometheus_client import Counter, Histogram, start_http_server

from .config import settings

# Context variables for correlation tracking
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Prometheus metrics
PLAN_LAUNCHES = Counter(
    "shopfloor_plan_launches_total",
    "Production plan launches",
    ["outcome"],
)

LAUNCH_DURATION = Histogram(
    "shopfloor_plan_launch_duration_seconds",
    "Production plan launch duration",
)

ASSIGNMENTS_CREATED = Counter(
    "shopfloor_assignments_created_total",
    "Worker assignments created by the launch scheduler",
)

UNASSIGNED_NODES = Counter(
    "shopfloor_unassigned_nodes_total",
    "Plan nodes left unassigned during launch",
    ["reason"],
)

LEDGER_MOVEMENTS = Counter(
    "shopfloor_ledger_movements_total",
    "Stock movements appended to the ledger",
    ["subtype"],
)

LEDGER_CONFLICTS = Counter(
    "shopfloor_ledger_conflicts_total",
    "Ledger write collisions",
    ["operation"],
)

RECONCILIATION_REPAIRS = Counter(
    "shopfloor_reconciliation_repairs_total",
    "Adjustments synthesized by the reconciliation auditor",
    ["dry_run"],
)


class CorrelationIdProcessor:
    """Structlog processor to add correlation ID to all log entries."""

    def __call__(
        self, logger: Any, name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        correlation_id = correlation_id_var.get("")
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


def setup_structured_logging() -> None:
    """Configure structured logging with JSON output and correlation tracking."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        CorrelationIdProcessor(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT == "local")
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def setup_metrics() -> None:
    """Start the Prometheus exporter when metrics are enabled."""
    if not settings.ENABLE_METRICS:
        return
    start_http_server(settings.METRICS_PORT)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for request tracking."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    """Get current correlation ID."""
    return correlation_id_var.get("")
