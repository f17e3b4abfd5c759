"""Logging infrastructure.

Structured logging on top of the standard library:
- JSONL format with OpenTelemetry trace correlation
- Automatic context injection (operation_name, schema_generation, ...)

Basic usage:
    from gateway_service.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(schema_generation=3)
    logger.info("Executing operation")  # Includes schema_generation
"""

from gateway_service.infra.logging.config import configure_logging, setup_logging
from gateway_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from gateway_service.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
]
