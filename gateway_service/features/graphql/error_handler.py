"""GraphQL error handling and error masking.

Every error of an execution result is logged server-side. Errors raised by
the gateway's own exception hierarchy carry their code into
``extensions.code``; with ``mask_errors`` enabled, any other error raised
inside a resolver is replaced with a generic message.

Usage:
    result = await server.execute(query, context=context)
    payload = format_execution_result(result, mask_errors=settings.mask_errors)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from gateway_service.core.exceptions import AppException

if TYPE_CHECKING:
    from graphql import ExecutionResult, GraphQLError, GraphQLFormattedError

logger = logging.getLogger(__name__)

__all__ = [
    "ErrorCategory",
    "format_execution_result",
    "is_user_facing_error",
    "mask_internal_error",
    "process_graphql_errors",
]


class ErrorCategory:
    """Error codes for errors not raised by the gateway's exception hierarchy."""

    VALIDATION = "GRAPHQL_VALIDATION_FAILED"
    INTERNAL = "INTERNAL_SERVER_ERROR"


# ============================================================================
# Main Error Processing
# ============================================================================


def process_graphql_errors(
    errors: Sequence[GraphQLError],
    *,
    mask_errors: bool = False,
    operation_name: str | None = None,
) -> list[GraphQLFormattedError]:
    """Process GraphQL errors before returning them to the client.

    Args:
        errors: Errors from execution
        mask_errors: Replace internal errors with a generic message
        operation_name: Operation the errors belong to, for logging

    Returns:
        List of formatted errors safe to return to the client
    """
    processed: list[GraphQLFormattedError] = []
    for error in errors:
        log_error(error, operation_name)

        original = error.original_error
        formatted = error.formatted
        extensions = dict(formatted.get("extensions") or {})

        if isinstance(original, AppException):
            extensions.setdefault("code", original.code)
            extensions.setdefault("status", original.status_code)
        elif original is None:
            extensions.setdefault("code", ErrorCategory.VALIDATION)
        elif mask_errors:
            processed.append(mask_internal_error(error))
            continue
        else:
            extensions.setdefault("code", ErrorCategory.INTERNAL)

        formatted["extensions"] = extensions
        processed.append(formatted)

    return processed


def format_execution_result(
    result: ExecutionResult,
    *,
    mask_errors: bool = False,
    operation_name: str | None = None,
) -> dict[str, Any]:
    """Render an execution result as a response payload.

    The ``errors`` key is only present when there are errors.
    """
    payload: dict[str, Any] = {"data": result.data}
    if result.errors:
        payload["errors"] = process_graphql_errors(
            result.errors,
            mask_errors=mask_errors,
            operation_name=operation_name,
        )
    return payload


# ============================================================================
# Error Classification
# ============================================================================


def is_user_facing_error(error: GraphQLError) -> bool:
    """Syntax and validation errors, and errors with a gateway error code."""
    return error.original_error is None or isinstance(error.original_error, AppException)


def mask_internal_error(error: GraphQLError) -> GraphQLFormattedError:
    """Replace internal error details, keeping location and path."""
    formatted = error.formatted
    masked: dict[str, Any] = {"message": "An internal error occurred. Please try again later."}
    if "locations" in formatted:
        masked["locations"] = formatted["locations"]
    if "path" in formatted:
        masked["path"] = formatted["path"]
    masked["extensions"] = {
        "code": ErrorCategory.INTERNAL,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return masked  # type: ignore[return-value]


# ============================================================================
# Error Logging
# ============================================================================


def log_error(error: GraphQLError, operation_name: str | None = None) -> None:
    """Log error with full details for server-side debugging."""
    context: dict[str, Any] = {
        "error_message": error.message,
        "error_path": error.path,
    }
    if operation_name:
        context["operation_name"] = operation_name

    original = error.original_error
    if original is None:
        logger.info("GraphQL validation error: %s", error.message, extra=context)
    elif is_user_facing_error(error):
        context["error_code"] = original.code  # type: ignore[union-attr]
        logger.warning("GraphQL resolver error: %s", error.message, extra=context)
    else:
        logger.error(
            "Unhandled GraphQL resolver error: %s",
            error.message,
            exc_info=original,
            extra=context,
        )
