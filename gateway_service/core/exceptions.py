"""Custom exception classes for the gateway."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
            raise AppException(
            status_code=502,
            detail="Remote action failed",
            type="remote-dispatch-failed",
            extra={"action": "posts.find"}
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @property
    def code(self) -> str:
        """Upper-case error code derived from the problem type."""
        return self.type.replace("-", "_").upper()

    def to_problem_details(self) -> dict[str, Any]:
        """Render the exception as an RFC 7807 problem details body."""
        body: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            body["instance"] = self.instance
        if self.extra:
            body.update({k: v for k, v in self.extra.items() if k not in body})
        return body

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code.

        Args:
            status_code: HTTP status code.

        Returns:
            Human-readable title for the status code.
        """
        titles = {
            400: "Bad Request",
            404: "Not Found",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class CompositionError(AppException):
    """Raised when the GraphQL schema cannot be composed from service fragments.

    Fatal for the rebuild attempt in progress. The underlying failure is kept
    both as ``__cause__`` and as :attr:`cause`.

    Example:
            raise CompositionError(cause=exc)
    """

    def __init__(
        self,
        detail: str = "Unable to compile GraphQL schema",
        *,
        cause: BaseException | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.cause = cause
        merged = dict(extra or {})
        if cause is not None:
            merged.setdefault("reason", str(cause))
        super().__init__(
            status_code=500,
            detail=detail,
            type="unable-compile-graphql-schema",
            title="Schema Composition Failed",
            extra=merged,
        )
        if cause is not None:
            self.__cause__ = cause


class RemoteDispatchError(AppException):
    """Raised when a resolver's backing remote action call fails.

    Example:
            raise RemoteDispatchError(action="posts.find", detail="timeout")
    """

    def __init__(
        self,
        action: str,
        detail: str | None = None,
        *,
        type: str = "remote-dispatch-failed",
        cause: BaseException | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.action = action
        self.cause = cause
        message = detail or (str(cause) if cause is not None else "") or f"Call to '{action}' failed"
        super().__init__(
            status_code=502,
            detail=message,
            type=type,
            title="Remote Dispatch Failed",
            extra={"action": action, **(extra or {})},
        )
        if cause is not None:
            self.__cause__ = cause


class BatchDispatchError(RemoteDispatchError):
    """Raised for every pending key of a batch whose remote call failed."""

    def __init__(
        self,
        action: str,
        detail: str | None = None,
        *,
        cause: BaseException | None = None,
        keys: list[Any] | None = None,
    ) -> None:
        super().__init__(
            action,
            detail,
            type="batch-dispatch-failed",
            cause=cause,
            extra={"batch_size": len(keys or [])},
        )


class FilterDispatchError(RemoteDispatchError):
    """Raised when a subscription filter predicate call fails.

    Never surfaced to clients: the event is excluded and the failure logged.
    """

    def __init__(self, action: str, *, cause: BaseException | None = None) -> None:
        super().__init__(action, type="filter-dispatch-failed", cause=cause)


class ActionNotFoundError(AppException):
    """Raised by the local broker when no service exposes the requested action."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(
            status_code=404,
            detail=f"Action '{action}' is not available",
            type="action-not-found",
            title="Not Found",
            extra={"action": action},
        )


class LoaderNotFoundError(KeyError):
    """Raised when no batching unit is registered for an action."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(action)

    def __str__(self) -> str:
        return f"No batch loader registered for action '{self.action}'"


def scrub_call_context(error: BaseException) -> BaseException:
    """Drop the call-context back-reference carried by remote errors.

    Remote failures may hold the invoking context as ``ctx``; serializing such
    an error would recurse into the context and back into the error.
    """
    if getattr(error, "ctx", None) is not None:
        try:
            error.ctx = None  # type: ignore[attr-defined]
        except AttributeError:
            pass
    return error


__all__ = [
    "ActionNotFoundError",
    "AppException",
    "BatchDispatchError",
    "CompositionError",
    "FilterDispatchError",
    "LoaderNotFoundError",
    "RemoteDispatchError",
    "scrub_call_context",
]
