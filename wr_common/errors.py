"""Shared error taxonomy for workspace-run-lib."""

from __future__ import annotations

from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class WRError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    @property
    def run_id(self) -> str | None:
        value = self.context.get("run_id")
        return str(value) if value is not None else None


class RemoteServiceError(WRError):
    """Transport or lookup failure talking to the remote control plane."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        merged = dict(context or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__(message, context=merged, cause=cause)
        self.status_code = status_code


class RemoteNotFoundError(RemoteServiceError):
    """The requested remote object does not exist (or is not visible)."""


class RunFailedError(WRError):
    """Run-level failure (errored, policy soft-failed) after the retry budget ran out."""


class UnexpectedRunStatusError(WRError):
    """The run stopped in a status no phase classifies (canceled, discarded, ...)."""


class RunCancelledError(WRError):
    """A wait was aborted by the caller's cancellation signal or deadline."""


class ConfigurationError(WRError):
    """Failure due to invalid request or client configuration."""


def error_to_payload(error: WRError) -> dict[str, Any]:
    """Convert a WRError to a flat payload for CLI/JSON output."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_context": error.context,
    }
