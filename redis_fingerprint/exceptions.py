"""
Custom Exception Hierarchy for Redis Fingerprint

This module provides the exception hierarchy used across the fingerprinting
pipeline. Every failure carries a message, an error code, context and an
optional recovery suggestion so the CLI can report it in one line.
"""

import asyncio
from typing import Any, Dict, Optional

from redis.exceptions import TimeoutError as RedisTimeoutError


class FingerprintError(Exception):
    """
    Base exception class for all Redis Fingerprint related errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "recovery_suggestion": self.recovery_suggestion,
        }


class ConfigurationError(FingerprintError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self, message: str, config_section: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if config_section:
            context["config_section"] = config_section
        kwargs["context"] = context
        kwargs.setdefault("error_code", "CONFIG_INVALID")
        kwargs.setdefault(
            "recovery_suggestion", "Check command-line options and environment variables"
        )
        super().__init__(message, **kwargs)


# Store-related exceptions
class StoreError(FingerprintError):
    """Base class for key-value store errors."""

    pass


class StoreTransportError(StoreError):
    """Raised when a store round-trip fails (connection, protocol, server error)."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if key is not None:
            context["key"] = key
        if operation:
            context["operation"] = operation
        kwargs["context"] = context
        kwargs.setdefault("error_code", "STORE_TRANSPORT_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check the store address and that the server is reachable",
        )
        super().__init__(message, **kwargs)


class StoreTimeoutError(StoreError):
    """Raised when a fetch exceeds the configured operation timeout."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if key is not None:
            context["key"] = key
        if timeout:
            context["timeout"] = f"{timeout}s"
        kwargs["context"] = context
        kwargs.setdefault("error_code", "STORE_TIMEOUT")
        super().__init__(message, **kwargs)


class UnsupportedTypeError(StoreError):
    """
    Raised when the store reports a type outside string/list/set/hash/zset.

    This signals a store/client version mismatch and always aborts the run.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        type_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if key is not None:
            context["key"] = key
        if type_name:
            context["type"] = type_name
        kwargs["context"] = context
        kwargs.setdefault("error_code", "UNSUPPORTED_TYPE")
        kwargs.setdefault(
            "recovery_suggestion",
            "Fingerprints only cover string, list, set, hash and zset keys",
        )
        super().__init__(message, **kwargs)


class LogWriteError(FingerprintError):
    """Raised when the fingerprint log cannot be created or appended to."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if path:
            context["path"] = path
        kwargs["context"] = context
        kwargs.setdefault("error_code", "LOG_WRITE_FAILED")
        kwargs.setdefault(
            "recovery_suggestion", "Check disk space and permissions on the output path"
        )
        super().__init__(message, **kwargs)


class PipelineError(FingerprintError):
    """Raised when the pipeline is driven incorrectly."""

    def __init__(self, message: str, state: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if state:
            context["state"] = state
        kwargs["context"] = context
        kwargs.setdefault("error_code", "PIPELINE_ERROR")
        super().__init__(message, **kwargs)


def wrap_store_exception(
    exc: Exception,
    key: Optional[str] = None,
    operation: Optional[str] = None,
    timeout: Optional[float] = None,
) -> StoreError:
    """
    Wrap a client-library exception in our custom exception hierarchy.

    Args:
        exc: The original exception
        key: Key being processed when the failure happened, if any
        operation: Store command or phase that failed
        timeout: Configured deadline, reported for timeouts

    Returns:
        StoreError: Wrapped exception with enhanced context
    """
    if isinstance(exc, (asyncio.TimeoutError, RedisTimeoutError)):
        return StoreTimeoutError(
            f"Store operation timed out: {operation or 'fetch'}",
            key=key,
            timeout=timeout,
            cause=exc,
        )
    return StoreTransportError(
        f"Store operation failed: {exc}", key=key, operation=operation, cause=exc
    )
