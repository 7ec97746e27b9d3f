"""
Structured error types for interlock.

Manifesto:
    - **Typed Error Hierarchy:** configuration, connection and backend
      failures are different problems with different owners
    - **Explicit Retry Semantics:** each error knows if it is retryable
    - **Rich Context:** errors carry the job, vendor and lease key
    - **Error Chaining:** the native driver exception is kept as ``cause``

A denied lock is NOT an error. ``LockProvider.acquire`` returns ``False``
when another replica holds the lease; only genuine faults raise.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     InterlockError                           │
        │  (category, retryable, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigError           BackendConnectionError   BackendError │
        │  (CONFIG)              (CONNECTION)             (BACKEND)    │
        │       │                                                      │
        │  MissingConfigError                                          │
        │  InvalidConfigError                                          │
        └─────────────────────────────────────────────────────────────┘

    Propagation policy in the scheduler:

        ConfigError             -> fatal before the loop starts
        BackendConnectionError  -> fatal at setup
        BackendError on acquire -> fatal, the scheduler terminates
        BackendError on release -> logged and ignored

Examples:
    Wrapping a driver error:

    >>> try:
    ...     raise OSError("connection reset")
    ... except OSError as e:
    ...     error = BackendError("acquire failed", cause=e).with_context(key="Interlock_job")
    >>> error.context.key
    'Interlock_job'
    >>> error.retryable
    False

Tags:
    error-handling, exception-hierarchy, interlock

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"            # Missing or invalid job/backend settings
    CONNECTION = "CONNECTION"    # Backend unreachable at setup
    BACKEND = "BACKEND"          # I/O or protocol failure during acquire/release
    INTERNAL = "INTERNAL"        # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        job: Name of the interval job
        vendor: Lock vendor the job was configured with
        key: Lease key being acquired or released
        metadata: Additional key-value pairs
    """

    job: str | None = None
    vendor: str | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job", "vendor", "key"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class InterlockError(Exception):
    """
    Base exception for all interlock errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely need to pass them explicitly.

    Examples:
        >>> error = InterlockError("boom", category=ErrorCategory.BACKEND)
        >>> error.to_dict()["category"]
        'BACKEND'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> InterlockError:
        """
        Add context to this error (fluent API).

        Usage:
            raise BackendError("Failed").with_context(vendor="redis", key=key)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (Never Retryable)
# =============================================================================


class ConfigError(InterlockError):
    """Missing interval, missing action, or missing name under a distributed vendor."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """A required setting is absent."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """A setting is present but has an unusable value."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# BACKEND ERRORS
# =============================================================================


class BackendConnectionError(InterlockError):
    """Lock backend unreachable or mis-configured at setup time."""

    default_category = ErrorCategory.CONNECTION
    default_retryable = True


class BackendError(InterlockError):
    """I/O or protocol failure during acquire/release.

    Distinct from a denied lock, which is a normal ``False`` result.
    """

    default_category = ErrorCategory.BACKEND
    default_retryable = False


def is_retryable(error: Exception) -> bool:
    """Check whether an error may succeed if attempted again."""
    if isinstance(error, InterlockError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "InterlockError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "BackendConnectionError",
    "BackendError",
    "is_retryable",
]
