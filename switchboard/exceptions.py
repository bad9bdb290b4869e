"""Custom exception hierarchy for switchboard.

Classifies the failures the loader, registrar and dispatcher can hit so
each one is contained at the smallest enclosing unit (one handler file,
one bulk registration call, one incoming event) and logged with enough
structured context to debug it.

Gate denials are deliberately absent: a denial is a normal outcome and
is modelled by ``switchboard.gate.Verdict``.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for logging and escalation."""
    TRANSIENT = "transient"          # Network hiccup, may work next time
    PERMANENT = "permanent"          # Bad handler module, bad input
    INFRASTRUCTURE = "infrastructure"  # Missing token, unreadable directory


class SwitchboardError(Exception):
    """Base exception for all switchboard errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification.
        module: Originating module name (e.g. "loader").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error might succeed on a later attempt."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Loader exceptions
# ---------------------------------------------------------------------------

class LoadValidationError(SwitchboardError):
    """A discovered handler module does not expose a valid descriptor.

    Attributes:
        path: File the descriptor was read from (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.path = path
        super().__init__(
            message, category=category, module=module or "loader", **context
        )


class LoadIOError(SwitchboardError):
    """A handler file or category directory could not be read or imported."""

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.path = path
        super().__init__(
            message, category=category, module=module or "loader", **context
        )


class FatalLoaderError(SwitchboardError):
    """Unexpected failure in the loader's top-level orchestration."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "loader", **context
        )


class RegistrationError(SwitchboardError):
    """The bulk slash-command registration call failed.

    The local registry is left intact; only the remote side is stale.
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(
            message, category=category, module=module or "registrar", **context
        )


# ---------------------------------------------------------------------------
# Dispatch exceptions
# ---------------------------------------------------------------------------

class HandlerExecutionError(SwitchboardError):
    """A command handler raised while running.

    Attributes:
        command: Name of the command that failed.
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        super().__init__(
            message, category=category, module=module or "dispatch", **context
        )


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(SwitchboardError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )
