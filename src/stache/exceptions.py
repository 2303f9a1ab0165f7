"""Stache exceptions."""

from enum import StrEnum
from pathlib import Path


class ErrorKind(StrEnum):
    """Classification of template failures."""

    PARSING = "parsing"
    RENDERING = "rendering"
    FUNCTION_CALL = "function_call"
    METHOD_INVOCATION = "method_invocation"


class StacheError(Exception):
    """Base exception for Stache errors."""


class ConfigError(StacheError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: object,
        expected: str,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: object = value
        self.expected: str = expected


class FunctionRegistrationError(StacheError, ValueError):
    """Raised when a template function cannot be registered."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name: str = name


# =============================================================================
# Template Exceptions
# =============================================================================


class TemplateError(StacheError):
    """Base exception for template parsing and rendering failures.

    Attributes:
        message: Human-readable description of the failure.
        kind: Which stage of the pipeline failed.
        position: Character offset into the template text, when known.
        line: 1-based line of ``position``, when known.
        column: 1-based column of ``position``, when known.
        context: Extra information about where the failure happened.
        cause: The exception that triggered this one, if any.
    """

    kind: ErrorKind = ErrorKind.RENDERING

    def __init__(
        self,
        message: str,
        *,
        position: int | None = None,
        line: int | None = None,
        column: int | None = None,
        context: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.message: str = message
        self.position: int | None = position
        self.line: int | None = line
        self.column: int | None = column
        self.context: str | None = context
        self.cause: BaseException | None = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.line is not None and self.column is not None:
            parts.append(
                f" at line {self.line}, column {self.column} (position {self.position})"
            )
        elif self.position is not None:
            parts.append(f" at position {self.position}")
        if self.context:
            parts.append(f"\nContext: {self.context}")
        if self.cause is not None:
            parts.append(f"\nCaused by: {self.cause!r}")
        return "".join(parts)


class TemplateSyntaxError(TemplateError):
    """Raised when template text cannot be parsed."""

    kind = ErrorKind.PARSING


class PartialNotFoundError(TemplateSyntaxError):
    """Raised when a partial cannot be located under its search root."""

    def __init__(self, message: str, *, name: str, search_root: Path) -> None:
        super().__init__(message, context=f"search root: {search_root}")
        self.name: str = name
        self.search_root: Path = search_root


class TemplateNotFoundError(TemplateSyntaxError):
    """Raised when a template file does not exist."""

    def __init__(self, message: str, *, name: str, path: Path) -> None:
        super().__init__(message)
        self.name: str = name
        self.path: Path = path


class TemplateRenderError(TemplateError):
    """Raised when a parsed template cannot be rendered."""

    kind = ErrorKind.RENDERING


class FunctionNotFoundError(TemplateRenderError):
    """Raised when a helper function is not registered."""

    def __init__(self, message: str, *, name: str, position: int | None = None) -> None:
        super().__init__(message, position=position)
        self.name: str = name


class AsyncCallInSyncRenderError(TemplateRenderError):
    """Raised when a synchronous render reaches an async-only callable."""

    def __init__(self, message: str, *, name: str, position: int | None = None) -> None:
        super().__init__(message, position=position)
        self.name: str = name


class FunctionCallError(TemplateError):
    """Raised when a helper function fails during a call."""

    kind = ErrorKind.FUNCTION_CALL

    def __init__(
        self,
        message: str,
        *,
        name: str,
        position: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, position=position, cause=cause)
        self.name: str = name


class MethodInvocationError(TemplateError):
    """Raised when a method call is blocked or fails.

    Attributes:
        member: The method name that was blocked or failed.
    """

    kind = ErrorKind.METHOD_INVOCATION

    def __init__(
        self,
        message: str,
        *,
        member: str,
        position: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, position=position, cause=cause)
        self.member: str = member
