"""Engine configuration model and TOML loading."""

import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stache.exceptions import ConfigLoadError, ConfigValidationError

from ._partials import DEFAULT_TEMPLATE_SUFFIX
from ._renderer import DEFAULT_MAX_PARTIAL_DEPTH

CONFIG_TABLE = "stache"


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class EngineConfig(BaseModel):
    """Template engine configuration.

    Attributes:
        base_directory: Root directory for template files and partials.
        fallbacks: Substitute values for failing calls in async renders,
            keyed by call name, bare method name, or ``"*"``.
        template_suffix: Extension shared by templates and partials.
        escape_html: Whether ``{{var}}`` output is HTML-escaped.
        max_partial_depth: Maximum nesting of partial inclusions.
        log_level: Minimum level for engine log events.
        log_format: Output format of engine log events.
        log_file: File that receives engine logs; stderr when empty.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    base_directory: Path | None = Field(
        default=None, description="Root directory for templates and partials."
    )
    fallbacks: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict, description="Fallback values for failing calls."
    )
    template_suffix: str = Field(
        default=DEFAULT_TEMPLATE_SUFFIX,
        description="File extension of templates and partials.",
    )
    escape_html: bool = Field(default=True, description="HTML-escape variables.")
    max_partial_depth: int = Field(
        default=DEFAULT_MAX_PARTIAL_DEPTH,
        ge=1,
        description="Maximum nesting of partial inclusions.",
    )
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.TEXT
    log_file: str = ""

    @field_validator("template_suffix")
    @classmethod
    def _suffix_starts_with_dot(cls, value: str) -> str:
        if not value.startswith(".") or len(value) < 2:  # noqa: PLR2004
            msg = f"template_suffix must start with '.', got {value!r}"
            raise ValueError(msg)
        return value


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=e.lineno,
            column=e.colno,
        ) from e


def load_engine_config(path: Path) -> EngineConfig:
    """Load engine configuration from a TOML file.

    Values are read from the ``[stache]`` table, or from the whole document
    when it has no such table. A relative ``base_directory`` is resolved
    against the file's directory.

    Args:
        path: Path to the TOML file.

    Returns:
        The validated configuration.

    Raises:
        ConfigLoadError: If the file is missing or is not valid TOML.
        ConfigValidationError: If a value fails validation.
    """
    try:
        document = read_toml_file(path)
    except FileNotFoundError as e:
        msg = f"Configuration file not found: {path}"
        raise ConfigLoadError(msg, path=path) from e

    raw = document.get(CONFIG_TABLE, document)
    if not isinstance(raw, dict):
        msg = f"[{CONFIG_TABLE}] must be a table"
        raise ConfigLoadError(msg, path=path)

    values = dict(raw)
    base = values.get("base_directory")
    if isinstance(base, str) and not Path(base).is_absolute():
        values["base_directory"] = str(path.parent / base)

    try:
        return EngineConfig.model_validate(values)
    except ValidationError as e:
        error = e.errors()[0]
        key = ".".join(str(part) for part in error.get("loc", ()))
        msg = f"Invalid configuration value for '{key}': {error.get('msg')}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=error.get("input"),
            expected=str(error.get("msg", "")),
        ) from e
