"""Stache template engine.

This module provides the public API for compiling and rendering templates
with variables, sections, helper and method calls, partials and comments.

Example:
    >>> from stache import TemplateEngine
    >>> engine = TemplateEngine()
    >>> engine.render(
    ...     "{{#items}}<li>{{@uppercase(.)}}</li>{{/items}}",
    ...     {"items": ["a", "b"]},
    ... )
    '<li>A</li><li>B</li>'
"""

# Re-export exceptions from main exceptions module
from stache.exceptions import (
    AsyncCallInSyncRenderError,
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
    ErrorKind,
    FunctionCallError,
    FunctionNotFoundError,
    FunctionRegistrationError,
    MethodInvocationError,
    PartialNotFoundError,
    StacheError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateSyntaxError,
)

# Configuration
from ._config import EngineConfig, LogFormat, LogLevel, load_engine_config

# Context model
from ._context import CapabilityProvider, CapabilitySet, Scope, ValueKind, classify

# Engine
from ._engine import Template, TemplateEngine

# Helpers
from ._helpers import BUILTIN_HELPERS, register_builtin_helpers

# Logging
from ._logging import close_log_files, create_engine_logger

# Node tree
from ._nodes import (
    Comment,
    FunctionCall,
    Literal,
    MethodCall,
    NestedCall,
    Partial,
    Section,
    Text,
    Variable,
    VariablePath,
)
from ._parser import Parser, parse_template

# Partials
from ._partials import PartialCacheStats, PartialLoader

# Registry and renderer
from ._registry import FunctionRegistry
from ._renderer import Renderer

__all__ = [
    "BUILTIN_HELPERS",
    "AsyncCallInSyncRenderError",
    "CapabilityProvider",
    "CapabilitySet",
    "Comment",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "EngineConfig",
    "ErrorKind",
    "FunctionCall",
    "FunctionCallError",
    "FunctionNotFoundError",
    "FunctionRegistrationError",
    "FunctionRegistry",
    "Literal",
    "LogFormat",
    "LogLevel",
    "MethodCall",
    "MethodInvocationError",
    "NestedCall",
    "Parser",
    "Partial",
    "PartialCacheStats",
    "PartialLoader",
    "PartialNotFoundError",
    "Renderer",
    "Scope",
    "Section",
    "StacheError",
    "Template",
    "TemplateEngine",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateSyntaxError",
    "Text",
    "ValueKind",
    "Variable",
    "VariablePath",
    "classify",
    "close_log_files",
    "create_engine_logger",
    "load_engine_config",
    "parse_template",
    "register_builtin_helpers",
]
