"""Template engine facade.

This module provides the TemplateEngine class, which ties the parser,
renderer, helper registry and partial loader together behind one object.

Example:
    >>> from stache import TemplateEngine
    >>> engine = TemplateEngine()
    >>> engine.render("Hello {{name}}!", {"name": "<World>"})
    'Hello &lt;World&gt;!'
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel
from structlog.typing import FilteringBoundLogger

from stache.exceptions import TemplateNotFoundError, TemplateSyntaxError

from ._config import EngineConfig
from ._helpers import register_builtin_helpers
from ._logging import create_engine_logger
from ._nodes import Node
from ._parser import Parser
from ._partials import PartialCacheStats, PartialLoader
from ._registry import FunctionRegistry, HelperFunction
from ._renderer import Renderer


@dataclass(frozen=True, slots=True)
class Template:
    """A compiled template.

    Templates are immutable and may be cached and rendered any number of
    times, from any number of threads or tasks.

    Attributes:
        source: The template text.
        nodes: Parsed node tree.
        directory: Partial search root, or None to use the engine's base
            directory.
    """

    source: str
    nodes: tuple[Node, ...]
    directory: Path | None = None


class TemplateEngine:
    """Compile and render templates.

    Each engine owns its helper registry, pre-populated with the built-in
    helpers, and its partial cache.

    Example:
        >>> engine = TemplateEngine(Path("templates"))
        >>> engine.register_function("shout", lambda s: f"{s}!")
        >>> engine.render_file("users/show", {"user": {"name": "Ada"}})
    """

    __slots__ = ("_base", "_config", "_loader", "_logger", "_parser", "_registry", "_renderer")

    def __init__(
        self,
        base_directory: Path | str | None = None,
        *,
        fallbacks: Mapping[str, object] | None = None,
        config: EngineConfig | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            base_directory: Root directory for template files and partials.
                Overrides ``config.base_directory``.
            fallbacks: Substitute values for failing calls in async renders.
                Overrides ``config.fallbacks``.
            config: Engine configuration; defaults apply when omitted.
            logger: Logger for engine events; one is created from the
                configuration when omitted.

        Raises:
            ValueError: If the base directory does not exist.
        """
        config = config or EngineConfig()
        base = Path(base_directory) if base_directory is not None else config.base_directory
        if base is not None and not base.is_dir():
            msg = f"Base directory does not exist: {base}"
            raise ValueError(msg)

        if logger is None:
            # An unset level defers to STACHE_LOG_LEVEL.
            level = config.log_level.value if "log_level" in config.model_fields_set else None
            logger = create_engine_logger(
                level,
                log_format="json" if config.log_format == "json" else "text",
                log_file=config.log_file,
            )

        self._config: EngineConfig = config
        self._logger: FilteringBoundLogger = logger
        self._base: Path | None = base.resolve() if base is not None else None
        self._parser: Parser = Parser()
        self._registry: FunctionRegistry = FunctionRegistry(logger=logger)
        register_builtin_helpers(self._registry)
        self._loader: PartialLoader | None = (
            PartialLoader(self._base, suffix=config.template_suffix, logger=logger)
            if self._base is not None
            else None
        )
        self._renderer: Renderer = Renderer(
            self._registry,
            partial_loader=self._loader,
            fallbacks=fallbacks if fallbacks is not None else config.fallbacks,
            logger=logger,
            escape_html=config.escape_html,
            max_partial_depth=config.max_partial_depth,
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def base_directory(self) -> Path | None:
        return self._base

    @property
    def fallbacks(self) -> Mapping[str, object]:
        return MappingProxyType(self._renderer.fallbacks)

    # -------------------------------------------------------------------------
    # Compiling and rendering
    # -------------------------------------------------------------------------

    def compile(self, template: str, *, directory: Path | None = None) -> Template:
        """Parse template text into a reusable Template.

        Raises:
            TemplateSyntaxError: If the text cannot be parsed.
        """
        nodes = self._parser.parse(template)
        self._logger.debug("template_parsed", nodes=len(nodes), length=len(template))
        return Template(template, nodes, directory)

    def _as_template(self, template: str | Template) -> Template:
        if isinstance(template, Template):
            return template
        return self.compile(template)

    @staticmethod
    def _context(context: Mapping[str, object] | BaseModel | None) -> object:
        if context is None:
            return {}
        if not isinstance(context, Mapping | BaseModel):
            msg = f"Context must be a mapping or a pydantic model, got {type(context).__name__}"
            raise TypeError(msg)
        return context

    def render(
        self,
        template: str | Template,
        context: Mapping[str, object] | BaseModel | None = None,
    ) -> str:
        """Render a template synchronously.

        Raises:
            TemplateError: If parsing or rendering fails, including when an
                async-only helper or method is reached.
        """
        compiled = self._as_template(template)
        return self._renderer.render(
            compiled.nodes, self._context(context), compiled.directory
        )

    async def render_async(
        self,
        template: str | Template,
        context: Mapping[str, object] | BaseModel | None = None,
    ) -> str:
        """Render a template, awaiting async helpers and methods in place.

        Raises:
            TemplateError: If parsing or rendering fails and no fallback
                covers the failure.
        """
        compiled = self._as_template(template)
        return await self._renderer.render_async(
            compiled.nodes, self._context(context), compiled.directory
        )

    # -------------------------------------------------------------------------
    # Template files
    # -------------------------------------------------------------------------

    def _template_path(self, name: str) -> Path:
        if self._base is None:
            msg = f"Cannot load template {name!r}: no base directory configured"
            raise ValueError(msg)
        return self._base / f"{name}{self._config.template_suffix}"

    def template_exists(self, name: str) -> bool:
        """Check whether ``<base>/<name><suffix>`` exists inside the base."""
        if self._base is None:
            return False
        path = self._template_path(name)
        return path.is_file() and path.resolve().is_relative_to(self._base)

    def compile_file(self, name: str) -> Template:
        """Load and compile a template file.

        The file's directory becomes the partial search root.

        Raises:
            TemplateNotFoundError: If the file does not exist.
            TemplateSyntaxError: If the file cannot be read or parsed.
        """
        path = self._template_path(name)
        if not self.template_exists(name):
            msg = f"Template not found: {name}{self._config.template_suffix}"
            raise TemplateNotFoundError(msg, name=name, path=path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Failed to read template {name!r}: {e}"
            raise TemplateSyntaxError(msg, context=str(path), cause=e) from e
        return self.compile(text, directory=path.parent)

    def render_file(
        self,
        name: str,
        context: Mapping[str, object] | BaseModel | None = None,
    ) -> str:
        """Render ``<base>/<name><suffix>`` synchronously."""
        return self.render(self.compile_file(name), context)

    async def render_file_async(
        self,
        name: str,
        context: Mapping[str, object] | BaseModel | None = None,
    ) -> str:
        """Render ``<base>/<name><suffix>`` asynchronously."""
        return await self.render_async(self.compile_file(name), context)

    # -------------------------------------------------------------------------
    # Helper functions
    # -------------------------------------------------------------------------

    def register_function(self, name: str, fn: HelperFunction) -> None:
        """Register a synchronous helper. See FunctionRegistry.register."""
        self._registry.register(name, fn)

    def register_async_function(self, name: str, fn: HelperFunction) -> None:
        """Register an async helper. See FunctionRegistry.register_async."""
        self._registry.register_async(name, fn)

    def unregister_function(self, name: str) -> bool:
        return self._registry.unregister(name)

    def has_function(self, name: str) -> bool:
        """Check whether a helper is registered in either namespace."""
        return name in self._registry

    def has_async_function(self, name: str) -> bool:
        return self._registry.has_async_function(name)

    def clear_custom_functions(self) -> None:
        """Remove every helper except the built-ins."""
        self._registry.clear_custom()

    def get_registered_functions(self) -> list[str]:
        """Get helper names, synchronous first."""
        return self._registry.sync_names() + self._registry.async_names()

    # -------------------------------------------------------------------------
    # Partials
    # -------------------------------------------------------------------------

    def clear_partial_cache(self) -> None:
        if self._loader is not None:
            self._loader.clear_cache()

    def partial_cache_stats(self) -> PartialCacheStats:
        if self._loader is None:
            return PartialCacheStats(entries=0, hits=0, misses=0, reads=0)
        return self._loader.cache_stats()

    def list_partials(self, subdir: str = "") -> list[str]:
        """List partial names under ``<base>/<subdir>``.

        Returns an empty list when no base directory is configured.
        """
        if self._loader is None:
            return []
        return self._loader.list_partials(self._loader.base_directory / subdir)
