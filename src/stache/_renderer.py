"""Template tree evaluation.

The Renderer walks a parsed node tree against a context, either
synchronously or asynchronously. Both modes evaluate in the same
left-to-right, depth-first order and produce identical output for templates
that only use synchronous callees.

Output is accumulated in a buffer and joined only once the whole tree has
rendered, so a failed render never yields partial output.
"""

import inspect
from collections.abc import Callable, Mapping
from pathlib import Path

from markupsafe import escape
from structlog.typing import FilteringBoundLogger

from stache.exceptions import (
    AsyncCallInSyncRenderError,
    FunctionCallError,
    FunctionNotFoundError,
    MethodInvocationError,
    TemplateError,
    TemplateRenderError,
)

from ._context import (
    MISSING,
    CapabilityProvider,
    Scope,
    ValueKind,
    classify,
    is_truthy,
    iterate,
    stringify,
)
from ._logging import null_logger
from ._nodes import (
    Arg,
    Comment,
    FunctionCall,
    Literal,
    MethodCall,
    Node,
    Partial,
    Section,
    Text,
    Variable,
    VariablePath,
    dotted,
)
from ._parser import parse_template
from ._partials import PartialLoader
from ._registry import FunctionRegistry

DEFAULT_MAX_PARTIAL_DEPTH = 32
WILDCARD_FALLBACK = "*"


class Renderer:
    """Evaluate node trees against a context.

    A renderer holds no per-render state; one instance serves any number of
    concurrent renders.

    Attributes:
        registry: Helper functions available to ``{{@name(...)}}`` calls.
        partial_loader: Source of partial templates, or None when partials
            are unavailable.
        fallbacks: Values substituted for failing calls in async renders.
    """

    __slots__ = (
        "_escape_html",
        "_logger",
        "_max_partial_depth",
        "fallbacks",
        "partial_loader",
        "registry",
    )

    def __init__(
        self,
        registry: FunctionRegistry,
        *,
        partial_loader: PartialLoader | None = None,
        fallbacks: Mapping[str, object] | None = None,
        logger: FilteringBoundLogger | None = None,
        escape_html: bool = True,
        max_partial_depth: int = DEFAULT_MAX_PARTIAL_DEPTH,
    ) -> None:
        self.registry: FunctionRegistry = registry
        self.partial_loader: PartialLoader | None = partial_loader
        self.fallbacks: dict[str, object] = dict(fallbacks or {})
        self._logger: FilteringBoundLogger = logger or null_logger()
        self._escape_html: bool = escape_html
        self._max_partial_depth: int = max_partial_depth

    # -------------------------------------------------------------------------
    # Shared evaluation steps
    # -------------------------------------------------------------------------

    def _interpolate(self, node: Variable, scope: Scope) -> str:
        value = scope.resolve(node.path)
        if value is MISSING or value is None:
            return ""
        text = stringify(value)
        if node.escape and self._escape_html:
            # Escape the plain text so __html__ cannot opt out
            return str(escape(text))
        return text

    def _section_scopes(self, node: Section, scope: Scope) -> list[Scope]:
        """Get the scopes a section's body renders in, one per repetition."""
        value = scope.resolve(node.path)
        truthy = value is not MISSING and is_truthy(value)
        if node.negated:
            return [] if truthy else [scope]
        if not truthy:
            return []
        if classify(value) is ValueKind.SEQUENCE:
            return [scope.push(item) for item in iterate(value)]
        return [scope]

    def _partial_nodes(
        self, node: Partial, directory: Path | None, depth: int
    ) -> tuple[Node, ...]:
        loader = self.partial_loader
        if loader is None:
            msg = f"Cannot include partial {node.name!r}: no base directory configured"
            raise TemplateRenderError(msg, position=node.position)
        if depth >= self._max_partial_depth:
            msg = (
                f"Partial {node.name!r} exceeds the maximum inclusion depth "
                f"of {self._max_partial_depth}"
            )
            raise TemplateRenderError(msg, position=node.position)
        text = loader.load(node.name, directory or loader.base_directory)
        return parse_template(text)

    def _method_handle(self, call: MethodCall, scope: Scope) -> Callable[..., object]:
        """Find the capability-set handle for a method call.

        Raises:
            MethodInvocationError: If the receiver is missing, declares no
                capabilities, or does not allow the method.
        """
        receiver = scope.resolve(call.receiver)
        if receiver is MISSING or receiver is None:
            msg = (
                f"Cannot call {call.display_name!r}: "
                f"receiver {dotted(call.receiver)!r} is missing"
            )
            raise MethodInvocationError(msg, member=call.method, position=call.position)
        if not isinstance(receiver, CapabilityProvider):
            msg = (
                f"Method {call.method!r} is not exposed: "
                f"{type(receiver).__name__} declares no template capabilities"
            )
            raise MethodInvocationError(msg, member=call.method, position=call.position)
        handle = receiver.template_capabilities().method(call.method)
        if handle is None:
            msg = (
                f"Method {call.method!r} is not in the capability set of "
                f"{type(receiver).__name__}"
            )
            raise MethodInvocationError(msg, member=call.method, position=call.position)
        return handle

    def _fallback(self, call: FunctionCall | MethodCall, error: TemplateError) -> object:
        """Find the configured substitute for a failed call, or MISSING."""
        keys = [call.display_name]
        if isinstance(call, MethodCall):
            keys.append(call.method)
        keys.append(WILDCARD_FALLBACK)
        for key in keys:
            if key in self.fallbacks:
                self._logger.warning(
                    "fallback_applied",
                    call=call.display_name,
                    fallback_key=key,
                    error=error.message,
                )
                return self.fallbacks[key]
        return MISSING

    # -------------------------------------------------------------------------
    # Synchronous rendering
    # -------------------------------------------------------------------------

    def render(
        self,
        nodes: tuple[Node, ...],
        context: Mapping[str, object] | object,
        directory: Path | None = None,
    ) -> str:
        """Render a node tree synchronously.

        Args:
            nodes: Parsed template.
            context: Root mapping or pydantic model.
            directory: Partial search root; defaults to the loader's base.

        Returns:
            The rendered text.

        Raises:
            TemplateError: If any node fails to render.
        """
        out: list[str] = []
        self._render_nodes(nodes, Scope.root(context), directory, 0, out)
        return "".join(out)

    def _render_nodes(
        self,
        nodes: tuple[Node, ...],
        scope: Scope,
        directory: Path | None,
        depth: int,
        out: list[str],
    ) -> None:
        for node in nodes:
            if isinstance(node, Text):
                out.append(node.text)
            elif isinstance(node, Variable):
                out.append(self._interpolate(node, scope))
            elif isinstance(node, Section):
                for inner in self._section_scopes(node, scope):
                    self._render_nodes(node.body, inner, directory, depth, out)
            elif isinstance(node, FunctionCall | MethodCall):
                out.append(stringify(self._call(node, scope)))
            elif isinstance(node, Partial):
                partial = self._partial_nodes(node, directory, depth)
                self._render_nodes(partial, scope, directory, depth + 1, out)
            elif not isinstance(node, Comment):
                msg = f"Unknown node type: {type(node).__name__}"
                raise TemplateRenderError(msg)

    def _arguments(self, args: tuple[Arg, ...], scope: Scope) -> list[object]:
        values: list[object] = []
        for arg in args:
            if isinstance(arg, Literal):
                values.append(arg.value)
            elif isinstance(arg, VariablePath):
                value = scope.resolve(arg.path)
                values.append(None if value is MISSING else value)
            else:
                values.append(self._call(arg.call, scope))
        return values

    def _call(self, call: FunctionCall | MethodCall, scope: Scope) -> object:
        if isinstance(call, FunctionCall):
            return self._call_function(call, scope)
        return self._call_method(call, scope)

    def _call_function(self, call: FunctionCall, scope: Scope) -> object:
        name = call.name
        if not self.registry.has_function(name):
            if self.registry.has_async_function(name):
                msg = f"Function {name!r} is async-only; use render_async"
                raise AsyncCallInSyncRenderError(msg, name=name, position=call.position)
            msg = f"Function not found: {name!r}"
            raise FunctionNotFoundError(msg, name=name, position=call.position)
        args = self._arguments(call.args, scope)
        result = self.registry.call(name, args, position=call.position)
        return _reject_awaitable(result, call)

    def _call_method(self, call: MethodCall, scope: Scope) -> object:
        handle = self._method_handle(call, scope)
        if inspect.iscoroutinefunction(handle):
            msg = f"Method {call.display_name!r} is async; use render_async"
            raise AsyncCallInSyncRenderError(
                msg, name=call.display_name, position=call.position
            )
        args = self._arguments(call.args, scope)
        try:
            result = handle(*args)
        except Exception as e:
            msg = f"Method {call.display_name!r} failed: {e}"
            raise MethodInvocationError(
                msg, member=call.method, position=call.position, cause=e
            ) from e
        return _reject_awaitable(result, call)

    # -------------------------------------------------------------------------
    # Asynchronous rendering
    # -------------------------------------------------------------------------

    async def render_async(
        self,
        nodes: tuple[Node, ...],
        context: Mapping[str, object] | object,
        directory: Path | None = None,
    ) -> str:
        """Render a node tree, awaiting async callees in place.

        Failing calls are replaced by configured fallbacks where one exists.
        Unknown helpers and capability violations are never replaced.

        Raises:
            TemplateError: If any node fails to render and no fallback covers
                it.
        """
        out: list[str] = []
        scope = Scope.root(context)
        await self._render_nodes_async(nodes, scope, directory, 0, out)
        return "".join(out)

    async def _render_nodes_async(
        self,
        nodes: tuple[Node, ...],
        scope: Scope,
        directory: Path | None,
        depth: int,
        out: list[str],
    ) -> None:
        for node in nodes:
            if isinstance(node, Text):
                out.append(node.text)
            elif isinstance(node, Variable):
                out.append(self._interpolate(node, scope))
            elif isinstance(node, Section):
                for inner in self._section_scopes(node, scope):
                    await self._render_nodes_async(node.body, inner, directory, depth, out)
            elif isinstance(node, FunctionCall | MethodCall):
                out.append(stringify(await self._call_async(node, scope)))
            elif isinstance(node, Partial):
                partial = self._partial_nodes(node, directory, depth)
                await self._render_nodes_async(partial, scope, directory, depth + 1, out)
            elif not isinstance(node, Comment):
                msg = f"Unknown node type: {type(node).__name__}"
                raise TemplateRenderError(msg)

    async def _arguments_async(self, args: tuple[Arg, ...], scope: Scope) -> list[object]:
        values: list[object] = []
        for arg in args:
            if isinstance(arg, Literal):
                values.append(arg.value)
            elif isinstance(arg, VariablePath):
                value = scope.resolve(arg.path)
                values.append(None if value is MISSING else value)
            else:
                values.append(await self._call_async(arg.call, scope))
        return values

    async def _call_async(self, call: FunctionCall | MethodCall, scope: Scope) -> object:
        if isinstance(call, FunctionCall):
            return await self._call_function_async(call, scope)
        return await self._call_method_async(call, scope)

    async def _call_function_async(self, call: FunctionCall, scope: Scope) -> object:
        name = call.name
        is_async = self.registry.has_async_function(name)
        if not is_async and not self.registry.has_function(name):
            msg = f"Function not found: {name!r}"
            raise FunctionNotFoundError(msg, name=name, position=call.position)
        args = await self._arguments_async(call.args, scope)
        try:
            if is_async:
                return await self.registry.call_async(name, args, position=call.position)
            result = self.registry.call(name, args, position=call.position)
            if inspect.isawaitable(result):
                try:
                    result = await result
                except Exception as e:
                    msg = f"Function {name!r} failed: {e}"
                    raise FunctionCallError(
                        msg, name=name, position=call.position, cause=e
                    ) from e
        except FunctionCallError as e:
            value = self._fallback(call, e)
            if value is MISSING:
                raise
            return value
        return result

    async def _call_method_async(self, call: MethodCall, scope: Scope) -> object:
        handle = self._method_handle(call, scope)
        args = await self._arguments_async(call.args, scope)
        try:
            result = handle(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            msg = f"Method {call.display_name!r} failed: {e}"
            error = MethodInvocationError(
                msg, member=call.method, position=call.position, cause=e
            )
            value = self._fallback(call, error)
            if value is MISSING:
                raise error from e
            return value
        return result


def _reject_awaitable(result: object, call: FunctionCall | MethodCall) -> object:
    """Fail a synchronous render that received an awaitable result."""
    if not inspect.isawaitable(result):
        return result
    if inspect.iscoroutine(result):
        result.close()
    msg = f"Call {call.display_name!r} returned an awaitable; use render_async"
    raise AsyncCallInSyncRenderError(msg, name=call.display_name, position=call.position)
