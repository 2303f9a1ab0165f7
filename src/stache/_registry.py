"""Helper function registry.

This module provides the FunctionRegistry class, a name-to-callable table
with separate synchronous and asynchronous namespaces that share one key
space. Built-in helpers form a flagged subset that survives
:meth:`FunctionRegistry.clear_custom`.

Each template engine owns its own registry; there is no process-wide
instance.

Example:
    >>> from stache import FunctionRegistry
    >>> registry = FunctionRegistry()
    >>> registry.register("shout", lambda s: f"{s}!")
    >>> registry.call("shout", ["hey"])
    'hey!'
"""

import inspect
import re
import threading
from collections.abc import Callable, Sequence

from structlog.typing import FilteringBoundLogger

from stache.exceptions import (
    FunctionCallError,
    FunctionNotFoundError,
    FunctionRegistrationError,
)

from ._logging import null_logger

_NAME_PATTERN = re.compile(r"[A-Za-z_]\w*")

type HelperFunction = Callable[..., object]


class FunctionRegistry:
    """Thread-safe table of template helper functions.

    Lookups read plain dictionaries and are safe during concurrent renders.
    Every mutation holds the instance lock, and validation happens before any
    state changes, so a rejected registration leaves the registry untouched.
    """

    __slots__ = ("_async", "_builtins", "_lock", "_logger", "_sync")

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._sync: dict[str, HelperFunction] = {}
        self._async: dict[str, HelperFunction] = {}
        self._builtins: set[str] = set()
        self._lock: threading.Lock = threading.Lock()
        self._logger: FilteringBoundLogger = logger or null_logger()

    def _validate(self, name: str, fn: object) -> None:
        if not isinstance(name, str) or not _NAME_PATTERN.fullmatch(name):
            msg = f"Invalid function name: {name!r} (expected an identifier)"
            raise FunctionRegistrationError(msg, name=str(name))
        if not callable(fn):
            msg = f"Function {name!r} must be callable, got {type(fn).__name__}"
            raise FunctionRegistrationError(msg, name=name)
        if name in self._sync or name in self._async:
            msg = f"Function already registered: {name!r}"
            raise FunctionRegistrationError(msg, name=name)

    def register(self, name: str, fn: HelperFunction) -> None:
        """Register a synchronous helper.

        Args:
            name: Template-facing name, an identifier.
            fn: The callable invoked with positional arguments.

        Raises:
            FunctionRegistrationError: If the name is invalid or already
                registered in either namespace, or ``fn`` is a coroutine
                function.
        """
        if inspect.iscoroutinefunction(fn):
            msg = f"Function {name!r} is a coroutine function; use register_async"
            raise FunctionRegistrationError(msg, name=name)
        with self._lock:
            self._validate(name, fn)
            self._sync[name] = fn
        self._logger.debug("function_registered", name=name, mode="sync")

    def register_async(self, name: str, fn: HelperFunction) -> None:
        """Register an asynchronous helper.

        ``fn`` is a coroutine function or another callable whose result is
        awaitable.

        Raises:
            FunctionRegistrationError: If the name is invalid or already
                registered in either namespace.
        """
        with self._lock:
            self._validate(name, fn)
            self._async[name] = fn
        self._logger.debug("function_registered", name=name, mode="async")

    def register_builtin(self, name: str, fn: HelperFunction) -> None:
        """Register a synchronous helper and flag it as built-in."""
        with self._lock:
            self._validate(name, fn)
            self._sync[name] = fn
            self._builtins.add(name)

    def unregister(self, name: str) -> bool:
        """Remove a helper from whichever namespace holds it.

        Returns:
            True if a helper was removed, False if the name was unknown.
        """
        with self._lock:
            removed = (
                self._sync.pop(name, None) is not None
                or self._async.pop(name, None) is not None
            )
            self._builtins.discard(name)
        if removed:
            self._logger.debug("function_unregistered", name=name)
        return removed

    def clear_custom(self) -> None:
        """Remove every helper that is not built-in."""
        with self._lock:
            for name in [n for n in self._sync if n not in self._builtins]:
                del self._sync[name]
            self._async.clear()

    def has_function(self, name: str) -> bool:
        """Check whether a synchronous helper is registered."""
        return name in self._sync

    def has_async_function(self, name: str) -> bool:
        """Check whether an asynchronous helper is registered."""
        return name in self._async

    def is_builtin(self, name: str) -> bool:
        return name in self._builtins

    def sync_names(self) -> list[str]:
        return list(self._sync)

    def async_names(self) -> list[str]:
        return list(self._async)

    def names(self) -> list[str]:
        """Get all helper names, synchronous first."""
        return [*self._sync, *self._async]

    def __len__(self) -> int:
        return len(self._sync) + len(self._async)

    def __contains__(self, name: object) -> bool:
        return name in self._sync or name in self._async

    def call(
        self,
        name: str,
        args: Sequence[object],
        *,
        position: int | None = None,
    ) -> object:
        """Invoke a synchronous helper.

        Raises:
            FunctionNotFoundError: If no synchronous helper has this name.
            FunctionCallError: If the helper raises.
        """
        fn = self._sync.get(name)
        if fn is None:
            msg = f"Function not found: {name!r}"
            raise FunctionNotFoundError(msg, name=name, position=position)
        try:
            return fn(*args)
        except Exception as e:
            msg = f"Function {name!r} failed: {e}"
            raise FunctionCallError(msg, name=name, position=position, cause=e) from e

    async def call_async(
        self,
        name: str,
        args: Sequence[object],
        *,
        position: int | None = None,
    ) -> object:
        """Invoke an asynchronous helper and await its result.

        Raises:
            FunctionNotFoundError: If no asynchronous helper has this name.
            FunctionCallError: If the helper raises.
        """
        fn = self._async.get(name)
        if fn is None:
            msg = f"Async function not found: {name!r}"
            raise FunctionNotFoundError(msg, name=name, position=position)
        try:
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            msg = f"Function {name!r} failed: {e}"
            raise FunctionCallError(msg, name=name, position=position, cause=e) from e
        return result
