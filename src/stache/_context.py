"""Render scope and context value model.

Context values are classified into a closed set of kinds so that lookup,
truthiness and emptiness are decided the same way everywhere. Objects only
expose members to templates through an explicit :class:`CapabilitySet`.
"""

import inspect
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence, Set
from dataclasses import dataclass, field
from enum import StrEnum
from functools import partial
from types import MappingProxyType
from typing import Final, Protocol, runtime_checkable

from pydantic import BaseModel

from stache.exceptions import MethodInvocationError

from ._nodes import CURRENT_ITEM, KeyPath

MISSING: Final = object()
"""Sentinel returned by lookups that found nothing."""

_EMPTY: Mapping[str, object] = MappingProxyType({})


class ValueKind(StrEnum):
    """Closed classification of context values."""

    NONE = "none"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    CAPABLE = "capable"


@dataclass(frozen=True, slots=True)
class CapabilitySet:
    """Explicit allow-list of members a context object exposes to templates.

    Handles are bound once, when the set is built. The engine consults only
    this set; nothing outside it can be invoked or read, however the
    underlying object is implemented.

    Attributes:
        methods: Invocable members, by template-facing name.
        properties: Zero-argument readers for dotted-path access.
    """

    methods: Mapping[str, Callable[..., object]] = field(default_factory=lambda: _EMPTY)
    properties: Mapping[str, Callable[[], object]] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def bind(
        cls,
        obj: object,
        *,
        methods: Iterable[str] = (),
        properties: Iterable[str] = (),
    ) -> "CapabilitySet":
        """Build a capability set from named members of ``obj``.

        Args:
            obj: The object whose members are exposed.
            methods: Names of callable members templates may invoke.
            properties: Names of attributes templates may read.

        Returns:
            A frozen capability set with handles bound to ``obj``.

        Raises:
            ValueError: If a method is missing or not callable, or a property
                does not exist.
        """
        bound_methods: dict[str, Callable[..., object]] = {}
        for name in methods:
            handle: object = getattr(obj, name, None)
            if handle is None or not callable(handle):
                msg = f"{type(obj).__name__} has no callable member {name!r}"
                raise ValueError(msg)
            bound_methods[name] = handle

        bound_properties: dict[str, Callable[[], object]] = {}
        for name in properties:
            try:
                _ = inspect.getattr_static(obj, name)
            except AttributeError:
                msg = f"{type(obj).__name__} has no attribute {name!r}"
                raise ValueError(msg) from None
            bound_properties[name] = partial(getattr, obj, name)

        return cls(
            methods=MappingProxyType(bound_methods),
            properties=MappingProxyType(bound_properties),
        )

    def method(self, name: str) -> Callable[..., object] | None:
        """Get an allowed method handle, or None if ``name`` is not allowed."""
        return self.methods.get(name)

    def read(self, name: str) -> object:
        """Read an allowed property, or return MISSING if not allowed."""
        reader = self.properties.get(name)
        if reader is None:
            return MISSING
        try:
            return reader()
        except Exception as e:
            msg = f"Reading property {name!r} failed: {e}"
            raise MethodInvocationError(msg, member=name, cause=e) from e


@runtime_checkable
class CapabilityProvider(Protocol):
    """Context object that declares the members templates may use."""

    def template_capabilities(self) -> CapabilitySet:
        """Return the object's capability set."""
        ...


def classify(value: object) -> ValueKind:
    """Classify a context value into its closed kind."""
    if value is None:
        return ValueKind.NONE
    if isinstance(value, str | bytes):
        return ValueKind.SCALAR
    if isinstance(value, CapabilityProvider):
        return ValueKind.CAPABLE
    if isinstance(value, Mapping | BaseModel):
        return ValueKind.MAPPING
    if isinstance(value, Sequence | Set):
        return ValueKind.SEQUENCE
    return ValueKind.SCALAR


def is_empty(value: object) -> bool:
    """Check whether a value counts as empty.

    Empty means None, a zero-length string, or a zero-length sequence or
    mapping. Booleans and numbers are never empty.
    """
    kind = classify(value)
    if kind is ValueKind.NONE:
        return True
    if isinstance(value, str | bytes):
        return len(value) == 0
    if kind is ValueKind.SEQUENCE and isinstance(value, Sequence | Set):
        return len(value) == 0
    if kind is ValueKind.MAPPING and isinstance(value, Mapping):
        return len(value) == 0
    return False


def is_truthy(value: object) -> bool:
    """Decide whether a section over ``value`` renders its body."""
    if isinstance(value, bool):
        return value
    return not is_empty(value)


def stringify(value: object) -> str:
    """Convert a resolved value to output text; None becomes empty."""
    if value is None:
        return ""
    return str(value)


def iterate(value: object) -> list[object]:
    """Materialize a sequence value's elements in order."""
    if isinstance(value, Sequence | Set) and not isinstance(value, str | bytes):
        return list(value)
    return [value]


def child(value: object, segment: str) -> object:
    """Look up one path segment inside ``value``.

    Returns:
        The member value, or MISSING when ``value`` has no such member.
    """
    kind = classify(value)
    if kind is ValueKind.MAPPING:
        if isinstance(value, BaseModel):
            if segment in type(value).model_fields:
                return getattr(value, segment)
            return MISSING
        if isinstance(value, Mapping) and segment in value:
            return value[segment]
        return MISSING
    if kind is ValueKind.SEQUENCE and isinstance(value, Sequence) and segment.isdigit():
        index = int(segment)
        return value[index] if index < len(value) else MISSING
    if kind is ValueKind.CAPABLE and isinstance(value, CapabilityProvider):
        return value.template_capabilities().read(segment)
    return MISSING


@dataclass(frozen=True, slots=True)
class Scope:
    """One frame of the resolution stack, linked to its parent.

    Scopes are immutable; entering a section creates child scopes and leaving
    it simply drops them, so concurrent renders never share per-render state.

    Attributes:
        values: Names visible in this frame.
        current: The value ``{{.}}`` refers to in this frame.
        parent: The enclosing frame, or None for the root.
    """

    values: object
    current: object
    parent: "Scope | None" = None

    @classmethod
    def root(cls, context: object) -> "Scope":
        """Create the root frame for a render."""
        return cls(values=context, current=context)

    def push(self, item: object) -> "Scope":
        """Enter a frame for one element of a sequence section.

        Mapping elements shadow the parent's names with their own fields.
        Other elements, capability providers included, add no names. Every
        element becomes the current item.
        """
        values = item if classify(item) is ValueKind.MAPPING else _EMPTY
        return Scope(values=values, current=item, parent=self)

    def frames(self) -> Iterator["Scope"]:
        """Iterate frames from innermost to outermost."""
        scope: Scope | None = self
        while scope is not None:
            yield scope
            scope = scope.parent

    @property
    def depth(self) -> int:
        return sum(1 for _ in self.frames())

    def resolve(self, path: KeyPath) -> object:
        """Resolve a dotted path with dynamic scoping.

        The first segment is searched from the innermost frame outwards,
        visiting every frame; remaining segments traverse into the value found.

        Returns:
            The resolved value, or MISSING if any segment is absent.
        """
        if path == (CURRENT_ITEM,):
            return self.current

        head, *rest = path
        value: object = MISSING
        for frame in self.frames():
            value = child(frame.values, head)
            if value is not MISSING:
                break
        if value is MISSING:
            return MISSING

        for segment in rest:
            value = child(value, segment)
            if value is MISSING:
                return MISSING
        return value
