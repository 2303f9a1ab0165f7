"""Template node tree.

Nodes are immutable once parsed. A compiled template is a tuple of top-level
nodes; sections carry their own body tuples, forming a tree.
"""

from dataclasses import dataclass

CURRENT_ITEM = "."

type KeyPath = tuple[str, ...]


def dotted(path: KeyPath) -> str:
    """Join a path back into its template spelling."""
    if path == (CURRENT_ITEM,):
        return CURRENT_ITEM
    return ".".join(path)


@dataclass(frozen=True, slots=True)
class Text:
    """Literal text emitted verbatim."""

    text: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class Variable:
    """Interpolation of a context value.

    Attributes:
        path: Dotted lookup path, or ``(".",)`` for the current item.
        escape: Whether the stringified value is HTML-escaped.
        position: Offset of the opening delimiter.
    """

    path: KeyPath
    escape: bool = True
    position: int = 0


@dataclass(frozen=True, slots=True)
class Section:
    """Conditional or repeated body, gated on a context value.

    Attributes:
        path: Dotted lookup path of the gating value.
        negated: True for inverted sections (``{{^path}}``).
        body: Child nodes rendered when the gate passes.
        position: Offset of the opening tag.
    """

    path: KeyPath
    negated: bool = False
    body: "tuple[Node, ...]" = ()
    position: int = 0

    @property
    def name(self) -> str:
        return dotted(self.path)


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """Call of a registered helper, ``{{@name(args)}}``."""

    name: str
    args: "tuple[Arg, ...]" = ()
    position: int = 0

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class MethodCall:
    """Call of a capability-set method, ``{{receiver.method(args)}}``."""

    receiver: KeyPath
    method: str
    args: "tuple[Arg, ...]" = ()
    position: int = 0

    @property
    def display_name(self) -> str:
        return f"{dotted(self.receiver)}.{self.method}"


@dataclass(frozen=True, slots=True)
class Partial:
    """Inclusion of a named partial template."""

    name: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class Comment:
    """Template comment; renders nothing."""

    text: str = ""
    position: int = 0


@dataclass(frozen=True, slots=True)
class Literal:
    """Literal call argument."""

    value: str | int | float | bool


@dataclass(frozen=True, slots=True)
class VariablePath:
    """Call argument resolved against the context."""

    path: KeyPath


@dataclass(frozen=True, slots=True)
class NestedCall:
    """Call argument evaluated by a nested call before the outer one."""

    call: FunctionCall | MethodCall


type Call = FunctionCall | MethodCall
type Arg = Literal | VariablePath | NestedCall
type Node = Text | Variable | Section | FunctionCall | MethodCall | Partial | Comment


def walk(nodes: tuple[Node, ...]) -> list[Node]:
    """Flatten a node tree depth-first, sections before their bodies."""
    result: list[Node] = []
    for node in nodes:
        result.append(node)
        if isinstance(node, Section):
            result.extend(walk(node.body))
    return result
