"""Single-pass template parser.

Scans template text left to right, recognising ``{{ ... }}`` and
``{{{ ... }}}`` tags, and builds an immutable node tree. Open sections are
tracked on a stack; every close tag must name the innermost open section
exactly.

Known limitation: string literals in call arguments support no escape
sequences. The literal is every character between the matching quotes, and a
literal cannot contain its own quote character or the ``}}`` sequence.
"""

import re
from dataclasses import dataclass, field

from stache.exceptions import TemplateSyntaxError

from ._nodes import (
    CURRENT_ITEM,
    Arg,
    Comment,
    FunctionCall,
    KeyPath,
    Literal,
    MethodCall,
    NestedCall,
    Node,
    Partial,
    Section,
    Text,
    Variable,
    VariablePath,
)

OPEN = "{{"
CLOSE = "}}"
TRIPLE_OPEN = "{{{"
TRIPLE_CLOSE = "}}}"

_SEGMENT = r"[A-Za-z_][A-Za-z0-9_]*"
_DOTTED = re.compile(rf"{_SEGMENT}(?:\.(?:{_SEGMENT}|[0-9]+))*")
_PATH = re.compile(rf"\.|{_DOTTED.pattern}")
_IDENT = re.compile(_SEGMENT)
_NUMBER = re.compile(r"-?[0-9]+(?:\.[0-9]+)?(?![A-Za-z0-9_.])")
_BOOLEAN = re.compile(r"(?:true|false)(?![A-Za-z0-9_.(])")
_CURRENT = re.compile(r"\.(?![A-Za-z0-9_])")
_PARTIAL_NAME = re.compile(r"[A-Za-z0-9_\-.][A-Za-z0-9_\-./]*")


def _split_path(spelling: str) -> KeyPath:
    if spelling == CURRENT_ITEM:
        return (CURRENT_ITEM,)
    return tuple(spelling.split("."))


@dataclass(slots=True)
class _OpenSection:
    name: str
    negated: bool
    position: int
    body: list[Node] = field(default_factory=list)


class _Scanner:
    """Per-parse cursor state over one template text."""

    def __init__(self, text: str) -> None:
        self.text: str = text
        self.root: list[Node] = []
        self.stack: list[_OpenSection] = []

    def error(self, message: str, position: int) -> TemplateSyntaxError:
        line = self.text.count("\n", 0, position) + 1
        column = position - (self.text.rfind("\n", 0, position) + 1) + 1
        return TemplateSyntaxError(message, position=position, line=line, column=column)

    def run(self) -> tuple[Node, ...]:
        text = self.text
        pos = 0
        while pos < len(text):
            start = text.find(OPEN, pos)
            if start == -1:
                self.emit(Text(text[pos:], pos))
                break
            if start > pos:
                self.emit(Text(text[pos:start], pos))

            if text.startswith(TRIPLE_OPEN, start):
                end = text.find(TRIPLE_CLOSE, start + len(TRIPLE_OPEN))
                if end == -1:
                    msg = "Unclosed tag: missing '}}}'"
                    raise self.error(msg, start)
                self.expression(start + len(TRIPLE_OPEN), end, start, escape=False)
                pos = end + len(TRIPLE_CLOSE)
                continue

            end = text.find(CLOSE, start + len(OPEN))
            if end == -1:
                msg = "Unclosed tag: missing '}}'"
                raise self.error(msg, start)
            self.tag(start + len(OPEN), end, start)
            pos = end + len(CLOSE)

        if self.stack:
            innermost = self.stack[-1]
            names = ", ".join(repr(s.name) for s in self.stack)
            msg = f"Unclosed section {innermost.name!r} (open sections: {names})"
            raise self.error(msg, innermost.position)
        return tuple(self.root)

    def emit(self, node: Node) -> None:
        if self.stack:
            self.stack[-1].body.append(node)
        else:
            self.root.append(node)

    def tag(self, start: int, end: int, tag_pos: int) -> None:
        """Dispatch a ``{{ ... }}`` tag by its leading sigil."""
        inner = self.text[start:end]
        stripped = inner.strip()
        if not stripped:
            msg = "Empty tag"
            raise self.error(msg, tag_pos)

        sigil = stripped[0]
        body = stripped[1:].strip()

        if sigil == "!":
            self.emit(Comment(body, tag_pos))
        elif sigil in "#^":
            if not _PATH.fullmatch(body):
                msg = f"Invalid section name {body!r}"
                raise self.error(msg, tag_pos)
            self.stack.append(_OpenSection(body, sigil == "^", tag_pos))
        elif sigil == "/":
            self.close_section(body, tag_pos)
        elif sigil == ">":
            if not _PARTIAL_NAME.fullmatch(body):
                msg = f"Invalid partial name {body!r}"
                raise self.error(msg, tag_pos)
            self.emit(Partial(body, tag_pos))
        else:
            self.expression(start, end, tag_pos, escape=True)

    def close_section(self, name: str, tag_pos: int) -> None:
        if not self.stack:
            msg = f"Unexpected section close {name!r} with no open section"
            raise self.error(msg, tag_pos)
        top = self.stack[-1]
        if top.name != name:
            msg = f"Section mismatch: expected close of {top.name!r}, found {name!r}"
            raise self.error(msg, tag_pos)
        _ = self.stack.pop()
        self.emit(
            Section(
                path=_split_path(top.name),
                negated=top.negated,
                body=tuple(top.body),
                position=top.position,
            )
        )

    def expression(self, start: int, end: int, tag_pos: int, *, escape: bool) -> None:
        """Parse a variable or call expression spanning ``text[start:end]``."""
        inner = self.text[start:end]
        expr = inner.strip()
        if not expr:
            msg = "Empty tag"
            raise self.error(msg, tag_pos)
        expr_start = start + (len(inner) - len(inner.lstrip()))
        expr_end = expr_start + len(expr)

        if expr.startswith("@") or "(" in expr:
            call = _CallParser(self, expr_start, expr_end).parse()
            self.emit(call)
        elif _PATH.fullmatch(expr):
            self.emit(Variable(_split_path(expr), escape=escape, position=tag_pos))
        else:
            msg = f"Unrecognized tag {expr!r}"
            raise self.error(msg, tag_pos)


class _CallParser:
    """Recursive-descent parser for call expressions and their arguments."""

    def __init__(self, scanner: _Scanner, start: int, end: int) -> None:
        self.scanner: _Scanner = scanner
        self.text: str = scanner.text
        self.i: int = start
        self.end: int = end

    def peek(self) -> str:
        if self.i >= self.end:
            return ""
        return self.text[self.i]

    def skip_ws(self) -> None:
        while self.i < self.end and self.text[self.i].isspace():
            self.i += 1

    def parse(self) -> FunctionCall | MethodCall:
        call = self.call()
        self.skip_ws()
        if self.i != self.end:
            msg = f"Unexpected text after call: {self.text[self.i : self.end]!r}"
            raise self.scanner.error(msg, self.i)
        return call

    def call(self) -> FunctionCall | MethodCall:
        start = self.i
        if self.peek() == "@":
            self.i += 1
            match = _IDENT.match(self.text, self.i, self.end)
            if match is None:
                msg = "Expected function name after '@'"
                raise self.scanner.error(msg, self.i)
            self.i = match.end()
            if self.peek() != "(":
                msg = f"Malformed call {self.text[start : self.end]!r}: expected '('"
                raise self.scanner.error(msg, self.i)
            return FunctionCall(match.group(0), self.arguments(start), start)

        match = _DOTTED.match(self.text, self.i, self.end)
        if match is None:
            msg = "Expected function or method name"
            raise self.scanner.error(msg, self.i)
        self.i = match.end()
        if self.peek() != "(":
            msg = f"Malformed call {self.text[start : self.end]!r}: expected '('"
            raise self.scanner.error(msg, self.i)
        path = tuple(match.group(0).split("."))
        if len(path) < 2:  # noqa: PLR2004
            msg = (
                f"Method call {path[0]!r} must name a receiver; "
                "use '@' to call a helper function"
            )
            raise self.scanner.error(msg, start)
        return MethodCall(path[:-1], path[-1], self.arguments(start), start)

    def arguments(self, call_start: int) -> tuple[Arg, ...]:
        """Parse ``( arg, arg, ... )`` starting at the opening parenthesis."""
        self.i += 1
        self.skip_ws()
        if self.peek() == ")":
            self.i += 1
            return ()

        args: list[Arg] = []
        while True:
            self.skip_ws()
            char = self.peek()
            if not char:
                msg = "Unbalanced parentheses: missing ')'"
                raise self.scanner.error(msg, call_start)
            if char == ",":
                msg = "Empty argument before ','"
                raise self.scanner.error(msg, self.i)
            if char == ")":
                msg = "Trailing comma in argument list"
                raise self.scanner.error(msg, self.i)

            args.append(self.argument())

            self.skip_ws()
            char = self.peek()
            if char == ",":
                self.i += 1
                continue
            if char == ")":
                self.i += 1
                return tuple(args)
            if not char:
                msg = "Unbalanced parentheses: missing ')'"
                raise self.scanner.error(msg, call_start)
            msg = f"Expected ',' or ')' but found {char!r}"
            raise self.scanner.error(msg, self.i)

    def argument(self) -> Arg:
        start = self.i
        char = self.peek()

        if char in {"'", '"'}:
            close = self.text.find(char, self.i + 1, self.end)
            if close == -1:
                msg = "Unterminated string literal"
                raise self.scanner.error(msg, start)
            self.i = close + 1
            return Literal(self.text[start + 1 : close])

        if char == "@":
            return NestedCall(self.call())

        match = _NUMBER.match(self.text, self.i, self.end)
        if match is not None:
            self.i = match.end()
            spelling = match.group(0)
            return Literal(float(spelling) if "." in spelling else int(spelling))

        match = _BOOLEAN.match(self.text, self.i, self.end)
        if match is not None:
            self.i = match.end()
            return Literal(match.group(0) == "true")

        match = _CURRENT.match(self.text, self.i, self.end)
        if match is not None:
            self.i = match.end()
            return VariablePath((CURRENT_ITEM,))

        match = _DOTTED.match(self.text, self.i, self.end)
        if match is None:
            msg = f"Unexpected character {char!r} in argument list"
            raise self.scanner.error(msg, start)
        self.i = match.end()
        if self.peek() == "(":
            self.i = start
            return NestedCall(self.call())
        return VariablePath(tuple(match.group(0).split(".")))


def parse_template(text: str) -> tuple[Node, ...]:
    """Parse template text into a tuple of top-level nodes.

    Args:
        text: Raw template text.

    Returns:
        The immutable node tree.

    Raises:
        TemplateSyntaxError: On malformed tags, unmatched sections or
            malformed call syntax, with the offending position.
    """
    return _Scanner(text).run()


class Parser:
    """Template parser.

    Stateless; a single instance may parse any number of templates from any
    number of threads.
    """

    __slots__ = ()

    def parse(self, text: str) -> tuple[Node, ...]:
        """Parse template text. See :func:`parse_template`."""
        return parse_template(text)
