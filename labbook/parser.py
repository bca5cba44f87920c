"""
Command language parser.

A cell is a list of lines, each one of:

    variable = Namespace.function(args)
    variable = literal-or-variable
    Namespace.function(args)
    display(value)
    display(value, "kind")
    # comment / // comment

Argument values are parsed against the live context: a bare identifier that
names a bound variable is replaced by a copy of that variable's value at the
moment the line is parsed. Parsing never fails; text that does not fit a more
specific form degrades to a string value or an Expression statement.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from labbook.values import Context


IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
NUMBER_RE = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")
CALL_RE = re.compile(r"^([A-Z]\w*)\.(\w+)\((.*)\)$", re.ASCII)
DISPLAY_RE = re.compile(r"^display\((.+)\)$")
ASSIGN_RE = re.compile(r"^([A-Za-z_]\w*)\s*=\s*(.+)$", re.ASCII)

COMMENT_MARKERS = ("#", "//")
DELIMITERS = ",)]}"
CLOSERS = ")]}"
QUOTES = ("'", '"')
ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


@dataclass
class CallSpec:
    namespace: str
    function: str
    args: list[Any] = field(default_factory=list)


class Statement:
    pass


@dataclass
class Skip(Statement):
    pass


@dataclass
class Display(Statement):
    args_text: str


@dataclass
class Assign(Statement):
    var: str
    call: CallSpec


@dataclass
class AssignLiteral(Statement):
    var: str
    expr: str


@dataclass
class Call(Statement):
    call: CallSpec


@dataclass
class Expression(Statement):
    text: str


class ValueParser:
    """
    Recursive-descent parser for literal values over a single cursor.

    Handles quoted strings, [arrays], {objects} and bare atoms. Atoms run up
    to the next unescaped delimiter and are classified as bool, null, number,
    bound variable or, failing all of those, a raw string.
    """

    def __init__(self, text: str, context: Optional[Context] = None):
        self.text = text
        self.pos = 0
        self.context = context if context is not None else Context()

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return ""

    def skip_whitespace(self):
        while not self.at_end() and self.text[self.pos].isspace():
            self.pos += 1

    def _skip_stray(self, closers: str) -> bool:
        """Skip closers that close nothing, plus the comma after them."""
        skipped = False
        while not self.at_end() and self.text[self.pos] in closers:
            self.pos += 1
            skipped = True
            self.skip_whitespace()
        if skipped and self.peek() == ",":
            self.pos += 1
        return skipped

    def parse_arguments(self) -> list[Any]:
        """Parse a comma-separated list of values until the end of input."""
        values = []
        while True:
            self.skip_whitespace()
            if self.at_end():
                break
            if self._skip_stray(CLOSERS):
                continue
            values.append(self.parse_value())
            self.skip_whitespace()
            self._skip_stray(CLOSERS)
            if self.peek() == ",":
                self.pos += 1
        return values

    def parse_value(self) -> Any:
        self.skip_whitespace()
        ch = self.peek()
        if ch in QUOTES:
            return self.parse_string()
        if ch == "[":
            return self.parse_array()
        if ch == "{":
            return self.parse_object()
        return self.parse_atom()

    def parse_string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chars = []
        while not self.at_end() and self.text[self.pos] != quote:
            ch = self.text[self.pos]
            if ch == "\\":
                self.pos += 1
                if self.at_end():
                    break
                escaped = self.text[self.pos]
                chars.append(ESCAPES.get(escaped, escaped))
            else:
                chars.append(ch)
            self.pos += 1
        # closing quote; an unterminated string simply ends here
        self.pos += 1
        return "".join(chars)

    def parse_array(self) -> list[Any]:
        self.pos += 1
        items = []
        while not self.at_end():
            self.skip_whitespace()
            if self.peek() == "]":
                self.pos += 1
                break
            if self._skip_stray(")}"):
                continue
            if self.at_end():
                break
            items.append(self.parse_value())
            self.skip_whitespace()
            self._skip_stray(")}")
            if self.peek() == ",":
                self.pos += 1
        return items

    def parse_object(self) -> dict[str, Any]:
        self.pos += 1
        obj = {}
        while not self.at_end():
            self.skip_whitespace()
            if self.peek() == "}":
                self.pos += 1
                break
            if self._skip_stray(")]"):
                continue
            if self.at_end():
                break
            start = self.pos
            if self.peek() in QUOTES:
                key = self.parse_string()
            else:
                key = self._read_bare_key()
            self.skip_whitespace()
            if self.peek() == ":":
                self.pos += 1
            obj[key] = self.parse_value()
            self.skip_whitespace()
            self._skip_stray(")]")
            if self.peek() == ",":
                self.pos += 1
            elif self.pos == start:
                self.pos += 1
        return obj

    def _read_bare_key(self) -> str:
        start = self.pos
        while not self.at_end() and (self.text[self.pos].isascii() and
                                     (self.text[self.pos].isalnum() or self.text[self.pos] == "_")):
            self.pos += 1
        return self.text[start:self.pos]

    def parse_atom(self) -> Any:
        chars = []
        while not self.at_end() and self.text[self.pos] not in DELIMITERS:
            ch = self.text[self.pos]
            nxt = self.text[self.pos + 1] if self.pos + 1 < len(self.text) else ""
            if ch == "\\" and nxt and (nxt in DELIMITERS or nxt == "\\"):
                self.pos += 1
                ch = nxt
            chars.append(ch)
            self.pos += 1
        return self.classify_atom("".join(chars).strip())

    def classify_atom(self, token: str) -> Any:
        if token == "true":
            return True
        if token == "false":
            return False
        if token == "null":
            return None
        if NUMBER_RE.match(token):
            return float(token)
        if IDENTIFIER_RE.match(token) and self.context.has(token):
            return self.context.snapshot(token)
        return token


def parse_arguments(text: str, context: Optional[Context] = None) -> list[Any]:
    """Parse an argument list such as `[1, 2], "x", y` into values."""
    text = text.strip()
    if not text:
        return []
    return ValueParser(text, context).parse_arguments()


def parse_value(text: str, context: Optional[Context] = None) -> Any:
    """Parse the first value of text; None if there is none."""
    values = parse_arguments(text, context)
    return values[0] if values else None


def parse_display_args(text: str, context: Optional[Context] = None) -> tuple[Any, Any]:
    """
    Parse the arguments of display(value, hint).

    A bare identifier that is not bound displays as null rather than as its
    own name. The hint is returned as parsed; None when absent.
    """
    parser = ValueParser(text.strip(), context)
    parser.skip_whitespace()
    start = parser.pos
    value = parser.parse_value()
    token = parser.text[start:parser.pos].strip()
    if isinstance(value, str) and IDENTIFIER_RE.match(token) and not parser.context.has(token):
        value = None

    parser.skip_whitespace()
    if parser.peek() == ",":
        parser.pos += 1
    rest = parser.parse_arguments()
    hint = rest[0] if rest else None
    return value, hint


def parse_call(expr: str, context: Optional[Context] = None) -> Optional[CallSpec]:
    """Parse `Namespace.function(args)`, or return None if expr is not a call."""
    match = CALL_RE.match(expr)
    if not match:
        return None
    namespace, function, args_text = match.groups()
    return CallSpec(
        namespace=namespace,
        function=function,
        args=parse_arguments(args_text or "", context),
    )


def parse_line(line: str, context: Optional[Context] = None) -> Statement:
    """
    Parse one source line into a statement.

    Args:
        line: Raw line text
        context: Current variables, used to resolve identifiers in arguments

    Returns:
        The statement for the first matching form, in priority order
        display, assignment, call, expression.
    """
    line = line.strip()

    if not line or line.startswith(COMMENT_MARKERS):
        return Skip()

    match = DISPLAY_RE.match(line)
    if match:
        return Display(args_text=match.group(1))

    match = ASSIGN_RE.match(line)
    if match:
        var = match.group(1)
        expr = match.group(2).strip()
        call = parse_call(expr, context)
        if call is not None:
            return Assign(var=var, call=call)
        return AssignLiteral(var=var, expr=expr)

    call = parse_call(line, context)
    if call is not None:
        return Call(call=call)

    return Expression(text=line)
