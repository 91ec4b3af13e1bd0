"""Error types carrying source positions for readable diagnostics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

Span = Tuple[int, int]


@dataclass(frozen=True)
class SourceContext:
    """A named source text used to locate errors."""

    name: str
    source: str

    def _check(self, offset: int) -> None:
        if not 0 <= offset <= len(self.source):
            raise ValueError(f"offset {offset} outside source of length {len(self.source)}")

    def line_col(self, offset: int) -> Tuple[int, int]:
        """1-based line and column of a character offset."""
        self._check(offset)
        line = self.source.count("\n", 0, offset) + 1
        line_start = self.source.rfind("\n", 0, offset) + 1
        return line, offset - line_start + 1

    def snippet(self, offset: int, length: int) -> str:
        """The line holding ``offset`` with the span marked underneath."""
        self._check(offset)
        line, col = self.line_col(offset)
        start = offset - (col - 1)
        end = self.source.find("\n", offset)
        if end == -1:
            end = len(self.source)
        text = self.source[start:end]
        width = max(1, min(length, len(text) - (col - 1)))
        marker = " " * (col - 1) + "^" * width
        return f"{self.name}:{line}:{col}\n{text}\n{marker}"


def _display_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value):
        return str(int(value))
    return repr(value)


class PikchrError(Exception):
    """Base class of every error the package raises for diagrams."""

    code: ClassVar[str] = "pikru::error"
    default_label: ClassVar[Optional[str]] = None
    default_help: ClassVar[Optional[str]] = None

    def __init__(
        self,
        message: str,
        *,
        source: Optional[SourceContext] = None,
        span: Optional[Span] = None,
        label: Optional[str] = None,
        help: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.span = span
        self.label = label if label is not None else self.default_label
        self.help = help if help is not None else self.default_help

    def __str__(self) -> str:
        return self.message


# --- parse errors ----------------------------------------------------------


class ParseError(PikchrError):
    code = "pikru::parse"


class UnexpectedToken(ParseError):
    code = "pikru::parse::unexpected_token"
    default_label = "found this"

    def __init__(self, expected: str = "", **kwargs) -> None:
        super().__init__("unexpected token", **kwargs)
        self.expected = expected


class UnterminatedString(ParseError):
    code = "pikru::parse::unterminated_string"
    default_label = "string starts here"

    def __init__(self, **kwargs) -> None:
        super().__init__("unterminated string", **kwargs)


class InvalidNumber(ParseError):
    code = "pikru::parse::invalid_number"
    default_label = "invalid number"

    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(f"invalid number: {message}", **kwargs)
        self.detail = message


class UnknownKeyword(ParseError):
    code = "pikru::parse::unknown_keyword"
    default_label = "unknown keyword"

    def __init__(self, keyword: str, **kwargs) -> None:
        super().__init__(f"unknown keyword: {keyword}", **kwargs)
        self.keyword = keyword


# --- evaluation errors -----------------------------------------------------


class EvalError(PikchrError):
    code = "pikru::eval"


class UndefinedVariable(EvalError):
    code = "pikru::eval::undefined_variable"
    default_label = "not defined"

    def __init__(self, name: str, suggestion: Optional[str] = None, **kwargs) -> None:
        super().__init__(f"undefined variable: {name}", help=suggestion, **kwargs)
        self.name = name
        self.suggestion = suggestion


class UnknownObject(EvalError):
    code = "pikru::eval::unknown_object"
    default_label = "not found"

    def __init__(self, name: str, suggestion: Optional[str] = None, **kwargs) -> None:
        super().__init__(f"unknown object: {name}", help=suggestion, **kwargs)
        self.name = name
        self.suggestion = suggestion


class CannotAddPositions(EvalError):
    code = "pikru::eval::cannot_add_positions"
    default_help = "use `pos - pos` to get displacement, or `pos + offset` to translate"

    def __init__(
        self,
        lhs: Optional[Span] = None,
        rhs: Optional[Span] = None,
        *,
        source: Optional[SourceContext] = None,
    ) -> None:
        super().__init__(
            "cannot add two positions", source=source, span=lhs, label="this is a position"
        )
        self.lhs = lhs
        self.rhs = rhs


class TypeMismatch(EvalError):
    code = "pikru::eval::type_mismatch"

    def __init__(self, expected: str, got: str, **kwargs) -> None:
        kwargs.setdefault("label", f"this expression has type {got}")
        super().__init__(f"type mismatch: expected {expected}, got {got}", **kwargs)
        self.expected = expected
        self.got = got


class DivisionByZero(EvalError):
    code = "pikru::eval::division_by_zero"
    default_label = "divisor is zero"

    def __init__(self, **kwargs) -> None:
        super().__init__("division by zero", **kwargs)


class SqrtNegative(EvalError):
    code = "pikru::eval::sqrt_negative"
    default_label = "this value is negative"

    def __init__(self, **kwargs) -> None:
        super().__init__("sqrt of negative number", **kwargs)


class OrdinalOutOfRange(EvalError):
    code = "pikru::eval::ordinal_out_of_range"
    default_label = "no such object"

    def __init__(self, ordinal: int, count: int, **kwargs) -> None:
        kwargs.setdefault("help", f"only {count} objects of this type exist")
        super().__init__(f"ordinal out of range: {ordinal}", **kwargs)
        self.ordinal = ordinal
        self.count = count


class InvalidNumeric(EvalError):
    code = "pikru::eval::invalid_numeric"
    default_label = "this value is NaN or infinite"

    def __init__(self, **kwargs) -> None:
        super().__init__("invalid numeric value", **kwargs)


class NoPrevious(EvalError):
    code = "pikru::eval::no_previous"
    default_label = "no previous object exists"
    default_help = "create at least one object before using 'previous'"

    def __init__(self, **kwargs) -> None:
        super().__init__("no previous object", **kwargs)


class NoThis(EvalError):
    code = "pikru::eval::no_this"
    default_label = "'this' not available here"

    def __init__(self, **kwargs) -> None:
        super().__init__("cannot reference 'this' outside object definition", **kwargs)


# --- render errors ---------------------------------------------------------


class RenderError(PikchrError):
    code = "pikru::render"


class InvalidScale(RenderError):
    code = "pikru::render::invalid_scale"

    def __init__(self, value: float) -> None:
        super().__init__(f"invalid scale: {_display_float(value)}")
        self.value = value


class EmptyDiagram(RenderError):
    code = "pikru::render::empty_diagram"

    def __init__(self) -> None:
        super().__init__("empty diagram")


class InvalidBounds(RenderError):
    code = "pikru::render::invalid_bounds"

    def __init__(self) -> None:
        super().__init__("infinite or NaN in bounds")


# --- user-facing errors ----------------------------------------------------


class UserError(PikchrError):
    """Raised by a diagram's own ``error`` statement."""

    code = "pikru::user_error"
    default_label = "error raised here"

    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(message, **kwargs)


class AssertionFailed(PikchrError):
    """Raised when a diagram's ``assert`` statement does not hold."""

    code = "pikru::assertion_failed"
    default_label = "assertion failed here"

    def __init__(self, details: Optional[str] = None, **kwargs) -> None:
        super().__init__("assertion failed", help=details, **kwargs)
        self.details = details