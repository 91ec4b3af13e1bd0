"""Syntax tree node types for pikchr diagrams.

Coordinates use a Y-up convention internally: moving up increases Y.
The flip to SVG's Y-down space happens when output is produced.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

Vec2 = Tuple[float, float]


class Direction(enum.Enum):
    """A layout direction: up, down, left or right."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    def unit_vector(self) -> Vec2:
        """Unit vector for this direction in Y-up coordinates."""
        return _DIRECTION_VECTORS[self]

    def offset(self, distance: float) -> Vec2:
        """Displacement for moving ``distance`` in this direction."""
        x, y = self.unit_vector()
        return (x * distance, y * distance)

    def opposite(self) -> "Direction":
        """The direction pointing the other way."""
        return _OPPOSITES[self]


_DIRECTION_VECTORS = {
    Direction.RIGHT: (1.0, 0.0),
    Direction.LEFT: (-1.0, 0.0),
    Direction.UP: (0.0, 1.0),
    Direction.DOWN: (0.0, -1.0),
}

_OPPOSITES = {
    Direction.RIGHT: Direction.LEFT,
    Direction.LEFT: Direction.RIGHT,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
}


class AssignOp(enum.Enum):
    ASSIGN = "="
    ADD_ASSIGN = "+="
    SUB_ASSIGN = "-="
    MUL_ASSIGN = "*="
    DIV_ASSIGN = "/="


class ClassName(enum.Enum):
    ARC = "arc"
    ARROW = "arrow"
    BOX = "box"
    CIRCLE = "circle"
    CYLINDER = "cylinder"
    DIAMOND = "diamond"
    DOT = "dot"
    ELLIPSE = "ellipse"
    FILE = "file"
    LINE = "line"
    MOVE = "move"
    OVAL = "oval"
    SPLINE = "spline"
    SUBLIST = "sublist"
    TEXT = "text"


class NumProperty(enum.Enum):
    HEIGHT = "height"
    WIDTH = "width"
    RADIUS = "radius"
    DIAMETER = "diameter"
    THICKNESS = "thickness"


class DashProperty(enum.Enum):
    DOTTED = "dotted"
    DASHED = "dashed"


class ColorProperty(enum.Enum):
    FILL = "fill"
    COLOR = "color"


class BoolProperty(enum.Enum):
    CLOCKWISE = "cw"
    COUNTER_CLOCKWISE = "ccw"
    INVISIBLE = "invisible"
    THICK = "thick"
    THIN = "thin"
    SOLID = "solid"
    ARROW_BOTH = "<->"
    ARROW_RIGHT = "->"
    ARROW_LEFT = "<-"


class TextAttr(enum.Enum):
    ABOVE = "above"
    BELOW = "below"
    CENTER = "center"
    LJUST = "ljust"
    RJUST = "rjust"
    BOLD = "bold"
    ITALIC = "italic"
    MONO = "mono"
    BIG = "big"
    SMALL = "small"
    ALIGNED = "aligned"


class BuiltinVar(enum.Enum):
    FILL = "fill"
    COLOR = "color"
    THICKNESS = "thickness"


class Coord(enum.Enum):
    X = "x"
    Y = "y"


class Function(enum.Enum):
    ABS = "abs"
    COS = "cos"
    SIN = "sin"
    INT = "int"
    SQRT = "sqrt"
    MAX = "max"
    MIN = "min"


class BinaryOp(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"


class UnaryOp(enum.Enum):
    NEG = "-"
    POS = "+"


class AboveBelow(enum.Enum):
    ABOVE = "above"
    BELOW = "below"


class LeftRight(enum.Enum):
    LEFT = "left"
    RIGHT = "right"


class EdgePoint(enum.Enum):
    """Named points on an object's boundary."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    START = "start"
    END = "end"
    CENTER = "center"
    BOTTOM = "bottom"
    TOP = "top"
    LEFT = "left"
    RIGHT = "right"
    NORTH_EAST = "ne"
    NORTH_WEST = "nw"
    SOUTH_EAST = "se"
    SOUTH_WEST = "sw"
    N = "n"
    S = "s"
    E = "e"
    W = "w"
    C = "c"
    T = "t"

    def to_unit_vec(self) -> Vec2:
        """Per-axis direction of this point from the centre (Y-up).

        Each component is -1, 0 or 1, so scaling by half the width and
        half the height gives the point on a bounding box.
        """
        return _EDGE_VECTORS[_EDGE_CANONICAL.get(self, self)]

    def to_angle(self) -> float:
        """Compass angle in degrees: 0 is north, increasing clockwise."""
        return _EDGE_ANGLES.get(_EDGE_CANONICAL.get(self, self), 0.0)


_EDGE_CANONICAL = {
    EdgePoint.N: EdgePoint.NORTH,
    EdgePoint.TOP: EdgePoint.NORTH,
    EdgePoint.T: EdgePoint.NORTH,
    EdgePoint.S: EdgePoint.SOUTH,
    EdgePoint.BOTTOM: EdgePoint.SOUTH,
    EdgePoint.E: EdgePoint.EAST,
    EdgePoint.RIGHT: EdgePoint.EAST,
    EdgePoint.W: EdgePoint.WEST,
    EdgePoint.LEFT: EdgePoint.WEST,
    EdgePoint.C: EdgePoint.CENTER,
}

_EDGE_VECTORS = {
    EdgePoint.NORTH: (0.0, 1.0),
    EdgePoint.SOUTH: (0.0, -1.0),
    EdgePoint.EAST: (1.0, 0.0),
    EdgePoint.WEST: (-1.0, 0.0),
    EdgePoint.NORTH_EAST: (1.0, 1.0),
    EdgePoint.NORTH_WEST: (-1.0, 1.0),
    EdgePoint.SOUTH_EAST: (1.0, -1.0),
    EdgePoint.SOUTH_WEST: (-1.0, -1.0),
    EdgePoint.CENTER: (0.0, 0.0),
    # Entry and exit are taken along the default left-to-right flow.
    EdgePoint.START: (-1.0, 0.0),
    EdgePoint.END: (1.0, 0.0),
}

_EDGE_ANGLES = {
    EdgePoint.NORTH: 0.0,
    EdgePoint.NORTH_EAST: 45.0,
    EdgePoint.EAST: 90.0,
    EdgePoint.SOUTH_EAST: 135.0,
    EdgePoint.SOUTH: 180.0,
    EdgePoint.SOUTH_WEST: 225.0,
    EdgePoint.WEST: 270.0,
    EdgePoint.NORTH_WEST: 315.0,
}


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    """A numeric literal, already converted to inches."""

    value: float


@dataclass(frozen=True)
class Variable:
    """A variable reference such as ``$x`` or ``boxwid``."""

    name: str


@dataclass(frozen=True)
class PlaceName:
    """A bare name such as a colour (``Red``) or a label."""

    name: str


@dataclass(frozen=True)
class ParenExpr:
    expr: "Expr"


@dataclass(frozen=True)
class FuncCall:
    func: Function
    args: Tuple["Expr", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class BinaryExpr:
    left: "Expr"
    op: BinaryOp
    right: "Expr"


@dataclass(frozen=True)
class UnaryExpr:
    op: UnaryOp
    operand: "Expr"


Expr = Union[
    Number, Variable, PlaceName, ParenExpr, FuncCall, BinaryExpr, UnaryExpr, BuiltinVar
]


@dataclass(frozen=True)
class RelExpr:
    """An expression that may be a percentage (``50%``)."""

    expr: Expr
    is_percent: bool = False


# ---------------------------------------------------------------------------
# Statements and their parts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringLit:
    value: str


@dataclass(frozen=True)
class TextPosition:
    attrs: Tuple[TextAttr, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attrs", tuple(self.attrs))


@dataclass(frozen=True)
class ObjectName:
    """A named object reference; ``base`` is None for ``this``."""

    base: Optional[str]
    path: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", tuple(self.path))

    @property
    def is_this(self) -> bool:
        return self.base is None


@dataclass(frozen=True)
class WithClause:
    """``with .edge at position``."""

    edge: EdgePoint
    position: object


@dataclass(frozen=True)
class ErrorStmt:
    """``error "message"``: raises an error when evaluated."""

    message: str


@dataclass(frozen=True)
class Assignment:
    """``lvalue op rvalue``; lvalue is a variable name or a BuiltinVar."""

    lvalue: Union[str, BuiltinVar]
    op: AssignOp
    rvalue: Union[Expr, PlaceName]


@dataclass(frozen=True)
class Define:
    """``define name { body }`` with the raw body text."""

    name: str
    body: str


@dataclass(frozen=True)
class MacroCall:
    """A macro invocation.

    Each argument is a StringLit, an expression, or a plain ``str``
    holding a bare identifier.
    """

    name: str
    args: Tuple[object, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class Assert:
    """``assert(left == right)`` over expressions or positions."""

    left: object
    right: object


@dataclass(frozen=True)
class Print:
    args: Tuple[object, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class ObjectStatement:
    """An object: a class name, text or sublist, with attributes."""

    basetype: object
    attributes: Tuple[object, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", tuple(self.attributes))


@dataclass(frozen=True)
class LabeledStatement:
    """``Label: object`` or ``Label: position``."""

    label: str
    content: object


Statement = Union[
    Direction,
    Assignment,
    Define,
    MacroCall,
    Assert,
    Print,
    ErrorStmt,
    LabeledStatement,
    ObjectStatement,
]


@dataclass
class Program:
    """A complete pikchr program."""

    statements: list = field(default_factory=list)