"""Expansion of ``define name { body }`` macros and their invocations."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Callable, Dict, List

from .errors import PikchrError
from .syntax import (
    BinaryExpr,
    Define,
    FuncCall,
    MacroCall,
    Number,
    ParenExpr,
    PlaceName,
    Program,
    StringLit,
    UnaryExpr,
    Variable,
)

MAX_EXPANSION_DEPTH = 10

Parser = Callable[[str], Program]


class MacroError(PikchrError):
    """Raised when macro expansion recurses too deeply."""

    code = "pikru::macro"


def expand_macros(program: Program, parse: Parser) -> Program:
    """Return a program with definitions removed and macro calls expanded.

    ``parse`` turns the substituted body text of a macro into a Program.
    Calls to unknown macros expand to nothing.
    """
    macros: Dict[str, str] = {}
    output: List[object] = []
    for statement in program.statements:
        _process(statement, macros, output, parse, 0)
    return Program(output)


def _process(
    statement: object,
    macros: Dict[str, str],
    output: List[object],
    parse: Parser,
    depth: int,
) -> None:
    if isinstance(statement, Define):
        body = statement.body.strip()
        if body.startswith("{") and body.endswith("}"):
            body = body[1:-1].strip()
        macros[statement.name] = body
    elif isinstance(statement, MacroCall):
        _expand_call(statement, macros, output, parse, depth)
    else:
        output.append(statement)


def _expand_call(
    call: MacroCall,
    macros: Dict[str, str],
    output: List[object],
    parse: Parser,
    depth: int,
) -> None:
    if depth > MAX_EXPANSION_DEPTH:
        raise MacroError(
            f"Macro expansion depth exceeded (max {MAX_EXPANSION_DEPTH}). "
            f"Possible infinite recursion in macro '{call.name}'"
        )
    body = macros.get(call.name)
    if body is None:
        return
    for index, arg in enumerate(call.args, start=1):
        body = body.replace(f"${index}", macro_arg_to_string(arg))
    for statement in parse(body).statements:
        _process(statement, macros, output, parse, depth + 1)


def macro_arg_to_string(arg: object) -> str:
    """Source text substituted for a macro argument."""
    if isinstance(arg, StringLit):
        return f'"{arg.value}"'
    if isinstance(arg, str):
        return arg
    return expr_to_string(arg)


def _format_number(value: float) -> str:
    if not math.isfinite(value):
        if math.isnan(value):
            return "NaN"
        return "inf" if value > 0 else "-inf"
    if value == int(value):
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def expr_to_string(expr: object) -> str:
    """Source text for an expression; empty for kinds with no text form."""
    if isinstance(expr, Number):
        return _format_number(expr.value)
    if isinstance(expr, (Variable, PlaceName)):
        return expr.name
    if isinstance(expr, ParenExpr):
        return f"({expr_to_string(expr.expr)})"
    if isinstance(expr, BinaryExpr):
        return f"{expr_to_string(expr.left)}{expr.op.value}{expr_to_string(expr.right)}"
    if isinstance(expr, UnaryExpr):
        return f"{expr.op.value}{expr_to_string(expr.operand)}"
    if isinstance(expr, FuncCall):
        args = ", ".join(expr_to_string(arg) for arg in expr.args)
        return f"{expr.func.value}({args})"
    return ""