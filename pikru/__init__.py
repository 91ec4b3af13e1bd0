"""Compliance testing tools for pikchr diagram renderers.

Syntax tree types, macro expansion, error types, SVG and image comparison,
a test harness and a JSON-RPC tool server.
"""

__version__ = "0.1.0"

__all__ = [
    "compare",
    "errors",
    "harness",
    "images",
    "macros",
    "server",
    "svginspect",
    "syntax",
]