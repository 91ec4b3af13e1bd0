"""Lightweight inspection of SVG text and of pikchr test directories."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

_VIEWBOX = re.compile(r"""viewBox=["']([^"']+)["']""")
_WIDTH = re.compile(r"""width=["']([0-9.]+)""")
_HEIGHT = re.compile(r"""height=["']([0-9.]+)""")
_TEXT = re.compile(r"<text[^>]*>([^<]*)</text>")
_ANSI = re.compile(
    r"""
    \x1b\[[0-?]*[ -/]*[@-~]               # CSI sequences
    | \x1b\][^\x07\x1b]*(?:\x07|\x1b\\)   # OSC sequences
    | \x1b[P^_][^\x1b]*\x1b\\             # DCS, PM and APC strings
    | \x1b[ -/]*[0-~]                     # other escape sequences
    """,
    re.VERBOSE,
)

_ELEMENT_TAGS = (
    "circle",
    "ellipse",
    "line",
    "path",
    "polygon",
    "polyline",
    "rect",
    "text",
)
_ELEMENT_PATTERNS = {tag: re.compile(rf"<{tag}\b") for tag in _ELEMENT_TAGS}


@dataclass(frozen=True)
class Viewbox:
    """The visible region of an SVG document."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class ElementCounts:
    """How many drawing elements of each kind an SVG document holds."""

    circle: int = 0
    ellipse: int = 0
    line: int = 0
    path: int = 0
    polygon: int = 0
    polyline: int = 0
    rect: int = 0
    text: int = 0

    def to_dict(self) -> Dict[str, int]:
        """The non-zero counts, keyed by element name."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


def _parse_float(text: str) -> Optional[float]:
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def extract_viewbox(svg: str) -> Optional[Viewbox]:
    """The viewBox of ``svg``, falling back to its width and height."""
    match = _VIEWBOX.search(svg)
    if match:
        parts = [
            value
            for value in (_parse_float(part) for part in match.group(1).split())
            if value is not None
        ]
        if len(parts) == 4:
            return Viewbox(*parts)

    width_match = _WIDTH.search(svg)
    if not width_match:
        return None
    width = _parse_float(width_match.group(1))
    if width is None:
        return None
    height_match = _HEIGHT.search(svg)
    if not height_match:
        return None
    height = _parse_float(height_match.group(1))
    if height is None:
        return None
    return Viewbox(0.0, 0.0, width, height)


def count_svg_elements(svg: str) -> ElementCounts:
    """Count the drawing elements in ``svg`` by tag name."""
    return ElementCounts(
        **{tag: len(pattern.findall(svg)) for tag, pattern in _ELEMENT_PATTERNS.items()}
    )


def extract_text_content(svg: str) -> List[str]:
    """The non-empty, trimmed contents of the ``<text>`` elements in ``svg``."""
    texts = (match.group(1).strip() for match in _TEXT.finditer(svg))
    return [text for text in texts if text]


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences from ``text``."""
    return _ANSI.sub("", text)


def get_available_tests(tests_dir: Union[str, Path]) -> List[str]:
    """Sorted names of the ``.pikchr`` files in ``tests_dir``, without extension.

    A missing or unreadable directory gives an empty list.
    """
    try:
        entries = list(Path(tests_dir).iterdir())
    except OSError:
        return []
    return sorted(entry.stem for entry in entries if entry.suffix == ".pikchr")


def group_tests(tests: Iterable[str]) -> Dict[str, object]:
    """Group test names into numbered, autochop and other tests."""
    names = list(tests)
    numbered = [name for name in names if name.startswith("test")]
    autochop = [name for name in names if name.startswith("autochop")]
    other = [
        name
        for name in names
        if not name.startswith("test") and not name.startswith("autochop")
    ]
    return {
        "total": len(names),
        "numbered_tests": numbered,
        "autochop_tests": autochop,
        "other_tests": other,
    }