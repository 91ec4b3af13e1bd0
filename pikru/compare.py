"""Comparison of reference pikchr output against this package's output.

The comparison is semantic: SVG documents are parsed and compared element by
element, with numbers inside attribute values and text matched within a
small floating-point tolerance.
"""

from __future__ import annotations

import enum
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Union

# Reference output uses single precision; keep the tolerance tight so that
# genuine geometry differences (such as mis-chopped endpoints) still show.
FLOAT_TOLERANCE = 0.002

_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_SEPARATORS = re.compile(r"[\s,]+")


class CompareKind(enum.Enum):
    """The outcome of comparing two outputs."""

    MATCH = "match"
    BOTH_ERROR_MATCH = "both_error_match"
    BOTH_ERROR_MISMATCH = "both_error_mismatch"
    C_ERROR_RUST_SUCCESS = "c_error_rust_success"
    RUST_ERROR_C_SUCCESS = "rust_error_c_success"
    NON_SVG_MATCH = "non_svg_match"
    NON_SVG_MISMATCH = "non_svg_mismatch"
    SVG_MISMATCH = "svg_mismatch"
    PARSE_ERROR = "parse_error"


_MATCHING = frozenset(
    {CompareKind.MATCH, CompareKind.BOTH_ERROR_MATCH, CompareKind.NON_SVG_MATCH}
)


@dataclass(frozen=True)
class CompareResult:
    """Result of comparing reference output with candidate output."""

    kind: CompareKind
    c_output: Optional[str] = None
    rust_output: Optional[str] = None
    details: Optional[str] = None

    def is_match(self) -> bool:
        """True when the two outputs are considered equivalent."""
        return self.kind in _MATCHING


def extract_svg(output: str) -> Optional[str]:
    """The SVG document inside ``output``, skipping any text before it."""
    for open_tag, close_tag in (("<svg", "</svg>"), ("<Svg", "</Svg>")):
        start = output.find(open_tag)
        if start == -1:
            continue
        end = output.rfind(close_tag)
        if end != -1:
            return output[start : end + len(close_tag)]
    return None


def extract_pre_svg_text(output: str) -> Optional[str]:
    """Text printed before the SVG document, if there is any."""
    start = output.find("<svg")
    if start == -1:
        return None
    text = output[:start].strip()
    return text or None


def parse_svg(svg: str) -> ET.Element:
    """Parse an SVG document, ignoring any text printed before it.

    Raises ValueError when the document is not well-formed XML.
    """
    text = extract_svg(svg) or svg
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"XML parse error: {exc}") from exc


def _local_name(name: str) -> str:
    return name.rsplit("}", 1)[-1]


def _tokens(value: str) -> List[Union[str, float]]:
    tokens: List[Union[str, float]] = []

    def add_text(chunk: str) -> None:
        chunk = _SEPARATORS.sub(" ", chunk).strip()
        if chunk:
            tokens.append(chunk)

    pos = 0
    for match in _NUMBER.finditer(value):
        add_text(value[pos : match.start()])
        tokens.append(float(match.group()))
        pos = match.end()
    add_text(value[pos:])
    return tokens


def _values_equal(expected: str, actual: str, tolerance: float) -> bool:
    left, right = _tokens(expected), _tokens(actual)
    if len(left) != len(right):
        return False
    for a, b in zip(left, right):
        if isinstance(a, float) and isinstance(b, float):
            if abs(a - b) > tolerance:
                return False
        elif a != b:
            return False
    return True


def _compare_elements(
    expected: ET.Element,
    actual: ET.Element,
    path: str,
    tolerance: float,
    out: List[str],
) -> None:
    expected_tag = _local_name(expected.tag)
    actual_tag = _local_name(actual.tag)
    if expected_tag != actual_tag:
        out.append(f"{path}: expected <{expected_tag}>, found <{actual_tag}>")
        return
    here = f"{path}/{expected_tag}"

    expected_attrs = {_local_name(k): v for k, v in expected.attrib.items()}
    actual_attrs = {_local_name(k): v for k, v in actual.attrib.items()}
    for key in sorted(expected_attrs.keys() | actual_attrs.keys()):
        want = expected_attrs.get(key)
        got = actual_attrs.get(key)
        if want is None:
            out.append(f"{here}@{key}: unexpected value {got!r}")
        elif got is None:
            out.append(f"{here}@{key}: missing, expected {want!r}")
        elif not _values_equal(want, got, tolerance):
            out.append(f"{here}@{key}: expected {want!r}, found {got!r}")

    want_text = (expected.text or "").strip()
    got_text = (actual.text or "").strip()
    if not _values_equal(want_text, got_text, tolerance):
        out.append(f"{here} text: expected {want_text!r}, found {got_text!r}")

    expected_children = list(expected)
    actual_children = list(actual)
    if len(expected_children) != len(actual_children):
        out.append(
            f"{here}: expected {len(expected_children)} children, "
            f"found {len(actual_children)}"
        )
    for index, (want_child, got_child) in enumerate(
        zip(expected_children, actual_children)
    ):
        _compare_elements(want_child, got_child, f"{here}[{index}]", tolerance, out)


def svg_difference(
    expected: Union[str, ET.Element],
    actual: Union[str, ET.Element],
    tolerance: float = FLOAT_TOLERANCE,
) -> Optional[str]:
    """Describe how two SVG documents differ, or return None if they match.

    Numbers inside attribute values and text are compared within
    ``tolerance``; separators between path or list values are ignored.
    """
    if isinstance(expected, str):
        expected = parse_svg(expected)
    if isinstance(actual, str):
        actual = parse_svg(actual)
    differences: List[str] = []
    _compare_elements(expected, actual, "", tolerance, differences)
    return "\n".join(differences) if differences else None


def is_error_output(output: str) -> bool:
    """True when ``output`` represents an error rather than a diagram."""
    return "ERROR:" in output or ("<svg" not in output and "<!--" not in output)


def compare_outputs(c_output: str, rust_output: str, rust_is_err: bool) -> CompareResult:
    """Compare reference output with candidate output."""
    c_is_error = "ERROR:" in c_output
    c_has_svg = "<svg" in c_output
    c_has_comment = "<!--" in c_output
    rust_has_svg = "<svg" in rust_output
    rust_has_comment = "<!--" in rust_output

    if rust_is_err:
        if not c_is_error:
            return CompareResult(CompareKind.RUST_ERROR_C_SUCCESS, rust_output=rust_output)
        if c_output.strip() == rust_output.strip():
            return CompareResult(CompareKind.BOTH_ERROR_MATCH)
        return CompareResult(
            CompareKind.BOTH_ERROR_MISMATCH, c_output=c_output, rust_output=rust_output
        )

    if c_is_error:
        return CompareResult(CompareKind.C_ERROR_RUST_SUCCESS, c_output=c_output)

    if not c_has_svg and not rust_has_svg and (c_has_comment or rust_has_comment):
        if c_output.strip() == rust_output.strip():
            return CompareResult(CompareKind.NON_SVG_MATCH)
        return CompareResult(
            CompareKind.NON_SVG_MISMATCH, c_output=c_output, rust_output=rust_output
        )

    try:
        c_svg = parse_svg(c_output)
    except ValueError as exc:
        return CompareResult(
            CompareKind.PARSE_ERROR, details=f"Failed to parse C SVG: {exc}"
        )
    try:
        rust_svg = parse_svg(rust_output)
    except ValueError as exc:
        return CompareResult(
            CompareKind.PARSE_ERROR, details=f"Failed to parse Rust SVG: {exc}"
        )

    difference = svg_difference(c_svg, rust_svg, FLOAT_TOLERANCE)
    if difference is None:
        return CompareResult(CompareKind.MATCH)
    return CompareResult(CompareKind.SVG_MISMATCH, details=difference)