"""Running the reference renderer and this project's renderer on test files.

Both renderers are separate programs started as subprocesses. Their SVG
output is compared by structure, text and rendered pixels.
"""

from __future__ import annotations

import io
import math
import os
import re
import subprocess
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import asdict, dataclass
from itertools import islice
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .compare import extract_svg
from .images import (
    calculate_pixel_diff,
    calculate_ssim,
    create_diff_image,
    create_side_by_side,
)
from .svginspect import (
    ElementCounts,
    count_svg_elements,
    extract_text_content,
    extract_viewbox,
    get_available_tests,
    group_tests,
    strip_ansi,
)

PNG_WIDTH = 300

PathLike = Union[str, Path]
Point = Tuple[float, float]


@dataclass(frozen=True)
class PikruPaths:
    """Locations of the project, its test files and the reference binary."""

    project_root: Path
    tests_dir: Path
    c_pikchr: Path

    @classmethod
    def discover(cls, start: Optional[PathLike] = None) -> "PikruPaths":
        """Find the project by walking up from ``start`` to its Cargo.toml.

        Falls back to the PIKRU_ROOT environment variable, then to the
        current directory. Raises FileNotFoundError when the test directory
        or the reference binary is missing.
        """
        here = Path(start) if start is not None else Path(__file__).resolve().parent
        root = next((d for d in (here, *here.parents) if _is_project_root(d)), None)
        if root is None:
            env_root = os.environ.get("PIKRU_ROOT")
            root = Path(env_root) if env_root is not None else Path.cwd()

        tests_dir = root / "vendor" / "pikchr-c" / "tests"
        c_pikchr = root / "vendor" / "pikchr-c" / "pikchr"
        if not tests_dir.exists():
            raise FileNotFoundError(f"Tests directory not found: {tests_dir}")
        if not c_pikchr.exists():
            raise FileNotFoundError(f"C pikchr binary not found: {c_pikchr}")
        return cls(project_root=root, tests_dir=tests_dir, c_pikchr=c_pikchr)


def _is_project_root(directory: Path) -> bool:
    try:
        content = (directory / "Cargo.toml").read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return 'name = "pikru"' in content


class TestNotFound(LookupError):
    """Raised when no test file exists for the requested name."""

    __test__ = False

    def __init__(self, test_name: str, available: Sequence[str]) -> None:
        hint = ", ".join(available[:10])
        super().__init__(f"Test '{test_name}' not found. Available: {hint}...")
        self.test_name = test_name
        self.available = list(available)


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def run_c_pikchr(source: str, c_pikchr: PathLike) -> Tuple[Optional[str], Optional[str]]:
    """Render ``source`` with the reference binary: (svg, error)."""
    try:
        result = subprocess.run(
            [str(c_pikchr), "--svg-only", "/dev/stdin"],
            input=source.encode("utf-8"),
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        return None, f"Failed to run C pikchr: {exc}"
    stdout = _decode(result.stdout)
    if result.returncode == 0 and "<svg" in stdout:
        return extract_svg(stdout), None
    return None, f"C pikchr error: {_decode(result.stderr)}"


def run_renderer(
    test_file: PathLike, project_root: PathLike
) -> Tuple[Optional[str], Optional[str]]:
    """Render ``test_file`` with the project's current code: (svg, error)."""
    try:
        result = subprocess.run(
            ["cargo", "run", "--example", "simple", "--", str(test_file)],
            cwd=str(project_root),
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        return None, f"Failed to run Rust pikchr: {exc}"
    stdout = _decode(result.stdout)
    if result.returncode == 0 and "<svg" in stdout:
        return extract_svg(stdout), None
    return None, f"Rust pikchr error: {_decode(result.stderr)}"


def classify_test_output(success: bool, combined: str) -> Tuple[str, Optional[str]]:
    """Status of a test run and the SVG diff it printed, if any."""
    if success:
        status = "match"
    elif "SVG mismatch" in combined:
        status = "mismatch"
    elif "Parse error" in combined:
        status = "parse_error"
    else:
        status = "error"

    start = combined.find("SVG mismatch for")
    if start == -1:
        return status, None
    tail = combined[start:]
    end = tail.find("\nnote:")
    if end == -1:
        end = tail.find("\nfailures:")
    if end == -1:
        end = len(tail)
    return status, strip_ansi(tail[:end].strip())


def run_cargo_test(test_name: str, project_root: PathLike) -> Tuple[str, Optional[str]]:
    """Run the compliance test for one file and classify its outcome."""
    try:
        result = subprocess.run(
            ["cargo", "test", f"{test_name}.pikchr", "--", "--nocapture"],
            cwd=str(project_root),
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        return "error", f"Failed to run test: {exc}"
    combined = f"{_decode(result.stderr)}\n{_decode(result.stdout)}"
    return classify_test_output(result.returncode == 0, combined)


def list_tests(paths: PikruPaths) -> Dict[str, object]:
    """The available tests, grouped into numbered, autochop and other."""
    return group_tests(get_available_tests(paths.tests_dir))


def run_test(paths: PikruPaths, test_name: str) -> Tuple[Dict[str, object], List[bytes]]:
    """Run one test with both renderers and compare the results.

    Returns a JSON-ready report and a list of PNG images: the two renderings
    side by side and, when both rendered, a pixel difference image.
    """
    test_file = paths.tests_dir / f"{test_name}.pikchr"
    if not test_file.exists():
        raise TestNotFound(test_name, get_available_tests(paths.tests_dir))

    source = test_file.read_text(encoding="utf-8", errors="replace")
    c_svg, c_error = run_c_pikchr(source, paths.c_pikchr)
    rust_svg, rust_error = run_renderer(test_file, paths.project_root)
    status, svg_diff = run_cargo_test(test_name, paths.project_root)

    c_viewbox = extract_viewbox(c_svg) if c_svg else None
    rust_viewbox = extract_viewbox(rust_svg) if rust_svg else None
    c_elements = count_svg_elements(c_svg) if c_svg else ElementCounts()
    rust_elements = count_svg_elements(rust_svg) if rust_svg else ElementCounts()
    c_texts = extract_text_content(c_svg) if c_svg else []
    rust_texts = extract_text_content(rust_svg) if rust_svg else []

    c_png = svg_to_png(c_svg) if c_svg else None
    rust_png = svg_to_png(rust_svg) if rust_svg else None
    both_rendered = c_png is not None and rust_png is not None
    pixel_diff = calculate_pixel_diff(c_png, rust_png) if both_rendered else None
    ssim = calculate_ssim(c_png, rust_png) if both_rendered else None

    report: Dict[str, object] = {
        "test_name": test_name,
        "status": status,
        "source": source,
    }
    if c_error is not None:
        report["c_error"] = c_error
    if rust_error is not None:
        report["rust_error"] = rust_error
    report["comparison"] = {
        "ssim": ssim,
        "pixel_diff": pixel_diff.to_dict() if pixel_diff else None,
        "viewbox": {
            "c": asdict(c_viewbox) if c_viewbox else None,
            "rust": asdict(rust_viewbox) if rust_viewbox else None,
            "match": (
                c_viewbox == rust_viewbox
                if c_viewbox is not None and rust_viewbox is not None
                else None
            ),
        },
        "elements": {
            "c": c_elements.to_dict(),
            "rust": rust_elements.to_dict(),
            "match": c_elements == rust_elements,
        },
        "text": {"c": c_texts, "rust": rust_texts, "match": c_texts == rust_texts},
    }
    report["svg_diff"] = svg_diff

    images: List[bytes] = []
    side_by_side = create_side_by_side(c_png, rust_png)
    if side_by_side is not None:
        images.append(side_by_side)
    if both_rendered:
        diff_image = create_diff_image(c_png, rust_png)
        if diff_image is not None:
            images.append(diff_image)
    return report, images


# ---------------------------------------------------------------------------
# Rasterising the SVG subset that pikchr produces
# ---------------------------------------------------------------------------

_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_PATH_ITEM = re.compile(r"[A-Za-z]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_PATH_ARITY = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "Q": 4, "A": 7, "Z": 0}
_CURVE_STEPS = 16
_H_ANCHOR = {"start": "l", "middle": "m", "end": "r"}


def _numbers(text: Optional[str]) -> List[float]:
    return [float(match) for match in _NUMBER.findall(text or "")]


def _number(text: Optional[str], default: float = 0.0) -> float:
    values = _numbers(text)
    return values[0] if values else default


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _canvas_box(root: ET.Element) -> Optional[Tuple[float, float, float, float]]:
    view_box = _numbers(root.get("viewBox"))
    if len(view_box) == 4 and view_box[2] > 0 and view_box[3] > 0:
        return view_box[0], view_box[1], view_box[2], view_box[3]
    width = _number(root.get("width"))
    height = _number(root.get("height"))
    if width > 0 and height > 0:
        return 0.0, 0.0, width, height
    return None


def _colour(value: Optional[str]):
    if value is None or value.strip() in ("", "none", "transparent"):
        return None
    try:
        return ImageColor.getrgb(value.strip())
    except ValueError:
        return None


def _properties(element: ET.Element) -> Dict[str, str]:
    props = {key: value for key, value in element.attrib.items()}
    for declaration in (element.get("style") or "").split(";"):
        name, sep, value = declaration.partition(":")
        if sep:
            props[name.strip()] = value.strip()
    return props


def _cubic(p0: Point, p1: Point, p2: Point, p3: Point) -> List[Point]:
    points = []
    for step in range(1, _CURVE_STEPS + 1):
        t = step / _CURVE_STEPS
        u = 1 - t
        points.append(
            (
                u**3 * p0[0] + 3 * u * u * t * p1[0] + 3 * u * t * t * p2[0] + t**3 * p3[0],
                u**3 * p0[1] + 3 * u * u * t * p1[1] + 3 * u * t * t * p2[1] + t**3 * p3[1],
            )
        )
    return points


def _quadratic(p0: Point, p1: Point, p2: Point) -> List[Point]:
    points = []
    for step in range(1, _CURVE_STEPS + 1):
        t = step / _CURVE_STEPS
        u = 1 - t
        points.append(
            (
                u * u * p0[0] + 2 * u * t * p1[0] + t * t * p2[0],
                u * u * p0[1] + 2 * u * t * p1[1] + t * t * p2[1],
            )
        )
    return points


def _arc(start: Point, rx: float, ry: float, phi: float, large: bool, sweep: bool,
         end: Point) -> List[Point]:
    rx, ry = abs(rx), abs(ry)
    if rx == 0 or ry == 0 or start == end:
        return [end]
    cos_phi, sin_phi = math.cos(math.radians(phi)), math.sin(math.radians(phi))
    dx, dy = (start[0] - end[0]) / 2, (start[1] - end[1]) / 2
    x1p = cos_phi * dx + sin_phi * dy
    y1p = -sin_phi * dx + cos_phi * dy
    scale = x1p**2 / rx**2 + y1p**2 / ry**2
    if scale > 1:
        rx, ry = rx * math.sqrt(scale), ry * math.sqrt(scale)
    numerator = rx**2 * ry**2 - rx**2 * y1p**2 - ry**2 * x1p**2
    denominator = rx**2 * y1p**2 + ry**2 * x1p**2
    coef = math.sqrt(max(0.0, numerator / denominator)) if denominator else 0.0
    if large == sweep:
        coef = -coef
    cxp, cyp = coef * rx * y1p / ry, -coef * ry * x1p / rx
    cx = cos_phi * cxp - sin_phi * cyp + (start[0] + end[0]) / 2
    cy = sin_phi * cxp + cos_phi * cyp + (start[1] + end[1]) / 2
    theta1 = math.atan2((y1p - cyp) / ry, (x1p - cxp) / rx)
    theta2 = math.atan2((-y1p - cyp) / ry, (-x1p - cxp) / rx)
    delta = theta2 - theta1
    if sweep and delta < 0:
        delta += 2 * math.pi
    elif not sweep and delta > 0:
        delta -= 2 * math.pi
    points = []
    for step in range(1, _CURVE_STEPS + 1):
        angle = theta1 + delta * step / _CURVE_STEPS
        ex, ey = rx * math.cos(angle), ry * math.sin(angle)
        points.append((cx + ex * cos_phi - ey * sin_phi, cy + ex * sin_phi + ey * cos_phi))
    return points


def _path_points(d: str) -> List[Tuple[List[Point], bool]]:
    """Flatten path data into polylines, each with whether it is closed."""
    items = deque(_PATH_ITEM.findall(d))
    subpaths: List[Tuple[List[Point], bool]] = []
    points: List[Point] = []
    current: Point = (0.0, 0.0)
    start = current
    command: Optional[str] = None

    while items:
        if items[0].isalpha():
            command = items.popleft()
        elif command is None:
            break
        upper = command.upper()
        if upper not in _PATH_ARITY:
            break
        if upper == "Z":
            if points:
                subpaths.append((points, True))
            points = []
            current = start
            command = None
            continue
        arity = _PATH_ARITY[upper]
        if len(items) < arity or any(item.isalpha() for item in islice(items, 0, arity)):
            break
        args = [float(items.popleft()) for _ in range(arity)]
        ox, oy = current if command.islower() else (0.0, 0.0)

        if upper == "M":
            if len(points) >= 2:
                subpaths.append((points, False))
            current = start = (ox + args[0], oy + args[1])
            points = [current]
            command = "l" if command.islower() else "L"
            continue
        if not points:
            points = [current]
        if upper == "L":
            end = (ox + args[0], oy + args[1])
            points.append(end)
        elif upper == "H":
            end = (ox + args[0], current[1])
            points.append(end)
        elif upper == "V":
            end = (current[0], oy + args[0])
            points.append(end)
        elif upper == "C":
            end = (ox + args[4], oy + args[5])
            points.extend(
                _cubic(current, (ox + args[0], oy + args[1]), (ox + args[2], oy + args[3]), end)
            )
        elif upper == "Q":
            end = (ox + args[2], oy + args[3])
            points.extend(_quadratic(current, (ox + args[0], oy + args[1]), end))
        else:
            end = (ox + args[5], oy + args[6])
            points.extend(
                _arc(current, args[0], args[1], args[2], bool(args[3]), bool(args[4]), end)
            )
        current = end

    if len(points) >= 2:
        subpaths.append((points, False))
    return subpaths


class _Painter:
    def __init__(self, image: Image.Image, min_x: float, min_y: float, scale: float) -> None:
        self.draw = ImageDraw.Draw(image)
        self.min_x = min_x
        self.min_y = min_y
        self.scale = scale
        self.font = ImageFont.load_default()

    def point(self, x: float, y: float) -> Point:
        return ((x - self.min_x) * self.scale, (y - self.min_y) * self.scale)

    def paint(self, element: ET.Element) -> None:
        tag = _local(element.tag)
        props = _properties(element)
        fill = _colour(props.get("fill", "black"))
        stroke = _colour(props.get("stroke", "none"))
        width = max(1, round(_number(props.get("stroke-width"), 1.0) * self.scale))

        if tag == "path":
            for points, closed in _path_points(element.get("d") or ""):
                self._shape([self.point(*p) for p in points], closed, fill, stroke, width)
        elif tag in ("polygon", "polyline"):
            values = _numbers(element.get("points"))
            points = [self.point(x, y) for x, y in zip(values[::2], values[1::2])]
            self._shape(points, tag == "polygon", fill, stroke, width)
        elif tag in ("circle", "ellipse"):
            cx, cy = _number(element.get("cx")), _number(element.get("cy"))
            if tag == "circle":
                rx = ry = _number(element.get("r"))
            else:
                rx, ry = _number(element.get("rx")), _number(element.get("ry"))
            if rx > 0 and ry > 0:
                box = [self.point(cx - rx, cy - ry), self.point(cx + rx, cy + ry)]
                self.draw.ellipse(box, fill=fill, outline=stroke, width=width)
        elif tag == "rect":
            x, y = _number(element.get("x")), _number(element.get("y"))
            w, h = _number(element.get("width")), _number(element.get("height"))
            if w > 0 and h > 0:
                box = [self.point(x, y), self.point(x + w, y + h)]
                self.draw.rectangle(box, fill=fill, outline=stroke, width=width)
        elif tag == "line":
            if stroke is not None:
                start = self.point(_number(element.get("x1")), _number(element.get("y1")))
                end = self.point(_number(element.get("x2")), _number(element.get("y2")))
                self.draw.line([start, end], fill=stroke, width=width)
        elif tag == "text":
            self._text(element, props, fill)

    def _shape(self, points: List[Point], closed: bool, fill, stroke, width: int) -> None:
        if fill is not None and len(points) >= 3:
            self.draw.polygon(points, fill=fill)
        if stroke is not None and len(points) >= 2:
            outline = points + [points[0]] if closed else points
            self.draw.line(outline, fill=stroke, width=width, joint="curve")

    def _text(self, element: ET.Element, props: Dict[str, str], fill) -> None:
        content = "".join(element.itertext()).strip()
        if not content or fill is None:
            return
        position = self.point(_number(element.get("x")), _number(element.get("y")))
        horizontal = _H_ANCHOR.get(props.get("text-anchor", "start"), "l")
        baseline = props.get("dominant-baseline", "")
        vertical = "m" if baseline in ("central", "middle") else "s"
        try:
            self.draw.text(position, content, fill=fill, font=self.font,
                           anchor=horizontal + vertical)
        except (ValueError, TypeError):
            self.draw.text(position, content, fill=fill, font=self.font)


def svg_to_png(svg: str, target_width: int = PNG_WIDTH) -> Optional[bytes]:
    """Rasterise ``svg`` on white at ``target_width`` pixels wide, as PNG.

    Returns None when the document cannot be parsed or has no size.
    """
    try:
        root = ET.fromstring(svg)
    except ET.ParseError:
        return None
    box = _canvas_box(root)
    if box is None:
        return None
    min_x, min_y, width, height = box
    scale = target_width / width
    size = (math.ceil(width * scale), math.ceil(height * scale))
    if size[0] <= 0 or size[1] <= 0:
        return None
    image = Image.new("RGBA", size, (255, 255, 255, 255))
    painter = _Painter(image, min_x, min_y, scale)
    for element in root.iter():
        painter.paint(element)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()