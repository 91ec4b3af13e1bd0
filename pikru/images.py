"""Pixel-level comparison of two rendered diagrams given as PNG bytes."""

from __future__ import annotations

import io
import math
from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np
from PIL import Image

BLUE = (59, 130, 246, 255)
ORANGE = (249, 115, 22, 255)
GREEN = (100, 150, 100, 255)
WHITE = (255, 255, 255, 255)
PLACEHOLDER = (255, 200, 200, 255)

PLACEHOLDER_SIZE = (300, 200)
LABEL_HEIGHT = 25
GAP = 10
LEGEND_HEIGHT = 30
LEGEND_BOX = 12

_SSIM_WINDOW = 8
_SSIM_C1 = (0.01 * 255) ** 2
_SSIM_C2 = (0.03 * 255) ** 2


@dataclass(frozen=True)
class PixelDiff:
    """Counts of pixels drawn in one image, the other, both or neither."""

    c_only: int
    rust_only: int
    both: int
    neither: int
    overlap_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


def _round_half_away(value: float, digits: int) -> float:
    scale = 10**digits
    return math.copysign(math.floor(abs(value) * scale + 0.5), value) / scale


def _load(data: bytes, mode: str) -> Optional[Image.Image]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.convert(mode)
    except (OSError, ValueError, Image.DecompressionBombError):
        return None


def _encode_png(image: Image.Image) -> Optional[bytes]:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError):
        return None
    return buffer.getvalue()


def _load_pair_same_size(c_png: bytes, rust_png: bytes):
    c_img = _load(c_png, "RGBA")
    rust_img = _load(rust_png, "RGBA")
    if c_img is None or rust_img is None:
        return None
    size = (max(c_img.width, rust_img.width), max(c_img.height, rust_img.height))
    return (
        c_img.resize(size, Image.Resampling.LANCZOS),
        rust_img.resize(size, Image.Resampling.LANCZOS),
    )


def _presence(image: Image.Image) -> np.ndarray:
    pixels = np.asarray(image, dtype=np.float32)
    gray = pixels[..., :3].sum(axis=-1) / 3.0
    return (gray < 250.0) & (pixels[..., 3] > 128)


def calculate_pixel_diff(c_png: bytes, rust_png: bytes) -> Optional[PixelDiff]:
    """Compare where two images have ink; None if either cannot be decoded."""
    pair = _load_pair_same_size(c_png, rust_png)
    if pair is None:
        return None
    c_present, rust_present = (_presence(image) for image in pair)

    both = int(np.count_nonzero(c_present & rust_present))
    c_only = int(np.count_nonzero(c_present & ~rust_present))
    rust_only = int(np.count_nonzero(~c_present & rust_present))
    neither = int(np.count_nonzero(~c_present & ~rust_present))

    total_content = c_only + rust_only + both
    overlap = 100.0 * both / total_content if total_content else 100.0
    return PixelDiff(c_only, rust_only, both, neither, _round_half_away(overlap, 1))


def _luma(image: Image.Image) -> Image.Image:
    rgb = np.asarray(image.convert("RGB"), dtype=np.float64)
    luma = rgb @ np.array([0.2126, 0.7152, 0.0722])
    return Image.fromarray(np.clip(np.rint(luma), 0, 255).astype(np.uint8), "L")


def _mean_ssim(first: np.ndarray, second: np.ndarray) -> float:
    height, width = first.shape
    scores = []
    for top in range(0, height, _SSIM_WINDOW):
        for left in range(0, width, _SSIM_WINDOW):
            a = first[top : top + _SSIM_WINDOW, left : left + _SSIM_WINDOW]
            b = second[top : top + _SSIM_WINDOW, left : left + _SSIM_WINDOW]
            mean_a, mean_b = a.mean(), b.mean()
            var_a, var_b = a.var(), b.var()
            cov = ((a - mean_a) * (b - mean_b)).mean()
            numerator = (2 * mean_a * mean_b + _SSIM_C1) * (2 * cov + _SSIM_C2)
            denominator = (mean_a**2 + mean_b**2 + _SSIM_C1) * (var_a + var_b + _SSIM_C2)
            scores.append(numerator / denominator)
    return float(np.mean(scores))


def calculate_ssim(c_png: bytes, rust_png: bytes) -> Optional[float]:
    """Mean structural similarity of the two images' luma, to 4 decimals."""
    c_rgba = _load(c_png, "RGBA")
    rust_rgba = _load(rust_png, "RGBA")
    if c_rgba is None or rust_rgba is None:
        return None
    c_img, rust_img = _luma(c_rgba), _luma(rust_rgba)
    size = (max(c_img.width, rust_img.width), max(c_img.height, rust_img.height))
    if c_img.size != size:
        c_img = c_img.resize(size, Image.Resampling.LANCZOS)
    if rust_img.size != size:
        rust_img = rust_img.resize(size, Image.Resampling.LANCZOS)
    score = _mean_ssim(
        np.asarray(c_img, dtype=np.float64), np.asarray(rust_img, dtype=np.float64)
    )
    return _round_half_away(score, 4)


def _image_or_placeholder(data: Optional[bytes]) -> Optional[Image.Image]:
    if data is None:
        return Image.new("RGBA", PLACEHOLDER_SIZE, PLACEHOLDER)
    return _load(data, "RGBA")


def _scale_to_height(image: Image.Image, height: int) -> Image.Image:
    if image.height == height:
        return image
    width = int(image.width * height / image.height)
    return image.resize((width, height), Image.Resampling.LANCZOS)


def create_side_by_side(
    c_png: Optional[bytes], rust_png: Optional[bytes]
) -> Optional[bytes]:
    """Both images next to each other under coloured headers, as PNG.

    A missing image is shown as a pink placeholder; an undecodable one
    gives None.
    """
    c_img = _image_or_placeholder(c_png)
    rust_img = _image_or_placeholder(rust_png)
    if c_img is None or rust_img is None:
        return None

    max_height = max(c_img.height, rust_img.height)
    c_img = _scale_to_height(c_img, max_height)
    rust_img = _scale_to_height(rust_img, max_height)

    rust_left = c_img.width + GAP
    total_width = rust_left + rust_img.width
    combined = Image.new("RGBA", (total_width, max_height + LABEL_HEIGHT), WHITE)
    if c_img.width:
        combined.paste(Image.new("RGBA", (c_img.width, LABEL_HEIGHT), BLUE), (0, 0))
    if rust_img.width:
        combined.paste(
            Image.new("RGBA", (rust_img.width, LABEL_HEIGHT), ORANGE), (rust_left, 0)
        )
    combined.paste(c_img, (0, LABEL_HEIGHT))
    combined.paste(rust_img, (rust_left, LABEL_HEIGHT))
    return _encode_png(combined)


def create_diff_image(c_png: bytes, rust_png: bytes) -> Optional[bytes]:
    """A PNG colouring ink found in one image only, the other only, or both.

    Blue marks the first image only, orange the second only and green
    both; a legend strip sits above the picture.
    """
    pair = _load_pair_same_size(c_png, rust_png)
    if pair is None:
        return None
    c_present, rust_present = (_presence(image) for image in pair)
    height, width = c_present.shape

    canvas = np.empty((height + LEGEND_HEIGHT, width, 4), dtype=np.uint8)
    canvas[:] = WHITE
    for left, colour in ((10, BLUE), (90, ORANGE), (180, GREEN)):
        canvas[8 : 8 + LEGEND_BOX, left : left + LEGEND_BOX] = colour

    picture = canvas[LEGEND_HEIGHT:]
    picture[c_present & rust_present] = GREEN
    picture[c_present & ~rust_present] = BLUE
    picture[~c_present & rust_present] = ORANGE
    return _encode_png(Image.fromarray(canvas, "RGBA"))