import io

import pytest
from PIL import Image, ImageDraw

from pikru.images import (
    BLUE,
    GAP,
    GREEN,
    LABEL_HEIGHT,
    LEGEND_HEIGHT,
    ORANGE,
    PLACEHOLDER,
    PLACEHOLDER_SIZE,
    WHITE,
    calculate_pixel_diff,
    calculate_ssim,
    create_diff_image,
    create_side_by_side,
)


def _png(size=(40, 20), fill="white", box=None, ink="black"):
    image = Image.new("RGB", size, fill)
    if box is not None:
        ImageDraw.Draw(image).rectangle(box, fill=ink)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _open(data):
    return Image.open(io.BytesIO(data)).convert("RGBA")


def test_identical_images_overlap_fully():
    data = _png(box=(5, 5, 14, 14))
    diff = calculate_pixel_diff(data, data)
    assert diff.c_only == 0
    assert diff.rust_only == 0
    assert diff.overlap_pct == 100.0
    assert diff.both + diff.neither == 40 * 20


def test_blank_images_count_as_full_overlap():
    blank = _png()
    diff = calculate_pixel_diff(blank, blank)
    assert diff.both == 0
    assert diff.overlap_pct == 100.0


def test_disjoint_ink_has_no_overlap():
    black = _png(fill="black")
    white = _png()
    diff = calculate_pixel_diff(black, white)
    assert diff.c_only == 40 * 20
    assert diff.rust_only == 0
    assert diff.overlap_pct == 0.0


def test_pixel_diff_is_symmetric():
    first = _png(box=(0, 0, 9, 9))
    second = _png(box=(20, 5, 30, 15))
    forward = calculate_pixel_diff(first, second)
    backward = calculate_pixel_diff(second, first)
    assert forward.c_only == backward.rust_only
    assert forward.rust_only == backward.c_only
    assert forward.both == backward.both


def test_pixel_diff_rejects_garbage():
    assert calculate_pixel_diff(b"not a png", _png()) is None


def test_pixel_diff_to_dict_keys():
    data = _png()
    assert set(calculate_pixel_diff(data, data).to_dict()) == {
        "c_only",
        "rust_only",
        "both",
        "neither",
        "overlap_pct",
    }


def test_ssim_of_identical_images_is_one():
    data = _png(box=(3, 3, 20, 12))
    assert calculate_ssim(data, data) == 1.0


def test_ssim_drops_for_different_images():
    first = _png(box=(0, 0, 19, 19))
    second = _png(box=(20, 0, 39, 19))
    score = calculate_ssim(first, second)
    assert score < 1.0


def test_ssim_handles_different_sizes():
    score = calculate_ssim(_png(size=(16, 16)), _png(size=(32, 24)))
    assert score == pytest.approx(1.0)


def test_ssim_rejects_garbage():
    assert calculate_ssim(_png(), b"\x00\x01") is None


def test_side_by_side_layout():
    c_data = _png(size=(40, 20), fill="black")
    rust_data = _png(size=(30, 20))
    combined = _open(create_side_by_side(c_data, rust_data))
    assert combined.size == (40 + GAP + 30, 20 + LABEL_HEIGHT)
    assert combined.getpixel((0, 0)) == BLUE
    assert combined.getpixel((40 + GAP, 0)) == ORANGE
    assert combined.getpixel((40, 0)) == WHITE
    assert combined.getpixel((0, LABEL_HEIGHT)) == (0, 0, 0, 255)
    assert combined.getpixel((40 + GAP, LABEL_HEIGHT)) == WHITE


def test_side_by_side_placeholders():
    combined = _open(create_side_by_side(None, None))
    width, height = PLACEHOLDER_SIZE
    assert combined.size == (2 * width + GAP, height + LABEL_HEIGHT)
    assert combined.getpixel((0, LABEL_HEIGHT)) == PLACEHOLDER


def test_side_by_side_matches_heights():
    combined = _open(create_side_by_side(_png(size=(40, 20)), _png(size=(40, 40))))
    assert combined.height == 40 + LABEL_HEIGHT


def test_side_by_side_rejects_garbage():
    assert create_side_by_side(b"garbage", None) is None


def test_diff_image_colours():
    black = _png(fill="black")
    white = _png()
    both = _open(create_diff_image(black, black))
    c_only = _open(create_diff_image(black, white))
    rust_only = _open(create_diff_image(white, black))
    neither = _open(create_diff_image(white, white))
    assert both.size == (40, 20 + LEGEND_HEIGHT)
    assert both.getpixel((0, LEGEND_HEIGHT)) == GREEN
    assert c_only.getpixel((5, LEGEND_HEIGHT + 5)) == BLUE
    assert rust_only.getpixel((5, LEGEND_HEIGHT + 5)) == ORANGE
    assert neither.getpixel((5, LEGEND_HEIGHT + 5)) == WHITE


def test_diff_image_legend():
    data = _png(size=(200, 10))
    diff = _open(create_diff_image(data, data))
    assert diff.getpixel((10, 8)) == BLUE
    assert diff.getpixel((90, 8)) == ORANGE
    assert diff.getpixel((180, 8)) == GREEN
    assert diff.getpixel((0, 0)) == WHITE


def test_diff_image_rejects_garbage():
    assert create_diff_image(_png(), b"garbage") is None