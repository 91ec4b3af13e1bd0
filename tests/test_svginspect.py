import pytest

from pikru.svginspect import (
    ElementCounts,
    Viewbox,
    count_svg_elements,
    extract_text_content,
    extract_viewbox,
    get_available_tests,
    group_tests,
    strip_ansi,
)


def test_viewbox_attribute_is_read():
    svg = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 112.5 76.32">'
    assert extract_viewbox(svg) == Viewbox(0.0, 0.0, 112.5, 76.32)


def test_viewbox_single_quotes():
    svg = "<svg viewBox='-2 3 40 50'></svg>"
    assert extract_viewbox(svg) == Viewbox(-2.0, 3.0, 40.0, 50.0)


def test_viewbox_falls_back_to_width_and_height():
    svg = '<svg width="200" height="150.5"></svg>'
    assert extract_viewbox(svg) == Viewbox(0.0, 0.0, 200.0, 150.5)


def test_viewbox_with_too_few_parts_uses_dimensions():
    svg = '<svg viewBox="0 0 10" width="30" height="20"></svg>'
    assert extract_viewbox(svg) == Viewbox(0.0, 0.0, 30.0, 20.0)


def test_viewbox_missing_everything():
    assert extract_viewbox("<svg></svg>") is None


def test_viewbox_missing_height():
    assert extract_viewbox('<svg width="30"></svg>') is None


def test_count_elements():
    svg = (
        "<svg><circle cx='1'/><circle cx='2'/><path d='M0,0'/>"
        "<text>a</text><polyline points=''/><polygon points=''/></svg>"
    )
    counts = count_svg_elements(svg)
    assert counts == ElementCounts(circle=2, path=1, text=1, polyline=1, polygon=1)


def test_count_respects_word_boundary():
    counts = count_svg_elements("<lines/><line/><rectangle/>")
    assert counts.line == 1
    assert counts.rect == 0


def test_to_dict_skips_zero_counts():
    counts = ElementCounts(path=3, text=2)
    assert counts.to_dict() == {"path": 3, "text": 2}
    assert ElementCounts().to_dict() == {}


def test_count_round_trips_through_dict():
    svg = "<svg><rect/><rect/><ellipse/></svg>"
    counts = count_svg_elements(svg)
    assert ElementCounts(**counts.to_dict()) == counts


def test_extract_text_content_trims_and_skips_empty():
    svg = (
        '<svg><text x="1"> Hello </text><text>   </text>'
        '<text fill="red">World</text></svg>'
    )
    assert extract_text_content(svg) == ["Hello", "World"]


def test_extract_text_content_skips_nested_markup():
    assert extract_text_content("<text><tspan>a</tspan></text>") == []


def test_strip_ansi_removes_colour_codes():
    assert strip_ansi("\x1b[31mred\x1b[0m plain") == "red plain"


def test_strip_ansi_leaves_plain_text():
    text = "SVG mismatch for test01.pikchr"
    assert strip_ansi(text) == text


def test_get_available_tests(tmp_path):
    for name in ("test02.pikchr", "autochop01.pikchr", "expr.pikchr", "notes.txt"):
        (tmp_path / name).write_text("box\n")
    assert get_available_tests(tmp_path) == ["autochop01", "expr", "test02"]


def test_get_available_tests_missing_dir(tmp_path):
    assert get_available_tests(tmp_path / "absent") == []


@pytest.mark.parametrize(
    "names",
    [
        ["autochop01", "expr", "test01", "test02"],
        [],
        ["other"],
    ],
)
def test_group_tests_partitions(names):
    grouped = group_tests(names)
    assert grouped["total"] == len(names)
    combined = (
        grouped["numbered_tests"] + grouped["autochop_tests"] + grouped["other_tests"]
    )
    assert sorted(combined) == sorted(names)


def test_group_tests_categories():
    grouped = group_tests(["autochop01", "expr", "test01"])
    assert grouped["numbered_tests"] == ["test01"]
    assert grouped["autochop_tests"] == ["autochop01"]
    assert grouped["other_tests"] == ["expr"]