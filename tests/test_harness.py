import subprocess
from unittest import mock

import pytest

from pikru import harness

BOX_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 112.32 76.32">'
    '<path d="M2.16,74.16L110.16,74.16L110.16,2.16L2.16,2.16Z" '
    'style="fill:none;stroke-width:2.16;stroke:rgb(0,0,0);" />'
    '<text x="56.16" y="38.16" text-anchor="middle" fill="rgb(0,0,0)" '
    'dominant-baseline="central">Hello</text></svg>'
)

CIRCLE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 112.32 76.32">'
    '<circle cx="20" cy="20" r="15" style="fill:none;stroke-width:2.16;stroke:rgb(0,0,0);" />'
    "</svg>"
)


def make_project(root, with_cargo=True):
    if with_cargo:
        (root / "Cargo.toml").write_text('[package]\nname = "pikru"\n')
    tests_dir = root / "vendor" / "pikchr-c" / "tests"
    tests_dir.mkdir(parents=True)
    (root / "vendor" / "pikchr-c" / "pikchr").write_text("binary")
    return tests_dir


def make_runner(c_out=b"", c_rc=0, rust_out=b"", rust_rc=0, test_out=b"", test_rc=0):
    calls = []

    def run(args, **kwargs):
        calls.append((list(args), kwargs))
        if args[:2] == ["cargo", "run"]:
            return subprocess.CompletedProcess(args, rust_rc, rust_out, b"rust failed")
        if args[:2] == ["cargo", "test"]:
            return subprocess.CompletedProcess(args, test_rc, test_out, b"")
        return subprocess.CompletedProcess(args, c_rc, c_out, b"C failed")

    run.calls = calls
    return run


def test_discover_walks_up_to_project(tmp_path):
    tests_dir = make_project(tmp_path)
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    paths = harness.PikruPaths.discover(nested)
    assert paths.project_root == tmp_path
    assert paths.tests_dir == tests_dir
    assert paths.c_pikchr == tmp_path / "vendor" / "pikchr-c" / "pikchr"


def test_discover_skips_other_crates(tmp_path):
    make_project(tmp_path)
    crate = tmp_path / "crates" / "pikru-mcp"
    crate.mkdir(parents=True)
    (crate / "Cargo.toml").write_text('[package]\nname = "pikru-mcp"\n')
    assert harness.PikruPaths.discover(crate).project_root == tmp_path


def test_discover_uses_environment_fallback(tmp_path, monkeypatch):
    project = tmp_path / "proj"
    project.mkdir()
    make_project(project, with_cargo=False)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.setenv("PIKRU_ROOT", str(project))
    assert harness.PikruPaths.discover(elsewhere).project_root == project


def test_discover_missing_tests_dir(tmp_path):
    (tmp_path / "Cargo.toml").write_text('name = "pikru"\n')
    with pytest.raises(FileNotFoundError, match="Tests directory not found"):
        harness.PikruPaths.discover(tmp_path)


def test_discover_missing_binary(tmp_path):
    make_project(tmp_path)
    (tmp_path / "vendor" / "pikchr-c" / "pikchr").unlink()
    with pytest.raises(FileNotFoundError, match="C pikchr binary not found"):
        harness.PikruPaths.discover(tmp_path)


def test_run_c_pikchr_extracts_svg():
    runner = make_runner(c_out=b"printed\n" + BOX_SVG.encode() + b"\n")
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        svg, error = harness.run_c_pikchr('box "Hello"', "/opt/pikchr")
    assert svg == BOX_SVG
    assert error is None
    args, kwargs = runner.calls[0]
    assert args == ["/opt/pikchr", "--svg-only", "/dev/stdin"]
    assert kwargs["input"] == b'box "Hello"'


def test_run_c_pikchr_reports_failure():
    runner = make_runner(c_out=b"", c_rc=1)
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        svg, error = harness.run_c_pikchr("box", "/opt/pikchr")
    assert svg is None
    assert error == "C pikchr error: C failed"


def test_run_c_pikchr_missing_program(tmp_path):
    svg, error = harness.run_c_pikchr("box", tmp_path / "no-such-program")
    assert svg is None
    assert error.startswith("Failed to run C pikchr:")


def test_run_renderer_success_and_failure(tmp_path):
    ok = make_runner(rust_out=BOX_SVG.encode())
    with mock.patch("pikru.harness.subprocess.run", side_effect=ok):
        svg, error = harness.run_renderer(tmp_path / "t.pikchr", tmp_path)
    assert (svg, error) == (BOX_SVG, None)
    args, kwargs = ok.calls[0]
    assert args == ["cargo", "run", "--example", "simple", "--", str(tmp_path / "t.pikchr")]
    assert kwargs["cwd"] == str(tmp_path)

    bad = make_runner(rust_out=b"", rust_rc=101)
    with mock.patch("pikru.harness.subprocess.run", side_effect=bad):
        svg, error = harness.run_renderer(tmp_path / "t.pikchr", tmp_path)
    assert svg is None
    assert error == "Rust pikchr error: rust failed"


@pytest.mark.parametrize(
    "success, combined, status",
    [
        (True, "", "match"),
        (False, "panicked: SVG mismatch somewhere", "mismatch"),
        (False, "Parse error for x.pikchr", "parse_error"),
        (False, "something else", "error"),
    ],
)
def test_classify_status(success, combined, status):
    assert harness.classify_test_output(success, combined)[0] == status


def test_classify_extracts_diff_until_note():
    combined = "head\nSVG mismatch for a.pikchr\n\x1b[31mdiff\x1b[0m\nnote: run with"
    status, diff = harness.classify_test_output(False, combined)
    assert status == "mismatch"
    assert diff == "SVG mismatch for a.pikchr\ndiff"


def test_classify_extracts_diff_until_failures_or_end():
    _, diff = harness.classify_test_output(False, "SVG mismatch for b\nline\nfailures:\nx")
    assert diff == "SVG mismatch for b\nline"
    _, diff = harness.classify_test_output(False, "SVG mismatch for c\nrest  ")
    assert diff == "SVG mismatch for c\nrest"
    assert harness.classify_test_output(False, "nothing")[1] is None


def test_run_cargo_test_arguments(tmp_path):
    runner = make_runner(test_rc=0)
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        result = harness.run_cargo_test("test01", tmp_path)
    assert result == ("match", None)
    assert runner.calls[0][0] == ["cargo", "test", "test01.pikchr", "--", "--nocapture"]


def test_run_cargo_test_cannot_start(tmp_path):
    with mock.patch("pikru.harness.subprocess.run", side_effect=FileNotFoundError("cargo")):
        status, detail = harness.run_cargo_test("test01", tmp_path)
    assert status == "error"
    assert detail.startswith("Failed to run test:")


def test_list_tests_groups(tmp_path):
    tests_dir = make_project(tmp_path)
    for name in ("test01.pikchr", "autochop02.pikchr", "expr.pikchr", "notes.txt"):
        (tests_dir / name).write_text("box")
    listing = harness.list_tests(harness.PikruPaths.discover(tmp_path))
    assert listing == {
        "total": 3,
        "numbered_tests": ["test01"],
        "autochop_tests": ["autochop02"],
        "other_tests": ["expr"],
    }


def test_run_test_unknown_name(tmp_path):
    tests_dir = make_project(tmp_path)
    (tests_dir / "test01.pikchr").write_text("box")
    paths = harness.PikruPaths.discover(tmp_path)
    with pytest.raises(harness.TestNotFound, match="Test 'nope' not found") as info:
        harness.run_test(paths, "nope")
    assert info.value.available == ["test01"]


def test_run_test_identical_outputs(tmp_path):
    tests_dir = make_project(tmp_path)
    (tests_dir / "test01.pikchr").write_text('box "Hello"')
    paths = harness.PikruPaths.discover(tmp_path)
    runner = make_runner(c_out=BOX_SVG.encode(), rust_out=BOX_SVG.encode())
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        report, images = harness.run_test(paths, "test01")

    assert report["status"] == "match"
    assert report["source"] == 'box "Hello"'
    assert "c_error" not in report and "rust_error" not in report
    comparison = report["comparison"]
    assert comparison["viewbox"]["match"] is True
    assert comparison["elements"]["match"] is True
    assert comparison["elements"]["c"] == {"path": 1, "text": 1}
    assert comparison["text"]["c"] == ["Hello"]
    assert comparison["pixel_diff"]["c_only"] == 0
    assert comparison["pixel_diff"]["rust_only"] == 0
    assert comparison["pixel_diff"]["both"] > 0
    assert comparison["ssim"] == 1.0
    assert len(images) == 2
    assert all(image.startswith(b"\x89PNG") for image in images)


def test_run_test_different_outputs(tmp_path):
    tests_dir = make_project(tmp_path)
    (tests_dir / "test02.pikchr").write_text("box")
    paths = harness.PikruPaths.discover(tmp_path)
    runner = make_runner(c_out=BOX_SVG.encode(), rust_out=CIRCLE_SVG.encode(), test_rc=1,
                         test_out=b"SVG mismatch for test02.pikchr\nbad\nnote: x")
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        report, _ = harness.run_test(paths, "test02")
    assert report["status"] == "mismatch"
    assert report["svg_diff"] == "SVG mismatch for test02.pikchr\nbad"
    assert report["comparison"]["elements"]["match"] is False
    assert report["comparison"]["text"]["match"] is False
    assert report["comparison"]["pixel_diff"]["overlap_pct"] < 100.0


def test_run_test_reference_failure(tmp_path):
    tests_dir = make_project(tmp_path)
    (tests_dir / "test03.pikchr").write_text("box")
    paths = harness.PikruPaths.discover(tmp_path)
    runner = make_runner(c_out=b"", c_rc=1, rust_out=BOX_SVG.encode())
    with mock.patch("pikru.harness.subprocess.run", side_effect=runner):
        report, images = harness.run_test(paths, "test03")
    assert report["c_error"].startswith("C pikchr error:")
    assert report["comparison"]["viewbox"]["match"] is None
    assert report["comparison"]["pixel_diff"] is None
    assert report["comparison"]["ssim"] is None
    assert report["comparison"]["elements"]["c"] == {}
    assert len(images) == 1


def test_svg_to_png_width_and_ink():
    png = harness.svg_to_png(BOX_SVG)
    assert png.startswith(b"\x89PNG")
    diff = harness.calculate_pixel_diff(png, png)
    assert diff.both > 0
    assert harness.svg_to_png("<not svg") is None