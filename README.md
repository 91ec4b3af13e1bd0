# pikru

Tools for checking a pikchr diagram renderer against a reference renderer.
The package holds the pikchr syntax tree types, a macro expander, structured
error types, structural SVG comparison with a float tolerance, image-based
diffing, a test harness that runs both renderers, and a small JSON-RPC tool
server built on that harness.

## Installation

```
pip install .
pip install ".[test]"   # with pytest for the test suite
```

Requires Python 3.10 or later. Pillow and NumPy are used for the image
comparisons.

## Syntax tree

`pikru.syntax` defines the node types of a pikchr program: enums such as
`Direction`, `ClassName`, `EdgePoint`, `BinaryOp` and `TextAttr`, expression
nodes (`Number`, `Variable`, `PlaceName`, `ParenExpr`, `FuncCall`,
`BinaryExpr`, `UnaryExpr`, `RelExpr`) and statement nodes (`Assignment`,
`Define`, `MacroCall`, `Assert`, `Print`, `ErrorStmt`, `ObjectStatement`,
`LabeledStatement`), collected in a `Program`.

Coordinates are Y-up:

```python
from pikru.syntax import Direction, EdgePoint

Direction.UP.unit_vector()      # (0.0, 1.0)
Direction.LEFT.offset(2.0)      # (-2.0, 0.0)
Direction.DOWN.opposite()       # Direction.UP
EdgePoint.NORTH_EAST.to_angle() # 45.0 (0 is north, clockwise)
EdgePoint.SW.to_unit_vec()      # per-axis direction from the centre
```

## Macros

`pikru.macros.expand_macros(program, parse)` returns a new `Program` with
`Define` statements removed and `MacroCall` statements replaced by their
bodies. Arguments are substituted for `$1`, `$2`, … and the substituted body
is turned back into statements by the `parse` function you supply. Calls to
unknown macros expand to nothing; nesting deeper than 10 levels raises
`MacroError`. `macro_arg_to_string` and `expr_to_string` give the source
text used for substitution.

## Comparing outputs

`pikru.compare.compare_outputs(c_output, rust_output, rust_is_err)` decides
whether a reference output and a candidate output agree. Error output
(containing `ERROR:`), comment-only output and SVG documents are all
handled. It returns a `CompareResult` whose `kind` is a `CompareKind` and
whose `is_match()` is true for `MATCH`, `BOTH_ERROR_MATCH` and
`NON_SVG_MATCH`.

```python
from pikru.compare import compare_outputs, svg_difference

result = compare_outputs(reference_output, candidate_output, False)
if not result.is_match():
    print(result.kind, result.details)

svg_difference(expected_svg, actual_svg)   # None, or a description of each difference
```

SVG documents are compared element by element; numbers inside attribute
values and text are matched within `FLOAT_TOLERANCE` (0.002). Also
available: `extract_svg`, `extract_pre_svg_text`, `parse_svg` (raises
`ValueError` on malformed XML) and `is_error_output`.

## Inspecting SVG

```python
from pikru.svginspect import count_svg_elements, extract_text_content, extract_viewbox

extract_viewbox(svg)               # Viewbox(x, y, width, height) or None
count_svg_elements(svg).to_dict()  # {"path": 3, "text": 2, ...}, zero counts left out
extract_text_content(svg)          # ["Hello", ...]
```

`strip_ansi` removes terminal escape sequences, `get_available_tests`
lists the `.pikchr` test names in a directory, and `group_tests` sorts them
into numbered, autochop and other tests.

## Image comparison

`pikru.images` works on PNG bytes. `calculate_pixel_diff` returns a
`PixelDiff` with counts of pixels inked in the first image only, the second
only, both or neither, and the overlap percentage. `calculate_ssim` gives a
mean structural similarity score rounded to four decimals.
`create_side_by_side` and `create_diff_image` produce PNG images for visual
review. Each returns `None` when an image cannot be decoded.

## Test harness

`pikru.harness` runs both renderers on a test file:

```python
from pikru.harness import PikruPaths, list_tests, run_test

paths = PikruPaths.discover()
list_tests(paths)
report, images = run_test(paths, "test01")
```

`PikruPaths.discover(start)` walks up from `start` (by default the
package's own directory) to a directory whose `Cargo.toml` names the
`pikru` project, falling back to the `PIKRU_ROOT` environment variable and
then the current directory. It expects the test files in
`vendor/pikchr-c/tests` and the reference binary at `vendor/pikchr-c/pikchr`
beneath that root, and raises `FileNotFoundError` if either is missing.

`run_test` raises `TestNotFound` for an unknown test name. Otherwise it
renders the test with the reference binary (`run_c_pikchr`), with the
project's renderer (`run_renderer`, which runs `cargo run --example simple`
in the project root), runs the project's compliance test for that file
(`run_cargo_test`, classified by `classify_test_output`), and returns a
JSON-ready report of view boxes, element counts, text, pixel overlap,
similarity and diff output, together with side-by-side and diff images.
`svg_to_png` rasterises the simple SVG that pikchr produces for these image
comparisons.

## The tool server

```
pikru-server [--root DIR]
```

starts a server reading one JSON-RPC message per line from standard input
and answering on standard output; log messages go to standard error. It
answers `initialize`, `ping`, `tools/list` and `tools/call`, and offers two
tools:

- `list_pikru_tests`: all compliance tests, grouped by category;
- `run_pikru_test` with a `test_name` such as `test01`: the report from
  `run_test` as text, plus the images as base64 PNG content.

`--root` gives the directory to start looking for the project from. The
same server can be driven from Python with `pikru.server.ToolServer`
(`list_tools`, `call_tool`, `handle_message`, `serve`).

## Errors

`pikru.errors` defines `PikchrError` and its families `ParseError`,
`EvalError` and `RenderError` with their specific subclasses, plus
`UserError` and `AssertionFailed`. Each error has a `code`, and may carry a
`SourceContext` and span; `SourceContext.line_col` and
`SourceContext.snippet` locate an offset in the source text.

## What this package does not do

The package does not parse pikchr text or render diagrams itself. The
macro expander needs a parse function from the caller, and the harness and
server compare the output of two external programs: the reference binary
and the project's own renderer, both of which must be present in the
project directory.