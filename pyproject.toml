[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pikru"
version = "0.1.0"
description = "Compliance testing tools for pikchr diagram renderers: syntax tree, macro expansion, SVG and image comparison, and a JSON-RPC tool server"
requires-python = ">=3.10"
keywords = ["pikchr", "svg", "diagram", "compliance", "testing", "comparison", "json-rpc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]
dependencies = [
    "pillow",
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
pikru-server = "pikru.server:main"

[tool.hatch.build.targets.wheel]
packages = ["pikru"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
