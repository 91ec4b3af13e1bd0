"""A line-delimited JSON-RPC tool server over standard input and output.

It offers two tools: one lists the available compliance tests, the other
runs a single test with both renderers and reports how they compare.
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from .harness import PikruPaths, TestNotFound, list_tests, run_test

SERVER_NAME = "pikru-test"
SERVER_TITLE = "Pikru Compliance Test Server"
SERVER_VERSION = "0.1.0"
PROTOCOL_VERSION = "2025-06-18"
INSTRUCTIONS = "Run pikchr compliance tests comparing C and Rust implementations"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

LIST_TESTS = "list_pikru_tests"
RUN_TEST = "run_pikru_test"

_TOOLS: List[Dict[str, object]] = [
    {
        "name": LIST_TESTS,
        "description": (
            "List all available pikru compliance tests. "
            "Returns test names grouped by category."
        ),
        "inputSchema": {"type": "object", "properties": {}},
        "annotations": {"readOnlyHint": True},
    },
    {
        "name": RUN_TEST,
        "description": (
            "Run a single pikru compliance test comparing C and Rust "
            "implementations. Returns side-by-side comparison images and "
            "detailed diff information."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "test_name": {
                    "type": "string",
                    "description": (
                        "Name of the test (e.g., 'test01', 'autochop02'). "
                        "Don't include .pikchr extension."
                    ),
                }
            },
            "required": ["test_name"],
        },
        "annotations": {"readOnlyHint": True},
    },
]

log = logging.getLogger(__name__)


class _ToolFailure(Exception):
    """A tool could not do its work; reported to the client as a tool error."""


def _text(text: str) -> Dict[str, object]:
    return {"type": "text", "text": text}


def _image(png: bytes) -> Dict[str, object]:
    return {
        "type": "image",
        "data": base64.b64encode(png).decode("ascii"),
        "mimeType": "image/png",
    }


class _RpcError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ToolServer:
    """Serves the compliance-test tools for one project."""

    def __init__(self, paths: PikruPaths) -> None:
        self.paths = paths
        self._methods: Dict[str, Callable[[dict], object]] = {
            "initialize": self._initialize,
            "ping": lambda params: {},
            "tools/list": lambda params: {"tools": self.list_tools()},
            "tools/call": self._tools_call,
        }

    def list_tools(self) -> List[Dict[str, object]]:
        """Descriptions of the tools this server offers."""
        return [dict(tool) for tool in _TOOLS]

    def call_tool(self, name: str, arguments: Optional[dict] = None) -> Dict[str, object]:
        """Run a tool and return its result.

        Failures of the tool itself, an unknown tool name included, are
        returned as a result with ``isError`` set rather than raised.
        """
        try:
            content = self._run_tool(name, arguments or {})
        except _ToolFailure as exc:
            return {"content": [_text(str(exc))], "isError": True}
        return {"content": content}

    def _run_tool(self, name: str, arguments: dict) -> List[Dict[str, object]]:
        if name == LIST_TESTS:
            return [_text(json.dumps(list_tests(self.paths), indent=2))]
        if name == RUN_TEST:
            test_name = arguments.get("test_name")
            if not isinstance(test_name, str):
                raise _ToolFailure("missing string argument 'test_name'")
            try:
                report, images = run_test(self.paths, test_name)
            except (TestNotFound, OSError) as exc:
                raise _ToolFailure(str(exc)) from exc
            return [_text(json.dumps(report, indent=2))] + [_image(png) for png in images]
        raise _ToolFailure(f"Unknown tool: {name}")

    def _initialize(self, params: dict) -> Dict[str, object]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
                "title": SERVER_TITLE,
            },
            "instructions": INSTRUCTIONS,
        }

    def _tools_call(self, params: dict) -> Dict[str, object]:
        name = params.get("name")
        if not isinstance(name, str):
            raise _RpcError(INVALID_PARAMS, "tools/call needs a string 'name'")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise _RpcError(INVALID_PARAMS, "'arguments' must be an object")
        return self.call_tool(name, arguments)

    def handle_message(self, message: object) -> Optional[Dict[str, object]]:
        """Answer one JSON-RPC message; notifications get no answer (None)."""
        if not isinstance(message, dict) or not isinstance(message.get("method"), str):
            request_id = message.get("id") if isinstance(message, dict) else None
            return _error(request_id, INVALID_REQUEST, "Invalid Request")
        is_notification = "id" not in message
        request_id = message.get("id")
        params = message.get("params") or {}
        try:
            if not isinstance(params, dict):
                raise _RpcError(INVALID_PARAMS, "params must be an object")
            handler = self._methods.get(message["method"])
            if handler is None:
                if is_notification:
                    return None
                raise _RpcError(METHOD_NOT_FOUND, f"Method not found: {message['method']}")
            result = handler(params)
        except _RpcError as exc:
            return None if is_notification else _error(request_id, exc.code, exc.message)
        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def serve(self, stdin: TextIO, stdout: TextIO) -> None:
        """Read one message per line from ``stdin`` until it ends."""
        for line in stdin:
            if not line.strip():
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as exc:
                response: Optional[dict] = _error(None, PARSE_ERROR, f"Parse error: {exc}")
            else:
                response = self.handle_message(message)
            if response is not None:
                stdout.write(json.dumps(response) + "\n")
                stdout.flush()


def _error(request_id: object, code: int, message: str) -> Dict[str, object]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the tool server on standard input and output."""
    parser = argparse.ArgumentParser(prog="pikru-server", description=INSTRUCTIONS)
    parser.add_argument("--root", help="directory to start looking for the project from")
    args = parser.parse_args(argv)

    # Standard output carries the protocol, so diagnostics go to stderr.
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    try:
        paths = PikruPaths.discover(args.root)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        return 1
    log.info("serving tests from %s", paths.tests_dir)
    ToolServer(paths).serve(sys.stdin, sys.stdout)
    return 0