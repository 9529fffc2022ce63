"""Built-in tools for the interactive CLI.

These are small local tools. ``write_file`` and ``run_shell`` declare
side-effect classes so the default confirmation policy gates them.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from parley.tools.base import BaseTool, ToolValidation
from parley.tools.policy import FILESYSTEM_WRITE, PROCESS_EXEC

DEFAULT_MAX_READ_BYTES = 64_000
DEFAULT_SHELL_TIMEOUT = 60.0


def _resolve(root: Path, raw: str) -> Path:
    """Resolve ``raw`` under ``root``, refusing paths that escape it."""
    path = (root / raw).resolve()
    if not path.is_relative_to(root.resolve()):
        raise ValueError(f"Path '{raw}' is outside the working directory")
    return path


def _write_text(path: Path, content: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.write_text(content, encoding="utf-8")


class ReadFileTool(BaseTool):
    """Read a text file relative to the working directory."""

    name = "read_file"
    description = "Read a UTF-8 text file from the working directory."
    parameters = {  # noqa: RUF012
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path relative to the working directory"},
        },
        "required": ["path"],
    }

    def __init__(self, root: Path | None = None, max_bytes: int = DEFAULT_MAX_READ_BYTES) -> None:
        self._root = root or Path.cwd()
        self._max_bytes = max_bytes

    async def execute(self, arguments: dict[str, Any]) -> Any:
        try:
            path = _resolve(self._root, arguments["path"])
        except ValueError as e:
            return {"error": str(e)}
        if not path.is_file():
            return {"error": f"File not found: {arguments['path']}"}
        data = await asyncio.to_thread(path.read_bytes)
        return {
            "path": arguments["path"],
            "content": data[: self._max_bytes].decode("utf-8", errors="replace"),
        }


class WriteFileTool(BaseTool):
    """Write a text file relative to the working directory."""

    name = "write_file"
    description = "Create or overwrite a UTF-8 text file in the working directory."
    parameters = {  # noqa: RUF012
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path relative to the working directory"},
            "content": {"type": "string", "description": "Full file contents"},
        },
        "required": ["path", "content"],
    }
    effects = frozenset({FILESYSTEM_WRITE})

    def __init__(self, root: Path | None = None) -> None:
        self._root = root or Path.cwd()

    def validate(self, arguments: dict[str, Any]) -> ToolValidation:
        result = super().validate(arguments)
        if not result.ok:
            return result
        try:
            _resolve(self._root, arguments["path"])
        except ValueError as e:
            return ToolValidation.failed(str(e))
        return result

    async def execute(self, arguments: dict[str, Any]) -> Any:
        path = _resolve(self._root, arguments["path"])
        written = await asyncio.to_thread(_write_text, path, arguments["content"])
        return {"path": arguments["path"], "bytes_written": written}


class RunShellTool(BaseTool):
    """Run a shell command in the working directory."""

    name = "run_shell"
    description = "Run a shell command and return its exit code, stdout and stderr."
    parameters = {  # noqa: RUF012
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Command line to execute"},
        },
        "required": ["command"],
    }
    effects = frozenset({PROCESS_EXEC})

    def __init__(self, root: Path | None = None, timeout: float = DEFAULT_SHELL_TIMEOUT) -> None:
        self._root = root or Path.cwd()
        self._timeout = timeout

    async def execute(self, arguments: dict[str, Any]) -> Any:
        process = await asyncio.create_subprocess_shell(
            arguments["command"],
            cwd=self._root,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            return {"error": f"Command timed out after {self._timeout:g}s"}
        return {
            "exit_code": process.returncode,
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
        }


def get_builtin_tools(root: Path | None = None) -> list[BaseTool]:
    """Return fresh instances of every built-in tool."""
    return [ReadFileTool(root), WriteFileTool(root), RunShellTool(root)]
