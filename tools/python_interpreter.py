"""
Python interpreter tool.
Runs model-supplied code in a separate interpreter process and returns its stdout.
The process is not sandboxed: it has the host user's file and network access,
so the tool is only registered when PYTHON_TOOL_ENABLED is set.
"""
import asyncio
import sys
from typing import Any

from config import Config
from services.tool_service import ToolSpec
from utils.errors import ToolExecutionError

MAX_OUTPUT_CHARS = 4000

PARAMETERS = {
    "type": "object",
    "properties": {
        "code": {
            "type": "string",
            "description": "The Python code to execute.",
        },
    },
    "required": ["code"],
}


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + "\n... (output truncated)"


async def run_python(code: str, timeout: float = Config.PYTHON_TOOL_TIMEOUT) -> str:
    """
    Execute code with `python -I` and an empty environment, and return stdout.

    Raises:
        ToolExecutionError: On timeout or non-zero exit status
    """
    process = await asyncio.create_subprocess_exec(
        sys.executable, "-I", "-c", code,
        env={},
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ToolExecutionError(f"Execution timed out after {timeout:g}s")

    if process.returncode != 0:
        raise ToolExecutionError(_truncate(stderr.decode("utf-8", errors="replace").strip()))

    output = stdout.decode("utf-8", errors="replace").rstrip()
    return _truncate(output) if output else "(no output)"


def python_tool(timeout: float = Config.PYTHON_TOOL_TIMEOUT) -> ToolSpec:
    async def handler(arguments: dict[str, Any]) -> str:
        return await run_python(arguments["code"], timeout=timeout)

    return ToolSpec(
        name="python_interpreter",
        description=(
            "A Python environment. Use this to execute Python code to calculate results, "
            "process data, or run algorithms. The output of the code (stdout) will be returned."
        ),
        parameters=PARAMETERS,
        handler=handler,
    )
