"""
Tool invocation gateway.
Keeps the registry of invocable tools, validates arguments against each tool's
JSON schema and wraps every outcome in a ToolResult.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

import jsonschema

from models.chat_models import ToolResult
from utils.errors import ToolExecutionError
from utils.logger import app_logger

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass
class ToolSpec:
    """A registered tool: its model-facing description and its implementation."""
    name: str
    description: str
    parameters: dict
    handler: ToolHandler

    def to_schema(self) -> dict:
        """Function-tool descriptor in the format sent to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolService:
    """Service for listing and executing tools."""

    def __init__(self, tools: Optional[Iterable[ToolSpec]] = None):
        self._tools: dict[str, ToolSpec] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolSpec) -> None:
        jsonschema.Draft7Validator.check_schema(tool.parameters)
        self._tools[tool.name] = tool

    def list_tools(self, enabled: bool = True) -> list[dict]:
        """Descriptors of the tools offered to the model, or none when disabled."""
        if not enabled:
            return []
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: Optional[dict[str, Any]]) -> ToolResult:
        """
        Execute a tool by name.

        Never raises: a missing tool, invalid arguments and failures inside the
        tool all come back as an unsuccessful ToolResult.
        """
        tool = self._tools.get(name)
        if tool is None:
            app_logger.warning(f"Tool call for unknown tool '{name}'")
            return ToolResult(success=False, output=f"Error: Tool '{name}' not found.")

        arguments = arguments or {}
        try:
            jsonschema.validate(arguments, tool.parameters)
        except jsonschema.ValidationError as e:
            app_logger.warning(f"Invalid arguments for '{name}': {e.message}")
            return ToolResult(success=False, output=f"Error: Invalid arguments for {name}: {e.message}")

        app_logger.info(f"Executing tool '{name}'")
        try:
            output = await tool.handler(arguments)
        except ToolExecutionError as e:
            app_logger.warning(f"Tool '{name}' failed: {e}")
            return ToolResult(success=False, output=f"Error executing {name}: {e}")
        except Exception as e:
            app_logger.error(f"Tool '{name}' raised {type(e).__name__}: {e}")
            return ToolResult(success=False, output=f"Error executing {name}: {type(e).__name__}: {e}")

        return ToolResult(success=True, output=output)
