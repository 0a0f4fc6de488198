import jsonschema
import pytest

from config import _env_flag
from services.tool_service import ToolService, ToolSpec
from tools import default_tools
from tools.python_interpreter import python_tool, run_python
from tools.vibration import LoggingVibrationDriver, build_pattern, vibration_tool
from utils.errors import ToolExecutionError


def echo_tool(handler=None):
    async def default_handler(arguments):
        return f"echo: {arguments['text']}"

    return ToolSpec(
        name="echo",
        description="Echo text back",
        parameters={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
        handler=handler or default_handler,
    )


def test_list_tools_returns_function_descriptors():
    """Given registered tools, when listed with tools enabled, then function descriptors are returned."""
    service = ToolService([echo_tool()])

    tools = service.list_tools(enabled=True)

    assert tools == [{
        "type": "function",
        "function": {
            "name": "echo",
            "description": "Echo text back",
            "parameters": echo_tool().parameters,
        },
    }]


def test_list_tools_disabled_is_empty():
    assert ToolService([echo_tool()]).list_tools(enabled=False) == []


def test_register_rejects_invalid_schema():
    bad = ToolSpec(name="bad", description="", parameters={"type": "not-a-type"}, handler=None)
    with pytest.raises(jsonschema.SchemaError):
        ToolService([bad])


def test_python_tool_is_off_by_default(monkeypatch):
    """Given the python flag unset, when default tools are built, then only host-safe tools are registered."""
    monkeypatch.delenv("PYTHON_TOOL_ENABLED", raising=False)
    assert _env_flag("PYTHON_TOOL_ENABLED") is False
    monkeypatch.setattr("tools.Config.PYTHON_TOOL_ENABLED", False)

    names = [tool["function"]["name"] for tool in ToolService(default_tools()).list_tools()]

    assert names == ["vibrate_device"]


def test_python_tool_registered_when_enabled(monkeypatch):
    monkeypatch.setattr("tools.Config.PYTHON_TOOL_ENABLED", True)

    names = [tool["function"]["name"] for tool in ToolService(default_tools()).list_tools()]

    assert names == ["vibrate_device", "python_interpreter"]
    assert "sandbox" not in python_tool().description


@pytest.mark.anyio
async def test_execute_success():
    result = await ToolService([echo_tool()]).execute("echo", {"text": "hi"})
    assert result.success is True
    assert result.output == "echo: hi"


@pytest.mark.anyio
async def test_execute_unknown_tool():
    """Given an unregistered name, when executed, then a failure result is returned instead of raising."""
    result = await ToolService([echo_tool()]).execute("teleport", {})
    assert result.success is False
    assert result.output == "Error: Tool 'teleport' not found."


@pytest.mark.anyio
async def test_execute_invalid_arguments():
    result = await ToolService([echo_tool()]).execute("echo", {"text": 5})
    assert result.success is False
    assert result.output.startswith("Error: Invalid arguments for echo:")


@pytest.mark.anyio
async def test_execute_missing_arguments_treated_as_empty():
    result = await ToolService([echo_tool()]).execute("echo", None)
    assert result.success is False
    assert "'text' is a required property" in result.output


@pytest.mark.anyio
@pytest.mark.parametrize("error, expected", [
    (ToolExecutionError("motor busy"), "Error executing echo: motor busy"),
    (RuntimeError("boom"), "Error executing echo: RuntimeError: boom"),
])
async def test_execute_handler_failure_becomes_result(error, expected):
    """Given a handler that raises, when executed, then the exception becomes a failure result."""
    async def failing(arguments):
        raise error

    result = await ToolService([echo_tool(failing)]).execute("echo", {"text": "x"})

    assert result.success is False
    assert result.output == expected


@pytest.mark.parametrize("pattern, intensity, expected", [
    ("single", "medium", [400]),
    ("double", "light", [200, 100, 200]),
    ("triple", "strong", [600, 100, 600, 100, 600]),
    ("custom", "medium", [400, 200, 200, 200, 400]),
])
def test_build_pattern(pattern, intensity, expected):
    assert build_pattern(400, pattern, intensity) == expected


@pytest.mark.anyio
async def test_vibration_tool_hands_pattern_to_driver():
    driver = LoggingVibrationDriver()
    service = ToolService([vibration_tool(driver)])

    result = await service.execute("vibrate_device", {"duration": 300, "pattern": "double"})

    assert result.success is True
    assert driver.requests == [[300, 100, 300]]
    assert result.output == "Vibrated with a double pattern for 700 ms."


@pytest.mark.anyio
async def test_vibration_tool_rejects_unknown_pattern():
    driver = LoggingVibrationDriver()
    result = await ToolService([vibration_tool(driver)]).execute("vibrate_device", {"pattern": "morse"})

    assert result.success is False
    assert driver.requests == []


@pytest.mark.anyio
async def test_run_python_returns_stdout():
    assert await run_python("print(6 * 7)") == "42"


@pytest.mark.anyio
async def test_run_python_without_output():
    assert await run_python("x = 1") == "(no output)"


@pytest.mark.anyio
async def test_run_python_nonzero_exit_raises():
    with pytest.raises(ToolExecutionError, match="ZeroDivisionError"):
        await run_python("1 / 0")


@pytest.mark.anyio
async def test_run_python_timeout_raises():
    with pytest.raises(ToolExecutionError, match="timed out"):
        await run_python("import time; time.sleep(5)", timeout=0.5)


@pytest.mark.anyio
async def test_python_tool_failure_is_reported_through_gateway():
    result = await ToolService([python_tool()]).execute("python_interpreter", {"code": "raise ValueError('bad input')"})

    assert result.success is False
    assert result.output.startswith("Error executing python_interpreter:")
    assert "ValueError: bad input" in result.output


@pytest.mark.anyio
async def test_run_python_does_not_inherit_server_environment(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-secret")

    assert await run_python("import os; print(os.environ.get('OPENROUTER_API_KEY'))") == "None"
