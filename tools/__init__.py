"""
Built-in tools.
"""
from typing import Optional

from config import Config
from services.tool_service import ToolSpec
from tools.python_interpreter import python_tool
from tools.vibration import LoggingVibrationDriver, VibrationDriver, vibration_tool


def default_tools(driver: Optional[VibrationDriver] = None, python_enabled: Optional[bool] = None) -> list[ToolSpec]:
    """
    The tools registered at startup.

    The python interpreter runs code on the host, so it is included only when
    enabled here or through Config.PYTHON_TOOL_ENABLED.
    """
    if python_enabled is None:
        python_enabled = Config.PYTHON_TOOL_ENABLED

    tools = [vibration_tool(driver or LoggingVibrationDriver())]
    if python_enabled:
        tools.append(python_tool())
    return tools


__all__ = ['default_tools', 'vibration_tool', 'python_tool', 'LoggingVibrationDriver']
