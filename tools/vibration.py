"""
Device vibration tool.
Turns duration/pattern/intensity arguments into an on/off timing pattern and
hands it to a vibration driver.
"""
from typing import Any, Protocol

from services.tool_service import ToolSpec
from utils.logger import app_logger

INTENSITY_MULTIPLIERS = {
    "light": 0.5,
    "medium": 1.0,
    "strong": 1.5,
}

PARAMETERS = {
    "type": "object",
    "properties": {
        "duration": {
            "type": "number",
            "minimum": 0,
            "description": "Duration of vibration in milliseconds (default: 400)",
        },
        "pattern": {
            "type": "string",
            "enum": ["single", "double", "triple", "custom"],
            "description": 'Vibration pattern type: "single", "double", "triple", or "custom"',
        },
        "intensity": {
            "type": "string",
            "enum": ["light", "medium", "strong"],
            "description": 'Vibration intensity: "light", "medium", or "strong"',
        },
    },
    "required": [],
}


def build_pattern(duration: float = 400, pattern: str = "single", intensity: str = "medium") -> list[float]:
    """Alternating vibrate/pause durations in milliseconds."""
    base = duration * INTENSITY_MULTIPLIERS[intensity]
    patterns = {
        "single": [base],
        "double": [base, 100, base],
        "triple": [base, 100, base, 100, base],
        "custom": [base, 200, base * 0.5, 200, base],
    }
    return patterns[pattern]


class VibrationDriver(Protocol):
    async def vibrate(self, pattern: list[float]) -> None: ...


class LoggingVibrationDriver:
    """Driver for hosts without a vibration motor; records the request."""

    def __init__(self):
        self.requests: list[list[float]] = []

    async def vibrate(self, pattern: list[float]) -> None:
        self.requests.append(pattern)
        app_logger.info(f"Vibration requested: {pattern} ms")


def vibration_tool(driver: VibrationDriver) -> ToolSpec:
    async def handler(arguments: dict[str, Any]) -> str:
        pattern_name = arguments.get("pattern", "single")
        pattern = build_pattern(
            duration=arguments.get("duration", 400),
            pattern=pattern_name,
            intensity=arguments.get("intensity", "medium"),
        )
        await driver.vibrate(pattern)
        total = sum(pattern)
        return f"Vibrated with a {pattern_name} pattern for {total:g} ms."

    return ToolSpec(
        name="vibrate_device",
        description="Trigger haptic vibration on the device with customizable parameters",
        parameters=PARAMETERS,
        handler=handler,
    )
