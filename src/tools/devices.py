"""Smart-room controls for treatment rooms.

These only acknowledge the request; the room hub picks the settings up
from the conversation log.
"""

from __future__ import annotations

import logging
from typing import Any

from src.tools.registry import ToolSpec

logger = logging.getLogger(__name__)

COLOR_TEMPERATURES = ("daylight", "cool", "warm")
THERMOSTAT_MODES = ("heat", "cool", "auto", "off")
MUSIC_ACTIONS = ("play", "pause", "stop", "next", "previous")
MIN_TEMPERATURE = 16
MAX_TEMPERATURE = 30
DEFAULT_VOLUME = 50


def set_light_values(brightness: int, color_temp: str) -> dict[str, Any]:
    if not 0 <= int(brightness) <= 100:
        raise ValueError("brightness must be between 0 and 100")
    if color_temp not in COLOR_TEMPERATURES:
        raise ValueError(f"color_temp must be one of {', '.join(COLOR_TEMPERATURES)}")
    logger.info("Lights set to %s%% (%s)", brightness, color_temp)
    return {"brightness": int(brightness), "color_temp": color_temp}


def set_thermostat(temperature: float, mode: str) -> dict[str, Any]:
    if not MIN_TEMPERATURE <= temperature <= MAX_TEMPERATURE:
        raise ValueError(
            f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE} °C"
        )
    if mode not in THERMOSTAT_MODES:
        raise ValueError(f"mode must be one of {', '.join(THERMOSTAT_MODES)}")
    logger.info("Thermostat set to %s°C (%s)", temperature, mode)
    return {"temperature": temperature, "mode": mode, "status": "adjusted"}


def control_music(action: str, volume: int | None = None) -> dict[str, Any]:
    if action not in MUSIC_ACTIONS:
        raise ValueError(f"action must be one of {', '.join(MUSIC_ACTIONS)}")
    logger.info("Music %s (volume=%s)", action, volume)
    return {"action": action, "volume": volume or DEFAULT_VOLUME, "status": "success"}


SET_LIGHT_VALUES = ToolSpec(
    name="set_light_values",
    description="Set the brightness and colour temperature of the room lights.",
    parameters={
        "type": "object",
        "properties": {
            "brightness": {
                "type": "integer",
                "description": "Light level from 0 to 100, where 0 is off.",
            },
            "color_temp": {
                "type": "string",
                "enum": list(COLOR_TEMPERATURES),
                "description": "Colour temperature of the fixture.",
            },
        },
        "required": ["brightness", "color_temp"],
    },
    handler=set_light_values,
)

SET_THERMOSTAT = ToolSpec(
    name="set_thermostat",
    description="Set the room temperature and heating/cooling mode.",
    parameters={
        "type": "object",
        "properties": {
            "temperature": {
                "type": "number",
                "description": f"Target temperature in °C ({MIN_TEMPERATURE}-{MAX_TEMPERATURE}).",
            },
            "mode": {"type": "string", "enum": list(THERMOSTAT_MODES)},
        },
        "required": ["temperature", "mode"],
    },
    handler=set_thermostat,
)

CONTROL_MUSIC = ToolSpec(
    name="control_music",
    description="Control background music playback.",
    parameters={
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": list(MUSIC_ACTIONS)},
            "volume": {"type": "integer", "description": "Volume from 0 to 100."},
        },
        "required": ["action"],
    },
    handler=control_music,
)

TOOLS = [SET_LIGHT_VALUES, SET_THERMOSTAT, CONTROL_MUSIC]
