from __future__ import annotations

import hashlib
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..base import Tool, ToolContext


# Reference readings in Celsius: (temperature, conditions)
_KNOWN = {
    "amsterdam": (11.0, "overcast"),
    "berlin": (9.5, "cloudy"),
    "london": (12.0, "light rain"),
    "madrid": (21.0, "sunny"),
    "moscow": (-4.0, "snow"),
    "new york": (15.0, "partly cloudy"),
    "oslo": (2.0, "snow showers"),
    "paris": (13.5, "cloudy"),
    "tokyo": (18.0, "clear"),
}

_CONDITIONS = ["clear", "sunny", "partly cloudy", "cloudy", "overcast", "light rain", "fog", "windy"]


class WeatherArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: str = Field(min_length=1, description="City or place name, e.g. 'Oslo'")
    unit: Optional[Literal["celsius", "fahrenheit"]] = Field(
        default=None, description="Temperature unit; inferred from the question when omitted"
    )


class WeatherTool(Tool):
    name = "get_weather"
    description = "Look up the current temperature and conditions for a location."
    Args = WeatherArgs

    def run(self, ctx: ToolContext, args: WeatherArgs) -> Dict[str, Any]:
        key = " ".join(args.location.lower().split())
        celsius, conditions = _KNOWN.get(key) or _synthetic_reading(key)
        unit = args.unit or _unit_from_text(ctx.user_message)
        temp = celsius if unit == "celsius" else round(celsius * 9 / 5 + 32, 1)
        return {
            "location": args.location.strip(),
            "temperature": temp,
            "unit": unit,
            "conditions": conditions,
        }


def _synthetic_reading(key: str) -> tuple:
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    # -10.0 .. 30.0 in 0.5 steps
    celsius = -10.0 + (digest[0] % 81) / 2
    return celsius, _CONDITIONS[digest[1] % len(_CONDITIONS)]


def _unit_from_text(text: str) -> str:
    low = (text or "").lower()
    if "fahrenheit" in low or "°f" in low:
        return "fahrenheit"
    return "celsius"
