from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..base import Tool, ToolContext

DEFAULT_THRESHOLD = 18.0


class HeaterArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    temperature: Union[float, str] = Field(description="Current temperature in degrees Celsius")
    threshold: Optional[float] = Field(
        default=None,
        description=f"Switch the heater on below this temperature (default {DEFAULT_THRESHOLD})",
    )


class HeaterTool(Tool):
    name = "heater_command"
    description = (
        "Decide whether the heater should be on or off for a given temperature. "
        "Use get_weather first when only a location is known."
    )
    Args = HeaterArgs

    def run(self, ctx: ToolContext, args: HeaterArgs) -> Dict[str, Any]:  # noqa: ARG002
        # float() raises on malformed input such as "warm"
        temperature = float(args.temperature)
        threshold = DEFAULT_THRESHOLD if args.threshold is None else float(args.threshold)
        return {
            "command": "on" if temperature < threshold else "off",
            "temperature": temperature,
            "threshold": threshold,
        }
