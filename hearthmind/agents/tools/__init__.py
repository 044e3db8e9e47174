from .heater import HeaterTool
from .weather import WeatherTool


def default_tools():
    return [WeatherTool(), HeaterTool()]


__all__ = ["HeaterTool", "WeatherTool", "default_tools"]
