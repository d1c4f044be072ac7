"""
Rundown control server - WebSocket control channel for a live rundown.

Loads a rundown from the rundown API (or a file), drives one RundownEngine
on a 100ms tick and relays operator actions, state and actuator commands.
"""

from .config import Settings, get_settings
from .rundown_source import (
    FileRundownSource,
    HttpRundownSource,
    RundownFetchError,
    StaticRundownSource,
    create_demo_rundown,
)
from .server import ControlServer

__all__ = [
    "ControlServer",
    "Settings",
    "get_settings",
    "HttpRundownSource",
    "FileRundownSource",
    "StaticRundownSource",
    "RundownFetchError",
    "create_demo_rundown",
]
