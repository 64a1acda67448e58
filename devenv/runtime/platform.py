"""Host platform detection used to pick start strategies."""
from __future__ import annotations

import platform as _platform
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    macos = "macos"
    windows = "windows"
    linux = "linux"
    other = "other"


_SYSTEMS = {
    "Darwin": Platform.macos,
    "Windows": Platform.windows,
    "Linux": Platform.linux,
}


def detect_platform(system: Optional[str] = None) -> Platform:
    """Map ``platform.system()`` (or the given name) to a Platform."""
    name = system if system is not None else _platform.system()
    return _SYSTEMS.get(name, Platform.other)
