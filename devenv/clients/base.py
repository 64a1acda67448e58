"""Base client definitions for managed services."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional, Protocol, Tuple

from ..models import Installation, ServiceKind, ServiceStatus, TimeoutSettings
from ..runtime.platform import Platform
from ..runtime.process import ProcessRunner

ALL_PLATFORMS: FrozenSet[Platform] = frozenset(Platform)

_VERSION_TOKEN = re.compile(r"\d+\.\d+(?:\.\d+)?")


@dataclass(frozen=True)
class CommandSpec:
    """One way of starting or stopping a service."""

    label: str
    executable: str
    args: Tuple[str, ...] = ()
    timeout: float = 60.0
    cwd: Optional[Path] = None
    platforms: FrozenSet[Platform] = field(default=ALL_PLATFORMS)

    def applies_to(self, platform: Platform) -> bool:
        return platform in self.platforms


class ServiceClient(Protocol):
    """Protocol for per-service inspection and control commands."""

    kind: ServiceKind
    name: str
    executable: str

    async def inspect(self) -> ServiceStatus:
        ...

    async def version_check(self) -> Installation:
        ...

    def start_strategies(self, platform: Platform) -> List[CommandSpec]:
        ...

    def stop_command(self, force: bool = False) -> CommandSpec:
        ...


class CliServiceClient:
    """Shared behaviour for services driven through a command line tool."""

    kind: ServiceKind
    name: str

    def __init__(
        self, runner: ProcessRunner, executable: str, timeouts: TimeoutSettings
    ) -> None:
        self.runner = runner
        self.executable = executable
        self.timeouts = timeouts

    async def version_check(self) -> Installation:
        """Installed vs not installed; any failure to run counts as missing."""
        outcome = await self.runner.run(self.executable, ["--version"], self.timeouts.version)
        if not outcome.success:
            return Installation(installed=False)
        return Installation(installed=True, version=parse_version(outcome.stdout))

    def start_strategies(self, platform: Platform) -> List[CommandSpec]:
        return [spec for spec in self._start_commands() if spec.applies_to(platform)]

    def _start_commands(self) -> List[CommandSpec]:
        raise NotImplementedError


def parse_version(output: str) -> str:
    """Pull ``N.N[.N]`` out of the first non-empty line of ``--version`` output."""
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        match = _VERSION_TOKEN.search(line)
        return match.group(0) if match else line
    return ""
