"""Docker Desktop inspection and control."""
from __future__ import annotations

import logging
from typing import List

from .base import CliServiceClient, CommandSpec
from ..errors import ExecutionError
from ..models import RuntimeSettings, ServiceKind, ServiceStatus, TimeoutSettings
from ..runtime.platform import Platform
from ..runtime.process import ProcessRunner

log = logging.getLogger(__name__)


class DockerClient(CliServiceClient):
    """Container runtime client driven through the ``docker`` CLI."""

    kind = ServiceKind.container_runtime
    name = "docker"

    def __init__(
        self,
        runner: ProcessRunner,
        settings: RuntimeSettings,
        timeouts: TimeoutSettings,
    ) -> None:
        super().__init__(runner, settings.executable, timeouts)
        self.settings = settings

    async def inspect(self) -> ServiceStatus:
        """Ask the daemon for its version.

        A daemon that is not running is the common case and is reported as
        ``stopped``, not as an error. A hung daemon that never answers cannot
        be classified and raises ``ExecutionError``.
        """
        outcome = await self.runner.run(
            self.executable,
            ["info", "--format", "{{.ServerVersion}}"],
            self.timeouts.status,
        )
        if outcome.timed_out:
            raise ExecutionError(outcome.error)
        if not outcome.success:
            log.debug("Docker daemon not running: %s", outcome.diagnostic())
            return ServiceStatus.stopped()
        version = outcome.stdout.strip()
        if not version:
            return ServiceStatus.unreachable("docker info returned no server version")
        return ServiceStatus.running(version)

    def _start_commands(self) -> List[CommandSpec]:
        timeout = self.timeouts.runtime_start
        return [
            # Docker Desktop CLI, v4.37+
            CommandSpec(
                label="docker desktop start",
                executable=self.executable,
                args=("desktop", "start"),
                timeout=timeout,
            ),
            CommandSpec(
                label="open -a Docker",
                executable="open",
                args=("-a", self.settings.macos_app, "--background"),
                timeout=timeout,
                platforms=frozenset({Platform.macos}),
            ),
            CommandSpec(
                label="Docker Desktop.exe",
                executable="cmd",
                args=("/c", "start", "", self.settings.windows_app_path),
                timeout=timeout,
                platforms=frozenset({Platform.windows}),
            ),
            CommandSpec(
                label=f"systemctl --user start {self.settings.linux_unit}",
                executable="systemctl",
                args=("--user", "start", self.settings.linux_unit),
                timeout=timeout,
                platforms=frozenset({Platform.linux}),
            ),
        ]

    def stop_command(self, force: bool = False) -> CommandSpec:
        args = ("desktop", "stop", "--force") if force else ("desktop", "stop")
        return CommandSpec(
            label="docker desktop stop",
            executable=self.executable,
            args=args,
            timeout=self.timeouts.stop,
        )
