"""Supabase local stack inspection and control."""
from __future__ import annotations

import logging
from typing import List

from .base import CliServiceClient, CommandSpec
from .health import HealthProbe
from ..constants import HEALTH_STATUS_CODES, NPX_EXECUTABLE
from ..errors import ExecutionError
from ..models import BackendSettings, ServiceKind, ServiceStatus, TimeoutSettings
from ..runtime.process import CommandOutcome, ProcessRunner

log = logging.getLogger(__name__)

STATUS_ARGS = ("status", "-o", "json")


class SupabaseClient(CliServiceClient):
    """Backend stack client: REST gateway probe first, ``supabase`` CLI second.

    ``supabase status`` only works from inside the project directory, which
    callers do not guarantee, so the network probe decides running vs not
    running whenever it can.
    """

    kind = ServiceKind.backend_stack
    name = "supabase"

    def __init__(
        self,
        runner: ProcessRunner,
        probe: HealthProbe,
        settings: BackendSettings,
        timeouts: TimeoutSettings,
    ) -> None:
        super().__init__(runner, settings.executable, timeouts)
        self.probe = probe
        self.settings = settings

    async def inspect(self) -> ServiceStatus:
        result = await self.probe.probe_http(
            self.settings.health_url,
            self.timeouts.health,
            expected=HEALTH_STATUS_CODES,
            headers=self.settings.auth_headers(),
        )
        if result.success:
            # Reachability is authoritative; missing config only costs the details.
            enrichment = await self.status_json(self.timeouts.enrichment)
            if enrichment.success:
                return ServiceStatus.running(enrichment.stdout)
            log.debug("Supabase reachable but status unavailable: %s", enrichment.diagnostic())
            return ServiceStatus.running("")

        log.debug("Supabase health probe failed (%s), asking the CLI", result.diagnostic)
        outcome = await self.status_json(self.timeouts.status)
        if outcome.success:
            return ServiceStatus.running(outcome.stdout)
        if outcome.timed_out:
            # neither tier answered
            raise ExecutionError(outcome.error)
        return ServiceStatus.stopped()

    async def status_json(self, timeout: float | None = None) -> CommandOutcome:
        """Raw ``supabase status -o json`` (API URL, keys, database URL, ...)."""
        return await self.runner.run(
            self.executable,
            list(STATUS_ARGS),
            timeout or self.timeouts.status,
            cwd=self.settings.project_dir,
        )

    def _start_commands(self) -> List[CommandSpec]:
        timeout = self.timeouts.backend_start
        project_dir = self.settings.project_dir
        return [
            CommandSpec(
                label="supabase start",
                executable=self.executable,
                args=("start",),
                timeout=timeout,
                cwd=project_dir,
            ),
            CommandSpec(
                label="npx supabase start",
                executable=NPX_EXECUTABLE,
                args=("supabase", "start"),
                timeout=timeout,
                cwd=project_dir,
            ),
        ]

    def stop_command(self, force: bool = False) -> CommandSpec:
        # --all also stops stacks started from other project directories
        args = ("stop", "--all") if force else ("stop",)
        return CommandSpec(
            label="supabase stop",
            executable=self.executable,
            args=args,
            timeout=self.timeouts.stop,
            cwd=self.settings.project_dir,
        )
