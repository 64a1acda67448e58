"""Environment orchestrator: the façade the host shell talks to.

Internally everything is a tagged ``ServiceStatus``; the ``running:`` /
``installed:`` string payloads are produced here and nowhere else.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional
from uuid import uuid4

from .clients.docker import DockerClient
from .clients.health import HealthProbe
from .clients.supabase import SupabaseClient
from .constants import ALREADY_RUNNING, CLEANUP_COMPLETE, STARTED, STOPPED
from .converge.controller import ServiceController
from .converge.readiness import ReadinessVerifier
from .converge.runner import StartupRunner
from .errors import ServiceNotRunningError
from .models import (
    OrchestratorSettings,
    ServiceKind,
    ServiceStatus,
    StartupRecord,
    StatusKind,
)
from .runtime.platform import Platform, detect_platform
from .runtime.process import ProcessRunner
from .storage import RunRegistry, is_project_linked

log = logging.getLogger(__name__)


class EnvironmentOrchestrator:
    """Coordinates the container runtime and the backend stack."""

    def __init__(
        self,
        settings: Optional[OrchestratorSettings] = None,
        runner: Optional[ProcessRunner] = None,
        probe: Optional[HealthProbe] = None,
        platform: Optional[Platform] = None,
        registry: Optional[RunRegistry] = None,
    ) -> None:
        self.settings = settings or OrchestratorSettings()
        self.runner = runner or ProcessRunner()
        self.probe = probe or HealthProbe()
        self.platform = platform or detect_platform()
        self.registry = registry or RunRegistry()

        timeouts = self.settings.timeouts
        grace = self.settings.waits.start_grace
        self.runtime = ServiceController(
            DockerClient(self.runner, self.settings.runtime, timeouts),
            self.runner,
            self.platform,
            start_grace=grace,
        )
        self.backend_client = SupabaseClient(
            self.runner, self.probe, self.settings.backend, timeouts
        )
        self.backend = ServiceController(
            self.backend_client, self.runner, self.platform, start_grace=grace
        )
        self.readiness = ReadinessVerifier(
            self.probe, self.settings.backend, timeouts, is_linked=self.is_project_linked
        )
        self.controllers: Dict[ServiceKind, ServiceController] = {
            ServiceKind.container_runtime: self.runtime,
            ServiceKind.backend_stack: self.backend,
        }

    # ------------------------------------------------------------ tagged API

    async def check_all(self) -> Dict[ServiceKind, ServiceStatus]:
        runtime_status, backend_status = await asyncio.gather(
            self.runtime.inspect(), self.backend.inspect()
        )
        return {
            ServiceKind.container_runtime: runtime_status,
            ServiceKind.backend_stack: backend_status,
        }

    async def start_all_in_order(self, run_id: Optional[str] = None) -> StartupRecord:
        """Runtime first; the backend stack runs on its containers."""
        runner = StartupRunner(
            runtime=self.runtime,
            backend=self.backend,
            readiness=self.readiness,
            waits=self.settings.waits,
            registry=self.registry,
        )
        return await runner.run(run_id or str(uuid4()))

    async def stop(self, kind: ServiceKind, force: bool = False) -> ServiceStatus:
        return await self.controllers[kind].stop(force=force)

    async def cleanup_on_exit(self, stop_backend: bool) -> str:
        """Best effort: the host is shutting down and must not be blocked."""
        if stop_backend:
            try:
                await asyncio.wait_for(
                    self.backend.stop(), timeout=self.settings.timeouts.cleanup
                )
            except asyncio.TimeoutError:
                log.warning(
                    "Stopping %s during cleanup timed out after %.0fs",
                    self.backend.service.name,
                    self.settings.timeouts.cleanup,
                )
            except Exception:
                log.warning("Stopping %s during cleanup failed", self.backend.service.name, exc_info=True)
        return CLEANUP_COMPLETE

    def is_project_linked(self) -> bool:
        return is_project_linked(self.settings.backend.project_dir)

    # ------------------------------------------------------- host shell API

    async def check_runtime_status(self) -> str:
        return (await self.runtime.inspect()).encode_status()

    async def check_runtime_installed(self) -> str:
        return (await self.runtime.version_check()).encode()

    async def start_runtime(self) -> str:
        await self.runtime.start_or_raise()
        return STARTED

    async def check_backend_status(self) -> str:
        return (await self.backend.inspect()).encode_status()

    async def check_backend_installed(self) -> str:
        return (await self.backend.version_check()).encode()

    async def start_backend(self) -> str:
        status = await self.backend.start_or_raise()
        if status.kind == StatusKind.already_running:
            return ALREADY_RUNNING
        return STARTED

    async def stop_backend(self) -> str:
        await self.backend.stop()
        return STOPPED

    async def get_backend_config(self) -> str:
        outcome = await self.backend_client.status_json()
        if not outcome.success:
            log.debug("Supabase status unavailable: %s", outcome.diagnostic())
            raise ServiceNotRunningError("Supabase is not running")
        return outcome.stdout

    async def verify_backend_ready(self) -> str:
        return await self.readiness.verify()

    async def cleanup(self, stop_backend: bool = False) -> str:
        return await self.cleanup_on_exit(stop_backend)
