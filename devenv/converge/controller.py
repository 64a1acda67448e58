"""Idempotent start/stop orchestration for a single managed service."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from ..clients.base import CommandSpec, ServiceClient
from ..constants import BACKEND_PORT_RANGE
from ..errors import PortConflictError, StartFailedError, StopFailedError
from ..models import Installation, ManagedService, ServiceKind, ServiceStatus, StatusKind
from ..runtime.platform import Platform
from ..runtime.process import CommandOutcome, ProcessRunner

log = logging.getLogger(__name__)

_PORT_CONFLICT_MARKERS = ("port", "already in use", "address already")


class ServiceController:
    """Drives one service through inspect -> start strategies -> outcome.

    ``start`` holds a per-service lock across the check and the launch, so
    concurrent callers never issue two start commands. ``start`` only
    confirms that a launch command succeeded; polling for ``running`` is the
    caller's job.
    """

    def __init__(
        self,
        client: ServiceClient,
        runner: ProcessRunner,
        platform: Platform,
        start_grace: float = 30.0,
    ) -> None:
        self.client = client
        self.runner = runner
        self.platform = platform
        self.start_grace = start_grace
        self.service = ManagedService(
            kind=client.kind,
            name=client.name,
            executable=client.executable,
        )
        # diagnostics of the most recent launch attempt, in strategy order
        self.failures: List[str] = []
        self._launched_at: Optional[float] = None
        self._launched_via: Optional[str] = None
        self._lock = asyncio.Lock()

    async def inspect(self) -> ServiceStatus:
        status = await self.client.inspect()
        if status.is_running:
            self._launched_at = None
        return self.service.record(status)

    async def version_check(self) -> Installation:
        installation = await self.client.version_check()
        self.service.installed_version = installation.version if installation.installed else None
        if not installation.installed:
            self.service.record(ServiceStatus.not_installed())
        return installation

    async def start(self) -> ServiceStatus:
        async with self._lock:
            return await self._start_locked()

    async def start_or_raise(self) -> ServiceStatus:
        """``start`` that raises the classified failure before releasing the lock."""
        async with self._lock:
            status = await self._start_locked()
            if status.kind == StatusKind.start_failed:
                raise self.start_error(status)
            return status

    async def _start_locked(self) -> ServiceStatus:
        current = await self.inspect()
        if current.is_running:
            log.info("%s already running", self.service.name)
            return self.service.record(ServiceStatus.already_running(current.detail))

        # A daemon launched moments ago is not visible to inspect() yet.
        if self._launch_in_progress():
            log.info("%s launch already in progress (%s)", self.service.name, self._launched_via)
            return self.service.record(ServiceStatus.starting(self._launched_via))

        status = await self._launch()
        if status.kind == StatusKind.starting:
            self._launched_at = time.monotonic()
            self._launched_via = status.detail
        return self.service.record(status)

    def _launch_in_progress(self) -> bool:
        if self._launched_at is None:
            return False
        return time.monotonic() - self._launched_at < self.start_grace

    async def _launch(self) -> ServiceStatus:
        strategies = self.client.start_strategies(self.platform)
        self.failures = []
        last_diagnostic = f"no start mechanism available for {self.platform.value}"
        for index, strategy in enumerate(strategies):
            outcome = await self._run(strategy)
            if outcome.success:
                if index:
                    log.info("%s started via fallback %s", self.service.name, strategy.label)
                else:
                    log.info("%s started via %s", self.service.name, strategy.label)
                return ServiceStatus.starting(strategy.label)
            last_diagnostic = outcome.diagnostic()
            self.failures.append(last_diagnostic)
            log.info(
                "%s start via %s failed: %s", self.service.name, strategy.label, last_diagnostic
            )
        return ServiceStatus.start_failed(last_diagnostic)

    async def stop(self, force: bool = False) -> ServiceStatus:
        """Issue the stop command directly; stopping a stopped service is a no-op."""
        spec = self.client.stop_command(force=force)
        outcome = await self._run(spec)
        if not outcome.success:
            raise StopFailedError(
                f"Failed to stop {self.service.name.capitalize()}: {outcome.diagnostic()}"
            )
        self._launched_at = None
        log.info("%s stopped", self.service.name)
        return self.service.record(ServiceStatus.stopped())

    async def _run(self, spec: CommandSpec) -> CommandOutcome:
        return await self.runner.run(spec.executable, list(spec.args), spec.timeout, cwd=spec.cwd)

    def start_error(self, status: ServiceStatus) -> StartFailedError:
        """Classify a ``start_failed`` status using the latest launch diagnostics."""
        if self.service.kind == ServiceKind.backend_stack and self._port_conflict():
            low, high = BACKEND_PORT_RANGE
            return PortConflictError(
                "Port conflict detected. Another service may be using the required ports "
                f"({low}-{high}). Please stop conflicting services and try again.",
                detail=status.detail,
            )
        return StartFailedError(
            f"Failed to start {self.service.name.capitalize()}: {status.detail or 'unknown error'}",
            detail=status.detail,
        )

    def _port_conflict(self) -> bool:
        for diagnostic in self.failures:
            lowered = diagnostic.lower()
            if any(marker in lowered for marker in _PORT_CONFLICT_MARKERS):
                return True
        return False
