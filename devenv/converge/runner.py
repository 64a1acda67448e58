"""Startup runner bringing up the container runtime, then the backend stack."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..errors import ExecutionError, ReadinessFailedError, StartFailedError
from ..models import (
    ServiceStatus,
    StartupErrorType,
    StartupEvent,
    StartupRecord,
    StartupStep,
    WaitSettings,
)
from ..storage import RunRegistry
from .controller import ServiceController
from .readiness import ReadinessVerifier

log = logging.getLogger(__name__)


class StartupAborted(Exception):
    """Internal signal carrying the classified failure of a startup step."""

    def __init__(self, error_type: StartupErrorType, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message


@dataclass
class StartupRunner:
    runtime: ServiceController
    backend: ServiceController
    readiness: ReadinessVerifier
    waits: WaitSettings
    registry: RunRegistry

    async def run(self, run_id: str) -> StartupRecord:
        record = self.registry.get_run(run_id) or self.registry.start_run(run_id)
        try:
            try:
                record.runtime_version = await self._ensure_runtime(run_id)
            except ExecutionError as exc:
                raise StartupAborted(
                    StartupErrorType.docker_not_running,
                    "Docker is not responding. Please restart Docker Desktop and try "
                    f"again. ({exc.message})",
                ) from exc
            try:
                record.backend_config = await self._ensure_backend(run_id)
            except ExecutionError as exc:
                raise StartupAborted(
                    StartupErrorType.supabase_start_failed,
                    "Database services are not responding. Please check Docker logs or "
                    f'try running "supabase start" manually. ({exc.message})',
                ) from exc

            self._record(run_id, StartupStep.running_migrations, "started", 92)
            try:
                outcome = await self.readiness.verify()
            except ReadinessFailedError as exc:
                raise StartupAborted(StartupErrorType.migration_failed, exc.message) from exc
            self._record(run_id, StartupStep.running_migrations, "ok", 92, outcome)
        except StartupAborted as exc:
            log.info("Startup %s failed (%s): %s", run_id, exc.error_type.value, exc.message)
            return self._fail(record, exc.error_type, exc.message)
        except Exception as exc:
            log.exception("Startup %s crashed", run_id)
            return self._fail(record, StartupErrorType.unknown, f"Unexpected startup error: {exc}")

        self._record(run_id, StartupStep.ready, "ok", 100)
        self.registry.finalize_run(run_id, ok=True)
        return record

    # ------------------------------------------------------------------ steps

    async def _ensure_runtime(self, run_id: str) -> Optional[str]:
        self._record(run_id, StartupStep.checking_docker, "started", 10)
        status = await self.runtime.inspect()
        if status.is_running:
            self._record(run_id, StartupStep.checking_docker, "ok", 50, status.detail)
            return status.detail

        installation = await self.runtime.version_check()
        if not installation.installed:
            raise StartupAborted(
                StartupErrorType.docker_not_installed,
                "Docker is not installed. Please install Docker Desktop to use this app.",
            )
        self._record(run_id, StartupStep.checking_docker, "ok", 10, "not running")

        self._record(run_id, StartupStep.starting_docker, "started", 20)
        try:
            started = await self.runtime.start_or_raise()
        except StartFailedError as exc:
            raise StartupAborted(
                StartupErrorType.docker_start_failed,
                "Failed to start Docker Desktop. Please start it manually from your "
                f"applications menu. ({exc.detail})",
            ) from exc
        self._record(run_id, StartupStep.starting_docker, "ok", 20, started.detail)

        self._record(run_id, StartupStep.waiting_docker, "started", 30)
        status = await self._wait_for_running(self.runtime, self.waits.runtime_ready)
        if status is None:
            raise StartupAborted(
                StartupErrorType.docker_not_running,
                "Docker is taking too long to start. Please ensure Docker Desktop is "
                "running and try again.",
            )
        self._record(run_id, StartupStep.waiting_docker, "ok", 50, status.detail)
        return status.detail

    async def _ensure_backend(self, run_id: str) -> Optional[str]:
        self._record(run_id, StartupStep.checking_supabase, "started", 60)
        status = await self.backend.inspect()
        if status.is_running:
            self._record(run_id, StartupStep.checking_supabase, "ok", 85)
            return status.detail or None

        installation = await self.backend.version_check()
        if not installation.installed:
            raise StartupAborted(
                StartupErrorType.supabase_not_installed,
                "Supabase CLI is not installed. Please install it to run the local database.",
            )
        self._record(run_id, StartupStep.checking_supabase, "ok", 60, "not running")

        self._record(run_id, StartupStep.starting_supabase, "started", 70)
        try:
            started = await self.backend.start_or_raise()
        except StartFailedError as exc:
            error_type = (
                StartupErrorType.supabase_port_conflict
                if exc.kind == "port_conflict"
                else StartupErrorType.supabase_start_failed
            )
            raise StartupAborted(error_type, exc.message) from exc
        self._record(run_id, StartupStep.starting_supabase, "ok", 70, started.detail)

        self._record(run_id, StartupStep.waiting_supabase, "started", 85)
        status = await self._wait_for_running(self.backend, self.waits.backend_ready)
        if status is None:
            raise StartupAborted(
                StartupErrorType.supabase_start_failed,
                "Database services started but are not responding. Please check Docker "
                'logs or try running "supabase start" manually.',
            )
        self._record(run_id, StartupStep.waiting_supabase, "ok", 85)
        return status.detail or None

    # ------------------------------------------------------------------ helpers

    async def _wait_for_running(
        self, controller: ServiceController, timeout: float
    ) -> Optional[ServiceStatus]:
        """Poll ``inspect`` until running or the deadline passes."""
        deadline = time.monotonic() + timeout
        while True:
            try:
                status = await controller.inspect()
            except ExecutionError as exc:
                # a daemon still booting may not answer yet
                log.debug("%s not answering yet: %s", controller.service.name, exc.message)
            else:
                if status.is_running:
                    return status
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(self.waits.poll_interval)

    def _fail(
        self, record: StartupRecord, error_type: StartupErrorType, message: str
    ) -> StartupRecord:
        self._record(record.run_id, StartupStep.error, "failed", record.progress, message)
        self.registry.finalize_run(record.run_id, ok=False, error_type=error_type, error=message)
        return record

    def _record(
        self,
        run_id: str,
        step: StartupStep,
        status: str,
        progress: int,
        detail: str | None = None,
    ) -> None:
        event = StartupEvent(step=step, status=status, progress=progress, detail=detail)
        self.registry.append_run_event(run_id, event)
