"""FastAPI entrypoint exposing the orchestrator to a host shell."""
from __future__ import annotations

import asyncio
import json
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from .environment import EnvironmentOrchestrator
from .errors import OrchestratorError
from .models import (
    CommandResponse,
    ServiceKind,
    ServiceReport,
    StartupAccepted,
    StartupRecord,
    StatusResponse,
)
from .storage import SettingsRepository

app = FastAPI(title="Dev Environment Orchestrator", version="0.1.0")
settings_repo = SettingsRepository.from_environment()
orchestrator = EnvironmentOrchestrator(settings_repo.load_settings())


@app.exception_handler(OrchestratorError)
async def handle_orchestrator_error(request: Request, exc: OrchestratorError) -> JSONResponse:
    """Every failure reaches the shell as a classified message."""
    content = {"error": exc.message, "kind": exc.kind}
    remediation = getattr(exc, "remediation", None)
    if remediation:
        content["remediation"] = remediation
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/api/runtime/status", response_model=CommandResponse)
async def check_runtime_status() -> CommandResponse:
    return CommandResponse(result=await orchestrator.check_runtime_status())


@app.get("/api/runtime/installed", response_model=CommandResponse)
async def check_runtime_installed() -> CommandResponse:
    return CommandResponse(result=await orchestrator.check_runtime_installed())


@app.post("/api/runtime/start", response_model=CommandResponse)
async def start_runtime() -> CommandResponse:
    return CommandResponse(result=await orchestrator.start_runtime())


@app.get("/api/backend/status", response_model=CommandResponse)
async def check_backend_status() -> CommandResponse:
    return CommandResponse(result=await orchestrator.check_backend_status())


@app.get("/api/backend/installed", response_model=CommandResponse)
async def check_backend_installed() -> CommandResponse:
    return CommandResponse(result=await orchestrator.check_backend_installed())


@app.post("/api/backend/start", response_model=CommandResponse)
async def start_backend() -> CommandResponse:
    return CommandResponse(result=await orchestrator.start_backend())


@app.post("/api/backend/stop", response_model=CommandResponse)
async def stop_backend() -> CommandResponse:
    return CommandResponse(result=await orchestrator.stop_backend())


@app.get("/api/backend/config", response_model=CommandResponse)
async def get_backend_config() -> CommandResponse:
    """Raw ``supabase status -o json`` text (API URL, keys, ...)."""
    return CommandResponse(result=await orchestrator.get_backend_config())


@app.post("/api/backend/verify", response_model=CommandResponse)
async def verify_backend_ready() -> CommandResponse:
    return CommandResponse(result=await orchestrator.verify_backend_ready())


@app.post("/api/services/{kind}/stop", response_model=CommandResponse)
async def stop_service(kind: ServiceKind, force: bool = False) -> CommandResponse:
    status = await orchestrator.stop(kind, force=force)
    return CommandResponse(result=status.kind.value)


@app.post("/api/cleanup", response_model=CommandResponse)
async def cleanup(stop_backend: bool = False) -> CommandResponse:
    return CommandResponse(result=await orchestrator.cleanup(stop_backend))


@app.get("/api/status", response_model=StatusResponse)
async def get_status() -> StatusResponse:
    """Tagged status of both managed services."""
    statuses = await orchestrator.check_all()
    services = []
    for kind, status in statuses.items():
        service = orchestrator.controllers[kind].service
        services.append(
            ServiceReport(
                name=service.name,
                kind=kind,
                status=status.kind,
                detail=status.detail,
                installed_version=service.installed_version,
                last_probed=service.last_probed,
            )
        )
    return StatusResponse(services=services, project_linked=orchestrator.is_project_linked())


@app.post("/api/startup", response_model=StartupAccepted)
async def start_environment(background: BackgroundTasks) -> StartupAccepted:
    """Run the full startup sequence; follow it via the events stream."""
    run_id = str(uuid4())
    orchestrator.registry.start_run(run_id)
    background.add_task(orchestrator.start_all_in_order, run_id)
    return StartupAccepted(run_id=run_id)


@app.get("/api/startup/{run_id}", response_model=StartupRecord)
async def get_startup(run_id: str) -> StartupRecord:
    record = orchestrator.registry.get_run(run_id)
    if record is None:
        raise HTTPException(status_code=404, detail="run_not_found")
    return record


@app.get("/api/startup/{run_id}/events")
async def stream_startup_events(run_id: str) -> EventSourceResponse:
    """Stream startup events for a given run identifier."""

    async def event_generator():
        sent = 0
        while True:
            record = orchestrator.registry.get_run(run_id)
            if record is None:
                yield {
                    "event": "error",
                    "data": json.dumps({"message": "run_not_found"}),
                }
                return

            while sent < len(record.events):
                event = record.events[sent]
                sent += 1
                yield {
                    "event": "step",
                    "data": event.model_dump_json(),
                }

            if record.ok is not None:
                yield {
                    "event": "status",
                    "data": json.dumps(
                        {
                            "ok": record.ok,
                            "error_type": record.error_type.value if record.error_type else None,
                            "error": record.error,
                        }
                    ),
                }
                return

            await asyncio.sleep(0.5)

    return EventSourceResponse(event_generator())
