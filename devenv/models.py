"""Pydantic models for managed services, startup progress and settings."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_ANON_KEY,
    DEFAULT_API_URL,
    DEFAULT_TIMEOUTS,
    DEFAULT_WAITS,
    DOCKER_EXECUTABLE,
    DOCKER_LINUX_UNIT,
    DOCKER_MACOS_APP,
    DOCKER_WINDOWS_APP_PATH,
    HEALTH_PATH,
    INSTALLED_PREFIX,
    MAX_HEALTH_TIMEOUT,
    NOT_INSTALLED,
    NOT_RUNNING,
    READINESS_TABLE,
    RUNNING_PREFIX,
    SUPABASE_EXECUTABLE,
)


class ServiceKind(str, Enum):
    container_runtime = "container_runtime"
    backend_stack = "backend_stack"


class StatusKind(str, Enum):
    not_installed = "not_installed"
    stopped = "stopped"
    already_running = "already_running"
    starting = "starting"
    running = "running"
    start_failed = "start_failed"
    unreachable = "unreachable"


class ServiceStatus(BaseModel):
    """Classification of a managed service at the time it was checked."""

    kind: StatusKind
    detail: Optional[str] = None

    @classmethod
    def not_installed(cls) -> "ServiceStatus":
        return cls(kind=StatusKind.not_installed)

    @classmethod
    def stopped(cls) -> "ServiceStatus":
        return cls(kind=StatusKind.stopped)

    @classmethod
    def unreachable(cls, detail: Optional[str] = None) -> "ServiceStatus":
        return cls(kind=StatusKind.unreachable, detail=detail)

    @classmethod
    def running(cls, detail: str = "") -> "ServiceStatus":
        return cls(kind=StatusKind.running, detail=detail)

    @classmethod
    def already_running(cls, detail: Optional[str] = None) -> "ServiceStatus":
        return cls(kind=StatusKind.already_running, detail=detail)

    @classmethod
    def starting(cls, detail: Optional[str] = None) -> "ServiceStatus":
        return cls(kind=StatusKind.starting, detail=detail)

    @classmethod
    def start_failed(cls, reason: str) -> "ServiceStatus":
        return cls(kind=StatusKind.start_failed, detail=reason)

    @property
    def is_running(self) -> bool:
        return self.kind in (StatusKind.running, StatusKind.already_running)

    def encode_status(self) -> str:
        """Render as the ``running:<detail>`` / ``not_running`` literal the host shell matches on."""
        if self.is_running:
            return f"{RUNNING_PREFIX}{self.detail or ''}"
        return NOT_RUNNING


class Installation(BaseModel):
    """Result of a ``--version`` query against a service CLI."""

    installed: bool = False
    version: Optional[str] = None

    def encode(self) -> str:
        if not self.installed:
            return NOT_INSTALLED
        return f"{INSTALLED_PREFIX}{self.version or ''}"


class ManagedService(BaseModel):
    """One external dependency tracked by the orchestrator."""

    kind: ServiceKind
    name: str
    executable: str
    installed_version: Optional[str] = None
    status: ServiceStatus = Field(default_factory=ServiceStatus.stopped)
    last_probed: Optional[datetime] = None

    def record(self, status: ServiceStatus) -> ServiceStatus:
        self.status = status
        self.last_probed = datetime.now(timezone.utc)
        return status


# ---------------------------------------------------------------------------
# Startup sequence
# ---------------------------------------------------------------------------


class StartupStep(str, Enum):
    checking_docker = "checking_docker"
    starting_docker = "starting_docker"
    waiting_docker = "waiting_docker"
    checking_supabase = "checking_supabase"
    starting_supabase = "starting_supabase"
    waiting_supabase = "waiting_supabase"
    running_migrations = "running_migrations"
    ready = "ready"
    error = "error"


class StartupErrorType(str, Enum):
    docker_not_installed = "docker_not_installed"
    docker_not_running = "docker_not_running"
    docker_start_failed = "docker_start_failed"
    supabase_not_installed = "supabase_not_installed"
    supabase_port_conflict = "supabase_port_conflict"
    supabase_start_failed = "supabase_start_failed"
    migration_failed = "migration_failed"
    unknown = "unknown"


class StartupEvent(BaseModel):
    step: StartupStep
    status: Literal["started", "ok", "failed"]
    progress: int = Field(default=0, ge=0, le=100)
    detail: Optional[str] = None


class StartupRecord(BaseModel):
    run_id: str
    ok: Optional[bool] = None
    step: StartupStep = StartupStep.checking_docker
    progress: int = 0
    events: List[StartupEvent] = Field(default_factory=list)
    error_type: Optional[StartupErrorType] = None
    error: Optional[str] = None
    runtime_version: Optional[str] = None
    backend_config: Optional[str] = None


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class CommandResponse(BaseModel):
    """Boundary payload returned by every orchestrator operation."""

    result: str


class ServiceReport(BaseModel):
    name: str
    kind: ServiceKind
    status: StatusKind
    detail: Optional[str] = None
    installed_version: Optional[str] = None
    last_probed: Optional[datetime] = None


class StatusResponse(BaseModel):
    """Wrapper returned from ``GET /api/status`` with the state of services."""

    services: List[ServiceReport] = Field(default_factory=list)
    project_linked: bool = False


class StartupAccepted(BaseModel):
    run_id: str


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class RuntimeSettings(BaseModel):
    executable: str = DOCKER_EXECUTABLE
    macos_app: str = DOCKER_MACOS_APP
    windows_app_path: str = DOCKER_WINDOWS_APP_PATH
    linux_unit: str = DOCKER_LINUX_UNIT


class BackendSettings(BaseModel):
    executable: str = SUPABASE_EXECUTABLE
    project_dir: Optional[Path] = None
    api_url: str = DEFAULT_API_URL
    health_path: str = HEALTH_PATH
    readiness_table: str = READINESS_TABLE
    anon_key: Optional[str] = DEFAULT_ANON_KEY

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return value.rstrip("/")

    @property
    def health_url(self) -> str:
        return f"{self.api_url}/{self.health_path.lstrip('/')}"

    @property
    def readiness_url(self) -> str:
        return f"{self.api_url}/rest/v1/{self.readiness_table}?select=id&limit=1"

    def auth_headers(self) -> Dict[str, str]:
        if not self.anon_key:
            return {}
        return {"apikey": self.anon_key, "Authorization": f"Bearer {self.anon_key}"}


class TimeoutSettings(BaseModel):
    status: float = Field(default=DEFAULT_TIMEOUTS["status"], gt=0)
    version: float = Field(default=DEFAULT_TIMEOUTS["version"], gt=0)
    health: float = Field(default=DEFAULT_TIMEOUTS["health"], gt=0, le=MAX_HEALTH_TIMEOUT)
    enrichment: float = Field(default=DEFAULT_TIMEOUTS["enrichment"], gt=0)
    runtime_start: float = Field(default=DEFAULT_TIMEOUTS["runtime_start"], gt=0)
    backend_start: float = Field(default=DEFAULT_TIMEOUTS["backend_start"], gt=0)
    stop: float = Field(default=DEFAULT_TIMEOUTS["stop"], gt=0)
    readiness: float = Field(default=DEFAULT_TIMEOUTS["readiness"], gt=0)
    cleanup: float = Field(default=DEFAULT_TIMEOUTS["cleanup"], gt=0)


class WaitSettings(BaseModel):
    runtime_ready: float = Field(default=DEFAULT_WAITS["runtime_ready"], ge=0)
    backend_ready: float = Field(default=DEFAULT_WAITS["backend_ready"], ge=0)
    poll_interval: float = Field(default=DEFAULT_WAITS["poll_interval"], ge=0)
    start_grace: float = Field(default=DEFAULT_WAITS["start_grace"], ge=0)


class OrchestratorSettings(BaseModel):
    version: int = 1
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    waits: WaitSettings = Field(default_factory=WaitSettings)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("Unsupported log level")
        return level
