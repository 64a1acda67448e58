"""Classified failures raised across the orchestrator boundary."""
from __future__ import annotations

from typing import Optional


class OrchestratorError(Exception):
    """Base class for every failure the host shell can receive."""

    kind = "orchestrator_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ExecutionError(OrchestratorError):
    """A command could not be spawned or did not finish in time."""

    kind = "execution_error"
    status_code = 502


class StartFailedError(OrchestratorError):
    """Every start mechanism for a service failed."""

    kind = "start_failed"
    status_code = 502

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail


class PortConflictError(StartFailedError):
    """The backend stack could not bind its ports."""

    kind = "port_conflict"
    status_code = 409


class StopFailedError(OrchestratorError):
    kind = "stop_failed"
    status_code = 502


class ServiceNotRunningError(OrchestratorError):
    kind = "not_running"
    status_code = 409


class ReadinessFailedError(OrchestratorError):
    """The backend stack runs but its schema is not queryable."""

    kind = "readiness_failed"
    status_code = 503

    def __init__(self, message: str, remediation: Optional[str] = None) -> None:
        super().__init__(message)
        self.remediation = remediation
