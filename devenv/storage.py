"""Helpers for reading orchestrator settings and tracking startup runs."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from .constants import LINK_MARKER
from .models import OrchestratorSettings, StartupErrorType, StartupEvent, StartupRecord

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DEVENV_CONFIG"
DEFAULT_CONFIG_NAME = "devenv.yaml"


class SettingsRepository:
    """Read-only access to ``devenv.yaml``; the orchestrator never writes it."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def from_environment(cls, root: Optional[Path] = None) -> "SettingsRepository":
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            return cls(Path(override).expanduser())
        return cls((root or Path.cwd()) / DEFAULT_CONFIG_NAME)

    def load_settings(self) -> OrchestratorSettings:
        if not self.path.exists():
            log.debug("No settings at %s, using defaults", self.path)
            return OrchestratorSettings()
        data = yaml.safe_load(self.path.read_text()) or {}
        settings = OrchestratorSettings.model_validate(data)
        project_dir = settings.backend.project_dir
        if project_dir is not None and not project_dir.is_absolute():
            # relative project paths are resolved against the settings file
            settings.backend.project_dir = (self.path.parent / project_dir).resolve()
        return settings


def is_project_linked(project_dir: Optional[Path]) -> bool:
    """True when ``supabase link`` left a non-empty project-ref marker."""
    marker = (project_dir or Path.cwd()) / LINK_MARKER
    try:
        return bool(marker.read_text().strip())
    except OSError:
        return False


class RunRegistry:
    """In-memory history of startup runs, streamed to the host shell."""

    def __init__(self) -> None:
        self._runs: Dict[str, StartupRecord] = {}

    def start_run(self, run_id: str) -> StartupRecord:
        record = StartupRecord(run_id=run_id)
        self._runs[run_id] = record
        return record

    def append_run_event(self, run_id: str, event: StartupEvent) -> None:
        record = self._runs.get(run_id)
        if record is None:
            record = self.start_run(run_id)
        record.events.append(event)
        record.step = event.step
        record.progress = max(record.progress, event.progress)

    def finalize_run(
        self,
        run_id: str,
        ok: bool,
        error_type: Optional[StartupErrorType] = None,
        error: Optional[str] = None,
    ) -> None:
        record = self._runs.get(run_id)
        if record is None:
            record = self.start_run(run_id)
        record.ok = ok
        record.error_type = error_type
        record.error = error

    def get_run(self, run_id: str) -> StartupRecord | None:
        return self._runs.get(run_id)
