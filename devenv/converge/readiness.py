"""Readiness verification for the backend stack schema."""
from __future__ import annotations

import logging
from typing import Callable

from ..clients.health import HealthProbe
from ..constants import MIGRATIONS_COMPLETE, NO_MIGRATIONS_NEEDED, READY_STATUS_CODES
from ..errors import ReadinessFailedError
from ..models import BackendSettings, TimeoutSettings

log = logging.getLogger(__name__)


class ReadinessVerifier:
    """Checks that the REST gateway can serve a data-bearing table.

    Running is not ready: the gateway may be up before migrations created
    the schema. 401 counts as ready on purpose (the table exists, only the
    key was rejected), which also hides a misconfigured key.
    """

    def __init__(
        self,
        probe: HealthProbe,
        settings: BackendSettings,
        timeouts: TimeoutSettings,
        is_linked: Callable[[], bool],
    ) -> None:
        self.probe = probe
        self.settings = settings
        self.timeouts = timeouts
        self.is_linked = is_linked

    async def verify(self) -> str:
        url = self.settings.readiness_url
        result = await self.probe.probe_http(
            url,
            self.timeouts.readiness,
            expected=READY_STATUS_CODES,
            headers=self.settings.auth_headers(),
        )
        if result.success:
            log.debug("Readiness probe returned HTTP %s", result.status_code)
            return MIGRATIONS_COMPLETE if result.status_code == 200 else NO_MIGRATIONS_NEEDED

        command = self.remediation_command(reachable=result.reachable)
        if result.reachable:
            message = (
                f"Database schema is not ready (HTTP {result.status_code} from "
                f"{self.settings.readiness_table}). Run `{command}` manually{self._where()} "
                "to apply the migrations, then retry."
            )
        else:
            message = (
                f"Backend API is not reachable ({result.diagnostic}). Run `{command}` "
                f"manually{self._where()}, then retry."
            )
        log.info("Backend not ready: %s", message)
        raise ReadinessFailedError(message, remediation=command)

    def remediation_command(self, reachable: bool = True) -> str:
        executable = self.settings.executable
        if not reachable:
            return f"{executable} start"
        if self.is_linked():
            return f"{executable} db push"
        return f"{executable} migration up"

    def _where(self) -> str:
        if self.settings.project_dir is None:
            return ""
        return f" in {self.settings.project_dir}"
