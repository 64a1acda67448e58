"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import asyncio
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence, Tuple, Union
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from devenv.app import app
from devenv.clients.health import ProbeResult
from devenv.environment import EnvironmentOrchestrator
from devenv.models import OrchestratorSettings
from devenv.runtime.platform import Platform
from devenv.runtime.process import CommandOutcome


SUPABASE_STATUS_JSON = '{"API_URL": "http://127.0.0.1:54321", "ANON_KEY": "anon"}'


def ok(stdout: str = "") -> CommandOutcome:
    return CommandOutcome(success=True, stdout=stdout, returncode=0)


def fail(stderr: str = "", returncode: int = 1) -> CommandOutcome:
    return CommandOutcome(success=False, stderr=stderr, returncode=returncode)


def missing(executable: str) -> CommandOutcome:
    return CommandOutcome(
        error=f"Failed to run {executable}: [Errno 2] No such file or directory: '{executable}'"
    )


def timed_out(executable: str, seconds: float = 10) -> CommandOutcome:
    return CommandOutcome(error=f"{executable} timed out after {seconds:g}s", timed_out=True)


@dataclass
class RecordedCall:
    command: Tuple[str, ...]
    timeout: float
    cwd: Optional[Path]


class ScriptedRunner:
    """Process runner double: answers by command prefix and records every call.

    A list of outcomes is consumed in order; its last entry repeats. Commands
    without a rule behave like a missing executable.
    """

    def __init__(self) -> None:
        self.calls: List[RecordedCall] = []
        self._rules: Dict[Tuple[str, ...], List[CommandOutcome]] = {}
        self._delays: Dict[Tuple[str, ...], float] = {}

    def on(
        self,
        *prefix: str,
        outcome: Union[CommandOutcome, Sequence[CommandOutcome]],
        delay: float = 0.0,
    ) -> "ScriptedRunner":
        outcomes = [outcome] if isinstance(outcome, CommandOutcome) else list(outcome)
        self._rules[tuple(prefix)] = outcomes
        self._delays[tuple(prefix)] = delay
        return self

    async def run(self, executable, args, timeout, cwd=None) -> CommandOutcome:
        command = (executable, *args)
        self.calls.append(RecordedCall(command=command, timeout=timeout, cwd=cwd))
        for prefix in sorted(self._rules, key=len, reverse=True):
            if command[: len(prefix)] != prefix:
                continue
            if self._delays[prefix]:
                await asyncio.sleep(self._delays[prefix])
            outcomes = self._rules[prefix]
            return outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        return missing(executable)

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call.command[: len(prefix)] == prefix)

    def commands(self) -> List[Tuple[str, ...]]:
        return [call.command for call in self.calls]


class StaticProbe:
    """Health probe double keyed by URL fragment; the longest fragment wins.

    Status codes are checked against the ``expected`` set like the real
    probe; URLs without a rule are unreachable.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Optional[Dict[str, str]]]] = []
        self._rules: Dict[str, List[Union[int, ProbeResult]]] = {}

    def respond(self, fragment: str, *results: Union[int, ProbeResult]) -> "StaticProbe":
        self._rules[fragment] = list(results)
        return self

    async def probe_http(self, url, timeout, expected=frozenset({200}), headers=None) -> ProbeResult:
        self.calls.append((url, headers))
        for fragment in sorted(self._rules, key=len, reverse=True):
            if fragment not in url:
                continue
            results = self._rules[fragment]
            result = results.pop(0) if len(results) > 1 else results[0]
            if isinstance(result, ProbeResult):
                return result
            success = result in expected
            return ProbeResult(
                success=success,
                reachable=True,
                status_code=result,
                diagnostic=None if success else f"HTTP {result} from {url}",
            )
        return ProbeResult(diagnostic=f"{url} unreachable: ConnectError: connection refused")

    def count(self, fragment: str) -> int:
        return sum(1 for url, _ in self.calls if fragment in url)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir: Path) -> OrchestratorSettings:
    """Settings with short waits so polling loops finish quickly."""
    return OrchestratorSettings.model_validate(
        {
            "backend": {"project_dir": str(temp_dir)},
            "timeouts": {"cleanup": 0.5},
            "waits": {
                "runtime_ready": 0.2,
                "backend_ready": 0.2,
                "poll_interval": 0.01,
                "start_grace": 30,
            },
        }
    )


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def probe() -> StaticProbe:
    return StaticProbe()


@pytest.fixture
def orchestrator(
    settings: OrchestratorSettings, runner: ScriptedRunner, probe: StaticProbe
) -> EnvironmentOrchestrator:
    return EnvironmentOrchestrator(
        settings=settings, runner=runner, probe=probe, platform=Platform.linux
    )


@pytest.fixture
def api_client(orchestrator: EnvironmentOrchestrator) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    # Patch the module-level orchestrator used by app routes
    with patch("devenv.app.orchestrator", orchestrator):
        with TestClient(app) as client:
            yield client
