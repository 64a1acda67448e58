"""Tests for the Docker and Supabase service inspectors."""
from __future__ import annotations

import pytest

from conftest import SUPABASE_STATUS_JSON, fail, missing, ok, timed_out
from devenv.clients.base import parse_version
from devenv.clients.docker import DockerClient
from devenv.clients.supabase import SupabaseClient
from devenv.constants import DEFAULT_ANON_KEY
from devenv.errors import ExecutionError
from devenv.models import BackendSettings, OrchestratorSettings, StatusKind, TimeoutSettings
from devenv.runtime.platform import Platform


@pytest.fixture
def docker(runner, settings: OrchestratorSettings) -> DockerClient:
    return DockerClient(runner, settings.runtime, settings.timeouts)


@pytest.fixture
def supabase(runner, probe, settings: OrchestratorSettings) -> SupabaseClient:
    return SupabaseClient(runner, probe, settings.backend, settings.timeouts)


class TestDockerInspect:
    @pytest.mark.asyncio
    async def test_running_with_server_version(self, docker, runner):
        runner.on("docker", "info", outcome=ok("27.3.1\n"))
        status = await docker.inspect()
        assert status.kind == StatusKind.running
        assert status.detail == "27.3.1"
        assert runner.commands() == [("docker", "info", "--format", "{{.ServerVersion}}")]

    @pytest.mark.asyncio
    async def test_daemon_down_is_stopped(self, docker, runner):
        runner.on("docker", "info", outcome=fail("Cannot connect to the Docker daemon"))
        assert (await docker.inspect()).kind == StatusKind.stopped

    @pytest.mark.asyncio
    async def test_missing_cli_is_stopped_not_an_error(self, docker):
        assert (await docker.inspect()).kind == StatusKind.stopped

    @pytest.mark.asyncio
    async def test_empty_version_is_unreachable(self, docker, runner):
        runner.on("docker", "info", outcome=ok("  \n"))
        assert (await docker.inspect()).kind == StatusKind.unreachable

    @pytest.mark.asyncio
    async def test_hung_daemon_raises_execution_error(self, docker, runner):
        runner.on("docker", "info", outcome=timed_out("docker"))
        with pytest.raises(ExecutionError) as excinfo:
            await docker.inspect()
        assert excinfo.value.message == "docker timed out after 10s"


class TestVersionCheck:
    @pytest.mark.asyncio
    async def test_installed_version_is_parsed(self, docker, runner):
        runner.on("docker", "--version", outcome=ok("Docker version 27.3.1, build ce12230\n"))
        installation = await docker.version_check()
        assert installation.installed is True
        assert installation.version == "27.3.1"
        assert installation.encode() == "installed:27.3.1"

    @pytest.mark.asyncio
    async def test_spawn_failure_is_not_installed(self, docker):
        installation = await docker.version_check()
        assert installation.installed is False
        assert installation.encode() == "not_installed"

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_not_installed(self, supabase, runner):
        runner.on("supabase", "--version", outcome=fail("broken install"))
        assert (await supabase.version_check()).installed is False

    def test_parse_version_fallbacks(self):
        assert parse_version("2.20.5\n") == "2.20.5"
        assert parse_version("\n  nightly-build\n") == "nightly-build"
        assert parse_version("") == ""


class TestDockerStrategies:
    def test_linux_uses_systemctl_fallback(self, docker):
        labels = [spec.label for spec in docker.start_strategies(Platform.linux)]
        assert labels == ["docker desktop start", "systemctl --user start docker-desktop"]

    def test_macos_uses_open(self, docker):
        strategies = docker.start_strategies(Platform.macos)
        assert [s.executable for s in strategies] == ["docker", "open"]
        assert strategies[1].args == ("-a", "Docker", "--background")

    def test_windows_launches_desktop_exe(self, docker):
        strategies = docker.start_strategies(Platform.windows)
        assert strategies[1].executable == "cmd"
        assert strategies[1].args[-1].endswith("Docker Desktop.exe")

    def test_unknown_platform_only_has_primary(self, docker):
        assert len(docker.start_strategies(Platform.other)) == 1

    def test_force_stop(self, docker):
        assert docker.stop_command(force=True).args == ("desktop", "stop", "--force")


class TestSupabaseInspect:
    @pytest.mark.asyncio
    async def test_health_ok_is_enriched_with_status_json(self, supabase, runner, probe, temp_dir):
        probe.respond("/rest/v1/", 200)
        runner.on("supabase", "status", outcome=ok(SUPABASE_STATUS_JSON))
        status = await supabase.inspect()
        assert status.kind == StatusKind.running
        assert status.detail == SUPABASE_STATUS_JSON
        assert runner.calls[0].cwd == temp_dir

    @pytest.mark.asyncio
    async def test_health_ok_with_enrichment_timeout_still_running(self, supabase, runner, probe):
        probe.respond("/rest/v1/", 200)
        runner.on("supabase", "status", outcome=timed_out("supabase"))
        status = await supabase.inspect()
        assert status.kind == StatusKind.running
        assert status.detail == ""

    @pytest.mark.asyncio
    async def test_health_ok_with_enrichment_failure_still_running(self, supabase, runner, probe):
        probe.respond("/rest/v1/", 200)
        runner.on("supabase", "status", outcome=fail("no project found"))
        assert (await supabase.inspect()).encode_status() == "running:"

    @pytest.mark.asyncio
    async def test_falls_back_to_cli_when_probe_fails(self, supabase, runner, probe):
        runner.on("supabase", "status", outcome=ok(SUPABASE_STATUS_JSON))
        status = await supabase.inspect()
        assert status.kind == StatusKind.running
        assert status.detail == SUPABASE_STATUS_JSON
        assert probe.count("/rest/v1/") == 1

    @pytest.mark.asyncio
    async def test_unexpected_health_status_falls_back_to_cli(self, supabase, runner, probe):
        probe.respond("/rest/v1/", 503)
        runner.on("supabase", "status", outcome=fail("not running"))
        assert (await supabase.inspect()).kind == StatusKind.stopped

    @pytest.mark.asyncio
    async def test_both_tiers_fail_is_stopped(self, supabase):
        assert (await supabase.inspect()).kind == StatusKind.stopped

    @pytest.mark.asyncio
    async def test_cli_timeout_after_failed_probe_raises(self, supabase, runner):
        runner.on("supabase", "status", outcome=timed_out("supabase"))
        with pytest.raises(ExecutionError):
            await supabase.inspect()

    @pytest.mark.asyncio
    async def test_default_settings_send_local_anon_key(self, runner, probe):
        client = SupabaseClient(runner, probe, BackendSettings(), TimeoutSettings())
        probe.respond("/rest/v1/", 200)
        runner.on("supabase", "status", outcome=ok("{}"))
        assert (await client.inspect()).kind == StatusKind.running
        _, headers = probe.calls[0]
        assert headers["apikey"] == DEFAULT_ANON_KEY
        assert headers["Authorization"] == f"Bearer {DEFAULT_ANON_KEY}"

    def test_start_strategies_fall_back_to_npx(self, supabase):
        commands = [(s.executable, *s.args) for s in supabase.start_strategies(Platform.linux)]
        assert commands == [("supabase", "start"), ("npx", "supabase", "start")]

    def test_force_stop_stops_all_projects(self, supabase):
        assert supabase.stop_command().args == ("stop",)
        assert supabase.stop_command(force=True).args == ("stop", "--all")
