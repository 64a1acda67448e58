"""Centralized constants for the development environment orchestrator.

Executable names, local endpoints, timeouts and start commands live here,
not scattered across the individual service clients.
"""

from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Executables
# ---------------------------------------------------------------------------
DOCKER_EXECUTABLE = "docker"
SUPABASE_EXECUTABLE = "supabase"
NPX_EXECUTABLE = "npx"

# ---------------------------------------------------------------------------
# Backend stack endpoints
# The Supabase CLI publishes its gateway on 54321 and reserves 54321-54329
# for the rest of the stack (db, studio, inbucket, ...).
# ---------------------------------------------------------------------------
DEFAULT_API_URL = "http://127.0.0.1:54321"
HEALTH_PATH = "/rest/v1/"
READINESS_TABLE = "tasks"
BACKEND_PORT_RANGE: tuple[int, int] = (54321, 54329)

# Anon key baked into every `supabase start` local stack; the gateway rejects
# keyless requests with 401.
DEFAULT_ANON_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJpc3MiOiJzdXBhYmFzZS1kZW1vIiwicm9sZSI6ImFub24iLCJleHAiOjE5ODM4MTI5OTZ9."
    "CRXP1A7WOeoJeXxjNni43kdQwgnWNReilDMblYTn_I0"
)

# Marker written by `supabase link`; non-empty content means a remote project is linked.
LINK_MARKER = Path("supabase") / ".temp" / "project-ref"

# ---------------------------------------------------------------------------
# Accepted HTTP status codes
# ---------------------------------------------------------------------------
HEALTH_STATUS_CODES: frozenset[int] = frozenset({200})

# 200: rows returned. 406: table exists but is empty. 401: table exists, key rejected.
READY_STATUS_CODES: frozenset[int] = frozenset({200, 406, 401})

# ---------------------------------------------------------------------------
# Default timeouts and waits (seconds)
# ---------------------------------------------------------------------------
DEFAULT_TIMEOUTS: dict[str, float] = {
    "status": 10.0,
    "version": 5.0,
    "health": 2.0,
    "enrichment": 10.0,
    "runtime_start": 60.0,
    # first `supabase start` pulls every image
    "backend_start": 600.0,
    "stop": 120.0,
    "readiness": 5.0,
    "cleanup": 30.0,
}
MAX_HEALTH_TIMEOUT = 2.0

DEFAULT_WAITS: dict[str, float] = {
    "runtime_ready": 60.0,
    "backend_ready": 120.0,
    "poll_interval": 2.0,
    "start_grace": 30.0,
}

# ---------------------------------------------------------------------------
# Docker Desktop launchers used when `docker desktop start` is unavailable
# ---------------------------------------------------------------------------
DOCKER_MACOS_APP = "Docker"
DOCKER_WINDOWS_APP_PATH = r"C:\Program Files\Docker\Docker\Docker Desktop.exe"
DOCKER_LINUX_UNIT = "docker-desktop"

# ---------------------------------------------------------------------------
# Boundary payloads matched by the host shell
# ---------------------------------------------------------------------------
RUNNING_PREFIX = "running:"
INSTALLED_PREFIX = "installed:"
NOT_RUNNING = "not_running"
NOT_INSTALLED = "not_installed"
STARTED = "started"
ALREADY_RUNNING = "already_running"
STOPPED = "stopped"
MIGRATIONS_COMPLETE = "migrations_complete"
NO_MIGRATIONS_NEEDED = "no_migrations_needed"
CLEANUP_COMPLETE = "cleanup_complete"
