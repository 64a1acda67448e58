#!/usr/bin/env python3
"""Command line host for the development environment orchestrator.

Usage:
    devenv status                 # runtime and backend status payloads
    devenv start all              # runtime, then backend, then readiness
    devenv stop backend --force   # also stops stacks from other projects
    devenv cleanup --stop-backend
    devenv serve --port 8765      # HTTP API for a desktop shell
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .environment import EnvironmentOrchestrator
from .errors import OrchestratorError
from .models import ServiceKind
from .storage import CONFIG_ENV_VAR, SettingsRepository


class StartupFailed(OrchestratorError):
    kind = "startup_failed"


SERVICE_CHOICES = {
    "runtime": ServiceKind.container_runtime,
    "backend": ServiceKind.backend_stack,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devenv",
        description="Start, stop and verify the local Docker and Supabase services.",
    )
    parser.add_argument("--config", type=Path, help="Path to devenv.yaml")
    parser.add_argument("--log-level", help="Override the configured log level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Report whether each service is running")
    sub.add_parser("installed", help="Report installed CLI versions")

    start = sub.add_parser("start", help="Start a service")
    start.add_argument("service", choices=["runtime", "backend", "all"])

    stop = sub.add_parser("stop", help="Stop a service")
    stop.add_argument("service", choices=sorted(SERVICE_CHOICES))
    stop.add_argument("--force", action="store_true")

    sub.add_parser("config", help="Print the backend connection details")
    sub.add_parser("verify", help="Check that the backend schema is queryable")

    cleanup = sub.add_parser("cleanup", help="Best-effort shutdown of managed services")
    cleanup.add_argument("--stop-backend", action="store_true")

    serve = sub.add_parser("serve", help="Serve the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8765)
    return parser


async def run_command(orchestrator: EnvironmentOrchestrator, args: argparse.Namespace) -> List[str]:
    """Execute one subcommand and return the lines to print."""
    if args.command == "status":
        return [
            f"docker {await orchestrator.check_runtime_status()}",
            f"supabase {await orchestrator.check_backend_status()}",
        ]
    if args.command == "installed":
        return [
            f"docker {await orchestrator.check_runtime_installed()}",
            f"supabase {await orchestrator.check_backend_installed()}",
        ]
    if args.command == "start":
        if args.service == "runtime":
            return [await orchestrator.start_runtime()]
        if args.service == "backend":
            return [await orchestrator.start_backend()]
        record = await orchestrator.start_all_in_order()
        lines = [
            f"[{event.progress:>3}%] {event.step.value} {event.status}"
            + (f": {event.detail}" if event.detail else "")
            for event in record.events
        ]
        if not record.ok:
            for line in lines:
                print(line)
            raise StartupFailed(record.error or "startup failed")
        return lines
    if args.command == "stop":
        status = await orchestrator.stop(SERVICE_CHOICES[args.service], force=args.force)
        return [status.kind.value]
    if args.command == "config":
        return [(await orchestrator.get_backend_config()).strip()]
    if args.command == "verify":
        return [await orchestrator.verify_backend_ready()]
    if args.command == "cleanup":
        return [await orchestrator.cleanup(args.stop_backend)]
    raise ValueError(f"unknown command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    repo = SettingsRepository(args.config) if args.config else SettingsRepository.from_environment()
    settings = repo.load_settings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        if args.config:
            os.environ[CONFIG_ENV_VAR] = str(args.config)

        uvicorn.run("devenv.app:app", host=args.host, port=args.port)
        return 0

    orchestrator = EnvironmentOrchestrator(settings)
    try:
        lines = asyncio.run(run_command(orchestrator, args))
    except OrchestratorError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
