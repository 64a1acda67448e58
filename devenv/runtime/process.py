"""Utilities for invoking external commands with a bounded timeout."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

log = logging.getLogger(__name__)

# Grace period for a killed child to be reaped.
_REAP_TIMEOUT = 5.0


@dataclass
class CommandOutcome:
    """Result of one command invocation.

    ``error`` is set when the command never ran to completion (spawn failure
    or timeout, the latter also setting ``timed_out``); a non-zero exit
    leaves it ``None`` and ``success`` False.
    """

    success: bool = False
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def executed(self) -> bool:
        return self.error is None

    def diagnostic(self) -> str:
        """Most useful text for reporting a failure."""
        if self.error:
            return self.error
        detail = self.stderr.strip() or self.stdout.strip()
        if detail:
            return detail
        return f"exit status {self.returncode}"


class ProcessRunner:
    """Wrapper around asyncio subprocesses used by every service client."""

    def __init__(
        self,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.cwd = cwd
        self.env = env

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: float,
        cwd: Optional[Path] = None,
    ) -> CommandOutcome:
        """Run ``executable args...`` and collect its output.

        Never raises for spawn failures or timeouts; those are reported in
        ``CommandOutcome.error``. No retries happen here.
        """
        command = [executable, *args]
        workdir = cwd or self.cwd
        env = None
        if self.env is not None:
            env = os.environ.copy()
            env.update(self.env)

        log.debug("Running %s (timeout %.1fs)", " ".join(command), timeout)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=str(workdir) if workdir else None,
                env=env,
            )
        except OSError as exc:
            log.debug("Unable to spawn %s", executable, exc_info=True)
            return CommandOutcome(error=f"Failed to run {executable}: {exc}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            log.debug("%s timed out after %.1fs", executable, timeout)
            return CommandOutcome(
                error=f"{executable} timed out after {timeout:g}s", timed_out=True
            )

        outcome = CommandOutcome(
            success=process.returncode == 0,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            returncode=process.returncode,
        )
        if not outcome.success:
            log.debug("%s exited with %s: %s", executable, process.returncode, outcome.diagnostic())
        return outcome

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=_REAP_TIMEOUT)
        except asyncio.TimeoutError:
            log.warning("Process %s did not exit after kill", process.pid)
