"""Lightweight HTTP reachability checks against local service endpoints.

A direct network probe answers "is anything listening" without the project
context a service CLI may need, so inspectors prefer it over CLI queries.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

import httpx

from ..constants import HEALTH_STATUS_CODES

log = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of a single probe.

    ``reachable`` means some HTTP response came back; ``success`` means its
    status code was one of the expected ones. ``diagnostic`` is kept only
    for error messages.
    """

    success: bool = False
    reachable: bool = False
    status_code: Optional[int] = None
    payload: Optional[str] = None
    diagnostic: Optional[str] = None


class HealthProbe:
    """Issues single GET requests with a hard timeout."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def probe_http(
        self,
        url: str,
        timeout: float,
        expected: FrozenSet[int] = HEALTH_STATUS_CODES,
        headers: Optional[Dict[str, str]] = None,
    ) -> ProbeResult:
        try:
            response = await asyncio.wait_for(self._get(url, timeout, headers), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            log.debug("Probe of %s timed out after %.1fs", url, timeout)
            return ProbeResult(diagnostic=f"Timed out after {timeout:g}s waiting for {url}")
        except httpx.RequestError as exc:
            log.debug("Probe of %s failed", url, exc_info=True)
            return ProbeResult(diagnostic=f"{url} unreachable: {exc.__class__.__name__}: {exc}")

        success = response.status_code in expected
        return ProbeResult(
            success=success,
            reachable=True,
            status_code=response.status_code,
            payload=response.text,
            diagnostic=None if success else f"HTTP {response.status_code} from {url}",
        )

    async def _get(
        self, url: str, timeout: float, headers: Optional[Dict[str, str]]
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            return await client.get(url, headers=headers or {})
