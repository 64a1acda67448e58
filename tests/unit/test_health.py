"""Tests for the HTTP health probe."""
from __future__ import annotations

import httpx
import pytest

from devenv.clients.health import HealthProbe
from devenv.constants import READY_STATUS_CODES

URL = "http://127.0.0.1:54321/rest/v1/"


def probe_returning(status_code: int, seen: list | None = None) -> HealthProbe:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text="{}")

    return HealthProbe(transport=httpx.MockTransport(handler))


def probe_raising(exc_type: type) -> HealthProbe:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("boom", request=request)

    return HealthProbe(transport=httpx.MockTransport(handler))


class TestHealthProbe:
    @pytest.mark.asyncio
    async def test_expected_status_is_success(self):
        result = await probe_returning(200).probe_http(URL, timeout=2)
        assert result.success is True
        assert result.reachable is True
        assert result.status_code == 200
        assert result.payload == "{}"

    @pytest.mark.asyncio
    async def test_unexpected_status_is_reachable_but_not_ready(self):
        result = await probe_returning(503).probe_http(URL, timeout=2)
        assert result.success is False
        assert result.reachable is True
        assert result.diagnostic == f"HTTP 503 from {URL}"

    @pytest.mark.asyncio
    async def test_custom_expected_set(self):
        result = await probe_returning(406).probe_http(URL, timeout=2, expected=READY_STATUS_CODES)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_connection_refused_is_unreachable(self):
        result = await probe_raising(httpx.ConnectError).probe_http(URL, timeout=2)
        assert result.success is False
        assert result.reachable is False
        assert "unreachable" in result.diagnostic

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self):
        result = await probe_raising(httpx.ReadTimeout).probe_http(URL, timeout=2)
        assert result.reachable is False
        assert "Timed out" in result.diagnostic

    @pytest.mark.asyncio
    async def test_headers_are_sent(self):
        seen: list = []
        await probe_returning(200, seen).probe_http(URL, timeout=2, headers={"apikey": "anon"})
        assert seen[0].headers["apikey"] == "anon"
