"""
Unit tests for the health endpoint and the liveness prober.

Both run against a real aiohttp server bound to an ephemeral port.
"""

import asyncio
import socket

import aiohttp
import pytest
import pytest_asyncio

from nexusbot.health.prober import LivenessProber, ProberConfig
from nexusbot.health.server import HealthServer
from tests.fakes import wait_until


@pytest_asyncio.fixture
async def health_server():
    server = HealthServer(banner="TestBot bot is running!", port=0, host="127.0.0.1")
    await server.start()
    yield server
    await server.stop()


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestHealthServer:
    async def test_root_returns_plaintext_banner(self, health_server):
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{health_server.port}/") as response:
                body = await response.text()
                content_type = response.content_type
                status = response.status

        assert status == 200
        assert content_type == "text/plain"
        assert body == "TestBot bot is running!"
        assert health_server.requests_served == 1

    async def test_unknown_path_is_404(self, health_server):
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{health_server.port}/nope") as response:
                assert response.status == 404

    async def test_port_in_use_raises(self, health_server):
        second = HealthServer(banner="x", port=health_server.port, host="127.0.0.1")

        with pytest.raises(OSError):
            await second.start()

        assert second.is_running is False

    async def test_start_and_stop_are_idempotent(self, health_server):
        await health_server.start()
        assert health_server.is_running

        await health_server.stop()
        await health_server.stop()
        assert not health_server.is_running

    def test_url_uses_localhost(self):
        assert HealthServer(banner="x", port=3000).url == "http://localhost:3000/"


class TestProberConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [{"interval_seconds": 0}, {"timeout_seconds": -1}, {"failure_threshold": 0}],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ProberConfig(url="http://localhost/", **kwargs)


class TestLivenessProber:
    async def test_probe_healthy_endpoint(self, health_server):
        prober = LivenessProber(ProberConfig(url=f"http://127.0.0.1:{health_server.port}/"))

        assert await prober.probe_once() is True
        assert prober.is_healthy is True

    async def test_non_200_is_a_failure(self, health_server):
        prober = LivenessProber(
            ProberConfig(url=f"http://127.0.0.1:{health_server.port}/missing", failure_threshold=1)
        )

        assert await prober.probe_once() is False
        assert prober.is_healthy is False
        assert prober.failures == 1

    async def test_unreachable_endpoint_never_raises(self):
        prober = LivenessProber(
            ProberConfig(url=f"http://127.0.0.1:{_unused_port()}/", timeout_seconds=1.0)
        )

        assert await prober.probe_once() is False

    async def test_unhealthy_after_threshold_then_recovers(self, health_server):
        prober = LivenessProber(
            ProberConfig(url=f"http://127.0.0.1:{health_server.port}/missing", failure_threshold=2)
        )

        await prober.probe_once()
        assert prober.is_healthy is None
        await prober.probe_once()
        assert prober.is_healthy is False

        prober._config = ProberConfig(url=f"http://127.0.0.1:{health_server.port}/")
        await prober.probe_once()
        assert prober.is_healthy is True

    async def test_run_forever_probes_on_interval_until_stopped(self, health_server):
        prober = LivenessProber(
            ProberConfig(url=f"http://127.0.0.1:{health_server.port}/", interval_seconds=0.05)
        )
        stop_event = asyncio.Event()

        task = asyncio.create_task(prober.run_forever(stop_event=stop_event))
        await wait_until(lambda: prober.probes >= 2)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert health_server.requests_served >= 2

    async def test_first_probe_waits_one_interval(self, health_server):
        prober = LivenessProber(
            ProberConfig(url=f"http://127.0.0.1:{health_server.port}/", interval_seconds=10.0)
        )
        stop_event = asyncio.Event()

        task = asyncio.create_task(prober.run_forever(stop_event=stop_event))
        await asyncio.sleep(0.1)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert prober.probes == 0
