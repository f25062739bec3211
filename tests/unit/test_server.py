"""
Unit tests for uvicorn hosting and graceful shutdown.

Tests cover:
- The shutdown token stopping an idle server
- In-flight requests completing within the grace period
- Forced shutdown once the grace period is exceeded
"""

import asyncio
import time

import aiohttp
import pytest
from fastapi import FastAPI

from shared.runtime import ManagedServer, build_server, serve
from shared.runtime import server as server_module


def slow_app(delay: float, started: asyncio.Event) -> FastAPI:
    app = FastAPI()

    @app.get("/slow")
    async def slow():
        started.set()
        await asyncio.sleep(delay)
        return {"status": "done"}

    @app.get("/ping")
    async def ping():
        return {"status": "ok"}

    return app


async def start(app: FastAPI, grace_period: float):
    server = build_server(app, "127.0.0.1", 0, grace_period=grace_period, log_level="warning")
    shutdown_event = asyncio.Event()
    task = asyncio.create_task(serve(server, shutdown_event, grace_period=grace_period))
    while not server.started:
        assert not task.done()
        await asyncio.sleep(0.01)
    port = server.servers[0].sockets[0].getsockname()[1]
    return f"http://127.0.0.1:{port}", shutdown_event, task


class TestServe:
    """Test the accept loop and shutdown waiter"""

    def test_build_server(self):
        server = build_server(FastAPI(), "127.0.0.1", 8080, grace_period=3.5)

        assert isinstance(server, ManagedServer)
        assert server.config.timeout_graceful_shutdown == 3.5
        assert server.config.lifespan == "on"

    @pytest.mark.asyncio
    async def test_shutdown_event_stops_server(self):
        """Test that setting the token stops an idle server"""
        base_url, shutdown_event, task = await start(slow_app(0.0, asyncio.Event()), grace_period=2.0)

        async with aiohttp.ClientSession() as session:
            async with session.get(f"{base_url}/ping") as response:
                assert response.status == 200

        shutdown_event.set()
        await asyncio.wait_for(task, timeout=5.0)

        async with aiohttp.ClientSession() as session:
            with pytest.raises(aiohttp.ClientError):
                async with session.get(f"{base_url}/ping"):
                    pass

    @pytest.mark.asyncio
    async def test_in_flight_request_completes(self):
        """Test that a request already running finishes during the grace period"""
        started = asyncio.Event()
        base_url, shutdown_event, task = await start(slow_app(0.5, started), grace_period=3.0)

        async with aiohttp.ClientSession() as session:

            async def call():
                async with session.get(f"{base_url}/slow") as response:
                    return response.status, await response.json()

            request = asyncio.create_task(call())
            await started.wait()
            shutdown_event.set()

            status, body = await request

        await asyncio.wait_for(task, timeout=5.0)
        assert status == 200
        assert body == {"status": "done"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("grace_period", [0.5, 1.0])
    async def test_forced_shutdown_after_grace_period(self, grace_period):
        """Test that requests outliving the grace period are answered and their connections closed"""
        started = asyncio.Event()
        base_url, shutdown_event, task = await start(slow_app(30.0, started), grace_period=grace_period)

        async with aiohttp.ClientSession() as session:

            async def call():
                try:
                    async with session.get(f"{base_url}/slow") as response:
                        return response.status
                except aiohttp.ClientError:
                    return None

            request = asyncio.create_task(call())
            await started.wait()

            begin = time.monotonic()
            shutdown_event.set()
            await asyncio.wait_for(task, timeout=10.0)
            elapsed = time.monotonic() - begin

            status = await asyncio.wait_for(request, timeout=5.0)

        assert elapsed < 5.0
        assert status != 200

    @pytest.mark.asyncio
    async def test_stuck_server_is_cancelled(self, monkeypatch):
        """Test that a server ignoring the stop flags is cancelled after the margin"""
        monkeypatch.setattr(server_module, "FORCE_EXIT_MARGIN", 0.1)

        class StuckServer:
            should_exit = False
            force_exit = False

            async def serve(self):
                await asyncio.sleep(3600)

        stuck = StuckServer()
        shutdown_event = asyncio.Event()
        shutdown_event.set()

        await asyncio.wait_for(serve(stuck, shutdown_event, grace_period=0.1), timeout=5.0)

        assert stuck.should_exit is True
        assert stuck.force_exit is True
