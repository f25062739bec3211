"""
uvicorn hosting with operator-driven graceful shutdown.

A service runs as two cooperating tasks: the uvicorn accept loop and a
shutdown waiter blocked on an ``asyncio.Event``. SIGINT/SIGTERM set the
event; the waiter then tells uvicorn to stop accepting, in-flight requests
get a bounded grace period, and the server is forced down after it.
"""

import asyncio
import signal
from contextlib import contextmanager, suppress
from typing import Iterator, Optional, Tuple

import structlog
import uvicorn
from fastapi import FastAPI

logger = structlog.get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"

# Seconds allowed past the grace period for uvicorn to tear down connections.
FORCE_EXIT_MARGIN = 2.0


def parse_listen_address(address: str, default_host: str = DEFAULT_HOST) -> Tuple[str, int]:
    """Split a listen address into host and port.

    Accepts ``":8080"``, ``"8080"`` and ``"host:8080"``.

    Raises:
        ValueError: If the port part is not a valid TCP port
    """
    host, _, port = address.strip().rpartition(":")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid listen address: {address!r}")
    return host or default_host, int(port)


class ManagedServer(uvicorn.Server):
    """uvicorn server whose shutdown is driven by an external token.

    uvicorn normally owns SIGINT/SIGTERM; both hooks it has used for that
    are disabled so the shutdown waiter decides when to stop.
    """

    def install_signal_handlers(self) -> None:
        return None

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def build_server(
    app: FastAPI,
    host: str,
    port: int,
    grace_period: float = 10.0,
    log_level: str = "info",
) -> ManagedServer:
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_config=None,
        log_level=log_level.lower(),
        access_log=False,
        timeout_graceful_shutdown=grace_period,
    )
    return ManagedServer(config)


def install_shutdown_handlers(shutdown_event: asyncio.Event) -> None:
    """Route SIGINT and SIGTERM to the shutdown token."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            logger.warning("signal_handler_unavailable", signal=sig.name)


async def serve(
    server: uvicorn.Server,
    shutdown_event: asyncio.Event,
    grace_period: float = 10.0,
) -> None:
    """Run the accept loop until it exits or the shutdown token is set.

    Args:
        server: uvicorn server to run
        shutdown_event: Cancellation token; setting it starts the shutdown
        grace_period: Seconds in-flight requests get before a forced stop
    """
    accept_task = asyncio.create_task(server.serve(), name="accept-loop")
    waiter_task = asyncio.create_task(shutdown_event.wait(), name="shutdown-waiter")

    done, _ = await asyncio.wait({accept_task, waiter_task}, return_when=asyncio.FIRST_COMPLETED)

    if accept_task in done:
        waiter_task.cancel()
        with suppress(asyncio.CancelledError):
            await waiter_task
        await accept_task
        return

    logger.info("shutdown_requested", grace_period=grace_period)
    server.should_exit = True

    # uvicorn cancels its own request tasks once the grace period is over;
    # the margin lets it answer and close those connections itself.
    try:
        await asyncio.wait_for(asyncio.shield(accept_task), timeout=grace_period + FORCE_EXIT_MARGIN)
    except asyncio.TimeoutError:
        logger.warning("graceful_shutdown_timed_out", grace_period=grace_period)
        server.force_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(accept_task), timeout=FORCE_EXIT_MARGIN)
        except asyncio.TimeoutError:
            accept_task.cancel()
            with suppress(asyncio.CancelledError):
                await accept_task

    logger.info("server_stopped")


async def run_service(
    app: FastAPI,
    host: str,
    port: int,
    grace_period: float = 10.0,
    log_level: str = "info",
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """Host ``app`` until an operator interrupt, then shut down gracefully."""
    shutdown_event = shutdown_event or asyncio.Event()
    install_shutdown_handlers(shutdown_event)

    logger.info("starting_server", host=host, port=port)
    server = build_server(app, host, port, grace_period=grace_period, log_level=log_level)
    await serve(server, shutdown_event, grace_period=grace_period)
