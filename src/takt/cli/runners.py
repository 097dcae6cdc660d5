# src/takt/cli/runners.py

"""
Background runners for the CLI process.

The console REPL blocks the main thread on input(), so every other
component gets its own thread:
- the SMS webhook runs a uvicorn server,
- the digest scheduler runs its polling loop on a private event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

import uvicorn

from ..connectors.sms_webhook import create_app
from ..core.state import AppState
from ..digest.scheduler import run_digest_scheduler

logger = logging.getLogger(__name__)


@dataclass
class DigestBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal digest stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


@dataclass
class WebhookBackgroundRunner:
    thread: threading.Thread
    server: uvicorn.Server

    def stop(self) -> None:
        self.server.should_exit = True

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_until_stopped(state: AppState, stop_event: asyncio.Event) -> None:
    s = state.settings
    task = asyncio.create_task(
        run_digest_scheduler(
            state.preferences,
            state.items,
            state.messenger,
            interval_seconds=s.digest_interval_seconds,
            concurrency=s.digest_concurrency,
        )
    )
    await stop_event.wait()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def start_digest_in_background(state: AppState) -> DigestBackgroundRunner | None:
    if not state.settings.digest_enabled:
        logger.info("Digest scheduler disabled, not starting.")
        return None
    if state.messenger is None:
        logger.warning("Digest scheduler enabled but outbound SMS is not configured; not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_until_stopped(state, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="takt-digest", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Digest thread did not initialize properly.")
        return None

    logger.info("Digest scheduler thread started.")
    return DigestBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)


def start_webhook_in_background(state: AppState) -> WebhookBackgroundRunner | None:
    s = state.settings
    if not s.webhook_enabled:
        logger.info("SMS webhook disabled, not starting.")
        return None

    config = uvicorn.Config(
        create_app(state),
        host=s.webhook_host,
        port=int(s.webhook_port),
        log_config=None,
    )
    server = uvicorn.Server(config)

    t = threading.Thread(target=server.run, name="takt-webhook", daemon=True)
    t.start()

    logger.info("SMS webhook listening on http://%s:%s/sms", s.webhook_host, s.webhook_port)
    return WebhookBackgroundRunner(thread=t, server=server)
