# src/takt/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional),
- SMS webhook and digest scheduler in background threads (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..config import load_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from .bootstrap import initialize, shutdown
from .runners import start_digest_in_background, start_webhook_in_background

logger = logging.getLogger(__name__)


def main() -> None:
    settings = load_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    state = initialize(settings=settings)

    webhook_runner = start_webhook_in_background(state)
    digest_runner = start_digest_in_background(state)

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            # Some platforms may not support SIGTERM.
            for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
                if sig is not None:
                    signal.signal(sig, _handle_signal)
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        for runner in (webhook_runner, digest_runner):
            if runner is not None:
                runner.stop()
                runner.join(timeout=10.0)

        shutdown()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
