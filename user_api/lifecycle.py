import asyncio
import logging
import os
import signal
import sys
from typing import Callable, Optional

from user_api.pipeline import TelemetryPipeline

logger = logging.getLogger(__name__)


class ShutdownHandler:
    """
    Shuts the telemetry pipeline down once, on SIGINT/SIGTERM or when the
    server stops, then hands the exit code to `exit`.

    A signal that arrives while shutdown is already under way calls
    `force_exit` instead, so a stuck shutdown can still be interrupted.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        pipeline: TelemetryPipeline,
        exit: Callable[[int], None] = sys.exit,
        force_exit: Callable[[int], None] = os._exit,
    ):
        self._pipeline = pipeline
        self._exit = exit
        self._force_exit = force_exit
        self._task: Optional[asyncio.Task] = None
        self.exit_code: Optional[int] = None

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError) as e:
                logger.warning("Cannot install %s handler: %s", sig.name, e)

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._task is not None:
            code = 1 if self.exit_code is None else self.exit_code
            logger.warning("Received %s again, forcing exit", sig.name)
            self._force_exit(code)
            return
        logger.info("Received %s, shutting down", sig.name)
        self.trigger()

    def trigger(self) -> "asyncio.Task[int]":
        if self._task is None:
            self._task = asyncio.ensure_future(self._shutdown())
        return self._task

    async def _shutdown(self) -> int:
        try:
            # provider shutdown blocks while the batch processor flushes
            await asyncio.to_thread(self._pipeline.shutdown)
        except Exception:
            logger.exception("Error shutting down OpenTelemetry SDK")
            self.exit_code = 1
        else:
            logger.info("OpenTelemetry SDK shut down successfully")
            self.exit_code = 0
        self._exit(self.exit_code)
        return self.exit_code
