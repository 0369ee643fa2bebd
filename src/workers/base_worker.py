import asyncio
import signal
import time
from abc import ABC, abstractmethod

from src.shared.logging import clear_request_context, get_logger, set_correlation_id

logger = get_logger(__name__)


class BaseWorker(ABC):
    """Base class for periodic background workers."""

    def __init__(self, worker_name: str, interval: float = 60, batch_size: int = 100):
        self.worker_name = worker_name
        self.interval = interval
        self.batch_size = batch_size
        self.is_running = False
        self.shutdown_event = asyncio.Event()

    async def shutdown(self) -> None:
        """Graceful shutdown of worker."""
        self.is_running = False
        self.shutdown_event.set()
        logger.info("Worker shutting down", worker=self.worker_name)

    def setup_signal_handlers(self) -> None:
        """Stop the loop on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(self.shutdown()))

    async def run_once(self) -> bool:
        """One pass of the worker task, bound to its own correlation id."""
        set_correlation_id()
        start_time = time.monotonic()
        try:
            success = await self.execute()
        finally:
            duration = time.monotonic() - start_time
            clear_request_context()
        if success:
            logger.info("Worker pass completed", worker=self.worker_name, duration=round(duration, 3))
        else:
            logger.warning("Worker pass completed with errors", worker=self.worker_name, duration=round(duration, 3))
        return success

    async def run(self) -> None:
        """Main worker loop."""
        self.is_running = True
        logger.info("Worker started", worker=self.worker_name, interval=self.interval)

        while self.is_running and not self.shutdown_event.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Worker cancelled", worker=self.worker_name)
                break
            except Exception:
                logger.exception("Worker pass failed", worker=self.worker_name)

            # Wait for next interval, but wake up on shutdown
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        self.is_running = False
        logger.info("Worker stopped", worker=self.worker_name)

    @abstractmethod
    async def execute(self) -> bool:
        """Execute the worker's main task. Must be implemented by subclasses."""
