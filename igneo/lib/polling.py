"""Generic async polling service abstraction.

Provides a reusable base class for services that follow the
poll → audit → persist pattern on a fixed cadence. A service can either own
the process (run(), with signal handling) or be embedded in another event
loop (start()/stop(), e.g. inside the web server lifespan).

Cycles never overlap: a cycle requested while another one is in flight is
skipped, and ticks missed by a slow cycle are dropped rather than queued.
"""
import asyncio
import signal
from abc import ABC, abstractmethod
from contextlib import suppress
from types import FrameType

from igneo.lib.config import get_settings
from igneo.logging import get_logger

logger = get_logger("lib.polling")


class PollingService[T](ABC):
    """Abstract base class for async polling services.

    Implements the common polling loop pattern with:
    - Configurable polling interval, aligned to interval boundaries
    - Skip-if-busy protection against overlapping cycles
    - Graceful shutdown handling and full cancellation on stop()
    - Error recovery (a failed cycle never stops the loop)
    """

    def __init__(
        self,
        name: str,
        interval_sec: float | None = None,
    ) -> None:
        """Initialize the polling service.

        Args:
            name: Service name for logging.
            interval_sec: Polling interval in seconds.
        """
        self.name = name
        polling_cfg = get_settings().polling
        self.interval_sec = interval_sec or polling_cfg.interval_sec
        self._shutdown_requested = False
        self._cycle_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        # Tasks currently running a cycle, loop or caller of poll_once()
        self._cycle_tasks: set[asyncio.Task] = set()
        self._logger = get_logger(f"polling.{name}")

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize any resources needed before polling starts.

        Called once at the start of the loop. Should open clients, connect
        publishers, register callbacks, etc.
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources before exit.

        Called once when the polling loop exits, including on cancellation.
        """

    @abstractmethod
    async def poll(self) -> T | None:
        """Fetch new data.

        Returns:
            The fetched data, or None if the cycle should be skipped.
        """

    @abstractmethod
    async def audit(self, reading: T) -> bool:
        """Audit the fetched data.

        Returns:
            True if the data should be persisted, False to skip.
        """

    @abstractmethod
    async def persist(self, reading: T) -> None:
        """Persist or publish the audited data."""

    def on_poll_error(self, error: Exception) -> None:
        """Handle an error that occurred during polling.

        Override to customize error handling. Default logs the error.
        """
        self._logger.warning("%s poll error: %s", self.name, error)

    @property
    def stopped(self) -> bool:
        """True once shutdown was requested; no data is published after."""
        return self._shutdown_requested

    @property
    def busy(self) -> bool:
        """True while a cycle is in flight."""
        return self._cycle_lock.locked()

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals gracefully."""
        signal_name = signal.Signals(signum).name
        self._logger.info("Received %s, initiating graceful shutdown...", signal_name)
        self._shutdown_requested = True
        if self._task is not None:
            self._task.cancel()

    def _setup_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    async def _poll_cycle(self) -> None:
        """Execute a single poll → audit → persist cycle."""
        reading = await self.poll()
        if reading is not None:
            if await self.audit(reading):
                await self.persist(reading)

    async def poll_once(self) -> bool:
        """Run one cycle unless one is already in flight.

        Returns:
            True if a cycle ran, False if it was skipped.
        """
        if self._shutdown_requested:
            return False
        if self._cycle_lock.locked():
            self._logger.debug("%s cycle in flight, skipping", self.name)
            return False

        task = asyncio.current_task()
        async with self._cycle_lock:
            if task is not None:
                self._cycle_tasks.add(task)
            try:
                await self._poll_cycle()
            except Exception as e:
                self.on_poll_error(e)
            finally:
                self._cycle_tasks.discard(task)
        return True

    def _next_delay(self, elapsed: float) -> float:
        """Time to sleep until the next interval boundary."""
        if elapsed < self.interval_sec:
            return self.interval_sec - elapsed
        missed = int(elapsed // self.interval_sec)
        self._logger.debug(
            "%s cycle took %.2fs, skipping %d tick(s)", self.name, elapsed, missed
        )
        return self.interval_sec - (elapsed % self.interval_sec)

    async def _run_loop(self) -> None:
        """Run the async polling loop with precise timing."""
        await self.initialize()
        self._logger.info(
            "%s polling service started (every %.1fs)",
            self.name,
            self.interval_sec,
        )

        loop = asyncio.get_running_loop()

        try:
            while not self._shutdown_requested:
                cycle_start = loop.time()
                await self.poll_once()
                await asyncio.sleep(self._next_delay(loop.time() - cycle_start))
        finally:
            self._logger.info("Cleaning up resources...")
            await self.cleanup()
            self._logger.info("%s shutdown complete", self.name)

    def start(self) -> asyncio.Task[None]:
        """Start the loop as a task on the running event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._shutdown_requested = False
        self._task = asyncio.create_task(
            self._run_loop(), name=f"polling.{self.name}"
        )
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait until resources are released.

        Pending sleeps and every in-flight cycle are cancelled, including
        cycles started through poll_once() outside the loop. Nothing is
        published after this returns.
        """
        self._shutdown_requested = True
        current = asyncio.current_task()
        tasks = {t for t in self._cycle_tasks if t is not current}
        if self._task is not None and self._task is not current:
            tasks.add(self._task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._cycle_tasks.clear()
        self._task = None

    async def _main(self) -> None:
        self._task = asyncio.current_task()
        with suppress(asyncio.CancelledError):
            await self._run_loop()

    def run(self) -> None:
        """Run the polling loop.

        This is the main entry point for a standalone process. It:
        1. Sets up signal handlers for graceful shutdown
        2. Calls initialize()
        3. Enters the polling loop (poll → audit → persist)
        4. Calls cleanup() on exit
        """
        self._setup_signal_handlers()
        asyncio.run(self._main())
