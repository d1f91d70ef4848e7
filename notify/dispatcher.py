"""
notify/dispatcher.py -- Background queue for best-effort mail delivery.

Delivery semantics:
  Best effort, at-least-once per attempt budget. enqueue() never blocks and
  never raises into the caller: sign-up has already committed its user
  record, and a mail failure must not undo or delay that.

  One worker task drains a bounded asyncio.Queue. Each message is tried up
  to max_attempts times with exponential backoff (backoff, 2*backoff, ...).
  After the last failure the message is logged at ERROR and dropped. A full
  queue drops the new message with a warning rather than applying
  backpressure to request handlers.

  Transport calls are blocking, so they run via asyncio.to_thread.

Lifecycle (driven by the app lifespan):
  await dispatcher.probe()  -- one bounded readiness check, warning on failure
  dispatcher.start()        -- spawn the worker on the running loop
  await dispatcher.stop()   -- drain for up to drain_timeout, then cancel

enqueue() is safe to call from any thread. Sync route handlers run in a
threadpool, so the put is marshalled onto the dispatcher's loop with
call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import logging

from notify.transports import DeliveryError, OutboundMessage

logger = logging.getLogger("passgate.notify")


class NotificationDispatcher:
    def __init__(
        self,
        transport,
        queue_size: int = 100,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        probe_timeout: float = 5.0,
        drain_timeout: float = 5.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.queue_size = queue_size
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.probe_timeout = probe_timeout
        self.drain_timeout = drain_timeout
        self._queue: asyncio.Queue | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task | None = None
        self.delivered = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def probe(self) -> bool:
        """Run transport.verify() once, bounded by probe_timeout.

        Returns True when the transport answered. Never raises: an unreachable
        mail server is logged and the service starts anyway.
        """
        try:
            await asyncio.wait_for(asyncio.to_thread(self.transport.verify), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            logger.warning("Mail transport readiness probe timed out after %.1fs", self.probe_timeout)
            return False
        except DeliveryError as exc:
            logger.warning("Mail transport not ready: %s", exc)
            return False
        logger.info("Mail transport ready (%s)", type(self.transport).__name__)
        return True

    def start(self) -> None:
        """Create the queue and worker on the running event loop."""
        if self._worker is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")

    async def stop(self) -> None:
        """Give queued messages up to drain_timeout to go out, then cancel the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("Mail queue not drained at shutdown; %d message(s) dropped", self._queue.qsize())
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._loop = None

    @property
    def running(self) -> bool:
        return self._worker is not None

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, message: OutboundMessage) -> None:
        """Schedule message for delivery. Never blocks, never raises."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self.dropped += 1
            logger.warning("Mail dispatcher not running; dropping message to %s", message.to)
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            self._offer(message)
        else:
            loop.call_soon_threadsafe(self._offer, message)

    def _offer(self, message: OutboundMessage) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Mail queue full (%d); dropping message to %s", self.queue_size, message.to)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
            except asyncio.CancelledError:
                raise
            except Exception:
                self.dropped += 1
                logger.exception("Unexpected error delivering mail to %s", message.to)
            finally:
                self._queue.task_done()

    async def _deliver(self, message: OutboundMessage) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await asyncio.to_thread(self.transport.send, message)
            except DeliveryError as exc:
                if attempt == self.max_attempts:
                    self.dropped += 1
                    logger.error(
                        "Giving up on mail to %s after %d attempt(s): %s", message.to, attempt, exc
                    )
                    return
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Mail to %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    message.to,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
            else:
                self.delivered += 1
                logger.info("Mail sent to %s: %s", message.to, message.subject)
                return
