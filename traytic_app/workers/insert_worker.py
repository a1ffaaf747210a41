"""
Insert Worker

Moves normalized rows from the insert queue into the analytics store.
It runs as a background task inside the API process.

Architecture:
- Polls the queue and merges batches up to `batch_size` rows
- One store insert in flight at a time (bounded concurrency)
- A failed merged insert is retried once per source batch, then dropped
"""

import asyncio
import logging
from typing import List, Optional
from traytic_app.queue.strategies import QueueStrategy
from traytic_app.queue.models import RowBatch
from traytic_app.storage.strategies import AnalyticsStore, EVENTS_TABLE


logger = logging.getLogger(__name__)


class InsertWorker:
    """
    Background writer from queue to analytics store.

    Features:
    - Batch processing (up to batch_size rows per insert)
    - Polls every flush_interval seconds when idle
    - drain() flushes everything, used at shutdown and in tests
    """

    def __init__(
        self,
        queue: QueueStrategy,
        store: AnalyticsStore,
        batch_size: int = 500,
        flush_interval: float = 1.0
    ):
        """
        Initialize worker with dependencies.

        Args:
            queue: Queue strategy to consume batches from
            store: Analytics store to write rows to
            batch_size: Maximum rows per store insert
            flush_interval: Seconds to wait when the queue is empty
        """
        self.queue = queue
        self.store = store
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.running = False
        self.inserted_count = 0
        self.failed_count = 0
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        """
        Consume one chunk from the queue and insert it.

        Returns:
            Number of rows taken off the queue
        """
        batches = self.queue.consume(max_rows=self.batch_size)
        if not batches:
            return 0

        await self._process_batches(batches)
        return sum(len(batch.rows) for batch in batches)

    async def _process_batches(self, batches: List[RowBatch]):
        rows = [row.model_dump() for batch in batches for row in batch.rows]
        if not rows:
            return

        # insert() never raises; it logs the failure itself
        if await self.store.insert(EVENTS_TABLE, rows):
            self._record_inserted(len(rows))
            return

        if len(batches) == 1:
            self.failed_count += len(rows)
            return

        # One bad batch must not take other requests' rows down with it
        for batch in batches:
            batch_rows = [row.model_dump() for row in batch.rows]
            if await self.store.insert(EVENTS_TABLE, batch_rows):
                self._record_inserted(len(batch_rows))
            else:
                self.failed_count += len(batch_rows)
                logger.warning("Dropped batch of %d rows for site %s", len(batch_rows), batch.site_id)

    def _record_inserted(self, count: int):
        self.inserted_count += count
        logger.debug("Inserted %d rows. Total: %d", count, self.inserted_count)

    async def drain(self) -> int:
        """Insert everything currently queued. Returns rows processed."""
        total = 0
        while True:
            processed = await self.run_once()
            if not processed:
                return total
            total += processed

    async def _run(self):
        logger.info("🚀 Insert worker started (batch size %d)", self.batch_size)

        while self.running:
            try:
                if not await self.run_once():
                    await asyncio.sleep(self.flush_interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Insert worker iteration failed")
                await asyncio.sleep(self.flush_interval)

        logger.info("🛑 Insert worker stopped")

    def start(self):
        """Start the worker on the running event loop"""
        if self._task is not None and not self._task.done():
            return
        self.running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Stop polling, then flush what is still queued"""
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.drain()
