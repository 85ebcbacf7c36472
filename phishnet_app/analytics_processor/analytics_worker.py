"""
Analytics Worker

Consumes analytics events from the queue and folds them into the platform
aggregate (totals, daily stats, top phishing domains).

Architecture:
- Consumes messages from the queue in batches
- Applies each batch in a single transaction
- Acknowledges only after the transaction committed
- Purges expired scan history and tokens on a fixed interval
"""

import asyncio
import logging
import signal
import sys
import time
from typing import List

from phishnet_app.config import settings
from phishnet_app.database.connection import SessionLocal
from phishnet_app.queue.models import AnalyticsEvent
from phishnet_app.queue.strategies import QueueStrategy
from phishnet_app.services.analytics_service import AnalyticsService
from phishnet_app.services.auth_service import AuthService
from phishnet_app.services.scan_service import ScanService

logger = logging.getLogger(__name__)


class AnalyticsWorker:
    """
    Batch processor for analytics events.

    Runs as its own process next to the API (Redis Streams backend) or
    in-process via `drain()` (in-memory backend, tests).
    """

    def __init__(
        self,
        queue: QueueStrategy,
        db_session_factory=SessionLocal,
        batch_size: int = None,
        purge_interval: int = None
    ):
        self.queue = queue
        self.db_session_factory = db_session_factory
        self.batch_size = batch_size or settings.queue_batch_size
        self.purge_interval = purge_interval or settings.purge_interval
        self.running = False
        self.processed_count = 0
        self.last_purge = 0.0

    async def start(self, install_signal_handlers: bool = True):
        """
        Start the worker loop.

        Signal handlers are only installed when the worker owns the process;
        inside the API the server handles shutdown and cancels the task.
        """
        self.running = True
        logger.info("🚀 Analytics worker started")
        logger.info("📊 Batch size: %s", self.batch_size)
        logger.info("⏰ Purge interval: %ss", self.purge_interval)

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        while self.running:
            try:
                messages = await self.queue.consume_batch(
                    queue_name=settings.queue_name,
                    batch_size=self.batch_size,
                    block_time=int(settings.queue_worker_interval * 1000)
                )
                if messages:
                    await self.handle_batch(messages)
                self.purge_if_needed()

            except asyncio.CancelledError:
                logger.info("Worker task cancelled.")
                break
            except Exception:
                # Unacknowledged messages stay pending and are retried
                logger.exception("❌ Batch processing failed")
                await asyncio.sleep(1)

        logger.info("🛑 Analytics worker stopped")

    async def handle_batch(self, messages: List[AnalyticsEvent]) -> int:
        """Apply a batch, then acknowledge it."""
        applied = self.process_batch(messages)

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(settings.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.info("✅ Processed %s events. Total: %s", len(messages), self.processed_count)
        return applied

    def process_batch(self, messages: List[AnalyticsEvent]) -> int:
        """Fold events into the aggregate in one transaction."""
        db = self.db_session_factory()
        try:
            return AnalyticsService(db).apply_events(messages)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def drain(self) -> int:
        """
        Process everything currently queued, without blocking.

        Returns:
            Number of events applied
        """
        applied = 0
        while True:
            messages = await self.queue.consume_batch(
                queue_name=settings.queue_name,
                batch_size=self.batch_size,
                block_time=0
            )
            if not messages:
                return applied
            applied += await self.handle_batch(messages)

    def purge_if_needed(self) -> None:
        now = time.monotonic()
        if self.last_purge and now - self.last_purge < self.purge_interval:
            return
        self.purge_expired()
        self.last_purge = now

    def purge_expired(self) -> None:
        db = self.db_session_factory()
        try:
            ScanService(db).purge_expired_history()
            tokens = AuthService(db).purge_expired_tokens()
            if tokens:
                logger.info("🧹 Purged %s expired tokens", tokens)
        finally:
            db.close()

    def _signal_handler(self, signum, frame):
        """Handle signals for graceful shutdown"""
        logger.info("Received signal %s. Shutting down gracefully...", signum)
        self.stop()

    def stop(self):
        """Stop the worker"""
        self.running = False


async def main():
    """
    Main entry point for the analytics worker.

    Usage:
        python -m phishnet_app.analytics_processor.analytics_worker
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("🔧 PhishNet - Analytics Worker")
    logger.info("Environment: %s", settings.environment)
    logger.info("Queue backend: %s", settings.queue_backend)

    from phishnet_app.database.connection import init_db
    from phishnet_app.queue.factory import QueueFactory, QueueBackend

    init_db()
    queue = QueueFactory.create(QueueBackend(settings.queue_backend))
    worker = AnalyticsWorker(queue=queue)

    try:
        await worker.start()
    except KeyboardInterrupt:
        logger.warning("⚠️  Interrupted by user")
    except Exception:
        logger.exception("❌ Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
