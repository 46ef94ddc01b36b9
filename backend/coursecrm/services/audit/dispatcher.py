"""
Fire-and-forget audit persistence

Records are queued with a non-blocking put and written by one background
worker. The synchronous store call runs in the threadpool so a slow or
failing audit store never delays a response. Each record gets a single
write attempt; failures are reported on the audit diagnostics logger.
"""

import asyncio
import logging
from typing import Optional, Protocol, Set

from starlette.concurrency import run_in_threadpool

from ...logging_config import AUDIT_LOGGER_NAME
from ...utils.logging_security import describe_audit_record_for_log, sanitize_error_message_for_log
from .models import AuditRecord

logger = logging.getLogger(AUDIT_LOGGER_NAME)


class AuditWriter(Protocol):
    def create(self, record: AuditRecord) -> Optional[AuditRecord]:
        ...


class AuditDispatcher:
    """Bounded queue with a background drain worker"""

    def __init__(self, store: AuditWriter, max_queue_size: int = 1000):
        self.store = store
        self.max_queue_size = max_queue_size
        self._queue: Optional["asyncio.Queue[AuditRecord]"] = None
        self._worker: Optional["asyncio.Task[None]"] = None
        self._detached: Set["asyncio.Task[None]"] = set()
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Start the drain worker on the running loop"""
        if self.is_running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker = asyncio.create_task(self._drain(), name="audit-dispatcher")
        logger.info(f"Audit dispatcher started (queue size {self.max_queue_size})")

    async def stop(self, timeout: float = 5.0) -> None:
        """Flush pending records (bounded by timeout) and stop the worker"""
        try:
            await asyncio.wait_for(self.join(), timeout=timeout)
        except asyncio.TimeoutError:
            pending = self._queue.qsize() if self._queue else 0
            logger.warning(f"Audit dispatcher stopped with {pending} records unwritten")

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None

    async def join(self) -> None:
        """Wait until every submitted record has had its write attempt"""
        if self._queue is not None:
            await self._queue.join()
        if self._detached:
            await asyncio.gather(*list(self._detached), return_exceptions=True)

    def submit(self, record: AuditRecord) -> None:
        """Hand off a record without waiting; never raises"""
        if self.is_running and self._queue is not None:
            try:
                self._queue.put_nowait(record)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.warning(
                    "Audit queue full, dropping record: "
                    + describe_audit_record_for_log(
                        record.action, record.actor_id, record.entity, record.entity_id, record.success
                    )
                )
            return

        # No worker (e.g. app started without lifespan): detach a one-off write
        try:
            task = asyncio.get_running_loop().create_task(self._write(record))
        except RuntimeError:
            logger.error(
                "No event loop for audit write, dropping record: "
                + describe_audit_record_for_log(
                    record.action, record.actor_id, record.entity, record.entity_id, record.success
                )
            )
            return
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)

    async def _drain(self) -> None:
        assert self._queue is not None
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def _write(self, record: AuditRecord) -> None:
        try:
            result = await run_in_threadpool(self.store.create, record)
        except Exception as e:
            logger.error(
                f"Audit store raised: {sanitize_error_message_for_log(str(e))} - "
                + describe_audit_record_for_log(
                    record.action, record.actor_id, record.entity, record.entity_id, record.success
                )
            )
            return

        if result is None:
            logger.warning(
                "Audit record not persisted: "
                + describe_audit_record_for_log(
                    record.action, record.actor_id, record.entity, record.entity_id, record.success
                )
            )
