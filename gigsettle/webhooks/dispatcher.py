"""Fan-out of financial events to webhook subscriptions.

``dispatch`` only looks up matching subscriptions and enqueues one job per
subscription on a bounded queue; a small pool of consumer tasks performs the
HTTP attempts. A failed attempt with attempts left is put back on the queue
by a timer task once its backoff has elapsed, so no consumer is held while a
retry waits.
"""

from __future__ import annotations

import asyncio
from typing import Any

from gigsettle.core.clock import Clock
from gigsettle.utils.logging import get_logger
from gigsettle.webhooks.base import EventLog, WebhookRegistry
from gigsettle.webhooks.delivery import DeliveryState, DeliveryWorker
from gigsettle.webhooks.models import (
    DeliveryAttempt,
    DeliveryJob,
    EventPayload,
    EventType,
    dump_json,
)

log = get_logger(__name__)


class EventDispatcher:
    def __init__(
        self,
        registry: WebhookRegistry,
        event_log: EventLog,
        worker: DeliveryWorker,
        *,
        workers: int = 4,
        max_queue_size: int = 256,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._log = event_log
        self._worker = worker
        self._workers = max(1, workers)
        self._clock = clock or Clock()
        self._queue: asyncio.Queue[DeliveryJob] = asyncio.Queue(maxsize=max_queue_size)
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []
        self._retry_tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Jobs queued plus retries waiting on their backoff."""
        return self._queue.qsize() + len(self._retry_tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self._running = True
        for i in range(self._workers):
            task = asyncio.create_task(self._consumer(), name=f"webhook-worker-{i}")
            self._tasks.append(task)
        log.info("dispatcher_started", workers=self._workers)

    async def join(self) -> None:
        """Wait until every queued job, including scheduled retries, has finished."""
        await self._queue.join()

    async def stop(self) -> None:
        self._running = False
        tasks = [*self._tasks, *self._retry_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._retry_tasks.clear()
        log.info("dispatcher_stopped")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self, user_id: str, event_type: EventType | str, data: dict[str, Any]
    ) -> int:
        """Queue delivery of an event to every matching subscription.

        Never raises. Returns the number of deliveries queued.
        """
        try:
            event = EventType(event_type)
        except ValueError:
            log.warning("dispatch_unknown_event", event_type=str(event_type))
            return 0

        try:
            subscriptions = await self._registry.list_enabled_for(user_id, event)
        except Exception:
            log.exception("dispatch_lookup_failed", event_type=event.value)
            return 0

        if not subscriptions:
            return 0

        payload = EventPayload(
            event=event,
            user_id=user_id,
            data=dict(data),
            timestamp=self._clock.now(),
        )
        queued = 0
        for subscription in subscriptions:
            job = DeliveryJob(subscription=subscription, payload=payload)
            try:
                self._queue.put_nowait(job)
            except asyncio.QueueFull:
                log.warning(
                    "delivery_queue_full",
                    webhook_id=subscription.id,
                    event_type=event.value,
                )
                await self._record_dropped(job)
                continue
            queued += 1

        log.debug("event_dispatched", event_type=event.value, deliveries=queued)
        return queued

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    async def _consumer(self) -> None:
        while self._running:
            job = await self._queue.get()
            try:
                state = await self._worker.process(job)
            except Exception:
                log.exception("delivery_worker_error", webhook_id=job.subscription.id)
                state = DeliveryState.EXHAUSTED

            if state is DeliveryState.RETRY_SCHEDULED:
                # task_done() for this job is deferred until the retry is back on the queue
                self._schedule_retry(job)
            else:
                self._queue.task_done()

    def _schedule_retry(self, job: DeliveryJob) -> None:
        delay = self._worker.retry_delay(job)
        log.info(
            "webhook_retry_scheduled",
            webhook_id=job.subscription.id,
            event_type=job.payload.event.value,
            attempt=job.attempt + 1,
            delay=delay,
        )
        task = asyncio.create_task(
            self._retry_later(job, delay), name=f"webhook-retry-{job.id}"
        )
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _retry_later(self, job: DeliveryJob, delay: float) -> None:
        try:
            await self._clock.sleep(delay)
            job.attempt += 1
            await self._queue.put(job)
        finally:
            self._queue.task_done()

    async def _record_dropped(self, job: DeliveryJob) -> None:
        attempt = DeliveryAttempt(
            webhook_id=job.subscription.id,
            event=job.payload.event,
            status_code=0,
            success=False,
            payload=dump_json(job.payload.data),
            attempt=job.attempt,
            error="Delivery queue full",
            created_at=self._clock.now(),
        )
        try:
            await self._log.append(attempt)
        except Exception:
            log.exception("delivery_log_append_failed", webhook_id=job.subscription.id)
