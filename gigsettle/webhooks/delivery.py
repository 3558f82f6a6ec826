"""Single webhook delivery attempts and the retry state machine."""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx

from gigsettle.config import DeliveryConfig
from gigsettle.core.clock import Clock
from gigsettle.utils.logging import get_logger
from gigsettle.webhooks.base import EventLog, WebhookRegistry
from gigsettle.webhooks.formatters import PayloadFormatter, get_formatter
from gigsettle.webhooks.models import (
    DeliveryAttempt,
    DeliveryJob,
    Provider,
    dump_json,
)

log = get_logger(__name__)


class DeliveryState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"
    ABANDONED = "abandoned"


def backoff_delay(attempt: int, base: float = 1.0) -> float:
    """Delay before the attempt following ``attempt`` (1-based): base, 2*base, 4*base..."""
    return base * 2 ** (attempt - 1)


class DeliveryWorker:
    """Performs one HTTP attempt for a job and decides what happens next.

    Every attempt appends exactly one ``DeliveryAttempt`` to the event log
    before the next state is returned, so a retry is never scheduled for an
    attempt that was not recorded.
    """

    def __init__(
        self,
        event_log: EventLog,
        client: httpx.AsyncClient,
        config: DeliveryConfig | None = None,
        *,
        registry: WebhookRegistry | None = None,
        clock: Clock | None = None,
        formatters: dict[Provider, PayloadFormatter] | None = None,
    ) -> None:
        self._log = event_log
        self._client = client
        self._config = config or DeliveryConfig()
        self._registry = registry
        self._clock = clock or Clock()
        self._formatters = formatters or {}

    @property
    def config(self) -> DeliveryConfig:
        return self._config

    def retry_delay(self, job: DeliveryJob) -> float:
        return backoff_delay(job.attempt, self._config.backoff_base)

    async def is_live(self, job: DeliveryJob) -> bool:
        """Whether the subscription still exists and is enabled."""
        if self._registry is None:
            return True
        try:
            current = await self._registry.get(job.subscription.id)
        except Exception:
            log.exception("webhook_liveness_check_failed", webhook_id=job.subscription.id)
            # The lookup failing says nothing about the subscription; keep delivering
            return True
        if current is None or not current.enabled:
            return False
        job.subscription = current
        return True

    async def process(self, job: DeliveryJob) -> DeliveryState:
        """Run one attempt of ``job`` and return the resulting state."""
        if job.attempt > 1 and not await self.is_live(job):
            log.info(
                "webhook_delivery_abandoned",
                webhook_id=job.subscription.id,
                event_type=job.payload.event.value,
                attempt=job.attempt,
            )
            return DeliveryState.ABANDONED

        subscription = job.subscription
        formatter = self._formatters.get(subscription.provider) or get_formatter(
            subscription.provider
        )
        try:
            body = dump_json(formatter.format(job.payload))
        except Exception as e:
            log.exception(
                "webhook_format_failed",
                webhook_id=subscription.id,
                provider=subscription.provider.value,
            )
            await self._record(
                job,
                status_code=0,
                success=False,
                payload=self._data_snapshot(job),
                error=f"Payload formatting failed: {e}",
            )
            # Retrying cannot change a formatting outcome
            return DeliveryState.EXHAUSTED

        try:
            response = await self._client.post(
                subscription.url,
                content=body,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": self._config.user_agent,
                    "X-Webhook-Event": job.payload.event.value,
                    "X-Webhook-Delivery": job.id,
                },
                timeout=self._config.timeout,
            )
        except Exception as e:
            # Bad ports surface as ExceptionGroup or ValueError, not httpx.HTTPError
            error = str(e) or type(e).__name__
            await self._record(job, status_code=0, success=False, payload=body, error=error)
            log.warning(
                "webhook_delivery_failed",
                webhook_id=subscription.id,
                event_type=job.payload.event.value,
                attempt=job.attempt,
                error=error,
            )
            return self._after_failure(job)

        success = response.is_success
        await self._record(
            job,
            status_code=response.status_code,
            success=success,
            payload=body,
            response=self._response_text(response),
        )

        if success:
            log.info(
                "webhook_delivered",
                webhook_id=subscription.id,
                event_type=job.payload.event.value,
                attempt=job.attempt,
                status=response.status_code,
            )
            return DeliveryState.SUCCEEDED

        log.warning(
            "webhook_delivery_failed",
            webhook_id=subscription.id,
            event_type=job.payload.event.value,
            attempt=job.attempt,
            status=response.status_code,
        )
        return self._after_failure(job)

    async def run(self, job: DeliveryJob) -> DeliveryState:
        """Drive ``job`` through every attempt inline, sleeping on the clock between them."""
        while True:
            state = await self.process(job)
            if state is not DeliveryState.RETRY_SCHEDULED:
                return state
            await self._clock.sleep(self.retry_delay(job))
            job.attempt += 1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _after_failure(self, job: DeliveryJob) -> DeliveryState:
        if job.attempt < self._config.max_attempts:
            return DeliveryState.RETRY_SCHEDULED
        log.warning(
            "webhook_delivery_exhausted",
            webhook_id=job.subscription.id,
            event_type=job.payload.event.value,
            attempts=job.attempt,
        )
        return DeliveryState.EXHAUSTED

    async def _record(
        self,
        job: DeliveryJob,
        *,
        status_code: int,
        success: bool,
        payload: str,
        response: str | None = None,
        error: str | None = None,
    ) -> None:
        attempt = DeliveryAttempt(
            webhook_id=job.subscription.id,
            event=job.payload.event,
            status_code=status_code,
            success=success,
            payload=payload,
            attempt=job.attempt,
            response=response,
            error=error,
            created_at=self._clock.now(),
        )
        try:
            await self._log.append(attempt)
        except Exception:
            log.exception("delivery_log_append_failed", webhook_id=job.subscription.id)

    def _response_text(self, response: httpx.Response) -> str:
        text = response.text or f"HTTP {response.status_code}"
        return text[: self._config.response_max_chars]

    @staticmethod
    def _data_snapshot(job: DeliveryJob) -> str:
        try:
            return dump_json(job.payload.data)
        except (TypeError, ValueError):
            return repr(job.payload.data)


def attempt_summary(attempt: DeliveryAttempt) -> dict[str, Any]:
    """Flatten an attempt for CLI and log output."""
    return {
        "attempt": attempt.attempt,
        "event": attempt.event.value,
        "status": attempt.status_code,
        "success": attempt.success,
        "detail": attempt.error or attempt.response or "",
        "at": attempt.created_at.isoformat(),
    }
