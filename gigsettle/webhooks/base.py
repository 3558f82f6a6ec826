"""Abstract collaborators of the delivery pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gigsettle.webhooks.models import DeliveryAttempt, EventType, WebhookSubscription


class WebhookRegistry(ABC):
    @abstractmethod
    async def list_enabled_for(
        self, user_id: str, event: EventType
    ) -> list[WebhookSubscription]:
        """Enabled subscriptions of ``user_id`` that want ``event``."""
        ...

    @abstractmethod
    async def get(self, webhook_id: str) -> WebhookSubscription | None: ...


class EventLog(ABC):
    @abstractmethod
    async def append(self, attempt: DeliveryAttempt) -> None:
        """Record one delivery attempt. Must not raise."""
        ...
