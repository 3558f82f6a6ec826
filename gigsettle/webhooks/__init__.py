"""Outgoing webhook delivery for financial events."""

from gigsettle.webhooks.delivery import DeliveryState, DeliveryWorker, backoff_delay
from gigsettle.webhooks.dispatcher import EventDispatcher
from gigsettle.webhooks.errors import (
    InvalidWebhookError,
    WebhookError,
    WebhookNotFoundError,
    WebhookOwnershipError,
)
from gigsettle.webhooks.formatters import (
    DiscordFormatter,
    GenericFormatter,
    PayloadFormatter,
    get_formatter,
)
from gigsettle.webhooks.models import (
    DeliveryAttempt,
    DeliveryJob,
    EventPayload,
    EventType,
    Provider,
    WebhookSubscription,
)
from gigsettle.webhooks.store import WebhookStore

__all__ = [
    "DeliveryAttempt",
    "DeliveryJob",
    "DeliveryState",
    "DeliveryWorker",
    "DiscordFormatter",
    "EventDispatcher",
    "EventPayload",
    "EventType",
    "GenericFormatter",
    "InvalidWebhookError",
    "PayloadFormatter",
    "Provider",
    "WebhookError",
    "WebhookNotFoundError",
    "WebhookOwnershipError",
    "WebhookStore",
    "WebhookSubscription",
    "backoff_delay",
    "get_formatter",
]
