"""Webhook subscription, event and delivery models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4


class EventType(str, Enum):
    PAYMENT_RECEIVED = "payment_received"
    BAND_PAID = "band_paid"
    GIG_ADDED = "gig_added"
    GIG_UPDATED = "gig_updated"


class Provider(str, Enum):
    DISCORD = "discord"
    GENERIC = "generic"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def dump_json(value: Any) -> str:
    """Serialize payloads that may carry Decimal amounts and datetimes."""
    return json.dumps(value, default=_json_default)


@dataclass
class WebhookSubscription:
    user_id: str
    url: str
    provider: Provider
    events: frozenset[EventType]
    name: str = ""
    enabled: bool = True
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)

    def accepts(self, event: EventType) -> bool:
        return self.enabled and event in self.events


@dataclass
class EventPayload:
    event: EventType
    user_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.value,
            "timestamp": self.timestamp.isoformat(),
            "userId": self.user_id,
            "data": self.data,
        }


@dataclass(frozen=True)
class DeliveryAttempt:
    webhook_id: str
    event: EventType
    status_code: int
    success: bool
    payload: str
    attempt: int = 1
    response: str | None = None
    error: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class DeliveryJob:
    """One event destined for one subscription, across all of its attempts."""

    subscription: WebhookSubscription
    payload: EventPayload
    attempt: int = 1
    id: str = field(default_factory=lambda: uuid4().hex[:12])
