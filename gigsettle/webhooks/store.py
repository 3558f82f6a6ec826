"""Webhook subscriptions and their delivery log, backed by SQLite."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Iterable
from urllib.parse import urlsplit

import aiosqlite

from gigsettle.webhooks.base import EventLog, WebhookRegistry
from gigsettle.webhooks.errors import (
    InvalidWebhookError,
    WebhookNotFoundError,
    WebhookOwnershipError,
)
from gigsettle.webhooks.models import (
    DeliveryAttempt,
    EventType,
    Provider,
    WebhookSubscription,
)
from gigsettle.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS webhooks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    url TEXT NOT NULL,
    provider TEXT NOT NULL,
    events TEXT NOT NULL,
    name TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_webhooks_user ON webhooks (user_id);

CREATE TABLE IF NOT EXISTS delivery_logs (
    id TEXT PRIMARY KEY,
    webhook_id TEXT NOT NULL REFERENCES webhooks (id) ON DELETE CASCADE,
    event TEXT NOT NULL,
    status_code INTEGER NOT NULL,
    success INTEGER NOT NULL,
    response TEXT,
    error TEXT,
    payload TEXT NOT NULL,
    attempt INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_delivery_logs_webhook ON delivery_logs (webhook_id, created_at);
"""

_WEBHOOK_COLUMNS = "id, user_id, url, provider, events, name, enabled, created_at"
_LOG_COLUMNS = (
    "id, webhook_id, event, status_code, success, response, error, payload, attempt, created_at"
)


def validate_url(url: str) -> str:
    url = (url or "").strip()
    try:
        parts = urlsplit(url)
        # Raises for ports outside 0-65535 or non-numeric ports
        port = parts.port
    except ValueError as e:
        raise InvalidWebhookError(f"Invalid webhook URL: {url!r} ({e})") from e
    if parts.scheme not in ("http", "https") or not parts.hostname or port == 0:
        raise InvalidWebhookError(f"Invalid webhook URL: {url!r}")
    return url


def validate_events(events: Iterable[str | EventType]) -> frozenset[EventType]:
    try:
        parsed = frozenset(EventType(e) for e in events)
    except ValueError as e:
        raise InvalidWebhookError(f"Unknown event type: {e}") from e
    if not parsed:
        raise InvalidWebhookError("A webhook must subscribe to at least one event")
    return parsed


def validate_provider(provider: str | Provider) -> Provider:
    try:
        return Provider(provider)
    except ValueError as e:
        raise InvalidWebhookError(f"Unknown webhook provider: {provider!r}") from e


def _encode_events(events: frozenset[EventType]) -> str:
    return json.dumps(sorted(e.value for e in events))


def _row_to_subscription(row: tuple) -> WebhookSubscription:
    return WebhookSubscription(
        id=row[0],
        user_id=row[1],
        url=row[2],
        provider=Provider(row[3]),
        events=frozenset(EventType(e) for e in json.loads(row[4])),
        name=row[5],
        enabled=bool(row[6]),
        created_at=datetime.fromisoformat(row[7]),
    )


def _row_to_attempt(row: tuple) -> DeliveryAttempt:
    return DeliveryAttempt(
        id=row[0],
        webhook_id=row[1],
        event=EventType(row[2]),
        status_code=row[3],
        success=bool(row[4]),
        response=row[5],
        error=row[6],
        payload=row[7],
        attempt=row[8],
        created_at=datetime.fromisoformat(row[9]),
    )


class WebhookStore(WebhookRegistry, EventLog):
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        url: str,
        provider: str | Provider,
        events: Iterable[str | EventType],
        name: str | None = None,
        enabled: bool = True,
    ) -> WebhookSubscription:
        assert self._db is not None
        provider = validate_provider(provider)
        subscription = WebhookSubscription(
            user_id=user_id,
            url=validate_url(url),
            provider=provider,
            events=validate_events(events),
            name=name or f"{provider.value} Webhook",
            enabled=enabled,
        )
        await self._db.execute(
            f"INSERT INTO webhooks ({_WEBHOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                subscription.id,
                subscription.user_id,
                subscription.url,
                subscription.provider.value,
                _encode_events(subscription.events),
                subscription.name,
                int(subscription.enabled),
                subscription.created_at.isoformat(),
            ),
        )
        await self._db.commit()
        log.info(
            "webhook_created",
            webhook_id=subscription.id,
            provider=provider.value,
            events=sorted(e.value for e in subscription.events),
        )
        return subscription

    async def get(self, webhook_id: str) -> WebhookSubscription | None:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks WHERE id = ?",
            (webhook_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_subscription(row)

    async def list_for_user(self, user_id: str) -> list[WebhookSubscription]:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks WHERE user_id = ? ORDER BY created_at",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_subscription(row) for row in rows]

    async def list_enabled_for(
        self, user_id: str, event: EventType
    ) -> list[WebhookSubscription]:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks "
            "WHERE user_id = ? AND enabled = 1 "
            "AND EXISTS (SELECT 1 FROM json_each(webhooks.events) WHERE json_each.value = ?) "
            "ORDER BY created_at",
            (user_id, EventType(event).value),
        )
        rows = await cursor.fetchall()
        return [_row_to_subscription(row) for row in rows]

    async def _get_owned(self, webhook_id: str, user_id: str) -> WebhookSubscription:
        subscription = await self.get(webhook_id)
        if subscription is None:
            raise WebhookNotFoundError(f"Webhook not found: {webhook_id}")
        if subscription.user_id != user_id:
            raise WebhookOwnershipError(f"Webhook {webhook_id} belongs to another user")
        return subscription

    async def update(
        self,
        webhook_id: str,
        user_id: str,
        *,
        enabled: bool | None = None,
        events: Iterable[str | EventType] | None = None,
        name: str | None = None,
        url: str | None = None,
    ) -> WebhookSubscription:
        """Change the given fields of a subscription owned by ``user_id``."""
        assert self._db is not None
        subscription = await self._get_owned(webhook_id, user_id)

        if enabled is not None:
            subscription.enabled = enabled
        if events is not None:
            subscription.events = validate_events(events)
        if name is not None:
            # A blank name falls back to the default, as in create()
            subscription.name = name.strip() or f"{subscription.provider.value} Webhook"
        if url is not None:
            subscription.url = validate_url(url)

        await self._db.execute(
            "UPDATE webhooks SET url = ?, events = ?, name = ?, enabled = ? WHERE id = ?",
            (
                subscription.url,
                _encode_events(subscription.events),
                subscription.name,
                int(subscription.enabled),
                webhook_id,
            ),
        )
        await self._db.commit()
        log.info("webhook_updated", webhook_id=webhook_id, enabled=subscription.enabled)
        return subscription

    async def delete(self, webhook_id: str, user_id: str) -> int:
        """Delete a subscription and its delivery log. Returns the log rows removed."""
        assert self._db is not None
        await self._get_owned(webhook_id, user_id)
        try:
            cursor = await self._db.execute(
                "DELETE FROM delivery_logs WHERE webhook_id = ?", (webhook_id,)
            )
            removed = cursor.rowcount
            await self._db.execute("DELETE FROM webhooks WHERE id = ?", (webhook_id,))
            await self._db.commit()
        except aiosqlite.Error:
            await self._db.rollback()
            raise
        log.info("webhook_deleted", webhook_id=webhook_id, log_entries=removed)
        return removed

    # ------------------------------------------------------------------
    # Delivery log
    # ------------------------------------------------------------------

    async def append(self, attempt: DeliveryAttempt) -> None:
        if self._db is None:
            log.error("delivery_log_closed", webhook_id=attempt.webhook_id)
            return
        try:
            await self._db.execute(
                f"INSERT INTO delivery_logs ({_LOG_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    attempt.id,
                    attempt.webhook_id,
                    attempt.event.value,
                    attempt.status_code,
                    int(attempt.success),
                    attempt.response,
                    attempt.error,
                    attempt.payload,
                    attempt.attempt,
                    attempt.created_at.isoformat(),
                ),
            )
            await self._db.commit()
        except Exception:
            log.exception(
                "delivery_log_append_failed",
                webhook_id=attempt.webhook_id,
                attempt=attempt.attempt,
            )

    async def list_attempts(
        self, webhook_id: str, limit: int | None = 5
    ) -> list[DeliveryAttempt]:
        """Most recent attempts first."""
        assert self._db is not None
        query = (
            f"SELECT {_LOG_COLUMNS} FROM delivery_logs WHERE webhook_id = ? "
            "ORDER BY created_at DESC, attempt DESC"
        )
        params: tuple = (webhook_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (webhook_id, limit)
        cursor = await self._db.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_attempt(row) for row in rows]

    async def count_attempts(self, webhook_id: str | None = None) -> int:
        assert self._db is not None
        if webhook_id is None:
            cursor = await self._db.execute("SELECT COUNT(*) FROM delivery_logs")
        else:
            cursor = await self._db.execute(
                "SELECT COUNT(*) FROM delivery_logs WHERE webhook_id = ?", (webhook_id,)
            )
        row = await cursor.fetchone()
        return row[0] if row else 0
