"""Provider-specific request bodies for outgoing webhooks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import discord

from gigsettle.settlement.calculator import format_amount
from gigsettle.webhooks.models import EventPayload, EventType, Provider

_DISCORD_STYLE: dict[EventType, tuple[str, int]] = {
    EventType.PAYMENT_RECEIVED: ("💰 Payment received", 0x2ECC71),
    EventType.BAND_PAID: ("🎸 Band paid", 0x3498DB),
    EventType.GIG_ADDED: ("📅 New gig added", 0x9B59B6),
    EventType.GIG_UPDATED: ("✏️ Gig updated", 0xF1C40F),
}

_FIELD_LABELS = {
    "bandName": "Band",
    "amount": "Amount",
    "date": "Date",
    "gigCount": "Gigs",
    "change": "Change",
}

_AMOUNT_KEYS = ("amount", "totalAmount")

# Discord rejects embed field values over 1024 characters
_FIELD_LIMIT = 1024


class PayloadFormatter(ABC):
    @property
    @abstractmethod
    def provider(self) -> Provider: ...

    @abstractmethod
    def format(self, payload: EventPayload) -> dict[str, Any]: ...


class GenericFormatter(PayloadFormatter):
    @property
    def provider(self) -> Provider:
        return Provider.GENERIC

    def format(self, payload: EventPayload) -> dict[str, Any]:
        return payload.to_dict()


class DiscordFormatter(PayloadFormatter):
    """Renders an event as a single Discord embed."""

    def __init__(self, username: str = "Gig Ledger", currency: str = "EUR") -> None:
        self._username = username
        self._currency = currency

    @property
    def provider(self) -> Provider:
        return Provider.DISCORD

    def format(self, payload: EventPayload) -> dict[str, Any]:
        title, color = _DISCORD_STYLE.get(
            payload.event, (payload.event.value.replace("_", " ").title(), 0x5865F2)
        )
        embed = discord.Embed(
            title=title,
            description=self._describe(payload),
            color=color,
            timestamp=payload.timestamp,
        )
        for key, value in payload.data.items():
            embed.add_field(
                name=_FIELD_LABELS.get(key, key),
                value=self._render_value(key, value)[:_FIELD_LIMIT],
                inline=key != "change",
            )
        return {"username": self._username, "embeds": [embed.to_dict()]}

    def _describe(self, payload: EventPayload) -> str:
        data = payload.data
        band = data.get("bandName", "Unknown band")
        amount = self._render_value("amount", data["amount"]) if "amount" in data else ""

        if payload.event is EventType.PAYMENT_RECEIVED:
            return f"Payment of {amount} received from {band}"
        if payload.event is EventType.BAND_PAID:
            count = data.get("gigCount", 0)
            gigs = "gig" if count == 1 else "gigs"
            return f"Marked {count} {gigs} as paid for {band} ({amount} total)"
        if payload.event is EventType.GIG_ADDED:
            return f"{band} on {data.get('date', 'an unknown date')} ({amount})"
        if payload.event is EventType.GIG_UPDATED:
            return f"{band}: {data.get('change', 'details changed')}"
        return str(band)

    def _render_value(self, key: str, value: Any) -> str:
        if key in _AMOUNT_KEYS and value is not None:
            return format_amount(value, self._currency)
        if value is None or value == "":
            return "-"
        return str(value)


_FORMATTERS: dict[Provider, PayloadFormatter] = {
    Provider.DISCORD: DiscordFormatter(),
    Provider.GENERIC: GenericFormatter(),
}


def register_formatter(formatter: PayloadFormatter) -> None:
    _FORMATTERS[formatter.provider] = formatter


def get_formatter(provider: Provider | str) -> PayloadFormatter:
    """Formatter for a provider, falling back to the generic JSON body."""
    try:
        return _FORMATTERS[Provider(provider)]
    except (KeyError, ValueError):
        return _FORMATTERS[Provider.GENERIC]
