"""Typed entry points for the financial events the product notifies about."""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, timezone
from decimal import Decimal

from gigsettle.webhooks.dispatcher import EventDispatcher
from gigsettle.webhooks.models import EventType


def _iso(value: date_type | str | None) -> str:
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    if isinstance(value, (date_type, datetime)):
        return value.isoformat()
    return value


async def payment_received(
    dispatcher: EventDispatcher,
    user_id: str,
    band_name: str,
    amount: Decimal | float,
    date: date_type | str | None = None,
) -> int:
    return await dispatcher.dispatch(
        user_id,
        EventType.PAYMENT_RECEIVED,
        {"bandName": band_name, "amount": amount, "date": _iso(date)},
    )


async def band_paid(
    dispatcher: EventDispatcher,
    user_id: str,
    band_name: str,
    amount: Decimal | float,
    gig_count: int,
) -> int:
    return await dispatcher.dispatch(
        user_id,
        EventType.BAND_PAID,
        {"bandName": band_name, "amount": amount, "gigCount": gig_count},
    )


async def gig_added(
    dispatcher: EventDispatcher,
    user_id: str,
    band_name: str,
    date: date_type | str,
    amount: Decimal | float,
) -> int:
    return await dispatcher.dispatch(
        user_id,
        EventType.GIG_ADDED,
        {"bandName": band_name, "date": _iso(date), "amount": amount},
    )


async def gig_updated(
    dispatcher: EventDispatcher,
    user_id: str,
    band_name: str,
    change: str,
) -> int:
    return await dispatcher.dispatch(
        user_id,
        EventType.GIG_UPDATED,
        {"bandName": band_name, "change": change},
    )
