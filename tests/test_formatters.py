"""Tests for provider-specific webhook bodies."""

from datetime import datetime, timezone
from decimal import Decimal

from gigsettle.webhooks.formatters import (
    DiscordFormatter,
    GenericFormatter,
    PayloadFormatter,
    get_formatter,
    register_formatter,
)
from gigsettle.webhooks.models import EventPayload, EventType, Provider, dump_json

WHEN = datetime(2024, 6, 1, 21, 30, tzinfo=timezone.utc)


def payload(event, **data):
    return EventPayload(event=event, user_id="user-1", data=data, timestamp=WHEN)


class TestGenericFormatter:
    def test_body_shape(self):
        body = GenericFormatter().format(
            payload(EventType.BAND_PAID, bandName="Trio", amount=900, gigCount=3)
        )
        assert body == {
            "event": "band_paid",
            "timestamp": WHEN.isoformat(),
            "userId": "user-1",
            "data": {"bandName": "Trio", "amount": 900, "gigCount": 3},
        }

    def test_decimal_amounts_serialize(self):
        body = GenericFormatter().format(
            payload(EventType.PAYMENT_RECEIVED, amount=Decimal("450.50"))
        )
        assert '"amount": 450.5' in dump_json(body)


class TestDiscordFormatter:
    def test_payment_received_embed(self):
        body = DiscordFormatter(username="Ledger").format(
            payload(EventType.PAYMENT_RECEIVED, bandName="Trio", amount=450, date="2024-06-01")
        )
        assert body["username"] == "Ledger"
        [embed] = body["embeds"]
        assert embed["title"] == "💰 Payment received"
        assert embed["color"] == 0x2ECC71
        assert embed["description"] == "Payment of €450.00 received from Trio"
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields == {"Band": "Trio", "Amount": "€450.00", "Date": "2024-06-01"}
        assert embed["timestamp"].startswith("2024-06-01T21:30:00")

    def test_band_paid_plural(self):
        embed = DiscordFormatter().format(
            payload(EventType.BAND_PAID, bandName="Trio", amount=900, gigCount=3)
        )["embeds"][0]
        assert embed["description"] == "Marked 3 gigs as paid for Trio (€900.00 total)"

    def test_band_paid_singular(self):
        embed = DiscordFormatter().format(
            payload(EventType.BAND_PAID, bandName="Trio", amount=300, gigCount=1)
        )["embeds"][0]
        assert embed["description"] == "Marked 1 gig as paid for Trio (€300.00 total)"

    def test_gig_added_uses_currency(self):
        embed = DiscordFormatter(currency="USD").format(
            payload(EventType.GIG_ADDED, bandName="Trio", date="2024-07-04", amount=1200)
        )["embeds"][0]
        assert embed["description"] == "Trio on 2024-07-04 ($1,200.00)"

    def test_gig_updated_change_field_not_inline(self):
        embed = DiscordFormatter().format(
            payload(EventType.GIG_UPDATED, bandName="Trio", change="venue changed")
        )["embeds"][0]
        assert embed["description"] == "Trio: venue changed"
        change = next(f for f in embed["fields"] if f["name"] == "Change")
        assert change["inline"] is False

    def test_missing_values_render_placeholder(self):
        embed = DiscordFormatter().format(
            payload(EventType.GIG_UPDATED, bandName="Trio", change="")
        )["embeds"][0]
        change = next(f for f in embed["fields"] if f["name"] == "Change")
        assert change["value"] == "-"

    def test_long_field_truncated(self):
        embed = DiscordFormatter().format(
            payload(EventType.GIG_UPDATED, bandName="Trio", change="x" * 2000)
        )["embeds"][0]
        change = next(f for f in embed["fields"] if f["name"] == "Change")
        assert len(change["value"]) == 1024


class TestRegistry:
    def test_lookup_by_provider(self):
        assert isinstance(get_formatter(Provider.DISCORD), DiscordFormatter)
        assert isinstance(get_formatter("generic"), GenericFormatter)

    def test_unknown_provider_falls_back_to_generic(self):
        assert isinstance(get_formatter("slack"), GenericFormatter)

    def test_register_replaces_provider(self):
        class Wrapped(PayloadFormatter):
            @property
            def provider(self):
                return Provider.GENERIC

            def format(self, payload):
                return {"wrapped": payload.to_dict()}

        original = get_formatter(Provider.GENERIC)
        register_formatter(Wrapped())
        try:
            body = get_formatter(Provider.GENERIC).format(payload(EventType.GIG_ADDED))
            assert body["wrapped"]["event"] == "gig_added"
        finally:
            register_formatter(original)
