"""gigsettle entry point: wires the delivery pipeline together and exposes the CLI."""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal, InvalidOperation
from typing import Any

import click
import httpx

from gigsettle.config import Settings, load_settings
from gigsettle.core.clock import Clock
from gigsettle.settlement import BonusType, GigFinancials, SplitPolicy, compute
from gigsettle.utils.logging import get_logger, setup_logging
from gigsettle.webhooks.delivery import DeliveryWorker, attempt_summary
from gigsettle.webhooks.dispatcher import EventDispatcher
from gigsettle.webhooks.errors import WebhookError
from gigsettle.webhooks.formatters import DiscordFormatter, GenericFormatter
from gigsettle.webhooks.models import EventType, Provider
from gigsettle.webhooks.store import WebhookStore

log = get_logger(__name__)


class Pipeline:
    """Owns the store, HTTP client, worker and dispatcher for one process."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.clock = clock or Clock()
        self.store = WebhookStore(settings.get_db_path())
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.delivery.timeout,
            follow_redirects=False,
        )
        self.worker = DeliveryWorker(
            self.store,
            self.client,
            settings.delivery,
            registry=self.store,
            clock=self.clock,
            formatters={
                Provider.DISCORD: DiscordFormatter(
                    username=settings.delivery.discord_username,
                    currency=settings.settlement.currency,
                ),
                Provider.GENERIC: GenericFormatter(),
            },
        )
        self.dispatcher = EventDispatcher(
            self.store,
            self.store,
            self.worker,
            workers=settings.delivery.workers,
            max_queue_size=settings.delivery.max_queue_size,
            clock=self.clock,
        )

    async def start(self) -> None:
        await self.store.start()
        await self.dispatcher.start()
        log.info("pipeline_ready", db=str(self.settings.get_db_path()))

    async def stop(self) -> None:
        await self.dispatcher.stop()
        if self._owns_client:
            await self.client.aclose()
        await self.store.stop()

    async def __aenter__(self) -> Pipeline:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()


class DecimalParam(click.ParamType):
    name = "amount"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Decimal:
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except InvalidOperation:
            self.fail(f"{value!r} is not a valid amount", param, ctx)


AMOUNT = DecimalParam()


def _echo_json(value: Any) -> None:
    # Decimal amounts are printed as exact strings
    click.echo(json.dumps(value, indent=2, default=str))


def _parse_data(pairs: tuple[str, ...]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--data")
        try:
            data[key] = json.loads(value)
        except json.JSONDecodeError:
            data[key] = value
    return data


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Gig settlement and financial event webhooks."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    ctx.obj = settings


@cli.command()
@click.option("--performance-fee", type=AMOUNT, required=True)
@click.option("--technical-fee", type=AMOUNT, default=Decimal(0), show_default=True)
@click.option(
    "--bonus-type",
    type=click.Choice([b.value for b in BonusType]),
    default=BonusType.FIXED.value,
    show_default=True,
)
@click.option("--bonus", "bonus_amount", type=AMOUNT, default=Decimal(0), show_default=True)
@click.option("--musicians", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--claim-performance/--no-claim-performance", default=True)
@click.option("--claim-technical/--no-claim-technical", default=True)
@click.option("--technical-claim", type=AMOUNT, default=None, help="Claim only part of the technical fee")
@click.option("--policy", type=click.Choice([p.value for p in SplitPolicy]), default=None)
@click.pass_obj
def settle(
    settings: Settings,
    performance_fee: Decimal,
    technical_fee: Decimal,
    bonus_type: str,
    bonus_amount: Decimal,
    musicians: int,
    claim_performance: bool,
    claim_technical: bool,
    technical_claim: Decimal | None,
    policy: str | None,
) -> None:
    """Compute the settlement of a single gig."""
    gig = GigFinancials(
        performance_fee=performance_fee,
        technical_fee=technical_fee,
        manager_bonus_type=BonusType(bonus_type),
        manager_bonus_amount=bonus_amount,
        number_of_musicians=musicians,
        claim_performance_fee=claim_performance,
        claim_technical_fee=claim_technical,
        technical_fee_claim_amount=technical_claim,
    )
    split = SplitPolicy(policy) if policy else settings.settlement.split_policy
    _echo_json(compute(gig, split).as_dict())


@cli.group()
def webhooks() -> None:
    """Manage webhook subscriptions."""


@webhooks.command("add")
@click.option("--user", "user_id", required=True)
@click.option("--url", required=True)
@click.option("--provider", type=click.Choice([p.value for p in Provider]), default="generic")
@click.option(
    "--event",
    "events",
    multiple=True,
    required=True,
    type=click.Choice([e.value for e in EventType]),
)
@click.option("--name", default=None)
@click.pass_obj
def webhooks_add(
    settings: Settings,
    user_id: str,
    url: str,
    provider: str,
    events: tuple[str, ...],
    name: str | None,
) -> None:
    """Register a webhook endpoint."""

    async def _run() -> None:
        store = WebhookStore(settings.get_db_path())
        await store.start()
        try:
            webhook = await store.create(user_id, url, provider, events, name=name)
        finally:
            await store.stop()
        click.echo(webhook.id)

    _run_or_fail(_run())


@webhooks.command("list")
@click.option("--user", "user_id", required=True)
@click.pass_obj
def webhooks_list(settings: Settings, user_id: str) -> None:
    """List a user's webhooks."""

    async def _run() -> None:
        store = WebhookStore(settings.get_db_path())
        await store.start()
        try:
            subscriptions = await store.list_for_user(user_id)
        finally:
            await store.stop()
        _echo_json([
            {
                "id": s.id,
                "name": s.name,
                "provider": s.provider.value,
                "events": sorted(e.value for e in s.events),
                "enabled": s.enabled,
            }
            for s in subscriptions
        ])

    _run_or_fail(_run())


@webhooks.command("remove")
@click.option("--user", "user_id", required=True)
@click.argument("webhook_id")
@click.pass_obj
def webhooks_remove(settings: Settings, user_id: str, webhook_id: str) -> None:
    """Delete a webhook and its delivery log."""

    async def _run() -> None:
        store = WebhookStore(settings.get_db_path())
        await store.start()
        try:
            removed = await store.delete(webhook_id, user_id)
        finally:
            await store.stop()
        click.echo(f"Deleted webhook {webhook_id} ({removed} log entries)")

    _run_or_fail(_run())


@webhooks.command("logs")
@click.option("--limit", type=int, default=5, show_default=True)
@click.argument("webhook_id")
@click.pass_obj
def webhooks_logs(settings: Settings, limit: int, webhook_id: str) -> None:
    """Show the most recent delivery attempts of a webhook."""

    async def _run() -> None:
        store = WebhookStore(settings.get_db_path())
        await store.start()
        try:
            attempts = await store.list_attempts(webhook_id, limit=limit)
        finally:
            await store.stop()
        _echo_json([attempt_summary(a) for a in attempts])

    _run_or_fail(_run())


@cli.command()
@click.option("--user", "user_id", required=True)
@click.option("--data", "data_pairs", multiple=True, help="Event field as key=value (repeatable)")
@click.argument("event", type=click.Choice([e.value for e in EventType]))
@click.pass_obj
def dispatch(settings: Settings, user_id: str, data_pairs: tuple[str, ...], event: str) -> None:
    """Send an event to a user's webhooks and wait for every delivery to finish."""
    data = _parse_data(data_pairs)

    async def _run() -> None:
        async with Pipeline(settings) as pipeline:
            queued = await pipeline.dispatcher.dispatch(user_id, event, data)
            await pipeline.dispatcher.join()
        click.echo(f"Dispatched {event} to {queued} webhook(s)")

    _run_or_fail(_run())


def _run_or_fail(coro: Any) -> None:
    try:
        asyncio.run(coro)
    except WebhookError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
