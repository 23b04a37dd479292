"""Slack Bolt application factory."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.app.async_app import AsyncApp as App
from slack_sdk.web.async_client import AsyncWebClient

from rotabot.bot.handlers import handle_skip_action, handle_status_command
from rotabot.config import settings
from rotabot.notifications.blocks import SKIP_ACTION_PREFIX
from rotabot.notifications.slack_channel import SlackChannel
from rotabot.rotations.cursor import RotationLocks
from rotabot.rotations.cycle import RotationScheduler
from rotabot.rotations.delivery import AssignmentNotifier
from rotabot.rotations.engine import SchedulerEngine
from rotabot.rotations.ledger import AssignmentLedger
from rotabot.rotations.skip import SkipEngine
from rotabot.rotations.store import RotationStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The wired rotation components shared by the app and the scheduler."""

    store: RotationStore
    ledger: AssignmentLedger
    scheduler: RotationScheduler
    skip_engine: SkipEngine
    engine: SchedulerEngine


def build_services(client: AsyncWebClient) -> Services:
    """Wire stores, the Slack channel, and the engines around *client*."""
    store = RotationStore.get()
    ledger = AssignmentLedger.get()
    locks = RotationLocks()
    notifier = AssignmentNotifier(SlackChannel(client), ledger)
    scheduler = RotationScheduler(store, ledger, notifier, locks)
    return Services(
        store=store,
        ledger=ledger,
        scheduler=scheduler,
        skip_engine=SkipEngine(store, ledger, notifier, locks),
        engine=SchedulerEngine(scheduler),
    )


def create_slack_app(services: Services | None = None) -> tuple[App, Services]:
    """Build and configure the Slack Bolt application."""
    client = AsyncWebClient(token=settings.slack_bot_token)
    app = App(token=settings.slack_bot_token, client=client)
    services = services or build_services(client)

    skip_re = re.compile(rf"^{re.escape(SKIP_ACTION_PREFIX)}.+$")

    @app.action(skip_re)
    async def _on_skip_action(ack, body, action, client):
        await handle_skip_action(
            ack=ack, body=body, action=action, client=client, engine=services.skip_engine
        )

    @app.command("/rota-status")
    async def _on_status(ack, command, say):
        await handle_status_command(
            ack=ack, command=command, say=say, store=services.store, ledger=services.ledger
        )

    logger.info("Slack app configured")
    return app, services


def run_slack() -> None:
    """Start the Slack bot with Socket Mode (blocking)."""

    async def _run() -> None:
        app, services = create_slack_app()
        await services.engine.start()

        handler = AsyncSocketModeHandler(app, settings.slack_app_token)
        try:
            await handler.start_async()
        finally:
            await services.engine.stop()

    asyncio.run(_run())
