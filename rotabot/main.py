"""Rotabot entry point."""

import logging

from rotabot.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Start the Slack bot and the rotation scheduler."""
    if not settings.slack_bot_token or not settings.slack_app_token:
        logger.warning("SLACK_BOT_TOKEN or SLACK_APP_TOKEN is empty — Slack connection will fail")

    from rotabot.bot.app import run_slack

    logger.info("Starting Rotabot on Slack...")
    run_slack()


if __name__ == "__main__":
    main()
