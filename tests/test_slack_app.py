"""Tests for Slack app factory."""

from unittest.mock import AsyncMock, MagicMock, patch


def test_create_slack_app_registers_handlers() -> None:
    with (
        patch("rotabot.bot.app.App") as mock_app_cls,
        patch("rotabot.bot.app.AsyncWebClient") as mock_client_cls,
        patch("rotabot.bot.app.settings") as mock_settings,
    ):
        mock_settings.slack_bot_token = "xoxb-test"
        mock_app = MagicMock()
        mock_app_cls.return_value = mock_app
        mock_client_cls.return_value = AsyncMock()

        from rotabot.bot.app import create_slack_app

        services = MagicMock()
        app, returned = create_slack_app(services)

        assert app is mock_app
        assert returned is services
        mock_app.action.assert_called_once()
        mock_app.command.assert_called_once_with("/rota-status")


def test_build_services_shares_locks() -> None:
    from rotabot.bot.app import build_services

    with (
        patch("rotabot.bot.app.RotationStore") as mock_store_cls,
        patch("rotabot.bot.app.AssignmentLedger") as mock_ledger_cls,
    ):
        services = build_services(AsyncMock())

    assert services.store is mock_store_cls.get.return_value
    assert services.ledger is mock_ledger_cls.get.return_value
    assert services.skip_engine._locks is services.scheduler.locks
