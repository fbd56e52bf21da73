import logging

import pytest

from tumailserver.config import ServerConfig
from tumailserver.notifier import CommandNotifier, LogNotifier, build_notifier


class TestBuildNotifier:

    def test_command_notifier_when_configured(self):
        notifier = build_notifier(ServerConfig(notify_command='true'))
        assert isinstance(notifier, CommandNotifier)

    def test_log_notifier_by_default(self):
        assert isinstance(build_notifier(ServerConfig()), LogNotifier)


class TestCommandNotifier:

    def test_render_quotes_addresses(self):
        notifier = CommandNotifier('say {sender} {recipient}')
        assert notifier.render('b@y.com', "it's@x") == "say 'it'\"'\"'s@x' b@y.com"

    @pytest.mark.asyncio
    async def test_runs_command(self, tmp_path):
        marker = tmp_path / 'notified'
        notifier = CommandNotifier(f"echo {{recipient}} > {marker}")
        await notifier.notify('b@y.com', 'a@x.com')
        assert marker.read_text().strip() == 'b@y.com'

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_logged(self, caplog):
        notifier = CommandNotifier('exit 3')
        with caplog.at_level(logging.WARNING, logger='tumailserver.notifier'):
            await notifier.notify('b@y.com', 'a@x.com')
        assert 'status 3' in caplog.text


class TestLogNotifier:

    @pytest.mark.asyncio
    async def test_logs_arrival(self, caplog):
        with caplog.at_level(logging.INFO, logger='tumailserver.notifier'):
            await LogNotifier().notify('b@y.com', 'a@x.com')
        assert 'b@y.com' in caplog.text
        assert 'a@x.com' in caplog.text
