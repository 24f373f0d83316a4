"""Tests for notification delivery."""

import pytest

from zenit import notifier as notifier_module
from zenit.config import Config, TelegramConfig
from zenit.notifier import (
    ConsoleNotifier,
    FanoutNotifier,
    Notifier,
    NullNotifier,
    TelegramNotifier,
    build_notifier,
    check_connection_sync,
)


class ListNotifier(Notifier):
    def __init__(self, result=True):
        self.messages = []
        self.result = result

    def deliver(self, title, body, level="info"):
        self.messages.append((title, body, level))
        return self.result


class BrokenNotifier(Notifier):
    def deliver(self, title, body, level="info"):
        raise ConnectionError("offline")


class FakeBot:
    sent = []

    def __init__(self, token):
        self.token = token

    async def send_message(self, chat_id, text, parse_mode=None):
        FakeBot.sent.append((chat_id, text, parse_mode))

    async def get_me(self):
        class Me:
            username = "zenit_bot"
        return Me()


@pytest.fixture
def fake_bot(monkeypatch):
    FakeBot.sent = []
    monkeypatch.setattr(notifier_module, "Bot", FakeBot)
    return FakeBot


def telegram_config(**overrides):
    values = {"bot_token": "123:abc", "chat_id": "42", "enabled": True}
    values.update(overrides)
    return TelegramConfig(**values)


class TestMessages:
    def test_streak_messages(self):
        n = ListNotifier()
        assert n.notify_streak_continued(5)
        n.notify_streak_lost(1)
        assert n.messages[0][1] == "Streak: 5 days!"
        assert "1 day streak" in n.messages[1][1]
        assert n.messages[1][2] == "error"

    def test_achievement_message(self):
        n = ListNotifier()
        n.notify_achievement_unlocked("Full Week", "📅")
        assert n.messages == [("📅 Achievement unlocked!", "Full Week", "success")]

    def test_timer_messages(self):
        n = ListNotifier()
        n.notify_focus_complete(2)
        n.notify_timer_resumed("12:00")
        assert n.messages[0][0] == "✅ Pomodoro #2 Complete!"
        assert n.messages[1][1] == "12:00 remaining."

    def test_delivery_errors_are_swallowed(self):
        assert BrokenNotifier().notify_break_complete() is False

    def test_null_notifier(self):
        assert NullNotifier().notify_streak_started() is False

    def test_console_notifier_prints(self, capsys):
        assert ConsoleNotifier().notify_focus_start(25)
        out = capsys.readouterr().out
        assert "Focus Time" in out
        assert "25 minutes" in out


class TestFanout:
    def test_delivers_to_all(self):
        a, b = ListNotifier(), ListNotifier(result=False)
        fanout = FanoutNotifier(a, b)
        assert fanout.notify_streak_reset()
        assert len(a.messages) == len(b.messages) == 1

    def test_one_failure_does_not_block_others(self):
        good = ListNotifier()
        fanout = FanoutNotifier(BrokenNotifier(), good)
        assert fanout.notify_break_complete()
        assert len(good.messages) == 1


class TestTelegram:
    def test_disabled_sends_nothing(self, fake_bot):
        n = TelegramNotifier(telegram_config(enabled=False))
        assert not n.enabled
        assert n.notify_streak_started() is False
        assert fake_bot.sent == []

    def test_missing_chat_id_disables(self):
        assert not TelegramNotifier(telegram_config(chat_id="")).enabled

    def test_sends_escaped_html(self, fake_bot):
        n = TelegramNotifier(telegram_config())
        assert n.deliver("A <b>", "x & y")
        chat_id, text, parse_mode = fake_bot.sent[0]
        assert chat_id == "42"
        assert text == "<b>A &lt;b&gt;</b>\n\nx &amp; y"
        assert parse_mode == "HTML"

    def test_send_failure_returns_false(self, monkeypatch):
        class FailingBot(FakeBot):
            async def send_message(self, chat_id, text, parse_mode=None):
                raise RuntimeError("network down")

        monkeypatch.setattr(notifier_module, "Bot", FailingBot)
        assert TelegramNotifier(telegram_config()).notify_break_complete() is False

    def test_connection_check(self, fake_bot):
        ok, message = check_connection_sync(telegram_config())
        assert ok
        assert message == "Connected as @zenit_bot"
        assert len(fake_bot.sent) == 1

    def test_connection_check_without_token(self):
        ok, message = check_connection_sync(telegram_config(bot_token=""))
        assert not ok
        assert message == "Bot token not configured"


class TestBuildNotifier:
    def test_console_only(self):
        assert isinstance(build_notifier(Config()), ConsoleNotifier)

    def test_nothing_enabled(self):
        assert isinstance(build_notifier(Config(), console=False), NullNotifier)

    def test_console_and_telegram(self):
        config = Config(telegram=telegram_config())
        n = build_notifier(config)
        assert isinstance(n, FanoutNotifier)
        assert [type(x) for x in n.notifiers] == [ConsoleNotifier, TelegramNotifier]

    def test_telegram_only(self):
        config = Config(telegram=telegram_config())
        assert isinstance(build_notifier(config, console=False), TelegramNotifier)
