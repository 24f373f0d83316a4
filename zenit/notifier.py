"""Notifications for streak milestones and timer phase changes."""

import asyncio
import html
import logging

import click
from telegram import Bot

from .config import Config, TelegramConfig

logger = logging.getLogger(__name__)


class Notifier:
    """Builds user-facing messages; subclasses decide where they go.

    Delivery is fire-and-forget: every notify_* method returns whether the
    message went out and never raises.
    """

    def deliver(self, title: str, body: str, level: str = "info") -> bool:
        raise NotImplementedError

    def _send(self, title: str, body: str, level: str = "info") -> bool:
        try:
            return self.deliver(title, body, level)
        except Exception as e:
            logger.error(f"Failed to deliver notification {title!r}: {e}")
            return False

    # Streak messages

    def notify_streak_started(self) -> bool:
        return self._send("Streak started! 🔥", "Come back tomorrow to keep it going.", "success")

    def notify_streak_continued(self, count: int) -> bool:
        return self._send("Keep it up! 🔥", f"Streak: {count} days!", "success")

    def notify_streak_reset(self) -> bool:
        return self._send("Streak restarted 🔥", "Keep the pace from here.")

    def notify_streak_lost(self, count: int) -> bool:
        """Sent once when a streak is found broken."""
        days = "day" if count == 1 else "days"
        return self._send(
            "Streak lost... 🧊",
            f"More than a day passed without activity. Your {count} {days} streak was reset.",
            "error",
        )

    def notify_achievement_unlocked(self, title: str, icon: str = "🏆") -> bool:
        return self._send(f"{icon} Achievement unlocked!", title, "success")

    # Timer messages

    def notify_focus_start(self, minutes: int) -> bool:
        return self._send("🍅 Focus Time", f"{minutes} minutes of focused work.")

    def notify_focus_complete(self, cycle: int) -> bool:
        return self._send(f"✅ Pomodoro #{cycle} Complete!", "Great work! Time for a break.", "success")

    def notify_break_start(self, minutes: int) -> bool:
        return self._send("☕ Short Break", f"{minutes} minutes. Step away from the screen.")

    def notify_break_complete(self) -> bool:
        return self._send("⏰ Break Over", "Ready for the next pomodoro?")

    def notify_timer_paused(self) -> bool:
        return self._send("⏸️ Timer Paused", "Resume when ready.")

    def notify_timer_resumed(self, time_remaining: str) -> bool:
        return self._send("▶️ Timer Resumed", f"{time_remaining} remaining.")


class ConsoleNotifier(Notifier):
    """Prints notifications to the terminal."""

    COLORS = {"success": "green", "error": "red", "info": "cyan"}

    def deliver(self, title: str, body: str, level: str = "info") -> bool:
        click.secho(f"\n{title}", fg=self.COLORS.get(level, "cyan"), bold=True)
        click.echo(f"   {body}")
        return True


class TelegramNotifier(Notifier):
    """Sends notifications to one Telegram chat as HTML messages."""

    def __init__(self, config: TelegramConfig):
        """Initialize notifier with config.

        Args:
            config: Telegram configuration
        """
        self.config = config
        self._bot = None

    @property
    def enabled(self) -> bool:
        """Enabled in config with both a bot token and a chat id."""
        return (
            self.config.enabled
            and bool(self.config.bot_token)
            and bool(self.config.chat_id)
        )

    def _get_bot(self):
        """Bot created on first use."""
        if self._bot is None:
            self._bot = Bot(token=self.config.bot_token)
        return self._bot

    async def send_message(self, text: str) -> bool:
        """Send a message to the configured chat.

        Args:
            text: HTML message text to send

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            return False

        try:
            bot = self._get_bot()
            await bot.send_message(
                chat_id=self.config.chat_id,
                text=text,
                parse_mode="HTML",
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            return False

    def send_sync(self, text: str) -> bool:
        """Synchronous wrapper for send_message."""
        if not self.enabled:
            return False

        try:
            return asyncio.run(self.send_message(text))
        except Exception as e:
            logger.error(f"Failed to send message synchronously: {e}")
            return False

    def deliver(self, title: str, body: str, level: str = "info") -> bool:
        return self.send_sync(f"<b>{html.escape(title)}</b>\n\n{html.escape(body)}")


class FanoutNotifier(Notifier):
    """Delivers every message to several notifiers."""

    def __init__(self, *notifiers: Notifier):
        self.notifiers = list(notifiers)

    def deliver(self, title: str, body: str, level: str = "info") -> bool:
        results = [n._send(title, body, level) for n in self.notifiers]
        return any(results)


class NullNotifier(Notifier):
    """Discards notifications."""

    def deliver(self, title: str, body: str, level: str = "info") -> bool:
        return False


def build_notifier(config: Config, console: bool = True) -> Notifier:
    """Pick the notifiers enabled by configuration."""
    notifiers: list[Notifier] = []
    if console:
        notifiers.append(ConsoleNotifier())
    telegram = TelegramNotifier(config.telegram)
    if telegram.enabled:
        notifiers.append(telegram)
    if not notifiers:
        return NullNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return FanoutNotifier(*notifiers)


async def verify_telegram_connection(config: TelegramConfig) -> tuple[bool, str]:
    """Check the bot token and send a greeting to the chat.

    Args:
        config: Telegram configuration to test

    Returns:
        Tuple of (success, message)
    """
    if not config.bot_token:
        return False, "Bot token not configured"

    if not config.chat_id:
        return False, "Chat ID not configured"

    try:
        bot = Bot(token=config.bot_token)

        me = await bot.get_me()

        await bot.send_message(
            chat_id=config.chat_id,
            text="🔔 <b>Zenit</b>\n\nConnection test successful!",
            parse_mode="HTML",
        )

        return True, f"Connected as @{me.username}"

    except Exception as e:
        return False, f"Connection failed: {e}"


def check_connection_sync(config: TelegramConfig) -> tuple[bool, str]:
    """Synchronous wrapper for verify_telegram_connection."""
    return asyncio.run(verify_telegram_connection(config))
