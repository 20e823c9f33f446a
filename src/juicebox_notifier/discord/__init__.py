"""Discord notification components."""

from juicebox_notifier.discord.format import NotificationFormatter
from juicebox_notifier.discord.sink import DiscordWebhookSink

__all__ = ["NotificationFormatter", "DiscordWebhookSink"]
