# link_relay/notify.py
"""
Fire-and-forget chat notifications.

:class:`TelegramNotifier` posts a text message through the Bot API;
failures are logged and reported as ``False``, never raised.  Background
sends are tracked so the server can wait for them on shutdown.
"""
from __future__ import annotations

import asyncio
from typing import Set

from aiohttp import ClientError, ClientSession, ClientTimeout

from link_relay.config import TelegramConfig
from link_relay.logger import get_logger

__all__ = ("Notifier", "NullNotifier", "TelegramNotifier")

log = get_logger("notify")


class Notifier:
    """Base notifier: keeps strong references to in-flight sends."""

    def __init__(self) -> None:
        self._pending: Set[asyncio.Task[bool]] = set()

    async def send(self, text: str) -> bool:
        raise NotImplementedError

    def notify_in_background(self, text: str) -> asyncio.Task[bool]:
        """Schedule :meth:`send` without waiting for it."""
        task = asyncio.create_task(self.send(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def aclose(self) -> None:
        """Wait for the sends still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class NullNotifier(Notifier):
    """Used when no chat credentials are configured: only logs the message."""

    async def send(self, text: str) -> bool:
        log.info("Notification (not sent, no chat configured): %s", text)
        return False


class TelegramNotifier(Notifier):
    """Sends messages with ``sendMessage`` of the Telegram Bot API."""

    def __init__(self, session: ClientSession, config: TelegramConfig) -> None:
        super().__init__()
        self.session = session
        self.config = config

    async def send(self, text: str) -> bool:
        data = {"chat_id": self.config.chat_id, "text": text}
        log.info("Sending message to chat_id: %s", self.config.chat_id)
        try:
            async with self.session.post(
                self.config.send_message_url(),
                data=data,
                timeout=ClientTimeout(total=self.config.timeout),
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    log.warning("Telegram rejected message: HTTP %s %s", resp.status, body[:200])
                    return False
                return True
        except asyncio.TimeoutError:
            log.warning("Timed out sending message to Telegram")
            return False
        except ClientError as exc:
            log.warning("Failed to send message to Telegram: %s", exc)
            return False
