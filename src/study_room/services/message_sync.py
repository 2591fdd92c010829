"""Materialized view of a session's chat log."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from study_room.adapters.identity_store import IdentityStore
from study_room.domain.messages import ChatMessage, order_messages
from study_room.domain.sessions import ANONYMOUS

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[ChatMessage]], None]
ErrorCallback = Callable[[Exception], None]

SEND_FAILED = "Message failed to send."
CHAT_UNAVAILABLE = "Chat is unavailable right now."


class Subscription(Protocol):
    """Handle to a live chat subscription."""

    async def close(self) -> None:
        """Stop delivery and release the channel."""


class MessageLog(Protocol):
    """Ordered append log of chat messages keyed by chat channel."""

    async def subscribe(
        self,
        chat_channel_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Deliver the complete ordered log on every change until closed."""

    async def append(
        self, chat_channel_id: str, text: str, sender_id: str, sender_name: str
    ) -> None:
        """Append a message; the log assigns its id and timestamp."""


def _ignore(*_args: object) -> None:
    return None


@dataclass
class MessageStreamSync:
    """Keeps the local message list equal to the latest log snapshot."""

    message_log: MessageLog
    identity_store: IdentityStore
    on_change: Callable[[], None] = _ignore
    on_scroll: Callable[[str], None] = _ignore
    on_error: Callable[[str], None] = _ignore
    messages: list[ChatMessage] = field(default_factory=list)
    draft: str = ""
    sending: bool = False
    chat_channel_id: str | None = None
    closed: bool = False
    _subscription: Subscription | None = None
    _generation: int = 0

    async def bind(self, chat_channel_id: str | None) -> None:
        """Follow a chat channel, replacing any previous subscription."""
        if self.closed or chat_channel_id == self.chat_channel_id:
            return
        await self._unsubscribe()
        self.chat_channel_id = chat_channel_id
        self.messages = []
        self.on_change()
        if chat_channel_id is None:
            return

        generation = self._generation
        try:
            subscription = await self.message_log.subscribe(
                chat_channel_id,
                lambda messages: self._apply_snapshot(generation, messages),
                lambda exc: self._on_stream_error(generation, exc),
            )
        except Exception:
            logger.exception("Failed to subscribe to chat %s", chat_channel_id)
            self.on_error(CHAT_UNAVAILABLE)
            return
        if self.closed or generation != self._generation:
            await subscription.close()
            return
        self._subscription = subscription

    async def send_message(self, text: str | None = None) -> bool:
        """Append the draft (or ``text``) to the log.

        Returns whether the log accepted the message. The message is never
        added locally; it appears once the log delivers it.
        """
        content = (self.draft if text is None else text).strip()
        chat_channel_id = self.chat_channel_id
        if self.closed or self.sending or not content or chat_channel_id is None:
            return False

        self.sending = True
        self.draft = ""
        self.on_change()
        identity = self.identity_store.current() or ANONYMOUS
        try:
            await self.message_log.append(
                chat_channel_id,
                text=content,
                sender_id=identity.id,
                sender_name=identity.username,
            )
        except Exception:
            logger.warning("Failed to send message to chat %s", chat_channel_id)
            self.draft = content
            self.on_error(SEND_FAILED)
            return False
        finally:
            self.sending = False
            self.on_change()
            self._schedule_scroll()
        return True

    async def close(self) -> None:
        """Stop following the log; later snapshots are ignored."""
        if self.closed:
            return
        self.closed = True
        await self._unsubscribe()

    async def _unsubscribe(self) -> None:
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await subscription.close()
        except Exception:
            logger.warning("Failed to close chat subscription %s", self.chat_channel_id)

    def _apply_snapshot(self, generation: int, messages: list[ChatMessage]) -> None:
        if self.closed or generation != self._generation:
            return
        self.messages = order_messages(messages)
        self.on_change()
        self._schedule_scroll()

    def _on_stream_error(self, generation: int, exc: Exception) -> None:
        if self.closed or generation != self._generation:
            return
        logger.warning("Chat subscription %s reported: %s", self.chat_channel_id, exc)

    def _schedule_scroll(self) -> None:
        # Runs on the next loop pass, after observers have rendered the update.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.on_scroll("smooth")
            return
        loop.call_soon(self.on_scroll, "smooth")
