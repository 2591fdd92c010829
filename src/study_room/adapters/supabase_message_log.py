"""Supabase-backed chat log with realtime snapshots."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from supabase import AsyncClient, acreate_client

from study_room.domain.messages import ChatMessage
from study_room.services.message_sync import (
    ErrorCallback,
    MessageLog,
    SnapshotCallback,
    Subscription,
)

logger = logging.getLogger(__name__)

_COLUMNS = "id, chat_id, text, sender_id, sender_name, timestamp"
_FAILED_STATES = {"CHANNEL_ERROR", "TIMED_OUT"}


@dataclass
class SupabaseChatSubscription(Subscription):
    """Realtime channel that re-reads the full ordered log on every change."""

    client: AsyncClient
    table: str
    chat_channel_id: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    channel: object | None = None
    closed: bool = False
    _requested: int = 0
    _delivered: int = 0
    _tasks: set[asyncio.Task] = field(default_factory=set)

    async def open(self) -> None:
        """Join the realtime channel and deliver the first snapshot."""
        channel = self.client.channel(f"chat:{self.chat_channel_id}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=self.table,
            filter=f"chat_id=eq.{self.chat_channel_id}",
            callback=self._on_change,
        )
        await channel.subscribe(self._on_status)
        self.channel = channel
        await self.refresh()

    async def refresh(self) -> None:
        """Read the ordered log and deliver it unless a newer read finished."""
        self._requested += 1
        ticket = self._requested
        try:
            response = await (
                self.client.table(self.table)
                .select(_COLUMNS)
                .eq("chat_id", self.chat_channel_id)
                .order("timestamp")
                .execute()
            )
        except Exception as exc:
            if not self.closed:
                self.on_error(exc)
            return
        if self.closed or ticket < self._delivered:
            return
        self._delivered = ticket
        self.on_snapshot([_row_to_message(row) for row in response.data or []])

    async def close(self) -> None:
        """Leave the channel and stop delivering snapshots."""
        if self.closed:
            return
        self.closed = True
        for task in list(self._tasks):
            task.cancel()
        if self.channel is not None:
            await self.client.remove_channel(self.channel)
            self.channel = None

    def _on_change(self, _payload: dict[str, object]) -> None:
        if self.closed:
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_status(self, status: object, error: Exception | None = None) -> None:
        state = str(getattr(status, "value", status))
        if state in _FAILED_STATES and not self.closed:
            self.on_error(error or RuntimeError(f"Chat channel {state.lower()}"))


@dataclass
class SupabaseMessageLog(MessageLog):
    """Chat log stored in a Supabase table, one row per message."""

    supabase_url: str
    supabase_key: str
    table: str = "chat_messages"
    client: AsyncClient | None = None

    async def subscribe(
        self,
        chat_channel_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Open a realtime subscription for a chat channel."""
        subscription = SupabaseChatSubscription(
            client=await self._client(),
            table=self.table,
            chat_channel_id=chat_channel_id,
            on_snapshot=on_snapshot,
            on_error=on_error,
        )
        await subscription.open()
        return subscription

    async def append(
        self, chat_channel_id: str, text: str, sender_id: str, sender_name: str
    ) -> None:
        """Insert a message; the table default stamps ``timestamp``."""
        client = await self._client()
        response = await (
            client.table(self.table)
            .insert(
                {
                    "chat_id": chat_channel_id,
                    "text": text,
                    "sender_id": sender_id,
                    "sender_name": sender_name,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to append chat message")

    async def _client(self) -> AsyncClient:
        if self.client is None:
            self.client = await acreate_client(self.supabase_url, self.supabase_key)
        return self.client


def _row_to_message(row: dict[str, object]) -> ChatMessage:
    raw_timestamp = row.get("timestamp")
    timestamp = None
    if isinstance(raw_timestamp, str) and raw_timestamp:
        timestamp = datetime.fromisoformat(raw_timestamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
    return ChatMessage(
        id=str(row["id"]) if row.get("id") is not None else None,
        text=str(row.get("text") or ""),
        sender_id=str(row.get("sender_id") or ""),
        sender_name=str(row.get("sender_name") or ""),
        timestamp=timestamp,
    )
