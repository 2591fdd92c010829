"""Domain models for chat messages."""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class ChatMessage:
    """Single entry of a session's chat log."""

    id: str | None
    text: str
    sender_id: str
    sender_name: str
    timestamp: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.timestamp is None

    def to_transcript_entry(self, now: datetime | None = None) -> dict[str, object]:
        """Serialize for the note-generation request."""
        timestamp = self.timestamp or now or datetime.now(tz=UTC)
        return {
            "text": self.text,
            "senderName": self.sender_name,
            "senderId": self.sender_id,
            "timestamp": timestamp.isoformat(),
        }


def order_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Sort by timestamp ascending; unconfirmed entries go last in log order."""
    return sorted(
        messages,
        key=lambda message: (
            message.timestamp is None,
            message.timestamp or datetime.min.replace(tzinfo=UTC),
        ),
    )
