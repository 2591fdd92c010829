"""Domain models for study sessions and membership."""

from dataclasses import dataclass
from enum import Enum


class MembershipState(str, Enum):
    """Presence of the local participant in a session visit."""

    NOT_JOINED = "not_joined"
    JOINED = "joined"
    LEAVE_PENDING = "leave_pending"
    LEFT = "left"


class LeaveTrigger(str, Enum):
    """How a visit ended."""

    EXPLICIT = "explicit"
    TEARDOWN = "teardown"
    UNLOAD = "unload"


@dataclass(frozen=True)
class StudySession:
    """Represents a study session fetched from the backend."""

    id: str
    title: str
    chat_channel_id: str | None
    creator_id: str | None
    is_live: bool


@dataclass(frozen=True)
class ParticipantIdentity:
    """Cached identity of the authenticated participant."""

    id: str
    username: str


ANONYMOUS = ParticipantIdentity(id="guest", username="Anonymous")
