"""File-backed cache of the authenticated participant."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from study_room.domain.sessions import ANONYMOUS, ParticipantIdentity

logger = logging.getLogger(__name__)


class IdentityStore(Protocol):
    """Interface for reading the cached participant identity."""

    def current(self) -> ParticipantIdentity | None:
        """Return the cached identity, if any."""


@dataclass
class FileIdentityStore(IdentityStore):
    """Reads ``{"id": ..., "username": ...}`` written by the login flow."""

    path: Path

    def current(self) -> ParticipantIdentity | None:
        """Read the identity file; a missing or corrupt file means no identity."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable identity file %s", self.path)
            return None
        if not isinstance(raw, dict):
            return None
        user_id = raw.get("id")
        username = raw.get("username")
        if user_id is None and not username:
            return None
        return ParticipantIdentity(
            id=str(user_id) if user_id is not None else ANONYMOUS.id,
            username=str(username) if username else ANONYMOUS.username,
        )
