"""Study sessions REST API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from study_room.config import session_url
from study_room.domain.notes import GenerationOutcome, NoteRecord
from study_room.domain.sessions import StudySession

_ACCEPTED_STATUSES = {"accepted", "processing", "pending"}


class StudyApi(Protocol):
    """Interface for the study sessions backend."""

    async def get_session(self, session_id: str) -> StudySession:
        """Fetch a session by id."""

    async def list_notes(self, session_id: str) -> list[NoteRecord]:
        """Fetch every note generated for a session."""

    async def leave_session(self, session_id: str) -> None:
        """Unregister the participant from a session."""

    async def generate_notes(
        self, session_id: str, messages: list[dict[str, object]]
    ) -> GenerationOutcome:
        """Submit a transcript for summarization."""

    async def end_session(self, session_id: str) -> None:
        """End a session for every participant."""

    async def join_post(self, post_id: str) -> StudySession:
        """Join a study post and return the session it opens."""


@dataclass
class HttpxStudyApiClient(StudyApi):
    """Study API client implemented with httpx."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(
        cls, base_url: str, access_token: str | None = None, timeout: float = 15.0
    ) -> "HttpxStudyApiClient":
        """Create a client with a managed httpx session."""
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(headers=headers),
            timeout=timeout,
        )

    async def get_session(self, session_id: str) -> StudySession:
        """Fetch a session by id."""
        response = await self.http_client.get(
            session_url(self.base_url, session_id), timeout=self.timeout
        )
        response.raise_for_status()
        return parse_session(response.json())

    async def list_notes(self, session_id: str) -> list[NoteRecord]:
        """Fetch notes; the backend may paginate as ``{"results": [...]}``."""
        response = await self.http_client.get(
            session_url(self.base_url, session_id, "notes"), timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()
        rows = data if isinstance(data, list) else data.get("results") or []
        return [NoteRecord.model_validate(row) for row in rows]

    async def leave_session(self, session_id: str) -> None:
        """Unregister the participant from a session."""
        response = await self.http_client.post(
            session_url(self.base_url, session_id, "leave"), timeout=self.timeout
        )
        response.raise_for_status()

    async def generate_notes(
        self, session_id: str, messages: list[dict[str, object]]
    ) -> GenerationOutcome:
        """Submit a transcript; a 202 means the notes are computed later."""
        response = await self.http_client.post(
            session_url(self.base_url, session_id, "generate_notes"),
            json={"messages": messages},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = _json_object(response)
        status = str(payload.get("status", "")).lower()
        accepted = (
            response.status_code == httpx.codes.ACCEPTED
            or status in _ACCEPTED_STATUSES
        )
        return GenerationOutcome(accepted=accepted, payload=payload)

    async def end_session(self, session_id: str) -> None:
        """End a session for every participant."""
        response = await self.http_client.post(
            session_url(self.base_url, session_id, "end_session"),
            timeout=self.timeout,
        )
        response.raise_for_status()

    async def join_post(self, post_id: str) -> StudySession:
        """Join a study post and return the session it opens."""
        url = f"{self.base_url.rstrip('/')}/study-posts/{post_id}/join/"
        response = await self.http_client.post(url, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and isinstance(data.get("session"), dict):
            data = data["session"]
        return parse_session(data)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def parse_session(data: dict[str, object]) -> StudySession:
    """Build a session from a backend payload."""
    post = data.get("post")
    title = None
    if isinstance(post, dict):
        title = post.get("title")
    title = title or data.get("topic") or data.get("title") or "Study Session"
    chat_channel_id = data.get("chat_channel_id") or data.get("firestore_chat_id")
    creator = data.get("creator")
    if isinstance(creator, dict):
        creator = creator.get("id")
    return StudySession(
        id=str(data["id"]),
        title=str(title),
        chat_channel_id=str(chat_channel_id) if chat_channel_id else None,
        creator_id=str(creator) if creator is not None else None,
        is_live=bool(data.get("is_active", data.get("is_live", True))),
    )


def error_reason(exc: BaseException) -> str | None:
    """Return the backend's ``error`` message carried by a failed response."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    try:
        payload = exc.response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return None


def _json_object(response: httpx.Response) -> dict[str, object]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {"results": payload}
