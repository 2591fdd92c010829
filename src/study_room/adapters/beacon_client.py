"""One-way leave signal sent while the process is shutting down."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from study_room.config import session_url

logger = logging.getLogger(__name__)


class BeaconSender(Protocol):
    """Interface for fire-and-forget delivery."""

    def send_leave(self, session_id: str) -> None:
        """Send a leave signal without waiting on the outcome."""


@dataclass
class HttpxBeaconSender(BeaconSender):
    """Beacon built on a synchronous httpx client.

    Runs from ``atexit`` handlers, where no event loop is available, so it
    cannot share the async client. Failures are logged and dropped.
    """

    base_url: str
    http_client: httpx.Client
    timeout: float = 2.0

    @classmethod
    def create(
        cls, base_url: str, access_token: str | None = None, timeout: float = 2.0
    ) -> "HttpxBeaconSender":
        """Create a beacon sender with its own httpx session."""
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return cls(
            base_url=base_url,
            http_client=httpx.Client(headers=headers),
            timeout=timeout,
        )

    def send_leave(self, session_id: str) -> None:
        """POST the leave endpoint, ignoring the response."""
        url = session_url(self.base_url, session_id, "leave")
        try:
            self.http_client.post(url, timeout=self.timeout)
        except httpx.HTTPError:
            logger.warning("Leave beacon for session %s was not delivered", session_id)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.http_client.close()
