"""Note generation: submit a transcript, then poll until notes appear."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from study_room.adapters.study_api_client import StudyApi, error_reason
from study_room.domain.messages import ChatMessage
from study_room.domain.notes import GenerationState, GenerationStatus, NoteRecord

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = "AI Service temporarily unavailable."
NOTES_UNAVAILABLE = "Failed to load notes"
GENERATION_TIMED_OUT = "Generation timed out. Check back in a moment."


def _ignore(*_args: object) -> None:
    return None


@dataclass
class NoteGenerationCoordinator:
    """Owns the session's note set and the generation state machine."""

    api: StudyApi
    session_id: str
    poll_interval_seconds: float = 2.0
    max_polls: int = 20
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    on_change: Callable[[], None] = _ignore
    on_error: Callable[[str], None] = _ignore
    on_notice: Callable[[str], None] = _ignore
    on_completed: Callable[[], None] = _ignore
    notes: list[NoteRecord] = field(default_factory=list)
    status: GenerationStatus = field(default_factory=GenerationStatus)
    closed: bool = False
    _poll_task: asyncio.Task | None = None

    async def request_generation(self, messages: list[ChatMessage]) -> None:
        """Submit the transcript unless it is empty or a request is in flight."""
        if self.closed or not messages or self.status.in_flight:
            return

        baseline = len(self.notes)
        self._set_status(GenerationState.SUBMITTING)
        transcript = [message.to_transcript_entry() for message in messages]
        try:
            outcome = await self.api.generate_notes(self.session_id, transcript)
        except Exception as exc:
            if not self.closed:
                self._fail(exc, "Note generation request failed")
            return
        if self.closed:
            return

        if outcome.accepted:
            self._set_status(GenerationState.POLLING)
            self.start_polling(baseline)
            return

        try:
            self._replace_notes(await self.api.list_notes(self.session_id))
        except Exception as exc:
            self._fail(exc, "Failed to fetch generated notes")
            return
        self._succeed()

    def start_polling(self, baseline: int) -> asyncio.Task | None:
        """Start the poll loop, cancelling any loop already running."""
        if self.closed:
            return None
        self.cancel()
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(baseline)
        )
        return self._poll_task

    async def fetch_notes(self) -> list[NoteRecord] | None:
        """Re-synchronize the note set; returns ``None`` on failure."""
        try:
            notes = await self.api.list_notes(self.session_id)
        except Exception:
            logger.warning("Failed to load notes for session %s", self.session_id)
            self.on_error(NOTES_UNAVAILABLE)
            return None
        self._replace_notes(notes)
        return notes

    def close(self) -> None:
        """Stop for good; submissions still in flight are discarded."""
        self.closed = True
        self.cancel()

    def cancel(self) -> None:
        """Cancel a pending poll loop."""
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def _poll(self, baseline: int) -> None:
        for attempt in range(1, self.max_polls + 1):
            if attempt > 1:
                await self.sleep(self.poll_interval_seconds)
            try:
                notes = await self.api.list_notes(self.session_id)
            except Exception as exc:
                self._fail(exc, "Polling for notes failed")
                return
            self._replace_notes(notes)
            if len(notes) > baseline:
                logger.info(
                    "Notes for session %s ready after %d polls",
                    self.session_id,
                    attempt,
                )
                self._succeed()
                return

        logger.info("Gave up polling notes for session %s", self.session_id)
        self._set_status(GenerationState.TIMED_OUT)
        self.on_notice(GENERATION_TIMED_OUT)

    def _replace_notes(self, notes: list[NoteRecord]) -> None:
        self.notes = list(notes)
        self.on_change()

    def _succeed(self) -> None:
        self._set_status(GenerationState.SUCCEEDED)
        self.on_completed()

    def _fail(self, exc: Exception, log_message: str) -> None:
        logger.warning("%s for session %s: %s", log_message, self.session_id, exc)
        reason = error_reason(exc) or SERVICE_UNAVAILABLE
        self._set_status(GenerationState.FAILED, reason)
        self.on_error(reason)

    def _set_status(self, state: GenerationState, reason: str | None = None) -> None:
        self.status = GenerationStatus(state=state, reason=reason)
        self.on_change()
