"""One participant's visit to a study session."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from study_room.adapters.shutdown_hooks import ShutdownHooks
from study_room.adapters.study_api_client import StudyApi
from study_room.domain.messages import ChatMessage
from study_room.domain.notes import GenerationStatus, NoteRecord
from study_room.domain.sessions import (
    LeaveTrigger,
    MembershipState,
    ParticipantIdentity,
    StudySession,
)
from study_room.services.membership import MembershipLifecycle
from study_room.services.message_sync import MessageStreamSync
from study_room.services.note_generation import (
    NOTES_UNAVAILABLE,
    NoteGenerationCoordinator,
)

logger = logging.getLogger(__name__)

HOME_PATH = "/"
END_SESSION_PROMPT = (
    "Are you sure you want to end this session? "
    "This will end it for all participants."
)
END_SESSION_FAILED = "Could not end session. Please try again."

Confirm = Callable[[str], bool | Awaitable[bool]]


class VisitView(Protocol):
    """Receiver of a visit's observable state and side effects."""

    def state_changed(self, state: "VisitState") -> None:
        """Render a new state snapshot."""

    def scroll_to_latest(self, behavior: str) -> None:
        """Bring the newest message into view."""

    def navigate(self, path: str) -> None:
        """Move the participant elsewhere in the app."""


@dataclass
class RecordingView(VisitView):
    """View that keeps the latest state, scroll requests and navigation."""

    state: "VisitState | None" = None
    scrolls: list[str] = field(default_factory=list)
    navigated_to: str | None = None

    def state_changed(self, state: "VisitState") -> None:
        self.state = state

    def scroll_to_latest(self, behavior: str) -> None:
        self.scrolls.append(behavior)

    def navigate(self, path: str) -> None:
        self.navigated_to = path


@dataclass(frozen=True)
class VisitState:
    """Everything the UI needs to render a visit."""

    loading: bool
    not_found: bool
    session: StudySession | None
    messages: list[ChatMessage]
    notes: list[NoteRecord]
    generation: GenerationStatus
    membership: MembershipState
    draft: str
    sending: bool
    show_notes: bool
    error: str | None
    notice: str | None
    is_creator: bool

    @property
    def can_generate(self) -> bool:
        return bool(self.messages) and not self.generation.in_flight


@dataclass
class SessionFacade:
    """Composes membership, chat sync and note generation for one visit."""

    session_id: str
    api: StudyApi
    membership: MembershipLifecycle
    chat: MessageStreamSync
    generator: NoteGenerationCoordinator
    shutdown_hooks: ShutdownHooks
    identity: ParticipantIdentity | None = None
    view: VisitView = field(default_factory=RecordingView)
    session: StudySession | None = None
    loading: bool = True
    not_found: bool = False
    show_notes: bool = False
    error: str | None = None
    notice: str | None = None
    closed: bool = False
    _initial_fetch: asyncio.Task | None = None

    def __post_init__(self) -> None:
        self.chat.on_change = self._publish
        self.chat.on_scroll = self.view.scroll_to_latest
        self.chat.on_error = self._report_error
        self.generator.on_change = self._publish
        self.generator.on_error = self._report_error
        self.generator.on_notice = self._report_notice
        self.generator.on_completed = self._open_notes

    @property
    def state(self) -> VisitState:
        return VisitState(
            loading=self.loading,
            not_found=self.not_found,
            session=self.session,
            messages=list(self.chat.messages),
            notes=list(reversed(self.generator.notes)),
            generation=self.generator.status,
            membership=self.membership.state,
            draft=self.chat.draft,
            sending=self.chat.sending,
            show_notes=self.show_notes,
            error=self.error,
            notice=self.notice,
            is_creator=self.is_creator,
        )

    @property
    def is_creator(self) -> bool:
        if self.session is None or self.identity is None:
            return False
        return self.session.creator_id == self.identity.id

    async def open(self) -> VisitState:
        """Load the session and notes together, then start following the chat."""
        if self.closed:
            return self.state
        self._initial_fetch = asyncio.get_running_loop().create_task(
            self._load_initial()
        )
        try:
            await self._initial_fetch
        except asyncio.CancelledError:
            if not self.closed:
                raise
        return self.state

    async def _load_initial(self) -> None:
        session_result, notes_result = await asyncio.gather(
            self.membership.join(),
            self.api.list_notes(self.session_id),
            return_exceptions=True,
        )
        if self.closed:
            return

        if isinstance(notes_result, BaseException):
            logger.warning(
                "Initial notes fetch failed for session %s: %s",
                self.session_id,
                notes_result,
            )
            self.error = NOTES_UNAVAILABLE
        else:
            self.generator.notes = list(notes_result)

        if isinstance(session_result, BaseException):
            logger.warning(
                "Session %s could not be loaded: %s", self.session_id, session_result
            )
            self.not_found = True
            self.loading = False
            self._publish()
            return

        self.session = session_result
        self.loading = False
        self.shutdown_hooks.install(self._on_unload)
        self._publish()
        await self.chat.bind(session_result.chat_channel_id)

    def set_draft(self, text: str) -> None:
        self.chat.draft = text
        self._publish()

    async def send_message(self, text: str | None = None) -> bool:
        return await self.chat.send_message(text)

    async def request_notes(self) -> None:
        """Ask the summarization service for notes on the current transcript."""
        messages = list(self.chat.messages)
        if self.closed or not messages or self.generator.status.in_flight:
            return
        self.error = None
        self.notice = None
        await self.generator.request_generation(messages)

    async def fetch_notes(self) -> list[NoteRecord] | None:
        """Manual refresh of the note set."""
        notes = await self.generator.fetch_notes()
        if notes is not None:
            self.error = None
            self._publish()
        return notes

    def toggle_notes(self) -> None:
        self.show_notes = not self.show_notes
        self._publish()

    def dismiss_error(self) -> None:
        self.error = None
        self.notice = None
        self._publish()

    async def leave(self) -> None:
        """Explicit leave; navigation happens even if the request fails."""
        await self.membership.leave(LeaveTrigger.EXPLICIT)
        self._publish()
        self.view.navigate(HOME_PATH)

    async def end_session(self, confirm: Confirm) -> bool:
        """End the session for everyone after the creator confirms."""
        if self.session is None or not self.is_creator:
            return False
        answer = confirm(END_SESSION_PROMPT)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False
        try:
            await self.api.end_session(self.session_id)
        except Exception:
            logger.warning("Ending session %s failed", self.session_id)
            self._report_error(END_SESSION_FAILED)
            return False
        self.session = StudySession(
            id=self.session.id,
            title=self.session.title,
            chat_channel_id=self.session.chat_channel_id,
            creator_id=self.session.creator_id,
            is_live=False,
        )
        self._publish()
        self.view.navigate(HOME_PATH)
        return True

    async def close(self) -> None:
        """Tear down the visit and release everything it holds."""
        if self.closed:
            return
        self.closed = True
        await self.chat.close()
        self.generator.close()
        if self._initial_fetch is not None and not self._initial_fetch.done():
            self._initial_fetch.cancel()
        self.shutdown_hooks.uninstall(self._on_unload)
        await self.membership.leave(LeaveTrigger.TEARDOWN)

    def _on_unload(self) -> None:
        self.membership.leave_on_unload()

    def _open_notes(self) -> None:
        self.show_notes = True
        self._publish()

    def _report_error(self, message: str) -> None:
        self.error = message
        self._publish()

    def _report_notice(self, message: str) -> None:
        self.notice = message
        self._publish()

    def _publish(self) -> None:
        if self.closed:
            return
        self.view.state_changed(self.state)
