"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from study_room.adapters.beacon_client import BeaconSender
from study_room.adapters.identity_store import IdentityStore
from study_room.adapters.shutdown_hooks import ShutdownHooks
from study_room.adapters.study_api_client import StudyApi
from study_room.config import Settings
from study_room.containers import AppContainer, facade_builder
from study_room.domain.messages import ChatMessage
from study_room.domain.notes import GenerationOutcome, NoteRecord
from study_room.domain.sessions import ParticipantIdentity, StudySession
from study_room.services.message_sync import (
    ErrorCallback,
    MessageLog,
    SnapshotCallback,
    Subscription,
)
from study_room.services.visits import VisitManager

BASE_TIME = datetime(2025, 3, 1, 18, 0, tzinfo=UTC)


def make_message(index: int, text: str | None = None) -> ChatMessage:
    return ChatMessage(
        id=f"m{index}",
        text=text or f"message {index}",
        sender_id="u1",
        sender_name="alice",
        timestamp=BASE_TIME + timedelta(seconds=index),
    )


def make_note(index: int) -> NoteRecord:
    return NoteRecord(
        id=index,
        created_at=BASE_TIME + timedelta(minutes=index),
        content=f"summary {index}",
        key_concepts=["recursion"],
        definitions=[{"term": "base case", "definition": "where recursion stops"}],
        study_tips=["practice"],
    )


def http_error(status_code: int, payload: dict[str, object] | None = None) -> Exception:
    request = httpx.Request("POST", "https://api.test/sessions/s1/")
    response = httpx.Response(status_code, json=payload or {}, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


@dataclass
class FakeStudyApi(StudyApi):
    """In-memory study backend that records calls."""

    session: StudySession = field(
        default_factory=lambda: StudySession(
            id="s1",
            title="Algorithms",
            chat_channel_id="chat-1",
            creator_id="u1",
            is_live=True,
        )
    )
    notes: list[NoteRecord] = field(default_factory=list)
    note_responses: list[list[NoteRecord] | Exception] = field(default_factory=list)
    accept_generation: bool = False
    session_error: Exception | None = None
    generate_error: Exception | None = None
    leave_error: Exception | None = None
    end_error: Exception | None = None
    session_gate: asyncio.Event | None = None
    generate_gate: asyncio.Event | None = None
    calls: list[tuple[str, object]] = field(default_factory=list)

    async def get_session(self, session_id: str) -> StudySession:
        self.calls.append(("get_session", session_id))
        if self.session_gate is not None:
            await self.session_gate.wait()
        if self.session_error:
            raise self.session_error
        return self.session

    async def list_notes(self, session_id: str) -> list[NoteRecord]:
        self.calls.append(("list_notes", session_id))
        if self.note_responses:
            response = self.note_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            self.notes = list(response)
        return list(self.notes)

    async def leave_session(self, session_id: str) -> None:
        self.calls.append(("leave", session_id))
        if self.leave_error:
            raise self.leave_error

    async def generate_notes(
        self, session_id: str, messages: list[dict[str, object]]
    ) -> GenerationOutcome:
        self.calls.append(("generate", messages))
        if self.generate_gate is not None:
            await self.generate_gate.wait()
        if self.generate_error:
            raise self.generate_error
        if self.accept_generation:
            return GenerationOutcome(accepted=True, payload={"status": "accepted"})
        self.notes = [*self.notes, make_note(len(self.notes) + 1)]
        return GenerationOutcome(accepted=False, payload={"status": "success"})

    async def end_session(self, session_id: str) -> None:
        self.calls.append(("end", session_id))
        if self.end_error:
            raise self.end_error

    async def join_post(self, post_id: str) -> StudySession:
        self.calls.append(("join_post", post_id))
        return self.session

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


@dataclass
class FakeSubscription(Subscription):
    """Subscription handle registered in a fake log."""

    log: "InMemoryMessageLog"
    chat_channel_id: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    closed: bool = False

    async def close(self) -> None:
        self.closed = True


@dataclass
class InMemoryMessageLog(MessageLog):
    """Push log that delivers full snapshots to live subscribers."""

    entries: dict[str, list[ChatMessage]] = field(default_factory=dict)
    subscriptions: list[FakeSubscription] = field(default_factory=list)
    appended: list[dict[str, str]] = field(default_factory=list)
    append_error: Exception | None = None
    subscribe_error: Exception | None = None
    append_gate: asyncio.Event | None = None

    async def subscribe(
        self,
        chat_channel_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        if self.subscribe_error:
            raise self.subscribe_error
        subscription = FakeSubscription(
            log=self,
            chat_channel_id=chat_channel_id,
            on_snapshot=on_snapshot,
            on_error=on_error,
        )
        self.subscriptions.append(subscription)
        on_snapshot(list(self.entries.get(chat_channel_id, [])))
        return subscription

    async def append(
        self, chat_channel_id: str, text: str, sender_id: str, sender_name: str
    ) -> None:
        if self.append_gate is not None:
            await self.append_gate.wait()
        if self.append_error:
            raise self.append_error
        self.appended.append(
            {
                "chat_channel_id": chat_channel_id,
                "text": text,
                "sender_id": sender_id,
                "sender_name": sender_name,
            }
        )
        entries = self.entries.setdefault(chat_channel_id, [])
        entries.append(
            ChatMessage(
                id=f"log-{len(entries) + 1}",
                text=text,
                sender_id=sender_id,
                sender_name=sender_name,
                timestamp=BASE_TIME + timedelta(minutes=len(entries) + 1),
            )
        )
        self.publish(chat_channel_id)

    def publish(
        self, chat_channel_id: str, messages: list[ChatMessage] | None = None
    ) -> None:
        if messages is not None:
            self.entries[chat_channel_id] = list(messages)
        snapshot = list(self.entries.get(chat_channel_id, []))
        for subscription in self.live(chat_channel_id):
            subscription.on_snapshot(snapshot)

    def live(self, chat_channel_id: str | None = None) -> list[FakeSubscription]:
        return [
            subscription
            for subscription in self.subscriptions
            if not subscription.closed
            and chat_channel_id in {None, subscription.chat_channel_id}
        ]


@dataclass
class FakeBeacon(BeaconSender):
    """Beacon that records leave signals."""

    sent: list[str] = field(default_factory=list)

    def send_leave(self, session_id: str) -> None:
        self.sent.append(session_id)


@dataclass
class StaticIdentityStore(IdentityStore):
    """Identity store returning a fixed participant."""

    identity: ParticipantIdentity | None = field(
        default_factory=lambda: ParticipantIdentity(id="u1", username="alice")
    )

    def current(self) -> ParticipantIdentity | None:
        return self.identity


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_base_url="https://api.test/api",
        supabase_url="https://example.supabase.co",
        supabase_key="anon-key",
        identity_path=tmp_path / "user.json",
        poll_interval_seconds=0.0,
    )


@pytest.fixture
def api() -> FakeStudyApi:
    return FakeStudyApi()


@pytest.fixture
def message_log() -> InMemoryMessageLog:
    return InMemoryMessageLog()


@pytest.fixture
def beacon() -> FakeBeacon:
    return FakeBeacon()


@pytest.fixture
def identity_store() -> StaticIdentityStore:
    return StaticIdentityStore()


@pytest.fixture
def shutdown_hooks() -> ShutdownHooks:
    return ShutdownHooks()


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    api: FakeStudyApi,
    message_log: InMemoryMessageLog,
    beacon: FakeBeacon,
    identity_store: StaticIdentityStore,
    shutdown_hooks: ShutdownHooks,
) -> AppContainer:
    visit_manager = VisitManager(
        api=api,
        build_facade=facade_builder(
            settings, api, beacon, message_log, identity_store, shutdown_hooks
        ),
        shutdown_hooks=shutdown_hooks,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        api_client=api,
        beacon=beacon,
        message_log=message_log,
        identity_store=identity_store,
        shutdown_hooks=shutdown_hooks,
        visit_manager=visit_manager,
        close_resources=close_resources,
    )
