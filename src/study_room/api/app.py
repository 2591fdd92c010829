"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from pydantic import BaseModel

from study_room.app_logging import configure_logging
from study_room.containers import AppContainer
from study_room.domain.messages import ChatMessage
from study_room.domain.sessions import StudySession
from study_room.services.session_facade import RecordingView, SessionFacade, VisitState


class DraftBody(BaseModel):
    """Composer input."""

    text: str


class SendBody(BaseModel):
    """Message to send; the current draft is used when ``text`` is omitted."""

    text: str | None = None


class EndSessionBody(BaseModel):
    """Explicit confirmation for ending a session."""

    confirm: bool = False


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.shutdown_hooks.install_process_hook()
        yield
        try:
            await state_container.visit_manager.close_current()
        except Exception:
            logger.exception("Failed to close the open visit")
        state_container.shutdown_hooks.uninstall_process_hook()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    def _visit(request: Request, session_id: str) -> SessionFacade:
        state_container: AppContainer = request.app.state.container
        facade = state_container.visit_manager.get(session_id)
        if facade is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return facade

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/visits/{session_id}")
    async def open_visit(session_id: str, request: Request) -> dict[str, object]:
        """Mount a visit; the previously mounted one is torn down first."""
        state_container: AppContainer = request.app.state.container
        facade = await state_container.visit_manager.open(session_id)
        return _visit_payload(facade)

    @app.post("/study-posts/{post_id}/join")
    async def join_post(post_id: str, request: Request) -> dict[str, object]:
        """Join a study post and mount the session it opens."""
        state_container: AppContainer = request.app.state.container
        try:
            facade = await state_container.visit_manager.join_post(post_id)
        except Exception as exc:
            logger.warning("Joining post %s failed: %s", post_id, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY) from exc
        return _visit_payload(facade)

    @app.get("/visits/{session_id}")
    async def visit_state(session_id: str, request: Request) -> dict[str, object]:
        """Return the current state of a mounted visit."""
        return _visit_payload(_visit(request, session_id))

    @app.put("/visits/{session_id}/draft")
    async def set_draft(
        session_id: str, body: DraftBody, request: Request
    ) -> dict[str, object]:
        """Update the composer input."""
        facade = _visit(request, session_id)
        facade.set_draft(body.text)
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/messages")
    async def send_message(
        session_id: str, body: SendBody, request: Request
    ) -> dict[str, object]:
        """Send a chat message."""
        facade = _visit(request, session_id)
        sent = await facade.send_message(body.text)
        return {"sent": sent, **_visit_payload(facade)}

    @app.post("/visits/{session_id}/notes/generate")
    async def generate_notes(session_id: str, request: Request) -> dict[str, object]:
        """Start note generation for the current transcript."""
        facade = _visit(request, session_id)
        await facade.request_notes()
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/notes/refresh")
    async def refresh_notes(session_id: str, request: Request) -> dict[str, object]:
        """Re-fetch the note set."""
        facade = _visit(request, session_id)
        await facade.fetch_notes()
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/notes/toggle")
    async def toggle_notes(session_id: str, request: Request) -> dict[str, object]:
        """Open or close the notes panel."""
        facade = _visit(request, session_id)
        facade.toggle_notes()
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/error/dismiss")
    async def dismiss_error(session_id: str, request: Request) -> dict[str, object]:
        """Clear the error banner."""
        facade = _visit(request, session_id)
        facade.dismiss_error()
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/leave")
    async def leave(session_id: str, request: Request) -> dict[str, object]:
        """Leave the session explicitly."""
        facade = _visit(request, session_id)
        await facade.leave()
        return _visit_payload(facade)

    @app.post("/visits/{session_id}/end")
    async def end_session(
        session_id: str, body: EndSessionBody, request: Request
    ) -> dict[str, object]:
        """End the session for all participants (creator only)."""
        facade = _visit(request, session_id)
        if not facade.is_creator:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        ended = await facade.end_session(lambda _prompt: body.confirm)
        return {"ended": ended, **_visit_payload(facade)}

    @app.delete("/visits/{session_id}")
    async def close_visit(session_id: str, request: Request) -> dict[str, str]:
        """Tear down a mounted visit."""
        state_container: AppContainer = request.app.state.container
        if not await state_container.visit_manager.close(session_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "ok"}

    return app


def _visit_payload(facade: SessionFacade) -> dict[str, object]:
    payload = _state_payload(facade.state)
    view = facade.view
    payload["navigate_to"] = (
        view.navigated_to if isinstance(view, RecordingView) else None
    )
    return payload


def _state_payload(state: VisitState) -> dict[str, object]:
    return {
        "loading": state.loading,
        "not_found": state.not_found,
        "session": _session_payload(state.session) if state.session else None,
        "messages": [_message_payload(message) for message in state.messages],
        "notes": [note.model_dump(mode="json") for note in state.notes],
        "generation": {
            "state": state.generation.state.value,
            "reason": state.generation.reason,
        },
        "membership": state.membership.value,
        "draft": state.draft,
        "sending": state.sending,
        "show_notes": state.show_notes,
        "error": state.error,
        "notice": state.notice,
        "is_creator": state.is_creator,
        "can_generate": state.can_generate,
    }


def _session_payload(session: StudySession) -> dict[str, object]:
    return {
        "id": session.id,
        "title": session.title,
        "chat_channel_id": session.chat_channel_id,
        "creator_id": session.creator_id,
        "is_live": session.is_live,
    }


def _message_payload(message: ChatMessage) -> dict[str, object]:
    return {
        "id": message.id,
        "text": message.text,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "timestamp": message.timestamp.isoformat() if message.timestamp else None,
        "pending": message.is_pending,
    }
