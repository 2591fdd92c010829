"""Keeps at most one session visit mounted at a time."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from study_room.adapters.shutdown_hooks import ShutdownHooks
from study_room.adapters.study_api_client import StudyApi
from study_room.domain.sessions import MembershipState
from study_room.services.session_facade import SessionFacade

logger = logging.getLogger(__name__)


@dataclass
class VisitManager:
    """Mounts visits, tearing down the previous one before the next opens."""

    api: StudyApi
    build_facade: Callable[[str], SessionFacade]
    shutdown_hooks: ShutdownHooks
    current: SessionFacade | None = None

    async def open(self, session_id: str) -> SessionFacade:
        """Mount a visit for a session, reusing one still loading or joined."""
        current = self.get(session_id)
        if current is not None and (
            current.loading or current.membership.state is MembershipState.JOINED
        ):
            return current
        await self.close_current()
        facade = self.build_facade(session_id)
        self.current = facade
        logger.info("Opening visit for session %s", session_id)
        await facade.open()
        return facade

    async def join_post(self, post_id: str) -> SessionFacade:
        """Join a study post and open the session it starts."""
        session = await self.api.join_post(post_id)
        return await self.open(session.id)

    def get(self, session_id: str) -> SessionFacade | None:
        if self.current is not None and self.current.session_id == session_id:
            return self.current
        return None

    async def close(self, session_id: str) -> bool:
        """Tear down the visit for a session if it is mounted."""
        if self.get(session_id) is None:
            return False
        await self.close_current()
        return True

    async def close_current(self) -> None:
        facade, self.current = self.current, None
        if facade is None:
            return
        logger.info("Closing visit for session %s", facade.session_id)
        await facade.close()
        await facade.membership.drain()

    def unload(self) -> None:
        """Process is going away: fire the installed unload handlers."""
        self.shutdown_hooks.run()
