"""Join/leave lifecycle of one session visit."""

import asyncio
import logging
from dataclasses import dataclass, field

from study_room.adapters.beacon_client import BeaconSender
from study_room.adapters.study_api_client import StudyApi
from study_room.domain.sessions import LeaveTrigger, MembershipState, StudySession

logger = logging.getLogger(__name__)


@dataclass
class MembershipLifecycle:
    """Tracks presence and sends exactly one leave signal per visit.

    ``NOT_JOINED -> JOINED -> LEAVE_PENDING -> LEFT``. Whichever trigger
    arrives first (explicit leave, teardown, process unload) dispatches the
    signal; the rest are no-ops.
    """

    api: StudyApi
    beacon: BeaconSender
    session_id: str
    state: MembershipState = MembershipState.NOT_JOINED
    left_via: LeaveTrigger | None = None
    _pending: set[asyncio.Task] = field(default_factory=set)

    async def join(self) -> StudySession:
        """Fetch the session, registering presence; errors propagate."""
        session = await self.api.get_session(self.session_id)
        if self.state is MembershipState.NOT_JOINED:
            self.state = MembershipState.JOINED
        return session

    async def leave(self, trigger: LeaveTrigger = LeaveTrigger.EXPLICIT) -> bool:
        """Dispatch the leave signal; returns whether this call dispatched it."""
        if trigger is LeaveTrigger.UNLOAD:
            return self.leave_on_unload()
        if not self._begin_leave(trigger):
            return False
        if trigger is LeaveTrigger.TEARDOWN:
            self._leave_in_background()
        else:
            await self._request_leave()
            self.state = MembershipState.LEFT
        return True

    def leave_on_unload(self) -> bool:
        """Send the leave beacon; safe to call without a running loop."""
        if not self._begin_leave(LeaveTrigger.UNLOAD):
            return False
        self.beacon.send_leave(self.session_id)
        self.state = MembershipState.LEFT
        return True

    async def drain(self) -> None:
        """Wait for background leave requests to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _begin_leave(self, trigger: LeaveTrigger) -> bool:
        if self.state is not MembershipState.JOINED:
            return False
        self.state = MembershipState.LEAVE_PENDING
        self.left_via = trigger
        logger.info("Leaving session %s (%s)", self.session_id, trigger.value)
        return True

    def _leave_in_background(self) -> None:
        task = asyncio.get_running_loop().create_task(self._request_leave())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self.state = MembershipState.LEFT

    async def _request_leave(self) -> None:
        try:
            await self.api.leave_session(self.session_id)
        except Exception:
            logger.warning("Leave request for session %s failed", self.session_id)
