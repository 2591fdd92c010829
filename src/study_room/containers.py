"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from study_room.adapters.beacon_client import BeaconSender, HttpxBeaconSender
from study_room.adapters.identity_store import FileIdentityStore, IdentityStore
from study_room.adapters.shutdown_hooks import ShutdownHooks
from study_room.adapters.study_api_client import HttpxStudyApiClient, StudyApi
from study_room.adapters.supabase_message_log import SupabaseMessageLog
from study_room.config import Settings
from study_room.services.membership import MembershipLifecycle
from study_room.services.message_sync import MessageLog, MessageStreamSync
from study_room.services.note_generation import NoteGenerationCoordinator
from study_room.services.session_facade import SessionFacade
from study_room.services.visits import VisitManager


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    api_client: StudyApi
    beacon: BeaconSender
    message_log: MessageLog
    identity_store: IdentityStore
    shutdown_hooks: ShutdownHooks
    visit_manager: VisitManager
    close_resources: Callable[[], Awaitable[None]]


def facade_builder(  # noqa: PLR0913
    settings: Settings,
    api_client: StudyApi,
    beacon: BeaconSender,
    message_log: MessageLog,
    identity_store: IdentityStore,
    shutdown_hooks: ShutdownHooks,
) -> Callable[[str], SessionFacade]:
    """Return a factory creating a fresh facade per session visit."""

    def build(session_id: str) -> SessionFacade:
        return SessionFacade(
            session_id=session_id,
            api=api_client,
            membership=MembershipLifecycle(
                api=api_client, beacon=beacon, session_id=session_id
            ),
            chat=MessageStreamSync(
                message_log=message_log, identity_store=identity_store
            ),
            generator=NoteGenerationCoordinator(
                api=api_client,
                session_id=session_id,
                poll_interval_seconds=settings.poll_interval_seconds,
                max_polls=settings.max_polls,
            ),
            shutdown_hooks=shutdown_hooks,
            identity=identity_store.current(),
        )

    return build


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    api_client = HttpxStudyApiClient.create(
        base_url=resolved_settings.api_base_url,
        access_token=resolved_settings.api_access_token,
        timeout=resolved_settings.request_timeout_seconds,
    )
    beacon = HttpxBeaconSender.create(
        base_url=resolved_settings.api_base_url,
        access_token=resolved_settings.api_access_token,
        timeout=resolved_settings.beacon_timeout_seconds,
    )
    message_log = SupabaseMessageLog(
        supabase_url=resolved_settings.supabase_url,
        supabase_key=resolved_settings.supabase_key,
        table=resolved_settings.chat_table,
    )
    identity_store = FileIdentityStore(resolved_settings.identity_path)
    shutdown_hooks = ShutdownHooks()
    visit_manager = VisitManager(
        api=api_client,
        build_facade=facade_builder(
            resolved_settings,
            api_client,
            beacon,
            message_log,
            identity_store,
            shutdown_hooks,
        ),
        shutdown_hooks=shutdown_hooks,
    )

    async def close_resources() -> None:
        await api_client.close()
        beacon.close()

    return AppContainer(
        settings=resolved_settings,
        api_client=api_client,
        beacon=beacon,
        message_log=message_log,
        identity_store=identity_store,
        shutdown_hooks=shutdown_hooks,
        visit_manager=visit_manager,
        close_resources=close_resources,
    )
