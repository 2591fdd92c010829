"""ASGI entrypoint for the local study room API.

Serve with ``uvicorn study_room.api.asgi:app``. Settings are read from the
environment and the ``.env`` files next to the working directory.
"""

from study_room.api.app import create_app
from study_room.config import Settings
from study_room.containers import build_container

settings = Settings()
app = create_app(build_container(settings))
