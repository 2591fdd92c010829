"""Registry of handlers run when the process goes away abruptly."""

import atexit
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class ShutdownHooks:
    """Handlers installed for the lifetime of a visit.

    ``run`` fires each installed handler once and clears the registry, so a
    handler never outlives the visit that installed it.
    """

    handlers: list[Callable[[], None]] = field(default_factory=list)
    _process_hook_installed: bool = False

    def install(self, handler: Callable[[], None]) -> None:
        """Register a handler."""
        if handler not in self.handlers:
            self.handlers.append(handler)

    def uninstall(self, handler: Callable[[], None]) -> None:
        """Remove a handler; removing an unknown handler is a no-op."""
        if handler in self.handlers:
            self.handlers.remove(handler)

    def run(self) -> None:
        """Fire and clear every installed handler."""
        handlers, self.handlers = self.handlers, []
        for handler in handlers:
            try:
                handler()
            except Exception:
                logger.exception("Shutdown handler failed")

    def install_process_hook(self) -> None:
        """Run the registry from ``atexit``."""
        if self._process_hook_installed:
            return
        atexit.register(self.run)
        self._process_hook_installed = True

    def uninstall_process_hook(self) -> None:
        """Detach the registry from ``atexit``."""
        if not self._process_hook_installed:
            return
        atexit.unregister(self.run)
        self._process_hook_installed = False
