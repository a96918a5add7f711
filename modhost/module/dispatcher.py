"""
Module Dispatcher.

This module offers resolved artifacts to the registered module handlers.

Key features:
- Ordered handler list
- Every claiming handler installs (no first-match, no deduplication)
- Optional type hint restricting the handlers offered the artifact
"""

import logging
import threading
from typing import Any

from modhost.module.handlers import ModuleHandler
from modhost.module.runtime import ModuleError, ModuleHandle
from modhost.resolver import ResolvedArtifact

logger = logging.getLogger(__name__)


class UnhandledModuleTypeError(ModuleError):
    """Raised when no registered handler claims an artifact."""

    pass


class ModuleDispatcher:
    """
    Dispatches artifacts to every handler that can process them.

    An artifact may legitimately be installed by more than one handler
    (for example an archive that is both a plugin and a wheel). Register
    handlers with mutually exclusive can_handle predicates when that is
    not wanted.
    """

    def __init__(self, handlers: list[ModuleHandler] | None = None):
        """
        Initialize ModuleDispatcher.

        Args:
            handlers: Initial handlers, in offer order
        """
        self._handlers: list[ModuleHandler] = list(handlers or [])
        self._lock = threading.Lock()

    @property
    def handlers(self) -> list[ModuleHandler]:
        """Registered handlers, in offer order."""
        with self._lock:
            return list(self._handlers)

    def register(self, handler: ModuleHandler) -> None:
        """
        Append a handler.

        Args:
            handler: Handler to register
        """
        with self._lock:
            self._handlers.append(handler)

    def claimants(
        self, artifact: ResolvedArtifact, type_hint: str | None = None
    ) -> list[ModuleHandler]:
        """
        Handlers that would install an artifact.

        Args:
            artifact: Resolved artifact
            type_hint: Optional module type restricting the candidates

        Returns:
            Claiming handlers, in offer order
        """
        return [
            handler
            for handler in self.handlers
            if (type_hint is None or handler.module_type == type_hint)
            and handler.can_handle(artifact)
        ]

    def dispatch(
        self,
        artifact: ResolvedArtifact,
        type_hint: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> list[ModuleHandle]:
        """
        Install an artifact through every handler that claims it.

        Args:
            artifact: Resolved artifact
            type_hint: Optional module type restricting the candidates
            properties: Module properties passed to each install

        Returns:
            One handle per claiming handler; empty when nobody claims it

        Raises:
            InstallError: If any claiming handler fails to install
        """
        handles = []
        for handler in self.claimants(artifact, type_hint):
            logger.debug(
                "Installing %s with %s handler", artifact.locator, handler.module_type
            )
            handles.append(handler.install(artifact, properties))

        if not handles:
            logger.debug(
                "No handler claimed %s%s",
                artifact.locator,
                f" (type {type_hint})" if type_hint else "",
            )
        return handles
