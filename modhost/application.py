"""
Application Manager.

Top-level applications are modules started by locator and tracked by an
application id, so they can be stopped independently of the extension
graph.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from modhost.module.dispatcher import ModuleDispatcher, UnhandledModuleTypeError
from modhost.module.runtime import ModuleHandle, ModuleRuntime
from modhost.resolver import ArtifactResolver

logger = logging.getLogger(__name__)


class ApplicationError(Exception):
    """Raised for unknown application ids."""

    pass


@dataclass
class Application:
    """
    A running application.

    Attributes:
        id: Application id
        url: Locator the application was started from
        type: Type hint it was started with
        handles: Module handles installed for it
    """

    id: str
    url: str
    type: str | None
    handles: list[ModuleHandle] = field(default_factory=list)


class ApplicationManager:
    """Starts and stops top-level applications."""

    def __init__(
        self,
        resolver: ArtifactResolver,
        dispatcher: ModuleDispatcher,
        runtime: ModuleRuntime,
    ):
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.runtime = runtime
        self._applications: dict[str, Application] = {}
        self._lock = threading.Lock()

    def start(
        self,
        url: str,
        type: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str:
        """
        Start an application.

        Args:
            url: Application locator
            type: Optional module type hint
            properties: Properties passed to the install

        Returns:
            Application id

        Raises:
            ResolutionError: If the locator cannot be resolved
            UnhandledModuleTypeError: If no handler claims the artifact
            InstallError: If the install fails
        """
        artifact = self.resolver.resolve(url)
        handles = self.dispatcher.dispatch(artifact, type, properties)
        if not handles:
            raise UnhandledModuleTypeError(
                f"No handler for application {url}" + (f" of type {type}" if type else "")
            )

        app = Application(id=uuid.uuid4().hex, url=url, type=type, handles=handles)
        with self._lock:
            self._applications[app.id] = app
        logger.info("Started application %s (%s)", url, app.id)
        return app.id

    def stop(self, app_id: str) -> None:
        """
        Stop an application and uninstall its modules.

        Args:
            app_id: Application id

        Raises:
            ApplicationError: If the id is unknown
            UninstallError: If the runtime fails to uninstall
        """
        app = self._get(app_id)
        for handle in list(app.handles):
            self.runtime.uninstall(handle)
            app.handles.remove(handle)
        with self._lock:
            self._applications.pop(app_id, None)
        logger.info("Stopped application %s (%s)", app.url, app_id)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._applications)

    def get_url(self, app_id: str) -> str:
        return self._get(app_id).url

    def get_manager(self, app_id: str) -> list[str]:
        """Handler type names that installed an application."""
        return [handle.kind for handle in self._get(app_id).handles]

    def _get(self, app_id: str) -> Application:
        with self._lock:
            app = self._applications.get(app_id)
        if app is None:
            raise ApplicationError(f"Unknown application id: {app_id}")
        return app
