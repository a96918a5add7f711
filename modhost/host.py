"""
Host bootstrap.

The Host wires the resolver, module runtime, dispatcher, extension manager
and application manager together from a HostConfig, and boots the
configured modules, extensions and applications.

Example usage:
    from modhost import Host, load_config

    host = Host(load_config())
    host.init()
    host.start()
"""

import logging
import time
from typing import Any

from modhost import __version__
from modhost.application import ApplicationManager
from modhost.config import HostConfig
from modhost.extension import ExtensionManager, OrchestrationContext
from modhost.module import (
    ImportRuntime,
    ModuleDispatcher,
    ModuleHandle,
    ModuleHandler,
    ModuleRuntime,
    default_handlers,
)
from modhost.resolver import ArtifactResolver

logger = logging.getLogger(__name__)

_PROCESS_START = time.monotonic()

DEFAULT_BANNER = (
    "\n"
    "                     _ _               _   \n"
    "   _ __ ___   ___  __| | |__   ___  ___| |_ \n"
    "  | '_ ` _ \\ / _ \\/ _` | '_ \\ / _ \\/ __| __|\n"
    "  | | | | | | (_) | (_| | | | | (_) \\__ \\ |_ \n"
    "  |_| |_| |_|\\___/ \\__,_|_| |_|\\___/|___/\\__|\n"
    "\n"
    f"  modhost ({__version__})\n"
)


class Host:
    """
    Module host.

    Owns one resolver, runtime, dispatcher, extension manager and
    application manager built from the configuration.
    """

    def __init__(
        self,
        config: HostConfig,
        runtime: ModuleRuntime | None = None,
        handlers: list[ModuleHandler] | None = None,
        resolver: ArtifactResolver | None = None,
    ):
        """
        Initialize Host.

        Args:
            config: Host configuration
            runtime: Module runtime (defaults to ImportRuntime)
            handlers: Module handlers (defaults to plugin, wheel and source)
            resolver: Artifact resolver (defaults to one built from config)
        """
        self.config = config
        self.runtime = runtime if runtime is not None else ImportRuntime()
        self.resolver = resolver or ArtifactResolver(
            cache_dir=config.cache_path,
            repositories=config.repositories,
            base_dir=config.base_path,
            timeout=config.download_timeout,
        )
        self.dispatcher = ModuleDispatcher(
            handlers if handlers is not None else default_handlers(self.runtime)
        )
        self.context = OrchestrationContext(
            resolver=self.resolver, dispatcher=self.dispatcher, runtime=self.runtime
        )
        self.extensions = ExtensionManager(
            self.context, strict_module_types=config.strict_module_types
        )
        self.applications = ApplicationManager(
            self.resolver, self.dispatcher, self.runtime
        )
        self._start_time: float | None = None

    def init(self) -> None:
        """
        Boot the configured modules, extensions and applications.

        Modules and extensions are fail-fast. A failing application is
        logged and the next one is started.

        Raises:
            ResolutionError, ModuleError, DescriptorError, ExtensionError:
                If a configured module or extension cannot be installed
        """
        self._start_time = time.monotonic()

        logger.info(self.config.banner or DEFAULT_BANNER)
        logger.info("Base directory: %s", self.config.base_path)
        logger.info("Cache directory: %s", self.config.cache_path)
        if self.config.clear_cache:
            logger.info("Clearing cache %s", self.config.cache_path)
            self.resolver.clear_cache()

        logger.info("Installing modules")
        for locator in self.config.modules:
            self.add_module(locator)

        logger.info("Loading extensions")
        for locator in self.config.extensions:
            self.load_extension(locator)

        logger.info("Starting applications")
        for app in self.config.applications:
            try:
                self.start_application(app.url, app.type, app.properties)
            except Exception as e:
                logger.warning("Can't start application %s: %s", app.url, e)

    def start(self) -> None:
        """Log the startup time."""
        if self._start_time is None:
            self._start_time = time.monotonic()
        elapsed = time.monotonic() - self._start_time
        logger.info(
            "Started in %.3f seconds (process running for %.3f)",
            elapsed,
            time.monotonic() - _PROCESS_START,
        )

    def add_module(
        self,
        locator: str,
        type_hint: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> list[ModuleHandle]:
        """
        Install a single module.

        Args:
            locator: Module locator
            type_hint: Optional module type
            properties: Properties, layered over config.module_defaults

        Returns:
            One handle per claiming handler; empty when nobody claims it
        """
        artifact = self.resolver.resolve(locator)
        handles = self.dispatcher.dispatch(
            artifact, type_hint, self._module_properties(properties)
        )
        if not handles:
            logger.warning("No handler for module %s, skipping", locator)
        return handles

    def remove_module(self, locator: str) -> None:
        self.runtime.uninstall(locator)

    def load_extension(self, locator: str) -> None:
        self.extensions.load(locator)

    def remove_extension(self, locator: str, recursive: bool = False) -> None:
        self.extensions.remove(locator, recursive=recursive)

    def start_application(
        self,
        url: str,
        type: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str:
        return self.applications.start(url, type, self._module_properties(properties))

    def stop_application(self, app_id: str) -> None:
        self.applications.stop(app_id)

    def close(self) -> None:
        """Release the resolver's network resources."""
        self.resolver.close()

    def __enter__(self) -> "Host":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _module_properties(self, properties: dict[str, Any] | None) -> dict[str, Any]:
        merged = dict(self.config.module_defaults)
        merged.update(properties or {})
        return merged
