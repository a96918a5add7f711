"""
Extension Manager.

This module loads and removes extensions together with everything they
declare.

Key features:
- Depth-first loading of inner extensions, then modules, then the
  extension's own artifact as a module
- Exactly-once loading through the installed extension registry
- Fail-fast: nothing is recorded for an extension whose load failed
- Recursive and registry-only removal
- Cycle detection
- One re-entrant lock around every load/remove call
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from modhost.extension.descriptor import read_descriptor
from modhost.extension.model import Extension, Module
from modhost.module.dispatcher import ModuleDispatcher, UnhandledModuleTypeError
from modhost.module.runtime import ModuleRuntime
from modhost.resolver import ArtifactResolver, ResolutionError

logger = logging.getLogger(__name__)


class ExtensionError(Exception):
    """Base exception for extension-related errors."""

    pass


class MissingModuleError(ExtensionError):
    """Raised when a module declared by an extension cannot be resolved."""

    def __init__(self, location: str, extension: str):
        super().__init__(f"Module {location} not found (declared by {extension})")
        self.location = location
        self.extension = extension


class ExtensionCycleError(ExtensionError):
    """Raised when an extension (indirectly) declares itself."""

    pass


class ExtensionState(Enum):
    """Extension state enumeration."""

    NOT_INSTALLED = "not_installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    REMOVING = "removing"


@dataclass(frozen=True)
class OrchestrationContext:
    """
    Collaborators threaded through every load/remove step.

    Attributes:
        resolver: Maps locators to local artifacts
        dispatcher: Installs artifacts through module handlers
        runtime: Module runtime, used directly for uninstalls
    """

    resolver: ArtifactResolver
    dispatcher: ModuleDispatcher
    runtime: ModuleRuntime


class ExtensionRegistry:
    """
    Store of installed extensions, keyed by locator.

    A locator is present only while its extension and everything it
    declared is installed.
    """

    def __init__(self):
        """Initialize ExtensionRegistry."""
        self._extensions: dict[str, Extension] = {}
        self._lock = threading.Lock()

    def get(self, locator: str) -> Extension | None:
        with self._lock:
            return self._extensions.get(locator)

    def add(self, locator: str, extension: Extension) -> None:
        with self._lock:
            self._extensions[locator] = extension

    def discard(self, locator: str) -> None:
        with self._lock:
            self._extensions.pop(locator, None)

    def snapshot(self) -> dict[str, Extension]:
        with self._lock:
            return dict(self._extensions)

    def __contains__(self, locator: str) -> bool:
        with self._lock:
            return locator in self._extensions

    def __len__(self) -> int:
        with self._lock:
            return len(self._extensions)


class ExtensionManager:
    """
    Extension graph manager.

    Loads and removes extensions, recursing into inner extensions and
    declared modules.
    """

    def __init__(
        self,
        context: OrchestrationContext,
        registry: ExtensionRegistry | None = None,
        strict_module_types: bool = False,
    ):
        """
        Initialize ExtensionManager.

        Args:
            context: Resolver, dispatcher and runtime to work with
            registry: Registry to record installed extensions in
            strict_module_types: Fail a load when no handler claims a
                declared module (otherwise it is skipped with a warning)
        """
        self.context = context
        self.registry = registry if registry is not None else ExtensionRegistry()
        self.strict_module_types = strict_module_types
        self._transient: dict[str, ExtensionState] = {}
        self._lock = threading.RLock()

    def load(self, locator: str) -> None:
        """
        Load an extension and everything it declares.

        Inner extensions load first (depth-first, declaration order), then
        declared modules, then the extension's own artifact as a module.

        Args:
            locator: Extension locator

        Raises:
            ResolutionError: If the extension cannot be resolved
            DescriptorError: If its descriptor is missing or malformed
            MissingModuleError: If a declared module cannot be resolved
            UnhandledModuleTypeError: If strict and no handler claims a module
            ExtensionCycleError: If the extension graph has a cycle
            InstallError: If the runtime fails to install a module
        """
        with self._lock:
            self._load(self.context, locator, [])

    def remove(self, locator: str, recursive: bool = False) -> None:
        """
        Remove an extension.

        Without recursive only the registry entry goes. With recursive the
        inner extensions are removed too, and every declared module plus
        the extension's own module are uninstalled; the registry entry is
        dropped only after all of that succeeded.

        Args:
            locator: Extension locator
            recursive: Also remove what the extension declared

        Raises:
            ResolutionError: If the descriptor cannot be re-resolved
            DescriptorError: If the descriptor cannot be re-read
            UninstallError: If the runtime fails to uninstall a module
        """
        with self._lock:
            self._remove(self.context, locator, recursive, [])

    def installed(self) -> dict[str, Extension]:
        """
        Snapshot of installed extensions.

        Returns:
            Mapping of locator to Extension
        """
        return self.registry.snapshot()

    def get(self, locator: str) -> Extension | None:
        return self.registry.get(locator)

    def is_installed(self, locator: str) -> bool:
        return locator in self.registry

    def state(self, locator: str) -> ExtensionState:
        """
        Current state of an extension locator.

        Args:
            locator: Extension locator

        Returns:
            ExtensionState
        """
        transient = self._transient.get(locator)
        if transient is not None:
            return transient
        if locator in self.registry:
            return ExtensionState.INSTALLED
        return ExtensionState.NOT_INSTALLED

    def _load(self, ctx: OrchestrationContext, locator: str, chain: list[str]) -> None:
        if locator in self.registry:
            logger.info("Extension %s already installed", locator)
            return
        if locator in chain:
            raise ExtensionCycleError(
                f"Circular extension dependency: {' -> '.join([*chain, locator])}"
            )

        logger.info("Loading extension from %s", locator)
        self._transient[locator] = ExtensionState.INSTALLING
        try:
            artifact = ctx.resolver.resolve(locator)
            extension = read_descriptor(artifact)
            logger.info("Loading %s extension", extension)

            for inner in extension.extensions:
                self._load(ctx, inner, [*chain, locator])

            for module in extension.modules:
                self._install_module(ctx, extension, module)

            # An extension archive can be a module itself
            handles = ctx.dispatcher.dispatch(artifact)
            if not handles:
                logger.debug("Extension %s is not a module itself", locator)

            self.registry.add(locator, extension)
        finally:
            self._transient.pop(locator, None)

        logger.info("Extension %s installed", extension)

    def _install_module(
        self, ctx: OrchestrationContext, extension: Extension, module: Module
    ) -> None:
        try:
            artifact = ctx.resolver.resolve(module.location)
        except ResolutionError as e:
            raise MissingModuleError(module.location, str(extension)) from e

        handles = ctx.dispatcher.dispatch(artifact, module.type, module.properties)
        if handles:
            return

        message = f"No handler for module {module.location}" + (
            f" of type {module.type}" if module.type else ""
        )
        if self.strict_module_types:
            raise UnhandledModuleTypeError(message)
        logger.warning("%s (declared by %s), skipping", message, extension)

    def _remove(
        self,
        ctx: OrchestrationContext,
        locator: str,
        recursive: bool,
        chain: list[str],
    ) -> None:
        if locator not in self.registry or locator in chain:
            return

        logger.info("Removing extension %s", locator)
        self._transient[locator] = ExtensionState.REMOVING
        try:
            if recursive:
                extension = read_descriptor(ctx.resolver.resolve(locator))
                for inner in extension.extensions:
                    self._remove(ctx, inner, recursive, [*chain, locator])
                for module in extension.modules:
                    ctx.runtime.uninstall(module.location)
                ctx.runtime.uninstall(locator)

            self.registry.discard(locator)
        finally:
            self._transient.pop(locator, None)

        logger.info("Extension %s removed", locator)
