"""
Module Runtime.

This module provides the runtime that actually installs and uninstalls
modules, behind the ModuleRuntime protocol the rest of modhost consumes.

Key features:
- ModuleRuntime protocol (install / uninstall / handles)
- ImportRuntime: in-process runtime built on importlib
- Source files, plugin entry points (directory or zip) and wheels
- Optional start(properties) / stop() module lifecycle functions
- Idempotent install per (location, kind)
"""

import importlib
import importlib.abc
import importlib.util
import itertools
import logging
import re
import sys
import threading
import zipimport
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MODULE_PREFIX = "modhost_module_"


class ModuleError(Exception):
    """Base exception for module-related errors."""

    pass


class InstallError(ModuleError):
    """Raised when the runtime fails to install a module."""

    pass


class UninstallError(ModuleError):
    """Raised when the runtime fails to uninstall a module."""

    pass


class ModuleState(Enum):
    """Module state enumeration."""

    INSTALLED = "installed"
    ACTIVE = "active"


@dataclass
class InstallRequest:
    """
    Everything the runtime needs to install one module.

    Attributes:
        location: Locator the module was resolved from
        path: Local path of the artifact
        kind: Type name of the handler requesting the install
        name: Module name
        entry: Entry file relative to a plugin directory or archive;
            None when path is itself the source file
        packages: Top-level packages to import with path on sys.path
        properties: Module properties
    """

    location: str
    path: Path
    kind: str
    name: str
    entry: str | None = None
    packages: list[str] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModuleHandle:
    """
    Identity of an installed module.

    Attributes:
        id: Runtime-assigned identifier
        location: Locator the module was installed from
        kind: Type name of the handler that installed it
        name: Module name
        path: Local path of the artifact
        properties: Properties the module was installed with
        module: Loaded Python module
        state: Current module state
    """

    id: int
    location: str
    kind: str
    name: str
    path: Path
    properties: dict[str, Any]
    module: ModuleType | None = None
    state: ModuleState = ModuleState.INSTALLED
    module_names: list[str] = field(default_factory=list, repr=False)
    sys_path_entry: str | None = field(default=None, repr=False)


@runtime_checkable
class ModuleRuntime(Protocol):
    """The dynamic module host consumed by handlers and the extension manager."""

    def install(self, request: InstallRequest) -> ModuleHandle:
        """Install a module, raising InstallError on failure."""
        ...

    def uninstall(self, target: ModuleHandle | str) -> None:
        """Uninstall a handle, or every handle of a locator."""
        ...

    def handles(self, location: str | None = None) -> list[ModuleHandle]:
        """List installed handles, optionally for one locator."""
        ...


def module_name_for(name: str, handle_id: int) -> str:
    """
    Namespaced sys.modules key for an installed module.

    The handle id keeps modules sharing a name (same file stem, same file
    under two locators) apart.

    Args:
        name: Module name
        handle_id: Runtime-assigned handle id

    Returns:
        Identifier-safe name under the modhost prefix
    """
    safe_name = re.sub(r"\W", "_", name)
    return f"{MODULE_PREFIX}{safe_name}_{handle_id}"


class ImportRuntime:
    """
    In-process module runtime built on importlib.

    Source files and plugin entry points are executed under a namespaced
    sys.modules key; wheels are put on sys.path and their top-level
    packages imported.
    """

    def __init__(self):
        """Initialize ImportRuntime."""
        self._handles: dict[int, ModuleHandle] = {}
        self._by_key: dict[tuple[str, str], ModuleHandle] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def install(self, request: InstallRequest) -> ModuleHandle:
        """
        Install a module.

        Args:
            request: Install request built by a handler

        Returns:
            ModuleHandle (the existing one if this location was already
            installed by the same kind of handler)

        Raises:
            InstallError: If loading or starting the module fails
        """
        with self._lock:
            existing = self._by_key.get((request.location, request.kind))
            if existing is not None:
                logger.debug(
                    "Module %s already installed as %s", request.location, request.kind
                )
                return existing

            handle = ModuleHandle(
                id=next(self._ids),
                location=request.location,
                kind=request.kind,
                name=request.name,
                path=request.path,
                properties=dict(request.properties),
            )

            try:
                if request.packages:
                    self._import_packages(handle, request.packages)
                else:
                    self._exec_entry(handle, request.entry)

                if request.properties.get("start", True):
                    start = getattr(handle.module, "start", None)
                    if callable(start):
                        start(dict(request.properties))
                    handle.state = ModuleState.ACTIVE
            except Exception as e:
                self._discard(handle)
                raise InstallError(
                    f"Failed to install module {request.location}: {e}"
                ) from e

            self._handles[handle.id] = handle
            self._by_key[(handle.location, handle.kind)] = handle
            logger.info(
                "Installed module %s (%s) from %s", handle.name, handle.kind, handle.location
            )
            return handle

    def uninstall(self, target: ModuleHandle | str) -> None:
        """
        Uninstall a module.

        Args:
            target: A handle, or a locator whose every handle is removed

        Raises:
            UninstallError: If the handle is unknown or its stop() fails
        """
        with self._lock:
            if isinstance(target, ModuleHandle):
                if target.id not in self._handles:
                    raise UninstallError(f"Module handle {target.id} is not installed")
                targets = [target]
            else:
                targets = self.handles(target)
                if not targets:
                    logger.debug("No installed module for %s", target)
                    return

            for handle in targets:
                self._uninstall_handle(handle)

    def handles(self, location: str | None = None) -> list[ModuleHandle]:
        """
        List installed handles.

        Args:
            location: Optional locator filter

        Returns:
            Installed handles in install order
        """
        with self._lock:
            return [
                handle
                for handle in self._handles.values()
                if location is None or handle.location == location
            ]

    def is_installed(self, location: str) -> bool:
        """
        Check if anything is installed from a locator.

        Args:
            location: Module locator

        Returns:
            True if at least one handle exists for it
        """
        return bool(self.handles(location))

    def _uninstall_handle(self, handle: ModuleHandle) -> None:
        stop = getattr(handle.module, "stop", None)
        if handle.state is ModuleState.ACTIVE and callable(stop):
            try:
                stop()
            except Exception as e:
                raise UninstallError(
                    f"Failed to stop module {handle.location}: {e}"
                ) from e

        self._discard(handle)
        del self._handles[handle.id]
        del self._by_key[(handle.location, handle.kind)]
        logger.info("Uninstalled module %s (%s)", handle.name, handle.kind)

    def _exec_entry(self, handle: ModuleHandle, entry: str | None) -> None:
        """
        Execute a source entry point under a namespaced module name.

        Args:
            handle: Handle being installed
            entry: Entry file inside a plugin directory or archive, or None
                when the artifact itself is the source file
        """
        module_name = module_name_for(handle.name, handle.id)

        path = handle.path
        if entry is None:
            spec = importlib.util.spec_from_file_location(module_name, path)
        elif path.is_dir():
            spec = importlib.util.spec_from_file_location(module_name, path / entry)
        else:
            spec = self._zip_spec(module_name, path, entry)

        if spec is None or spec.loader is None:
            raise InstallError(f"Failed to create module spec for {path}")

        module = importlib.util.module_from_spec(spec)

        # Add to sys.modules before execution
        sys.modules[module_name] = module
        handle.module_names.append(module_name)
        spec.loader.exec_module(module)
        handle.module = module

    def _zip_spec(self, module_name: str, archive: Path, entry: str):
        entry_path = PurePosixPath(entry)
        prefix = str(entry_path.parent) if str(entry_path.parent) != "." else ""
        importer = zipimport.zipimporter(
            str(archive / prefix) if prefix else str(archive)
        )
        code = importer.get_code(entry_path.stem)
        loader = _CodeLoader(code)
        spec = importlib.util.spec_from_loader(
            module_name, loader, origin=f"{archive}/{entry}"
        )
        return spec

    def _import_packages(self, handle: ModuleHandle, packages: list[str]) -> None:
        entry = str(handle.path)
        if entry not in sys.path:
            sys.path.insert(0, entry)
            handle.sys_path_entry = entry
        importlib.invalidate_caches()

        for package in packages:
            if package in sys.modules:
                raise InstallError(f"Package {package} is already imported")
            handle.module_names.append(package)
            module = importlib.import_module(package)
            if handle.module is None:
                handle.module = module

    def _discard(self, handle: ModuleHandle) -> None:
        """Drop everything a handle put into sys.modules and sys.path."""
        for name in handle.module_names:
            for key in [k for k in sys.modules if k == name or k.startswith(name + ".")]:
                del sys.modules[key]
        handle.module_names.clear()

        if handle.sys_path_entry is not None:
            if handle.sys_path_entry in sys.path:
                sys.path.remove(handle.sys_path_entry)
            handle.sys_path_entry = None
        importlib.invalidate_caches()


class _CodeLoader(importlib.abc.Loader):
    """Loader executing an already compiled code object."""

    def __init__(self, code):
        self._code = code

    def create_module(self, spec):
        return None

    def exec_module(self, module: ModuleType) -> None:
        exec(self._code, module.__dict__)
