"""Shared fixtures for the unit tests."""

import itertools
import json
import sys
import zipfile
from pathlib import Path

import pytest

from modhost.extension import DESCRIPTOR_ENTRY
from modhost.module import InstallError, InstallRequest, ModuleHandle, UninstallError
from modhost.module.runtime import MODULE_PREFIX


@pytest.fixture(autouse=True)
def clean_imports():
    """Drop host-installed modules and sys.path entries after each test."""
    path_before = list(sys.path)
    modules_before = set(sys.modules)
    yield
    for name in list(sys.modules):
        if name not in modules_before:
            if name.startswith(MODULE_PREFIX) or name.startswith("wheelpkg_"):
                del sys.modules[name]
    sys.path[:] = path_before


class RecordingRuntime:
    """Module runtime that records installs and uninstalls without importing."""

    def __init__(self, fail_install=(), fail_uninstall=()):
        self.installed: list[str] = []
        self.uninstalled: list[str] = []
        self.fail_install = set(fail_install)
        self.fail_uninstall = set(fail_uninstall)
        self._handles: dict[int, ModuleHandle] = {}
        self._ids = itertools.count(1)

    def install(self, request: InstallRequest) -> ModuleHandle:
        if request.location in self.fail_install:
            raise InstallError(f"Failed to install module {request.location}")
        handle = ModuleHandle(
            id=next(self._ids),
            location=request.location,
            kind=request.kind,
            name=request.name,
            path=request.path,
            properties=dict(request.properties),
        )
        self._handles[handle.id] = handle
        self.installed.append(request.location)
        return handle

    def uninstall(self, target) -> None:
        location = target.location if isinstance(target, ModuleHandle) else target
        if location in self.fail_uninstall:
            raise UninstallError(f"Failed to stop module {location}")
        self.uninstalled.append(location)
        for handle in self.handles(location):
            del self._handles[handle.id]

    def handles(self, location=None) -> list[ModuleHandle]:
        return [
            h for h in self._handles.values() if location is None or h.location == location
        ]


class RecordingHandler:
    """Handler claiming artifacts whose file name ends with a suffix."""

    def __init__(self, runtime, module_type="record", suffix=""):
        self.runtime = runtime
        self.module_type = module_type
        self.suffix = suffix
        self.offered: list[str] = []

    def can_handle(self, artifact) -> bool:
        self.offered.append(artifact.locator)
        return artifact.path.name.endswith(self.suffix)

    def install(self, artifact, properties=None) -> ModuleHandle:
        return self.runtime.install(
            InstallRequest(
                location=artifact.locator,
                path=artifact.path,
                kind=self.module_type,
                name=artifact.path.stem,
                properties=dict(properties or {}),
            )
        )


@pytest.fixture
def make_runtime():
    return RecordingRuntime


def write_extension(
    path: Path,
    name: str,
    extensions=(),
    modules=(),
    version="1.0.0",
    extra_entries: dict[str, str] | None = None,
) -> Path:
    """
    Write an extension archive.

    Args:
        path: Archive path
        name: Extension name
        extensions: Inner extension locators
        modules: Module locators, or module entry dicts
        version: Extension version
        extra_entries: Additional archive entries (name -> text)

    Returns:
        The archive path
    """
    descriptor = {
        "name": name,
        "version": version,
        "extension": list(extensions),
        "module": [m if isinstance(m, dict) else {"location": m} for m in modules],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(DESCRIPTOR_ENTRY, json.dumps(descriptor))
        for entry, text in (extra_entries or {}).items():
            archive.writestr(entry, text)
    return path


@pytest.fixture
def make_extension():
    return write_extension


@pytest.fixture
def make_handler():
    return RecordingHandler
