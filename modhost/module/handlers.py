"""
Module Handlers.

Each handler recognises one packaging format and installs it through the
module runtime.

Key features:
- ModuleHandler protocol (module_type, can_handle, install)
- source: a single .py file
- plugin: a directory or zip archive with manifest.json
- wheel: a pure-Python wheel
"""

import logging
import re
import zipfile
from pathlib import PurePosixPath
from typing import Any, Protocol, runtime_checkable

from modhost.module.manifest import ManifestError, has_manifest, load_manifest
from modhost.module.runtime import (
    InstallError,
    InstallRequest,
    ModuleHandle,
    ModuleRuntime,
)
from modhost.resolver import ResolvedArtifact

logger = logging.getLogger(__name__)

_WHEEL_ENTRY = re.compile(r"^(?P<dist>[^/]+)\.dist-info/WHEEL$")


@runtime_checkable
class ModuleHandler(Protocol):
    """A pluggable installer for one module packaging format."""

    module_type: str

    def can_handle(self, artifact: ResolvedArtifact) -> bool:
        """Inspect an artifact without side effects."""
        ...

    def install(
        self, artifact: ResolvedArtifact, properties: dict[str, Any] | None = None
    ) -> ModuleHandle:
        """Install an artifact through the module runtime."""
        ...


class SourceModuleHandler:
    """Installs a single Python source file."""

    module_type = "source"

    def __init__(self, runtime: ModuleRuntime):
        self.runtime = runtime

    def can_handle(self, artifact: ResolvedArtifact) -> bool:
        return artifact.path.is_file() and artifact.path.suffix == ".py"

    def install(
        self, artifact: ResolvedArtifact, properties: dict[str, Any] | None = None
    ) -> ModuleHandle:
        return self.runtime.install(
            InstallRequest(
                location=artifact.locator,
                path=artifact.path,
                kind=self.module_type,
                name=artifact.path.stem,
                properties=dict(properties or {}),
            )
        )


class PluginModuleHandler:
    """
    Installs plugin modules.

    A plugin is a directory or zip archive with a manifest.json naming its
    entry point.
    """

    module_type = "plugin"

    def __init__(self, runtime: ModuleRuntime):
        """
        Initialize PluginModuleHandler.

        Args:
            runtime: Runtime performing the install
        """
        self.runtime = runtime

    def can_handle(self, artifact: ResolvedArtifact) -> bool:
        """
        Check for a manifest.json at the artifact root.

        Args:
            artifact: Resolved artifact

        Returns:
            True if the artifact is a plugin
        """
        try:
            return has_manifest(artifact.path)
        except (OSError, zipfile.BadZipFile) as e:
            logger.debug("Cannot inspect %s as plugin: %s", artifact.path, e)
            return False

    def install(
        self, artifact: ResolvedArtifact, properties: dict[str, Any] | None = None
    ) -> ModuleHandle:
        """
        Install a plugin's entry point.

        Args:
            artifact: Resolved plugin artifact
            properties: Module properties

        Returns:
            ModuleHandle

        Raises:
            InstallError: If the manifest is invalid or the install fails
        """
        try:
            manifest = load_manifest(artifact.path)
        except ManifestError as e:
            raise InstallError(f"Invalid plugin {artifact.locator}: {e}") from e

        return self.runtime.install(
            InstallRequest(
                location=artifact.locator,
                path=artifact.path,
                kind=self.module_type,
                name=manifest.name,
                entry=manifest.main,
                properties=dict(properties or {}),
            )
        )


class WheelModuleHandler:
    """
    Installs pure-Python wheels.

    The wheel itself is placed on sys.path; its top-level packages come from
    top_level.txt, or from the archive layout when that file is missing.
    """

    module_type = "wheel"

    def __init__(self, runtime: ModuleRuntime):
        """
        Initialize WheelModuleHandler.

        Args:
            runtime: Runtime performing the install
        """
        self.runtime = runtime

    def can_handle(self, artifact: ResolvedArtifact) -> bool:
        """
        Check for a dist-info/WHEEL entry.

        Args:
            artifact: Resolved artifact

        Returns:
            True if the artifact is a wheel
        """
        try:
            return self._dist_info(artifact) is not None
        except (OSError, zipfile.BadZipFile) as e:
            logger.debug("Cannot inspect %s as wheel: %s", artifact.path, e)
            return False

    def install(
        self, artifact: ResolvedArtifact, properties: dict[str, Any] | None = None
    ) -> ModuleHandle:
        """
        Install a wheel.

        Args:
            artifact: Resolved wheel artifact
            properties: Module properties

        Returns:
            ModuleHandle

        Raises:
            InstallError: If the wheel is not pure-Python or has no packages
        """
        try:
            dist_info = self._dist_info(artifact)
            if dist_info is None:
                raise InstallError(f"{artifact.locator} is not a wheel")
            with zipfile.ZipFile(artifact.path) as archive:
                wheel_meta = archive.read(f"{dist_info}/WHEEL").decode("utf-8")
                names = archive.namelist()
                top_level = (
                    archive.read(f"{dist_info}/top_level.txt").decode("utf-8")
                    if f"{dist_info}/top_level.txt" in names
                    else None
                )
        except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as e:
            raise InstallError(f"Failed to read wheel {artifact.locator}: {e}") from e

        if "root-is-purelib: true" not in wheel_meta.lower():
            raise InstallError(
                f"Wheel {artifact.locator} is not pure-Python and cannot be imported"
            )

        if top_level is not None:
            packages = [line.strip() for line in top_level.splitlines() if line.strip()]
        else:
            packages = _top_level_names(names)
        if not packages:
            raise InstallError(f"Wheel {artifact.locator} has no importable packages")

        return self.runtime.install(
            InstallRequest(
                location=artifact.locator,
                path=artifact.path,
                kind=self.module_type,
                name=dist_info.split("-")[0],
                packages=packages,
                properties=dict(properties or {}),
            )
        )

    def _dist_info(self, artifact: ResolvedArtifact) -> str | None:
        path = artifact.path
        if not path.is_file() or not zipfile.is_zipfile(path):
            return None
        with zipfile.ZipFile(path) as archive:
            for name in archive.namelist():
                match = _WHEEL_ENTRY.match(name)
                if match:
                    return f"{match.group('dist')}.dist-info"
        return None


def _top_level_names(names: list[str]) -> list[str]:
    """Top-level packages and modules of a wheel, from its file list."""
    top_level = []
    for name in names:
        parts = PurePosixPath(name).parts
        if len(parts) == 2 and parts[1] == "__init__.py":
            candidate = parts[0]
        elif len(parts) == 1 and parts[0].endswith(".py"):
            candidate = parts[0][: -len(".py")]
        else:
            continue
        if candidate not in top_level:
            top_level.append(candidate)
    return top_level


def default_handlers(runtime: ModuleRuntime) -> list[ModuleHandler]:
    """
    The handlers a host registers unless told otherwise.

    Args:
        runtime: Runtime the handlers install into

    Returns:
        Ordered handler list
    """
    return [
        PluginModuleHandler(runtime),
        WheelModuleHandler(runtime),
        SourceModuleHandler(runtime),
    ]
