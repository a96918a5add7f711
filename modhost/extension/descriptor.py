"""
Extension Descriptor Reader.

This module locates and parses extension descriptors.

A descriptor is a JSON document:

    {
        "name": "web",
        "version": "1.0.0",
        "extension": ["mvn:org.example/base/1.0.0"],
        "module": [{"location": "modules/http.py", "type": "source", "properties": {}}]
    }

It is either a plain file or the MODHOST-INF/extension.json entry of a zip
archive (or of a directory laid out the same way).

Key features:
- Archive, directory and plain file descriptors
- Shape validation with precise error messages
- No side effects, no network access
"""

import json
import zipfile
from pathlib import Path
from typing import Any

from modhost.extension.model import Extension, Module
from modhost.resolver import ResolvedArtifact

DESCRIPTOR_ENTRY = "MODHOST-INF/extension.json"


class DescriptorError(Exception):
    """Base exception for descriptor-related errors."""

    pass


class DescriptorNotFoundError(DescriptorError):
    """Raised when an artifact carries no extension descriptor."""

    pass


class DescriptorFormatError(DescriptorError):
    """Raised when a descriptor cannot be parsed into an Extension."""

    pass


def read_descriptor(artifact: ResolvedArtifact) -> Extension:
    """
    Read the extension descriptor of a resolved artifact.

    Args:
        artifact: Resolved extension artifact

    Returns:
        Extension record

    Raises:
        DescriptorNotFoundError: If no descriptor exists
        DescriptorFormatError: If the descriptor is malformed
    """
    text = _read_text(artifact)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DescriptorFormatError(
            f"Failed to parse extension descriptor of {artifact.locator}: {e}"
        ) from e

    try:
        return parse_extension(data)
    except DescriptorFormatError as e:
        raise DescriptorFormatError(
            f"Invalid extension descriptor in {artifact.locator}: {e}"
        ) from e


def _read_text(artifact: ResolvedArtifact) -> str:
    path = artifact.path
    try:
        if path.is_dir():
            entry = path / DESCRIPTOR_ENTRY
            if not entry.is_file():
                raise DescriptorNotFoundError(
                    f"{artifact.locator} is not an extension: no {DESCRIPTOR_ENTRY}"
                )
            return entry.read_text(encoding="utf-8")

        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                if DESCRIPTOR_ENTRY not in archive.namelist():
                    raise DescriptorNotFoundError(
                        f"{artifact.locator} is not an extension: no {DESCRIPTOR_ENTRY}"
                    )
                return archive.read(DESCRIPTOR_ENTRY).decode("utf-8")

        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DescriptorNotFoundError(f"Descriptor not found: {path}") from e
    except (OSError, zipfile.BadZipFile) as e:
        raise DescriptorFormatError(
            f"Failed to read extension descriptor of {artifact.locator}: {e}"
        ) from e
    except UnicodeDecodeError as e:
        raise DescriptorFormatError(
            f"Extension descriptor of {artifact.locator} is not UTF-8 text"
        ) from e


def parse_extension(data: Any) -> Extension:
    """
    Build an Extension from decoded descriptor JSON.

    Args:
        data: Decoded descriptor

    Returns:
        Extension record

    Raises:
        DescriptorFormatError: If the data does not have the descriptor shape
    """
    if not isinstance(data, dict):
        raise DescriptorFormatError("Descriptor must be a JSON object")

    for field in ("name", "version"):
        if field not in data:
            raise DescriptorFormatError(f"Missing required field: {field}")
        if not isinstance(data[field], str) or not data[field].strip():
            raise DescriptorFormatError(f"'{field}' field must be a non-empty string")

    description = data.get("description", "")
    if not isinstance(description, str):
        raise DescriptorFormatError("'description' field must be a string")

    extensions = data.get("extension") or []
    if not isinstance(extensions, list):
        raise DescriptorFormatError("'extension' field must be a list")
    for locator in extensions:
        if not isinstance(locator, str) or not locator.strip():
            raise DescriptorFormatError(
                f"Extension locator must be a non-empty string: {locator!r}"
            )

    raw_modules = data.get("module") or []
    if not isinstance(raw_modules, list):
        raise DescriptorFormatError("'module' field must be a list")

    return Extension(
        name=data["name"],
        version=data["version"],
        extensions=list(extensions),
        modules=[_parse_module(raw) for raw in raw_modules],
        description=description,
    )


def _parse_module(raw: Any) -> Module:
    if not isinstance(raw, dict):
        raise DescriptorFormatError(f"Module entry must be an object: {raw!r}")

    location = raw.get("location")
    if not isinstance(location, str) or not location.strip():
        raise DescriptorFormatError(f"Module entry needs a 'location' string: {raw!r}")

    module_type = raw.get("type")
    if module_type is not None and not isinstance(module_type, str):
        raise DescriptorFormatError(f"Module 'type' must be a string: {raw!r}")

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        raise DescriptorFormatError(f"Module 'properties' must be an object: {raw!r}")

    return Module(location=location, type=module_type or None, properties=dict(properties))
