"""
Plugin Manifest.

This module provides manifest parsing and validation for plugin modules.

A plugin module is a directory or a zip archive carrying a manifest.json
at its root:

    {"name": "greeter", "version": "1.0.0", "main": "greeter.py"}

Key features:
- Manifest lookup in directories and zip archives
- Structural validation of required and optional fields
"""

import json
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

MANIFEST_NAME = "manifest.json"


class ManifestError(Exception):
    """Base exception for manifest-related errors."""

    pass


class ValidationError(ManifestError):
    """Raised when manifest validation fails."""

    pass


@dataclass
class Manifest:
    """
    Represents a plugin manifest.

    Attributes:
        name: Plugin name (unique identifier)
        version: Plugin version
        main: Entry point, relative to the plugin root
        description: Plugin description
        author: Plugin author
        raw_data: Raw manifest data
    """

    name: str
    version: str
    main: str
    description: str
    author: str
    raw_data: dict[str, Any]


def has_manifest(path: Path) -> bool:
    """
    Check if a directory or zip archive carries a plugin manifest.

    Args:
        path: Directory or archive path

    Returns:
        True if a manifest.json sits at the root
    """
    if path.is_dir():
        return (path / MANIFEST_NAME).is_file()
    if path.is_file() and zipfile.is_zipfile(path):
        with zipfile.ZipFile(path) as archive:
            return MANIFEST_NAME in archive.namelist()
    return False


def load_manifest(path: Path) -> Manifest:
    """
    Read and validate the manifest of a plugin directory or archive.

    Args:
        path: Plugin directory or zip archive

    Returns:
        Manifest object

    Raises:
        ManifestError: If the manifest cannot be found, read or parsed
        ValidationError: If the manifest is invalid
    """
    try:
        if path.is_dir():
            text = (path / MANIFEST_NAME).read_text(encoding="utf-8")
        else:
            with zipfile.ZipFile(path) as archive:
                text = archive.read(MANIFEST_NAME).decode("utf-8")
    except (FileNotFoundError, KeyError) as e:
        raise ManifestError(f"Manifest file not found in {path}") from e
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as e:
        raise ManifestError(f"Failed to read manifest from {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse manifest JSON: {e}") from e

    return parse_manifest_data(data)


def parse_manifest_data(data: Any) -> Manifest:
    """
    Build a Manifest from decoded JSON.

    Args:
        data: Decoded manifest content

    Returns:
        Manifest object

    Raises:
        ValidationError: If the manifest is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Manifest must be a JSON object")

    validate_manifest_structure(data)

    return Manifest(
        name=data["name"],
        version=data["version"],
        main=data["main"],
        description=data.get("description", ""),
        author=data.get("author", ""),
        raw_data=data,
    )


def validate_manifest_structure(data: dict[str, Any]) -> None:
    """
    Validate manifest structure and required fields.

    Args:
        data: Parsed manifest data

    Raises:
        ValidationError: If manifest structure is invalid
    """
    required_fields = ["name", "version", "main"]
    for field in required_fields:
        if field not in data:
            raise ValidationError(f"Missing required field: {field}")

    # Names end up in sys.modules, keep them simple
    name = data["name"]
    if not isinstance(name, str) or not re.match(r"^[a-z0-9][a-z0-9_-]*$", name):
        raise ValidationError(
            f"Invalid plugin name: {name}. "
            f"Must be lowercase alphanumeric with hyphens or underscores."
        )

    version = data["version"]
    if not isinstance(version, str) or not version.strip():
        raise ValidationError(f"Invalid version: {version!r}")

    main = data["main"]
    if (
        not isinstance(main, str)
        or not main.endswith(".py")
        or main.startswith("/")
        or ".." in PurePosixPath(main).parts
    ):
        raise ValidationError(
            f"Invalid main entry point: {main}. Must be a relative .py file"
        )

    if "description" in data and not isinstance(data["description"], str):
        raise ValidationError("'description' field must be a string")

    if "author" in data and not isinstance(data["author"], str):
        raise ValidationError("'author' field must be a string")
