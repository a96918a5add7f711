"""
TOML File I/O Handler.

This module reads host configuration files and writes commented default
configurations.

Key features:
- Parse TOML files using tomllib
- Write TOML files using tomlkit (keeps comments and formatting)
- Generate a commented [modhost] table from the host schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from modhost.config.schema import HOST_SCHEMA, ConfigField


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, content: str | dict[str, Any]) -> None:
    """
    Write a TOML document or a dictionary to a file.

    Args:
        file_path: Path to the TOML file
        content: Rendered TOML text, or data to render with tomlkit

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        text = content if isinstance(content, str) else tomlkit.dumps(content)
        file_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def generate_toml_from_schema(
    section: str = "modhost",
    schema: dict[str, ConfigField] = HOST_SCHEMA,
    config_data: dict[str, Any] | None = None,
) -> str:
    """
    Generate TOML content from a schema with descriptive comments.

    Args:
        section: Table name
        schema: Schema dictionary (field_name -> ConfigField)
        config_data: Values overriding the schema defaults

    Returns:
        TOML string with comments
    """
    config_data = config_data or {}
    doc = tomlkit.document()
    doc.add(tomlkit.comment("modhost configuration"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for field_name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if field.choices is not None:
            constraints.append(f"choices: {field.choices}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        table.add(field_name, config_data.get(field_name, field.default))
        table.add(tomlkit.nl())

    table.add(tomlkit.comment("Properties merged into every module install"))
    table.add("module_defaults", tomlkit.table())

    doc.add(section, table)
    doc.add(tomlkit.nl())
    doc.add(tomlkit.comment("Applications are started after modules and extensions:"))
    doc.add(tomlkit.comment("[[modhost.applications]]"))
    doc.add(tomlkit.comment('url = "apps/web.zip"'))
    doc.add(tomlkit.comment('type = "plugin"'))

    return tomlkit.dumps(doc)
