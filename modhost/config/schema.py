"""
Configuration Schema.

This module declares the host settings and validates configuration
values against them.

Key features:
- Type-checked field definitions with constraints
- The [modhost] table schema
- Validation of partial configurations (missing fields take defaults)
"""

from dataclasses import dataclass
from typing import Any

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [ %(name)s ] : %(message)s"


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for lists)
        max: Maximum value (for numbers) or maximum length (for lists)
        choices: List of allowed values (optional)
        item_type: Expected type of list items (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None
    item_type: type | None = None

    def __post_init__(self):
        """Validate field definition."""
        if not _is_instance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def validate(self, value: Any) -> Any:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Returns:
            The value, with ints widened to float for float fields

        Raises:
            ValidationError: If validation fails
        """
        if not _is_instance(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )
        if self.type_ is float:
            value = float(value)

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        if self.type_ in (int, float):
            if self.min is not None and value < self.min:
                raise ValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ValidationError(
                    f"Value {value} is greater than maximum {self.max}"
                )

        if self.type_ is list:
            if self.min is not None and len(value) < self.min:
                raise ValidationError(
                    f"List length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ValidationError(
                    f"List length {len(value)} is greater than maximum {self.max}"
                )
            if self.item_type is not None:
                for item in value:
                    if not _is_instance(item, self.item_type):
                        raise ValidationError(
                            f"List item {item!r} is not of type {self.item_type.__name__}"
                        )

        return value


def _is_instance(value: Any, type_: type) -> bool:
    # bool is an int subclass; TOML integers are acceptable floats
    if type_ in (int, float) and isinstance(value, bool):
        return False
    if type_ is float:
        return isinstance(value, (int, float))
    return isinstance(value, type_)


HOST_SCHEMA: dict[str, ConfigField] = {
    "base_dir": ConfigField(str, ".", "Base directory relative paths resolve against"),
    "cache_dir": ConfigField(
        str, ".modhost/cache", "Artifact cache directory (relative to base_dir)"
    ),
    "clear_cache": ConfigField(bool, False, "Empty the artifact cache on startup"),
    "repositories": ConfigField(
        list,
        [],
        "Repositories for group:artifact:version locators (directories or URLs)",
        item_type=str,
    ),
    "modules": ConfigField(list, [], "Modules installed on startup", item_type=str),
    "extensions": ConfigField(
        list, [], "Extensions loaded on startup", item_type=str
    ),
    "strict_module_types": ConfigField(
        bool, False, "Fail extension loads when no handler claims a declared module"
    ),
    "download_timeout": ConfigField(
        float, 60.0, "Download timeout in seconds", min=1.0
    ),
    "log_level": ConfigField(
        str,
        "INFO",
        "Log level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    ),
    "log_format": ConfigField(str, DEFAULT_LOG_FORMAT, "logging format string"),
    "banner": ConfigField(str, "", "Startup banner (empty for the default)"),
}

# Tables validated separately from the scalar fields
TABLE_FIELDS = ("applications", "module_defaults")


def validate_config(
    config: dict[str, Any], schema: dict[str, ConfigField] = HOST_SCHEMA
) -> dict[str, Any]:
    """
    Validate a configuration table against a schema.

    Missing fields take their defaults.

    Args:
        config: The configuration table to validate
        schema: The schema dictionary (field_name -> ConfigField)

    Returns:
        A complete configuration dictionary

    Raises:
        ValidationError: If validation fails
    """
    for key in config:
        if key not in schema and key not in TABLE_FIELDS:
            raise ValidationError(f"Unknown configuration field: {key}")

    result = generate_default_config(schema)
    for field_name, field in schema.items():
        if field_name not in config:
            continue
        try:
            result[field_name] = field.validate(config[field_name])
        except ValidationError as e:
            raise ValidationError(f"Field '{field_name}': {e}") from e

    return result


def generate_default_config(
    schema: dict[str, ConfigField] = HOST_SCHEMA,
) -> dict[str, Any]:
    """
    Generate a default configuration from a schema.

    Args:
        schema: The schema dictionary (field_name -> ConfigField)

    Returns:
        A dictionary with default values for all fields
    """
    return {
        field_name: list(field.default) if isinstance(field.default, list) else field.default
        for field_name, field in schema.items()
    }
