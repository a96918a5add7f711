"""
Extensions.

This package handles:
- Extension and module records
- Descriptor reading from files, directories and archives
- Loading and removing extension graphs
"""

from modhost.extension.descriptor import (
    DESCRIPTOR_ENTRY,
    DescriptorError,
    DescriptorFormatError,
    DescriptorNotFoundError,
    parse_extension,
    read_descriptor,
)
from modhost.extension.manager import (
    ExtensionCycleError,
    ExtensionError,
    ExtensionManager,
    ExtensionRegistry,
    ExtensionState,
    MissingModuleError,
    OrchestrationContext,
)
from modhost.extension.model import Extension, Module

__all__ = [
    "DESCRIPTOR_ENTRY",
    "DescriptorError",
    "DescriptorFormatError",
    "DescriptorNotFoundError",
    "Extension",
    "ExtensionCycleError",
    "ExtensionError",
    "ExtensionManager",
    "ExtensionRegistry",
    "ExtensionState",
    "MissingModuleError",
    "Module",
    "OrchestrationContext",
    "parse_extension",
    "read_descriptor",
]
