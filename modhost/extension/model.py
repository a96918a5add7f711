"""
Extension Model.

In-memory records parsed from extension descriptors.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Module:
    """
    A deployable unit declared by an extension.

    Attributes:
        location: Artifact locator of the module
        type: Optional module type hint (a handler module_type)
        properties: Properties passed to the module on install
    """

    location: str
    type: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class Extension:
    """
    A named, versioned set of modules and nested extensions.

    Attributes:
        name: Extension name
        version: Extension version
        extensions: Locators of inner extensions, in load order
        modules: Declared modules, in install order
        description: Extension description
    """

    name: str
    version: str
    extensions: list[str] = field(default_factory=list)
    modules: list[Module] = field(default_factory=list)
    description: str = ""

    def __str__(self) -> str:
        return f"{self.name}/{self.version}"
